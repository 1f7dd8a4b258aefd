"""Book list query entities."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


ALL = "All"


class BookOrder(str, Enum):
    """Sort orders for book lists."""

    UPDATED_DESC = "updated_desc"
    TITLE_ASC = "title_asc"


class BookQuery(BaseModel):
    """Client-side filter and sort criteria for a book list.

    `category` and `status` accept the "All" sentinel to disable the
    respective filter.
    """

    search: Optional[str] = None
    category: str = ALL
    status: str = ALL
    order: BookOrder = BookOrder.UPDATED_DESC

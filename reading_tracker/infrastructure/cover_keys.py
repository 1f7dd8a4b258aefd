"""Object key naming for uploaded covers."""

import re
import uuid

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def cover_key(owner_id: str, suggested_name: str) -> str:
    """Unique, owner-scoped key for an uploaded cover.

    >>> cover_key("uid-1", "My Cover.PNG")  # doctest: +SKIP
    'covers/uid-1/3f2a...-my-cover.png'
    """
    name = _UNSAFE.sub("-", suggested_name.strip().lower()).strip("-.") or "cover"
    owner = _UNSAFE.sub("-", owner_id)
    return f"covers/{owner}/{uuid.uuid4().hex}-{name[:80]}"

"""Identity extraction from identity-provider bearer tokens."""

import logging
from typing import Optional

from jose import JWTError, jwt

from ..domain.entities.errors import AuthenticationError
from ..domain.entities.identity import Identity

logger = logging.getLogger(__name__)


class TokenVerifier:
    """Verifies signed JWTs and turns their claims into an Identity.

    `sub` becomes the uid, `name` and `email` are carried along when the
    provider includes them.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def verify(self, token: Optional[str]) -> Identity:
        """
        Decode and validate a bearer token.

        Args:
            token: The raw JWT, without the "Bearer " prefix.

        Returns:
            Identity: The authenticated user.

        Raises:
            AuthenticationError: If the token is missing, invalid, expired
                or has no subject.
        """
        if not token:
            raise AuthenticationError("Missing authentication token")

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            logger.warning(f"Rejected token: {e}")
            raise AuthenticationError("Invalid authentication token") from e

        uid = claims.get("sub")
        if not uid:
            raise AuthenticationError("Token has no subject")

        return Identity(uid=uid, display_name=claims.get("name"), email=claims.get("email"))

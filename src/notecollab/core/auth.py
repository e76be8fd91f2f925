"""Current-actor identity supplied by the auth collaborator."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from .exceptions import AuthenticationError


@dataclass(frozen=True)
class Actor:
    """The user driving the client, plus the bearer credential to present."""

    username: str
    token: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_token(cls, token: str) -> "Actor":
        """Build the actor from an access token's ``sub`` claim.

        The signature is not checked here: the note service verifies it on every
        request, the client only needs to know who it is acting as.
        """
        claims = read_token_claims(token)
        username = claims.get("sub") or claims.get("username")
        if not username:
            raise AuthenticationError("Access token does not identify a user")
        return cls(username=str(username), token=token)

    def auth_headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


def read_token_claims(token: str) -> Dict[str, Any]:
    """Decode JWT claims without verifying the signature."""
    try:
        return jwt.get_unverified_claims(token)
    except JWTError as e:
        raise AuthenticationError("Invalid access token") from e

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from jose import JWTError, jwt

from . import messages
from .errors import CredentialsError


class TokenCredentialProvider:
    """Bearer-token source injected into the directory client and transports.

    The token itself is owned by whoever signs the user in; this class only
    reads it through ``token_getter`` and inspects its claims. Signatures are
    not verified here: the backend does that.
    """

    def __init__(self, token_getter: Callable[[], Optional[str]]):
        self._token_getter = token_getter

    @classmethod
    def from_token(cls, token: str) -> "TokenCredentialProvider":
        return cls(lambda: token)

    def get_token(self) -> str:
        token = self._token_getter()
        if not token:
            raise CredentialsError("No access token available")
        return token

    def claims(self) -> dict[str, Any]:
        token = self.get_token()
        try:
            return jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise CredentialsError(
                "Access token could not be decoded", user_message=messages.CREDENTIALS_INVALID
            ) from exc

    @property
    def participant_id(self) -> str:
        sub = self.claims().get("sub")
        if not sub:
            raise CredentialsError("Access token has no subject", user_message=messages.CREDENTIALS_INVALID)
        return str(sub)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        exp = self.claims().get("exp")
        if exp is None:
            return False
        now = now or datetime.now(timezone.utc)
        return int(exp) <= int(now.timestamp())

    def authorization_header(self) -> dict[str, str]:
        if self.is_expired():
            raise CredentialsError("Access token has expired", user_message=messages.CREDENTIALS_EXPIRED)
        return {"Authorization": f"Bearer {self.get_token()}"}

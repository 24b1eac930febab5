"""
JWT access token verification for live connections and API calls
"""
import enum
import time
from typing import Optional

import jwt

from .config import JWT_SECRET, JWT_EXPIRES_IN


class AuthReason(enum.Enum):
    MISSING_TOKEN = "missingToken"
    INVALID_TOKEN = "invalidToken"
    EXPIRED_TOKEN = "expiredToken"


# WebSocket close code and reason text per failure
CLOSE_CODES = {
    AuthReason.MISSING_TOKEN: (4001, "No token provided"),
    AuthReason.EXPIRED_TOKEN: (4002, "Token expired"),
    AuthReason.INVALID_TOKEN: (4003, "Invalid token"),
}

HTTP_STATUS = {
    AuthReason.MISSING_TOKEN: 401,
    AuthReason.EXPIRED_TOKEN: 401,
    AuthReason.INVALID_TOKEN: 403,
}


class AuthError(Exception):
    def __init__(self, reason: AuthReason):
        super().__init__(reason.value)
        self.reason = reason

    @property
    def close_code(self) -> int:
        return CLOSE_CODES[self.reason][0]

    @property
    def detail(self) -> str:
        return CLOSE_CODES[self.reason][1]

    @property
    def status(self) -> int:
        return HTTP_STATUS[self.reason]


class TokenVerifier:
    """Validates HS256 bearer tokens into the claims the server needs"""

    algorithm = "HS256"

    def __init__(self, secret: str = JWT_SECRET):
        self.secret = secret

    def verify(self, token: Optional[str]) -> dict:
        """
        Decode a token and return its claims

        Raises:
            AuthError: missing, expired or otherwise invalid token
        """
        if not token:
            raise AuthError(AuthReason.MISSING_TOKEN)
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthError(AuthReason.EXPIRED_TOKEN)
        except jwt.InvalidTokenError:
            raise AuthError(AuthReason.INVALID_TOKEN)

        if not isinstance(claims.get("userId"), int):
            raise AuthError(AuthReason.INVALID_TOKEN)
        return claims

    def mint(self, user_id: int, email: str = "", expires_in: int = JWT_EXPIRES_IN) -> str:
        """
        Mint an access token (dev tooling and tests; issuance lives elsewhere)

        Args:
            user_id: Identity bound to the connection
            email: Informational claim carried alongside the id
            expires_in: Lifetime in seconds, negative for an already expired token
        """
        now = int(time.time())
        payload = {
            "userId": user_id,
            "email": email,
            "iat": now,
            "exp": now + expires_in,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)


def bearer_token(header: Optional[str]) -> Optional[str]:
    """Pull the token out of an 'Authorization: Bearer <token>' header"""
    if not header:
        return None
    parts = header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None

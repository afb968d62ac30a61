"""Session token issuance and validation (signed JWTs)."""

import binascii
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

if TYPE_CHECKING:
    from peaceblog.services.directory import Principal

MIN_SECRET_LENGTH = 32


def utcnow() -> datetime:
    return datetime.now(UTC)


def has_canonical_signature(token: str) -> bool:
    """True when the signature segment is the exact unpadded encoding of its bytes.

    Base64 decoding ignores padding and the unused low bits of the final
    character, so several spellings decode to the same signature. Only the
    canonical one is accepted.
    """
    if "=" in token or token.count(".") != 2:
        return False
    try:
        segment = token.rsplit(".", 1)[1].encode("ascii")
        return base64url_encode(base64url_decode(segment)) == segment
    except (binascii.Error, ValueError):
        return False


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a valid session token."""

    subject: str
    user_id: str
    role: str
    issued_at: datetime
    expires_at: datetime


class TokenStatus(str, Enum):
    """Outcome of validating a session token."""

    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TokenValidation:
    """Result of TokenIssuer.validate. Claims are only set when VALID."""

    status: TokenStatus
    claims: TokenClaims | None = None
    reason: str | None = None

    @property
    def valid(self) -> bool:
        return self.status is TokenStatus.VALID


class TokenIssuer:
    """Mints and validates HMAC-signed session tokens.

    Tokens are self-contained: any process configured with the same secret can
    validate them, and nothing is stored server-side. Changing the secret
    invalidates every token issued with the old one.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(hours=3),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not secret or len(secret) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"Signing secret must be at least {MIN_SECRET_LENGTH} characters"
            )
        if not algorithm.startswith("HS"):
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self._secret = secret
        self.algorithm = algorithm
        self.lifetime = lifetime
        self._clock = clock

    def issue(self, principal: "Principal") -> str:
        """Create a signed token for a principal."""
        issued_at = self._clock()
        payload = {
            "sub": principal.username,
            "userId": principal.id,
            "username": principal.username,
            "role": principal.role,
            "iat": issued_at,
            "exp": issued_at + self.lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: str) -> TokenValidation:
        """Verify the signature, then the expiry.

        Expiry is checked here rather than by the JWT library so the same
        clock drives both issuance and validation.
        """
        if not has_canonical_signature(token):
            return TokenValidation(TokenStatus.INVALID, reason="Non-canonical signature encoding")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            return TokenValidation(TokenStatus.INVALID, reason=str(e))

        try:
            claims = TokenClaims(
                subject=str(payload["sub"]),
                user_id=str(payload["userId"]),
                role=str(payload["role"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), UTC),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), UTC),
            )
        except (KeyError, TypeError, ValueError) as e:
            return TokenValidation(TokenStatus.INVALID, reason=f"Malformed claims: {e!r}")

        if not self._clock() < claims.expires_at:
            return TokenValidation(TokenStatus.EXPIRED, reason="Token has expired")

        return TokenValidation(TokenStatus.VALID, claims=claims)

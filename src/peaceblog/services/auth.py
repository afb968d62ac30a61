"""Administrator two-factor sign-in.

Protocol A, request_code: passcode check, then a one-time code is stored and
emailed. Protocol B, verify_code: the code is consumed and a session token is
issued. Protocol C, validate_token: stateless check of a presented token.

AuthService holds no per-request state itself; pending codes live in the
VerificationStore and tokens are self-contained.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from peaceblog.config import Settings
from peaceblog.services.directory import Principal, PrincipalDirectory
from peaceblog.services.email import EmailService, NotificationDispatcher
from peaceblog.services.passcodes import verify_passcode
from peaceblog.services.tokens import TokenClaims, TokenIssuer, TokenStatus
from peaceblog.services.verification import (
    VerificationStatus,
    VerificationStore,
    generate_code,
)

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Authentication error.

    Every subclass is reported to clients as "unauthorized" with its message.
    """

    code = "unauthorized"
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnknownPrincipal(AuthError):
    code = "unknown_principal"
    default_message = "User does not exist"


class BadCredential(AuthError):
    code = "bad_credential"
    default_message = "Passcode does not match"


class NoPendingRequest(AuthError):
    code = "no_pending_request"
    default_message = "No verification code has been requested"


class CodeExpired(AuthError):
    code = "code_expired"
    default_message = "Verification code has expired"


class CodeIncorrect(AuthError):
    code = "code_incorrect"
    default_message = "Verification code does not match"


class TokenInvalid(AuthError):
    code = "token_invalid"
    default_message = "Invalid token"


class TokenExpired(AuthError):
    code = "token_expired"
    default_message = "Token has expired"


class NotifierFailure(AuthError):
    """The code was stored but the email could not be delivered.

    The stored code stays valid until it expires.
    """

    code = "notifier_failure"
    default_message = "Failed to send verification code email"


@dataclass(frozen=True)
class IssuedToken:
    """A freshly minted session token and who it was issued to."""

    token: str
    principal: Principal
    expires_at: datetime


class AuthService:
    """Sequences the admin sign-in protocols."""

    def __init__(
        self,
        directory: PrincipalDirectory,
        store: VerificationStore,
        issuer: TokenIssuer,
        dispatcher: NotificationDispatcher,
        code_length: int = 6,
    ) -> None:
        self.directory = directory
        self.store = store
        self.issuer = issuer
        self.dispatcher = dispatcher
        self.code_length = code_length

    async def _get_principal(self, username: str) -> Principal:
        principal = await self.directory.find_by_username(username)
        if principal is None:
            raise UnknownPrincipal()
        return principal

    async def request_code(self, username: str, passcode: str) -> str:
        """Check the passcode and email a fresh verification code.

        Any code previously issued to this user stops working. A failed email
        delivery raises NotifierFailure, but the new code remains stored: the
        email may still arrive late.

        Returns:
            Message suitable for showing to the user
        """
        principal = await self._get_principal(username)

        # bcrypt is deliberately slow; keep it off the event loop
        matches = await asyncio.to_thread(verify_passcode, passcode, principal.passcode_hash)
        if not matches:
            logger.info(f"Rejected passcode for {username}")
            raise BadCredential()

        code = generate_code(self.code_length)
        self.store.put(username, code)
        logger.info(f"Issued verification code for {username}")

        # Shield so a disconnecting client can't cancel an in-flight delivery
        delivery = self.dispatcher.dispatch(principal.email, code)
        delivered = await asyncio.shield(delivery)
        if not delivered:
            logger.warning(f"Verification code for {username} stored but email delivery failed")
            raise NotifierFailure()

        return "Verification code has been sent to your email"

    async def verify_code(self, username: str, code: str) -> IssuedToken:
        """Consume a verification code and issue a session token."""
        result = self.store.take_if_valid(username, code)

        if result.status is VerificationStatus.NOT_FOUND:
            raise NoPendingRequest()
        if result.status is VerificationStatus.EXPIRED:
            raise CodeExpired()
        if result.status is VerificationStatus.EXHAUSTED:
            logger.warning(f"Too many incorrect codes for {username}; pending code discarded")
            raise CodeIncorrect("Too many incorrect attempts. Request a new verification code")
        if result.status is VerificationStatus.MISMATCH:
            raise CodeIncorrect()

        principal = await self._get_principal(username)
        token = self.issuer.issue(principal)
        claims = self.validate_token(token)
        logger.info(f"Issued session token for {username}")
        return IssuedToken(token=token, principal=principal, expires_at=claims.expires_at)

    def validate_token(self, token: str) -> TokenClaims:
        """Validate a presented session token and return its claims."""
        validation = self.issuer.validate(token)
        if validation.status is TokenStatus.EXPIRED:
            raise TokenExpired()
        if validation.claims is None:
            logger.debug(f"Token rejected: {validation.reason}")
            raise TokenInvalid()
        return validation.claims


def build_auth_service(
    settings: Settings,
    directory: PrincipalDirectory,
    email: EmailService | None = None,
) -> AuthService:
    """Wire up an AuthService with its own store, issuer and dispatcher."""
    store = VerificationStore(
        ttl=timedelta(seconds=settings.verification_code_ttl_seconds),
        max_attempts=settings.verification_max_attempts,
    )
    issuer = TokenIssuer(
        secret=settings.session_secret,
        algorithm=settings.jwt_algorithm,
        lifetime=timedelta(hours=settings.jwt_expiration_hours),
    )
    dispatcher = NotificationDispatcher(email or EmailService())
    return AuthService(
        directory=directory,
        store=store,
        issuer=issuer,
        dispatcher=dispatcher,
        code_length=settings.verification_code_length,
    )

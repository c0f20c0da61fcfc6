"""Authentication service: password verification, login, logout and request checks."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

import bcrypt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from lightsail_panel.services.audit import AuditAction, AuditService
from lightsail_panel.services.csrf import CSRFGuard
from lightsail_panel.services.ip_allowlist import IPAllowlist
from lightsail_panel.services.rate_limit import LoginRateLimiter
from lightsail_panel.services.session import Session, SessionStore

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
BCRYPT_MAX_PASSWORD_BYTES = 72
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

# Argon2id hashes are accepted as an alternative to bcrypt
ph = PasswordHasher()


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt or Argon2id hash.

    Malformed or unrecognised hashes never verify.
    """
    if password_hash.startswith("$argon2"):
        try:
            return ph.verify(password_hash, password)
        except VerificationError:
            return False
        except InvalidHashError:
            logger.warning("Configured Argon2 password hash is malformed")
            return False

    if password_hash.startswith(_BCRYPT_PREFIXES):
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError as e:
            # Malformed hash, or a password bcrypt refuses (over 72 bytes)
            logger.warning(f"bcrypt verification rejected input: {e}")
            return False

    logger.warning("Configured password hash has an unrecognised format")
    return False


class AuthErrorKind(str, Enum):
    """Every way an authentication or authorization check can fail."""

    NOT_CONFIGURED = "not_configured"
    ACCESS_DENIED = "access_denied"
    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNAUTHORIZED = "unauthorized"
    CSRF_MISMATCH = "csrf_mismatch"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    AuthErrorKind.NOT_CONFIGURED: 503,
    AuthErrorKind.ACCESS_DENIED: 403,
    AuthErrorKind.RATE_LIMITED: 429,
    AuthErrorKind.INVALID_CREDENTIALS: 401,
    AuthErrorKind.UNAUTHORIZED: 401,
    AuthErrorKind.CSRF_MISMATCH: 403,
}


@dataclass(frozen=True)
class AuthFailure:
    """A user-visible authentication failure."""

    kind: AuthErrorKind
    message: str
    remaining: int | None = None
    retry_after_ms: int | None = None

    @property
    def status_code(self) -> int:
        return self.kind.status_code


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a login attempt.

    On success ``session`` and ``session_cookie`` (the signed session id)
    are set; otherwise ``failure`` explains why.
    """

    success: bool
    session: Session | None = None
    session_cookie: str | None = None
    failure: AuthFailure | None = None


@dataclass(frozen=True)
class AuthCheck:
    """Outcome of a request-time authorization check."""

    ok: bool
    session_ip: str | None = None
    failure: AuthFailure | None = None


class AuthorizationError(Exception):
    """Raised at the request boundary to abort with an ``AuthFailure``."""

    def __init__(self, failure: AuthFailure):
        super().__init__(failure.message)
        self.failure = failure

    @property
    def status_code(self) -> int:
        return self.failure.status_code


UNAUTHORIZED = AuthFailure(AuthErrorKind.UNAUTHORIZED, "Unauthorized")
CSRF_MISMATCH = AuthFailure(AuthErrorKind.CSRF_MISMATCH, "Invalid CSRF token")


class AuthService:
    """Owns the panel's authentication state and decisions.

    One instance exists per application and is shared by every request.
    The session store and rate limiter carry their own locks; password
    hashing runs in a worker thread with no lock held.
    """

    def __init__(
        self,
        password_hash: str,
        sessions: SessionStore,
        rate_limiter: LoginRateLimiter,
        csrf: CSRFGuard,
        allowlist: IPAllowlist,
        audit: AuditService,
    ):
        self.password_hash = password_hash
        self.sessions = sessions
        self.rate_limiter = rate_limiter
        self.csrf = csrf
        self.allowlist = allowlist
        self.audit = audit

    async def _audit(
        self,
        action: AuditAction,
        ip: str,
        target: str | None = None,
        details: str | None = None,
    ) -> None:
        try:
            await self.audit.log(action, ip, target, details)
        except Exception:
            logger.exception(f"Audit sink failed for {action.value} from {ip}")

    async def login(self, password: str, ip: str) -> LoginResult:
        """Authenticate the operator and issue a new session.

        Checks run in order and each failure short-circuits the rest:
        allowlist, rate limit, configuration, password.
        """
        if not self.allowlist.allowed(ip):
            logger.warning(f"Login from non-allowlisted address {ip}")
            await self._audit(AuditAction.BLOCKED_IP, ip, "login")
            return LoginResult(
                success=False,
                failure=AuthFailure(AuthErrorKind.ACCESS_DENIED, "Access denied"),
            )

        rate = self.rate_limiter.check(ip)
        if not rate.allowed:
            logger.warning(f"Login rate limit exceeded for {ip}")
            await self._audit(AuditAction.RATE_LIMITED, ip, "login")
            return LoginResult(
                success=False,
                failure=AuthFailure(
                    AuthErrorKind.RATE_LIMITED,
                    "Too many attempts. Try again later.",
                    remaining=0,
                    retry_after_ms=rate.retry_after_ms,
                ),
            )

        if not self.password_hash:
            logger.error("Login attempted but PANEL_PASSWORD_HASH is not configured")
            return LoginResult(
                success=False,
                failure=AuthFailure(
                    AuthErrorKind.NOT_CONFIGURED,
                    "Panel not configured. Run scripts/hash_password.py first.",
                ),
            )

        valid = await asyncio.to_thread(verify_password, password, self.password_hash)

        if not valid:
            updated = self.rate_limiter.record_failure(ip)
            await self._audit(
                AuditAction.LOGIN_FAILED, ip, details=f"{updated.remaining} attempts remaining"
            )
            return LoginResult(
                success=False,
                failure=AuthFailure(
                    AuthErrorKind.INVALID_CREDENTIALS,
                    "Invalid password",
                    remaining=updated.remaining,
                ),
            )

        self.rate_limiter.clear(ip)
        session = self.sessions.issue(ip)
        await self._audit(AuditAction.LOGIN_SUCCESS, ip)
        logger.info(f"Operator logged in from {ip}")

        return LoginResult(
            success=True,
            session=session,
            session_cookie=self.sessions.sign_session_id(session),
        )

    async def logout(self, ip: str) -> None:
        """Drop the live session. Safe to call with no session."""
        self.sessions.invalidate()
        await self._audit(AuditAction.LOGOUT, ip)
        logger.info(f"Operator logged out from {ip}")

    def check_auth(self, ip: str, session_cookie: str | None) -> AuthCheck:
        """Authorize a request by allowlist and session cookie."""
        if not self.allowlist.allowed(ip):
            return AuthCheck(ok=False, failure=UNAUTHORIZED)

        validation = self.sessions.validate(session_cookie)
        if not validation.valid:
            return AuthCheck(ok=False, failure=UNAUTHORIZED)

        return AuthCheck(ok=True, session_ip=validation.ip)

    def check_csrf(self, csrf_header: str | None) -> AuthCheck:
        """Authorize a mutating request by its CSRF header."""
        if not self.csrf.validate(csrf_header):
            return AuthCheck(ok=False, failure=CSRF_MISMATCH)
        return AuthCheck(ok=True)

    async def verify_password(self, password: str) -> bool:
        """Re-check the operator password for a destructive action."""
        if not self.password_hash:
            return False
        return await asyncio.to_thread(verify_password, password, self.password_hash)

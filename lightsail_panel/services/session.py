"""Single-slot session store."""

import logging
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

from lightsail_panel.services.signing import Signer

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60


@dataclass
class Session:
    """The one live operator session.

    ``last_activity`` is informational: expiry is always measured from
    ``created_at`` (fixed lifetime, no renewal).
    """

    id: str
    csrf_token: str
    created_at: float
    last_activity: float
    ip: str


@dataclass(frozen=True)
class SessionValidation:
    """Result of validating a presented session cookie."""

    valid: bool
    ip: str | None = None


INVALID_SESSION = SessionValidation(valid=False)


class SessionStore:
    """Holds at most one session for the whole process.

    Issuing a session replaces whatever session existed, so logging in from
    a second browser silently logs the first one out. Every method takes the
    store lock; none of them does I/O or hashing while holding it.
    """

    def __init__(
        self,
        signer: Signer,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._signer = signer
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._session: Session | None = None
        self._lock = threading.Lock()

    def issue(self, ip: str) -> Session:
        """Create a new session for ``ip``, discarding any previous one."""
        now = self._clock()
        session = Session(
            id=secrets.token_urlsafe(32),
            csrf_token=secrets.token_hex(32),
            created_at=now,
            last_activity=now,
            ip=ip,
        )
        with self._lock:
            if self._session is not None:
                logger.info(f"Replacing active session from {self._session.ip} with new login from {ip}")
            self._session = session
        return replace(session)

    def sign_session_id(self, session: Session) -> str:
        """Return the cookie value for ``session``."""
        return self._signer.sign(session.id)

    def validate(self, signed_session_id: str | None) -> SessionValidation:
        """Validate a signed session cookie against the live session.

        A forged cookie, a well-signed cookie from an earlier session and a
        missing cookie all produce the same invalid result.
        """
        session_id = self._signer.verify(signed_session_id)
        if session_id is None:
            return INVALID_SESSION

        with self._lock:
            session = self._session
            if session is None or not secrets.compare_digest(
                session.id.encode("utf-8"), session_id.encode("utf-8")
            ):
                return INVALID_SESSION

            now = self._clock()
            if now - session.created_at > self.max_age_seconds:
                self._session = None
                logger.info(f"Session from {session.ip} expired")
                return INVALID_SESSION

            session.last_activity = now
            return SessionValidation(valid=True, ip=session.ip)

    def invalidate(self) -> None:
        """Drop the live session, if any."""
        with self._lock:
            self._session = None

    def current(self) -> Session | None:
        """Return a copy of the live session, or None."""
        with self._lock:
            return replace(self._session) if self._session is not None else None

    def csrf_token(self) -> str | None:
        with self._lock:
            return self._session.csrf_token if self._session is not None else None

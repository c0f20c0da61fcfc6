"""Double-submit CSRF protection bound to the live session."""

import secrets

from lightsail_panel.services.session import SessionStore

CSRF_COOKIE = "lsp_csrf"
CSRF_HEADER = "X-CSRF-Token"


class CSRFGuard:
    """Compare a request header against the live session's CSRF token.

    The token travels to the browser in a script-readable cookie and must
    come back in the ``X-CSRF-Token`` header. A cross-origin page can make
    the browser send the cookie but cannot read it to fill the header.
    """

    def __init__(self, sessions: SessionStore):
        self._sessions = sessions

    def validate(self, presented_token: str | None) -> bool:
        expected = self._sessions.csrf_token()
        if expected is None or not presented_token:
            return False
        return secrets.compare_digest(expected.encode("utf-8"), presented_token.encode("utf-8"))

"""HMAC signing for tamper-evident cookie values."""

import hashlib
import hmac

SEPARATOR = "."


class SigningError(Exception):
    """Raised when a signer cannot be constructed."""


class Signer:
    """Deterministic HMAC-SHA256 signer.

    ``sign("abc")`` returns ``"abc.<hex digest>"``. Signing the same value
    with the same secret always yields the same output, so verification
    recomputes the tag and compares it in constant time. Rotating the
    secret invalidates every previously signed value.
    """

    def __init__(self, secret: str):
        if not secret:
            raise SigningError("Signing secret must not be empty")
        self._key = secret.encode("utf-8")

    def _tag(self, value: str) -> str:
        return hmac.new(self._key, value.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign(self, value: str) -> str:
        """Append a keyed tag to ``value``."""
        return f"{value}{SEPARATOR}{self._tag(value)}"

    def verify(self, signed: str | None) -> str | None:
        """Return the original value, or None for any malformed or forged input."""
        if not signed:
            return None
        value, sep, tag = signed.rpartition(SEPARATOR)
        if not sep:
            return None
        expected = self._tag(value)
        if not hmac.compare_digest(expected.encode("utf-8"), tag.encode("utf-8")):
            return None
        return value

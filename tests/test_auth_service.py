"""Tests for password hashing and the AuthService façade."""

import inspect
from unittest.mock import AsyncMock, patch

import pytest
from argon2 import PasswordHasher

from lightsail_panel.services.audit import AuditAction, AuditService
from lightsail_panel.services.auth import (
    BCRYPT_ROUNDS,
    AuthErrorKind,
    AuthService,
    hash_password,
    verify_password,
)
from lightsail_panel.services.csrf import CSRFGuard
from lightsail_panel.services.ip_allowlist import IPAllowlist
from lightsail_panel.services.rate_limit import LoginRateLimiter
from lightsail_panel.services.session import SessionStore
from lightsail_panel.services.signing import Signer
from tests.conftest import TEST_PASSWORD, WRONG_PASSWORD

IP = "203.0.113.50"


class TestPasswordHashing:
    """Tests for hash_password / verify_password."""

    def test_bcrypt_round_trip(self, password_hash):
        assert password_hash.startswith("$2b$04$")
        assert verify_password(TEST_PASSWORD, password_hash) is True
        assert verify_password(WRONG_PASSWORD, password_hash) is False

    def test_default_cost_is_12(self):
        assert BCRYPT_ROUNDS == 12
        assert inspect.signature(hash_password).parameters["rounds"].default == BCRYPT_ROUNDS

    def test_hash_uses_requested_cost(self):
        assert hash_password("x", rounds=5).startswith("$2b$05$")

    def test_argon2_hash_accepted(self):
        argon_hash = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1).hash(TEST_PASSWORD)
        assert verify_password(TEST_PASSWORD, argon_hash) is True
        assert verify_password(WRONG_PASSWORD, argon_hash) is False

    @pytest.mark.parametrize(
        "bad_hash",
        ["", "plaintext", "$2b$12$tooshort", "$argon2id$v=19$garbage", "$1$md5crypt$xyz"],
    )
    def test_malformed_hash_fails_closed(self, bad_hash):
        assert verify_password(TEST_PASSWORD, bad_hash) is False

    def test_overlong_password_does_not_raise(self, password_hash):
        assert verify_password("x" * 200, password_hash) is False


@pytest.fixture
def audit():
    service = AuditService()
    service.log = AsyncMock()
    return service


@pytest.fixture
def make_auth(password_hash, clock, audit):
    def _make(hash_value=password_hash, allowed_ips=()):
        sessions = SessionStore(Signer("a" * 64), clock=clock)
        return AuthService(
            password_hash=hash_value,
            sessions=sessions,
            rate_limiter=LoginRateLimiter(clock=clock),
            csrf=CSRFGuard(sessions),
            allowlist=IPAllowlist(allowed_ips),
            audit=audit,
        )

    return _make


@pytest.fixture
def auth(make_auth):
    return make_auth()


def _audited_actions(audit) -> list[AuditAction]:
    return [c.args[0] for c in audit.log.await_args_list]


class TestLogin:
    """Tests for AuthService.login."""

    @pytest.mark.asyncio
    async def test_success_issues_session(self, auth, audit):
        result = await auth.login(TEST_PASSWORD, IP)

        assert result.success is True
        assert result.failure is None
        assert result.session.ip == IP
        assert auth.sessions.validate(result.session_cookie).valid is True
        assert _audited_actions(audit) == [AuditAction.LOGIN_SUCCESS]

    @pytest.mark.asyncio
    async def test_success_clears_failures(self, auth):
        await auth.login(WRONG_PASSWORD, IP)
        await auth.login(WRONG_PASSWORD, IP)
        await auth.login(TEST_PASSWORD, IP)

        assert auth.rate_limiter.get_entry(IP) is None

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth, audit):
        result = await auth.login(WRONG_PASSWORD, IP)

        assert result.success is False
        assert result.failure.kind == AuthErrorKind.INVALID_CREDENTIALS
        assert result.failure.message == "Invalid password"
        assert result.failure.remaining == 4
        assert result.failure.status_code == 401
        assert auth.sessions.current() is None

        audit.log.assert_awaited_once_with(
            AuditAction.LOGIN_FAILED, IP, None, "4 attempts remaining"
        )

    @pytest.mark.asyncio
    async def test_sixth_attempt_rate_limited_without_password_check(self, auth, audit):
        """Once the budget is spent even the right password is refused."""
        for _ in range(5):
            await auth.login(WRONG_PASSWORD, IP)

        with patch("lightsail_panel.services.auth.verify_password") as verify:
            result = await auth.login(TEST_PASSWORD, IP)
        verify.assert_not_called()

        assert result.failure.kind == AuthErrorKind.RATE_LIMITED
        assert result.failure.message == "Too many attempts. Try again later."
        assert result.failure.remaining == 0
        assert result.failure.status_code == 429
        assert _audited_actions(audit)[-1] == AuditAction.RATE_LIMITED
        # Blocked attempts are not counted as further failures
        assert auth.rate_limiter.get_entry(IP).attempts == 5

    @pytest.mark.asyncio
    async def test_remaining_counts_down(self, auth):
        remaining = [(await auth.login(WRONG_PASSWORD, IP)).failure.remaining for _ in range(5)]
        assert remaining == [4, 3, 2, 1, 0]

    @pytest.mark.asyncio
    async def test_window_expiry_allows_login(self, auth, clock):
        for _ in range(5):
            await auth.login(WRONG_PASSWORD, IP)
        clock.advance(901)

        result = await auth.login(TEST_PASSWORD, IP)
        assert result.success is True

    @pytest.mark.asyncio
    async def test_lockout_reports_retry_after(self, auth, clock):
        for _ in range(10):
            auth.rate_limiter.record_failure(IP)
        clock.advance(1000)

        result = await auth.login(TEST_PASSWORD, IP)
        assert result.failure.kind == AuthErrorKind.RATE_LIMITED
        assert result.failure.retry_after_ms == 800 * 1000

    @pytest.mark.asyncio
    async def test_blocked_ip_checked_first(self, make_auth, audit):
        auth = make_auth(allowed_ips=["10.0.0.0/8"])

        with patch("lightsail_panel.services.auth.verify_password") as verify:
            result = await auth.login(TEST_PASSWORD, IP)
        verify.assert_not_called()

        assert result.failure.kind == AuthErrorKind.ACCESS_DENIED
        assert result.failure.message == "Access denied"
        assert result.failure.status_code == 403
        assert auth.rate_limiter.get_entry(IP) is None
        assert _audited_actions(audit) == [AuditAction.BLOCKED_IP]

    @pytest.mark.asyncio
    async def test_blocked_ip_precedes_rate_limit(self, make_auth):
        auth = make_auth(allowed_ips=["10.0.0.0/8"])
        for _ in range(10):
            auth.rate_limiter.record_failure(IP)

        result = await auth.login(TEST_PASSWORD, IP)
        assert result.failure.kind == AuthErrorKind.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_allowlisted_ip_can_login(self, make_auth):
        auth = make_auth(allowed_ips=["203.0.113.0/24"])
        assert (await auth.login(TEST_PASSWORD, IP)).success is True

    @pytest.mark.asyncio
    async def test_not_configured(self, make_auth):
        auth = make_auth(hash_value="")
        result = await auth.login(TEST_PASSWORD, IP)

        assert result.failure.kind == AuthErrorKind.NOT_CONFIGURED
        assert result.failure.status_code == 503
        assert "hash_password.py" in result.failure.message
        assert auth.rate_limiter.get_entry(IP) is None

    @pytest.mark.asyncio
    async def test_rate_limit_precedes_not_configured(self, make_auth):
        auth = make_auth(hash_value="")
        for _ in range(5):
            auth.rate_limiter.record_failure(IP)

        result = await auth.login(TEST_PASSWORD, IP)
        assert result.failure.kind == AuthErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_login_replaces_previous_session(self, auth):
        first = await auth.login(TEST_PASSWORD, IP)
        second = await auth.login(TEST_PASSWORD, "203.0.113.51")

        assert auth.check_auth(IP, first.session_cookie).ok is False
        assert auth.check_auth("203.0.113.51", second.session_cookie).ok is True

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_block_login(self, auth, audit):
        audit.log.side_effect = OSError("disk full")
        result = await auth.login(TEST_PASSWORD, IP)
        assert result.success is True


class TestRequestChecks:
    """Tests for check_auth, check_csrf, logout and step-up verification."""

    @pytest.mark.asyncio
    async def test_check_auth_valid(self, auth):
        result = await auth.login(TEST_PASSWORD, IP)
        check = auth.check_auth(IP, result.session_cookie)
        assert check.ok is True
        assert check.session_ip == IP

    def test_check_auth_missing_cookie(self, auth):
        check = auth.check_auth(IP, None)
        assert check.ok is False
        assert check.failure.kind == AuthErrorKind.UNAUTHORIZED
        assert check.failure.status_code == 401

    @pytest.mark.asyncio
    async def test_check_auth_from_other_address(self, auth):
        """The session is not bound to the login address."""
        result = await auth.login(TEST_PASSWORD, IP)
        assert auth.check_auth("198.51.100.1", result.session_cookie).ok is True

    @pytest.mark.asyncio
    async def test_check_auth_blocked_ip(self, make_auth):
        auth = make_auth(allowed_ips=[IP])
        result = await auth.login(TEST_PASSWORD, IP)

        check = auth.check_auth("198.51.100.1", result.session_cookie)
        assert check.ok is False
        assert check.failure.kind == AuthErrorKind.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_check_auth_expired(self, auth, clock):
        result = await auth.login(TEST_PASSWORD, IP)
        clock.advance(86401)
        assert auth.check_auth(IP, result.session_cookie).ok is False

    @pytest.mark.asyncio
    async def test_check_csrf(self, auth):
        result = await auth.login(TEST_PASSWORD, IP)

        assert auth.check_csrf(result.session.csrf_token).ok is True
        bad = auth.check_csrf("nope")
        assert bad.ok is False
        assert bad.failure.kind == AuthErrorKind.CSRF_MISMATCH
        assert bad.failure.status_code == 403
        assert auth.check_csrf(None).ok is False

    @pytest.mark.asyncio
    async def test_logout_invalidates_session(self, auth, audit):
        result = await auth.login(TEST_PASSWORD, IP)
        await auth.logout(IP)

        assert auth.check_auth(IP, result.session_cookie).ok is False
        assert auth.check_csrf(result.session.csrf_token).ok is False
        assert _audited_actions(audit)[-1] == AuditAction.LOGOUT

    @pytest.mark.asyncio
    async def test_logout_without_session(self, auth):
        await auth.logout(IP)
        assert auth.sessions.current() is None

    @pytest.mark.asyncio
    async def test_verify_password(self, auth):
        assert await auth.verify_password(TEST_PASSWORD) is True
        assert await auth.verify_password(WRONG_PASSWORD) is False

    @pytest.mark.asyncio
    async def test_verify_password_does_not_touch_rate_limit(self, auth):
        await auth.verify_password(WRONG_PASSWORD)
        assert len(auth.rate_limiter) == 0

    @pytest.mark.asyncio
    async def test_verify_password_not_configured(self, make_auth):
        auth = make_auth(hash_value="")
        assert await auth.verify_password(TEST_PASSWORD) is False

# Lightsail Panel Services
from lightsail_panel.services.audit import AuditAction, AuditService
from lightsail_panel.services.auth import AuthService
from lightsail_panel.services.csrf import CSRFGuard
from lightsail_panel.services.ip_allowlist import IPAllowlist
from lightsail_panel.services.rate_limit import LoginRateLimiter, LoginRateLimitPolicy
from lightsail_panel.services.session import SessionStore
from lightsail_panel.services.signing import Signer
from lightsail_panel.services.systemd import SystemdService

__all__ = [
    "AuditAction",
    "AuditService",
    "AuthService",
    "CSRFGuard",
    "IPAllowlist",
    "LoginRateLimitPolicy",
    "LoginRateLimiter",
    "SessionStore",
    "Signer",
    "SystemdService",
]

"""Lightsail Panel - password-gated control panel for systemd services."""

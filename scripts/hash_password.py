#!/usr/bin/env python3
"""Password setup utility for Lightsail Panel.

Prompts for the panel password twice and prints the two lines to add to
the panel's ``.env`` file: a cost-12 bcrypt hash and a fresh signing
secret.

Usage:
    python scripts/hash_password.py
    python scripts/hash_password.py --rounds 13
"""

import argparse
import getpass
import secrets
import sys

from lightsail_panel.services.auth import BCRYPT_MAX_PASSWORD_BYTES, BCRYPT_ROUNDS, hash_password

MIN_PASSWORD_LENGTH = 8


def check_password(password: str, confirm: str) -> str | None:
    """Return an error message, or None if the password is acceptable."""
    if password != confirm:
        return "Passwords do not match."
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
        return f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes."
    return None


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate Lightsail Panel credentials")
    parser.add_argument(
        "--rounds",
        type=int,
        default=BCRYPT_ROUNDS,
        help=f"bcrypt cost factor (default: {BCRYPT_ROUNDS})",
    )
    args = parser.parse_args(argv)

    password = getpass.getpass("Panel password: ")
    confirm = getpass.getpass("Confirm password: ")

    error = check_password(password, confirm)
    if error:
        print(f"ERROR: {error}", file=sys.stderr)
        return 1

    print()
    print("Add these lines to your .env file:")
    print()
    print(f"PANEL_PASSWORD_HASH={hash_password(password, rounds=args.rounds)}")
    print(f"PANEL_SECRET={secrets.token_hex(32)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

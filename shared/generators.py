"""
Random code and identifier generators — pure, side-effect-free functions.

All generators use the ``secrets`` module; nothing here may fall back to the
``random`` PRNG.
"""

from __future__ import annotations

import secrets

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp_code() -> str:
    """Generate a cryptographically secure 6-digit OTP.

    Draws uniformly from ``[100000, 999999]`` with ``secrets.randbelow`` so
    every code is equally likely and never has a leading zero.

    Returns:
        Six-character string of ASCII digits.
    """
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def generate_jti() -> str:
    """Unique token id (128 bits, hex)."""
    return secrets.token_hex(16)


def generate_session_id() -> str:
    """Session id shared by an access/refresh pair (256 bits, hex)."""
    return secrets.token_hex(32)

"""
Random code generators — pure, side-effect-free functions.

All generators use the cryptographically secure ``secrets`` module.
"""

from __future__ import annotations

import secrets


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    The value is drawn uniformly from ``[10**(length-1), 10**length - 1]``,
    so the code always has exactly *length* digits and never starts with 0.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of decimal digits.
    """
    if length < 1:
        raise ValueError("OTP length must be at least 1")
    low = 10 ** (length - 1)
    high = 10**length - 1
    return str(low + secrets.randbelow(high - low + 1))

"""
Input validators — framework-agnostic, pure functions.
"""

from __future__ import annotations

import re

_TEMPLATE_NAME_RE = re.compile(r"[a-zA-Z0-9_-]+")


def validate_otp_format(code: object, length: int = 6) -> bool:
    """Return True if *code* is a string of exactly *length* ASCII digits.

    No trimming is applied: surrounding whitespace makes the code invalid.
    """
    if not isinstance(code, str) or len(code) != length:
        return False
    return all("0" <= ch <= "9" for ch in code)


def validate_template_name(name: str) -> bool:
    """Template names are restricted to letters, digits, hyphens and underscores.

    Keeps caller-supplied names from escaping the template directory.
    """
    return bool(_TEMPLATE_NAME_RE.fullmatch(name))

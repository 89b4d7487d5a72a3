from __future__ import annotations

import re
import secrets
import string

_NAME_PATTERNS: dict[str, re.Pattern[str]] = {
    "resource_group": re.compile(r"^[-\w._()]{1,90}$"),
    "sql_server": re.compile(r"^[a-z0-9][a-z0-9-]{0,61}[a-z0-9]$"),
    "sql_database": re.compile(r"^[^<>*%&:\\/?]{1,128}$"),
    "generic": re.compile(r"^[a-zA-Z0-9-_.]{1,80}$"),
}

_SYMBOLS = "!@#$%^&*"


def validate_name(kind: str, value: str | None) -> bool:
    if not value:
        return False
    pat = _NAME_PATTERNS.get(kind) or _NAME_PATTERNS["generic"]
    return bool(pat.match(value))


def create_random_name(prefix: str, max_len: int = 24) -> str:
    """``prefix`` followed by up to 12 random digits, at most ``max_len`` characters."""
    if len(prefix) >= max_len:
        raise ValueError(f"prefix {prefix!r} leaves no room for a random suffix")
    suffix_len = min(max_len - len(prefix), 12)
    suffix = "".join(secrets.choice(string.digits) for _ in range(suffix_len))
    return f"{prefix}{suffix}".lower()


def create_password(length: int = 16) -> str:
    # Azure SQL requires characters from at least three of the four classes.
    if length < 8:
        raise ValueError("password length must be at least 8")
    classes = (string.ascii_uppercase, string.ascii_lowercase, string.digits, _SYMBOLS)
    chars = [secrets.choice(c) for c in classes]
    alphabet = "".join(classes)
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)

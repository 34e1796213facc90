"""Security helpers for headers, input sanitation, and credential policy."""
import html
from typing import Mapping

from flask import request


def sanitize_input(data: Mapping) -> dict:
    """Return an escaped copy of query/form data to reduce injection risk."""
    sanitized = {}
    for key, value in data.items():
        sanitized[html.escape(str(key))] = html.escape(str(value)).strip()
    return sanitized


def apply_security_headers(response, force_https: bool = False):
    """Apply headers for a JSON API: no framing, no sniffing, no inline content."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    # Geolocation is read by the submission client, not by this API.
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault("Cache-Control", "no-store")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response


def parse_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


PASSWORD_MIN_LENGTH = 12
PASSWORD_SYMBOLS = "!@#$%^&*()-_=+[]{}|;:,.<>?/"

_PASSWORD_RULES = (
    (lambda pw: len(pw) >= PASSWORD_MIN_LENGTH, f"at least {PASSWORD_MIN_LENGTH} characters"),
    (lambda pw: pw.lower() != pw and pw.upper() != pw, "a mix of upper and lower case letters"),
    (lambda pw: any(c.isdigit() for c in pw), "a digit"),
    (lambda pw: any(c in PASSWORD_SYMBOLS for c in pw), "a symbol"),
)


def password_problems(password: str) -> list[str]:
    """Requirements the password misses; empty when it is acceptable."""
    return [requirement for check, requirement in _PASSWORD_RULES if not check(password or "")]

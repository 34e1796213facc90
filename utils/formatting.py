"""Display helpers for currency, relative times, and status badges."""
from __future__ import annotations

from datetime import datetime

CRORE = 10_000_000
LAKH = 100_000

_STATUS_BADGES: dict[str, str] = {
    "Open": "danger",
    "Under Review": "warning",
    "Resolved": "success",
}


def _trim(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return text or "0"


def format_inr(amount) -> str:
    """Render rupees the way the portal shows them: crore, lakh, or plain."""
    if amount is None:
        return "-"
    value = float(amount)
    sign = "-" if value < 0 else ""
    value = abs(value)
    if value >= CRORE:
        return f"{sign}₹{_trim(value / CRORE)} Crore"
    if value >= LAKH:
        return f"{sign}₹{_trim(value / LAKH)} Lakh"
    return f"{sign}₹{value:,.0f}"


def time_ago(moment: datetime | None, now: datetime | None = None) -> str:
    if moment is None:
        return ""
    now = now or datetime.utcnow()
    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 30:
        return f"{days}d ago"
    return moment.strftime("%Y-%m-%d")


def status_badge(status: str | None) -> str:
    return _STATUS_BADGES.get(status or "", "secondary")


def percentage(part, whole) -> float:
    if not whole:
        return 0.0
    return round(float(part) * 100.0 / float(whole), 1)

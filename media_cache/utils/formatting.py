"""
Helper functions for formatting cache data into human-readable strings.
"""

from datetime import datetime, timezone


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_remaining(expires_at: float, now: float) -> str:
    """
    Formats the time left until `expires_at` (e.g., '6d 23h', '42m', 'expired').
    """
    remaining = int(expires_at - now)
    if remaining <= 0:
        return "expired"
    days, remainder = divmod(remaining, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{max(minutes, 1)}m"


def format_timestamp(ts: float) -> str:
    """Formats an epoch timestamp as a UTC date and time."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def redact_url(url: str) -> str:
    """Strips the query string (the signature) from a signed URL for logging."""
    return url.split("?", 1)[0]

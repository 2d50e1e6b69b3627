from typing import Optional
from datetime import datetime


def truncate_string(s: str, max_len: int = 80, suffix: str = "...") -> str:
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix


def single_line(sql: str) -> str:
    """Collapse all whitespace, newlines included, to single spaces."""
    return " ".join((sql or "").split())


def parse_port(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    value = value.strip()
    if not value.isdigit():
        return None
    port = int(value)
    return port if 0 < port < 65536 else None


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def format_time(moment: datetime) -> str:
    return moment.strftime("%H:%M:%S")

"""Terminal formatting — dates, level colours and keyword highlighting."""

from datetime import datetime

from log_viewer.models import LogRecord

# ANSI color codes
COLORS = {
    "ERROR": "\033[31m",   # red
    "WARNING": "\033[33m", # yellow
    "INFO": "\033[32m",    # green
}
HIGHLIGHT = "\033[1;30;43m"  # bold on yellow
RESET = "\033[0m"

# Plain-text markers standing in for the level icons.
LEVEL_MARKERS = {
    "ERROR": "!",
    "WARNING": "i",
    "INFO": "+",
}

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_date(value) -> str:
    """Render an ISO date string or a Unix timestamp as local 'YYYY-MM-DD HH:MM:SS'.

    Unparseable strings are returned unchanged.
    """
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if dt.tzinfo is not None:
            dt = dt.astimezone()
        return dt.strftime(DATE_FORMAT)
    return datetime.fromtimestamp(float(value)).strftime(DATE_FORMAT)


def apply_highlight(text: str, spans: list[tuple[int, int]], color: bool = True) -> str:
    """Wrap each span in ANSI highlight codes (or [brackets] without colour)."""
    if not spans:
        return text
    start_mark, end_mark = (HIGHLIGHT, RESET) if color else ("[", "]")
    parts = []
    last = 0
    for start, end in spans:
        parts.append(text[last:start])
        parts.append(f"{start_mark}{text[start:end]}{end_mark}")
        last = end
    parts.append(text[last:])
    return "".join(parts)


def format_record(record: LogRecord, spans=None, color: bool = True) -> str:
    """One display line: date, level marker, message with highlighted keyword."""
    date = format_date(record.date_time or record.timestamp)
    level = str(record.level) if record.level is not None else ""
    marker = LEVEL_MARKERS.get(level, " ")
    if color and level in COLORS:
        marker = f"{COLORS[level]}{marker}{RESET}"
    message = apply_highlight(record.log_string, spans or [], color=color)
    return f"{date} {marker} {message}"

"""
CSV handling for Reporting API exports.

Exports are RFC 4180-ish: quoted fields may contain commas, doubled quotes
and line breaks, and files may use CRLF, LF or bare CR line endings.
"""

import csv
import io
import re

_HEADER_KEY_RE = re.compile(r"[^a-z0-9]")


def parse_csv_rows(content: str | None) -> list[list[str]]:
    """Split CSV text into rows, dropping rows whose cells are all blank."""
    if not content:
        return []

    reader = csv.reader(io.StringIO(content, newline=""), strict=False)
    return [row for row in reader if any(cell.strip() for cell in row)]


def parse_reporting_csv(content: str | None) -> tuple[list[str], list[list[str]]]:
    """Return (trimmed header row, data rows)."""
    rows = parse_csv_rows(content)
    if not rows:
        return [], []
    headers = [value.strip() for value in rows[0]]
    return headers, rows[1:]


def normalize_header_key(value: object) -> str:
    return _HEADER_KEY_RE.sub("", str(value if value is not None else "").strip().lower())


def find_header_index(headers: list[str], candidates: list[str]) -> int:
    """
    Index of the first candidate present in headers, or -1.

    Matching ignores case and punctuation, so "videoId", "video_id" and
    "Video ID" all match each other. Candidates are tried in order.
    """
    normalized = [normalize_header_key(header) for header in headers]
    for candidate in candidates:
        key = normalize_header_key(candidate)
        if key in normalized:
            return normalized.index(key)
    return -1

"""
Value coercion and label normalisation shared by every data source.
"""

import math
from datetime import date, datetime
from typing import Any

# Regions that show up in YouTube audience reports. Unknown codes fall back
# to the raw code.
COUNTRY_NAMES: dict[str, str] = {
    "AE": "United Arab Emirates",
    "AR": "Argentina",
    "AT": "Austria",
    "AU": "Australia",
    "BD": "Bangladesh",
    "BE": "Belgium",
    "BR": "Brazil",
    "CA": "Canada",
    "CH": "Switzerland",
    "CL": "Chile",
    "CN": "China",
    "CO": "Colombia",
    "CZ": "Czechia",
    "DE": "Germany",
    "DK": "Denmark",
    "DZ": "Algeria",
    "EG": "Egypt",
    "ES": "Spain",
    "FI": "Finland",
    "FR": "France",
    "GB": "United Kingdom",
    "GH": "Ghana",
    "GR": "Greece",
    "HK": "Hong Kong SAR China",
    "HU": "Hungary",
    "ID": "Indonesia",
    "IE": "Ireland",
    "IL": "Israel",
    "IN": "India",
    "IQ": "Iraq",
    "IT": "Italy",
    "JP": "Japan",
    "KE": "Kenya",
    "KR": "South Korea",
    "KZ": "Kazakhstan",
    "MA": "Morocco",
    "MX": "Mexico",
    "MY": "Malaysia",
    "NG": "Nigeria",
    "NL": "Netherlands",
    "NO": "Norway",
    "NZ": "New Zealand",
    "PE": "Peru",
    "PH": "Philippines",
    "PK": "Pakistan",
    "PL": "Poland",
    "PT": "Portugal",
    "RO": "Romania",
    "RS": "Serbia",
    "RU": "Russia",
    "SA": "Saudi Arabia",
    "SE": "Sweden",
    "SG": "Singapore",
    "TH": "Thailand",
    "TR": "Türkiye",
    "TW": "Taiwan",
    "UA": "Ukraine",
    "US": "United States",
    "VE": "Venezuela",
    "VN": "Vietnam",
    "ZA": "South Africa",
}

_DATE_FORMATS = ("%Y-%m-%d", "%Y%m%d")


def to_number(value: Any) -> float:
    """Lenient numeric coercion; anything unparseable or non-finite is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def normalize_age_label(value: Any) -> str:
    """Strip the "age" prefix: age18-24 -> 18-24, age65- -> 65+."""
    trimmed = str(value if value is not None else "").strip()
    if not trimmed:
        return ""
    if trimmed.startswith("age"):
        label = trimmed[3:]
        return f"{label[:-1]}+" if label.endswith("-") else label
    return trimmed


def normalize_gender_label(value: Any) -> str:
    trimmed = str(value if value is not None else "").strip().lower()
    if not trimmed:
        return ""
    if trimmed == "female":
        return "Women"
    if trimmed == "male":
        return "Men"
    if "unknown" in trimmed:
        return "Unknown"
    return trimmed[0].upper() + trimmed[1:]


def resolve_country_label(value: Any) -> str:
    trimmed = str(value if value is not None else "").strip()
    if not trimmed:
        return ""
    return COUNTRY_NAMES.get(trimmed.upper(), trimmed)


def parse_day(value: str | None) -> date | None:
    """Parse "2024-03-04" / "20240304" (timestamps are cut to the date)."""
    if not value:
        return None
    text = value.strip()
    candidates = (text[:10], text[:8])
    for fmt, candidate in zip(_DATE_FORMATS, candidates):
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    return None


def iso_day(value: str | None) -> str:
    """Canonical YYYY-MM-DD key for a day string, or the input when unparseable."""
    parsed = parse_day(value)
    return parsed.isoformat() if parsed else (value or "").strip()


def format_date_label(value: str) -> str:
    """Short month/day label, e.g. 2024-03-04 -> Mar 4."""
    parsed = parse_day(value)
    if parsed is None:
        return value
    return f"{parsed.strftime('%b')} {parsed.day}"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

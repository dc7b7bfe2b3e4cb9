import re
from typing import Any, Mapping, Optional, Tuple

_SPACE_RUN = re.compile(r"\t| +")
_MAP_LL = re.compile(r"/maps\?ll=(-?\d+\.\d*),(-?\d+\.\d*)")


def clean_text(value: Any) -> str:
    """Stripped string; None becomes empty string."""
    if value is None:
        return ""
    return str(value).strip()


def collapse_spaces(text: str) -> str:
    """Replace each tab and each run of spaces with a single space"""
    return _SPACE_RUN.sub(" ", clean_text(text))


def match_labeled_line(text: str, label: str, line_start: bool = True) -> str:
    """
    Value of a ``Label: value`` line in a block of text, or "" if absent.

        match_labeled_line("Telefon: 03501 1234\\nFax: 5678", "Fax") -> "5678"

    With ``line_start=False`` the label may appear anywhere on a line.
    """
    if not text:
        return ""
    prefix = r"(?:^|\n) *" if line_start else ""
    pattern = re.compile(prefix + re.escape(label) + r": (.+?) *(?:\n|$)")
    m = pattern.search(text)
    return m.group(1).strip() if m else ""


def parse_map_coordinates(href: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """(lat, lon) from a maps link carrying ``/maps?ll=<lat>,<lon>``; (None, None) otherwise"""
    if not href:
        return None, None
    m = _MAP_LL.search(href)
    if not m:
        return None, None
    return m.group(1), m.group(2)


def field_completeness(fields: Mapping[str, Any]) -> float:
    """Share of fields holding a non-empty value"""
    if not fields:
        return 0.0
    filled = 0
    for value in fields.values():
        if value is None:
            continue
        if isinstance(value, (str, list, tuple, Mapping)) and len(value) == 0:
            continue
        filled += 1
    return round(filled / len(fields), 3)

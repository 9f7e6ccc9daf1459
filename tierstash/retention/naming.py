"""Dated artifact filenames: ``<name>_<YYYY-MM-DD>.<ext>[.gz]``.

The date token must sit immediately before the extension. Names without
it are invisible to history scans and purges.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Iterable

ARTIFACT_DATE_RE = re.compile(r'_(\d{4}-\d{2}-\d{2})\.')

DATE_FORMAT = "%Y-%m-%d"


def is_artifact(filename: str) -> bool:
    """Check if a filename carries a valid embedded date token."""
    try:
        artifact_date(filename)
    except ValueError:
        return False
    return True


def artifact_date(filename: str) -> date:
    """Extract the embedded date from an artifact filename.

    Raises ValueError for names without the token or with an impossible date.
    """
    m = ARTIFACT_DATE_RE.search(filename)
    if not m:
        raise ValueError(f"Not a dated artifact name: '{filename}'")
    return date.fromisoformat(m.group(1))


def artifact_filename(name: str, day: date, extension: str) -> str:
    """Build ``<name>_<YYYY-MM-DD>.<extension>``; *extension* has no leading dot."""
    extension = extension.lstrip(".")
    if not extension:
        raise ValueError("Artifact extension must not be empty")
    return f"{name}_{day.strftime(DATE_FORMAT)}.{extension}"


def sort_by_date(filenames: Iterable[str]) -> list[str]:
    """Sort artifact filenames oldest first. Stable for equal dates."""
    return sorted(filenames, key=artifact_date)

"""Storage path, MIME type, and quote id helpers."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import AbstractSet, Optional

QUOTE_ID_PREFIX = "CS"
QUOTE_ID_DIGITS = 5

MIME_BY_EXTENSION = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9 \-_.]")
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def sanitize_for_path(name: str) -> str:
    """
    Make a filename safe for an object storage key.

    Keeps letters, digits, space, dash, underscore, and dot; anything else
    becomes '-'. Whitespace runs collapse to one space and dash runs to
    one dash.

        >>> sanitize_for_path("Acta de nacimiento (copia)#2.pdf")
        'Acta de nacimiento -copia-2.pdf'
    """
    base = _UNSAFE_CHARS.sub("-", name.strip())
    base = _WHITESPACE.sub(" ", base)
    return _DASHES.sub("-", base)


def unique_file_name(name: str, taken: AbstractSet[str]) -> str:
    """
    Sanitized ``name``, numbered when another file of the quote already has it.

        >>> unique_file_name("scan.pdf", {"scan.pdf", "scan-2.pdf"})
        'scan-3.pdf'
    """
    candidate = sanitize_for_path(name)
    path = PurePosixPath(candidate)
    n = 2
    while candidate in taken:
        candidate = sanitize_for_path(f"{path.stem}-{n}{path.suffix}")
        n += 1
    return candidate


def object_path(quote_id: str, file_name: str) -> str:
    """Storage key for a quote file: ``<quote_id>/<sanitized name>``."""
    return f"{quote_id}/{sanitize_for_path(file_name)}"


def file_name_from_path(path: str) -> str:
    return PurePosixPath(path).name


def guess_mime(name: str) -> str:
    """MIME type from the file extension (application/octet-stream if unknown)."""
    return MIME_BY_EXTENSION.get(PurePosixPath(name.lower()).suffix, "application/octet-stream")


def format_quote_id(number: int) -> str:
    """``7`` -> ``'CS00007'``."""
    return f"{QUOTE_ID_PREFIX}{number:0{QUOTE_ID_DIGITS}d}"


def parse_quote_number(quote_id: Optional[str]) -> int:
    """``'CS00007'`` -> ``7``; anything unparseable counts as 0."""
    if not quote_id:
        return 0
    digits = quote_id[len(QUOTE_ID_PREFIX):] if quote_id.startswith(QUOTE_ID_PREFIX) else quote_id
    try:
        return int(digits)
    except ValueError:
        return 0


def is_quote_id(value: str) -> bool:
    return bool(re.fullmatch(rf"{QUOTE_ID_PREFIX}\d{{{QUOTE_ID_DIGITS},}}", value or ""))

"""Filename codec for stored images.

The image service keeps no database of record: an image's display stem,
unique token, optional category and upload time are all carried inside the
stored filename. This module builds such names and parses them back.

Canonical layout::

    <base>_<uuid4>[_cat_<category>]_<epoch-ms><ext>

`base` is the sanitised stem of the uploaded filename (hyphens never survive
sanitisation, so the uuid token can always be located unambiguously). The
category segment is only recognised directly after the token, which keeps a
user stem such as ``my_cat_photo`` from being read as a category.

Older names of the form ``<base>_<epoch-ms>_<random>`` are still decoded; their
identifier is the whole stem.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import time
import uuid
from typing import Optional, Tuple

from models.image_record import DecodedFilename

LOGGER = logging.getLogger(__name__)

SEPARATOR = "_"
CATEGORY_MARKER = "cat"
MAX_FILENAME_BYTES = 240
HASH_LENGTH = 10
MAX_CATEGORY_BYTES = 64
MAX_EXTENSION_LENGTH = 10
DEFAULT_EXTENSION = ".jpg"
FALLBACK_BASE = "image"

_UNSAFE_BASE_CHARS = re.compile(r"[^A-Za-z0-9_\u4e00-\u9fa5]")
_UNSAFE_CATEGORY_CHARS = re.compile(r"[^A-Za-z0-9\u4e00-\u9fa5-]+")
_UUID_PATTERN = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
_CANONICAL_STEM = re.compile(
    rf"^(?P<base>.*?)_(?P<token>{_UUID_PATTERN})"
    rf"(?:_{CATEGORY_MARKER}_(?P<category>[^_]+?))?"
    r"(?:_(?P<timestamp>\d+))?$"
)
_LEGACY_STEM = re.compile(r"^(?P<base>.+?)_(?P<timestamp>\d{10,})_(?P<random>[a-z0-9]+)$")
_CATEGORY_SEGMENT = re.compile(rf"_{CATEGORY_MARKER}_([^_]+)(?:_|$)")
_TIMESTAMP_SEGMENT = re.compile(r"_(\d{10,})(?=_|$)")


def new_token() -> str:
    return str(uuid.uuid4())


def split_name(original_name: str) -> Tuple[str, str]:
    """Return `(base, extension)` for a client-supplied filename.

    Any directory part (either slash style) is dropped. The extension keeps
    its leading dot and is normalised by `normalize_extension`.
    """
    name = (original_name or "").replace("\\", "/").rsplit("/", 1)[-1]
    base, ext = os.path.splitext(name)
    return base, normalize_extension(ext)


def normalize_extension(ext: str) -> str:
    """Lower-case `ext`, strip unsafe characters and bound its length."""
    cleaned = re.sub(r"[^a-z0-9]", "", (ext or "").lower())[: MAX_EXTENSION_LENGTH - 1]
    return f".{cleaned}" if cleaned else DEFAULT_EXTENSION


def sanitize_base(base: str) -> str:
    """Replace characters unsafe for the filesystem with the separator.

    ASCII letters, digits, underscore and CJK ideographs are preserved.
    """
    sanitized = _UNSAFE_BASE_CHARS.sub(SEPARATOR, base or "")
    return sanitized or FALLBACK_BASE


def sanitize_category(category: Optional[str]) -> Optional[str]:
    """Normalise a category label so it fits in one filename segment.

    Whitespace, underscores and other unsafe runs collapse to ``-`` and the
    result is cut to `MAX_CATEGORY_BYTES` UTF-8 bytes. Returns None for a
    missing or blank category.
    """
    if category is None:
        return None
    cleaned = _UNSAFE_CATEGORY_CHARS.sub("-", category.strip())
    cleaned = re.sub(r"-{2,}", "-", cleaned).strip("-")
    cleaned = cleaned.encode("utf-8")[:MAX_CATEGORY_BYTES].decode("utf-8", errors="ignore").strip("-")
    return cleaned or None


def hash_base(sanitized_base: str) -> str:
    """Short, deterministic replacement for an overlong base."""
    return hashlib.md5(sanitized_base.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def _join(base: str, token: str, category: Optional[str], timestamp: Optional[int], ext: str) -> str:
    parts = [base, token]
    if category:
        parts.extend([CATEGORY_MARKER, category])
    if timestamp is not None:
        parts.append(str(timestamp))
    return SEPARATOR.join(parts) + ext


def build_filename(
    base: str,
    token: str,
    category: Optional[str] = None,
    timestamp: Optional[int] = None,
    ext: str = DEFAULT_EXTENSION,
) -> str:
    """Assemble a stored filename, hashing the base if the result is too long.

    `base` must already be sanitised; `category` is sanitised here.
    """
    category = sanitize_category(category)
    filename = _join(base, token, category, timestamp, ext)
    if len(filename.encode("utf-8")) > MAX_FILENAME_BYTES:
        filename = _join(hash_base(base), token, category, timestamp, ext)
    return filename


def encode(
    original_name: str,
    category: Optional[str] = None,
    *,
    token: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """Encode upload metadata into a filesystem-safe stored filename.

    Never raises: on any unexpected failure the name degrades to
    ``image_<token><ext>``.

    Args:
        original_name: Filename as supplied by the client.
        category: Optional category label.
        token: Unique token; a fresh uuid4 when omitted.
        timestamp: Epoch milliseconds; the current time when omitted.

    Returns:
        The stored filename, at most `MAX_FILENAME_BYTES` bytes long.
    """
    token = token or new_token()
    try:
        base, ext = split_name(original_name)
        if timestamp is None:
            timestamp = int(time.time() * 1000)
        return build_filename(sanitize_base(base), token, category, timestamp, ext)
    except Exception:  # pylint: disable=broad-exception-caught
        LOGGER.exception("Filename encoding failed for %r, using fallback name", original_name)
        return f"{FALLBACK_BASE}{SEPARATOR}{token}{_best_effort_extension(original_name)}"


def _best_effort_extension(original_name) -> str:
    try:
        return normalize_extension(os.path.splitext(str(original_name))[1])
    except Exception:  # pylint: disable=broad-exception-caught
        return DEFAULT_EXTENSION


def extract_category(filename: str) -> Optional[str]:
    """Find a ``_cat_<value>`` segment anywhere in `filename`'s stem."""
    stem = os.path.splitext(filename or "")[0]
    match = _CATEGORY_SEGMENT.search(stem)
    return match.group(1) if match else None


def extract_timestamp(filename: str) -> Optional[int]:
    """Return the upload epoch-milliseconds embedded in `filename`, if any.

    The positional timestamp of a canonical or legacy name wins over digit
    runs in the user's own stem; other names fall back to the first
    ten-plus digit segment.
    """
    stem = os.path.splitext(filename or "")[0]
    for layout in (_CANONICAL_STEM, _LEGACY_STEM):
        match = layout.match(stem)
        if match and match.group("timestamp"):
            return int(match.group("timestamp"))
    match = _TIMESTAMP_SEGMENT.search(stem)
    return int(match.group(1)) if match else None


def decode(filename: str) -> DecodedFilename:
    """Parse a stored filename back into its semantic fields.

    Returns partial results rather than failing: names that match neither
    the canonical nor the legacy layout use their stem as the id and their
    first segment as the display base.
    """
    stem, ext = os.path.splitext(filename or "")
    ext = ext.lower()

    match = _CANONICAL_STEM.match(stem)
    if match:
        timestamp = match.group("timestamp")
        return DecodedFilename(
            id=match.group("token"),
            base=match.group("base") or FALLBACK_BASE,
            extension=ext,
            category=match.group("category"),
            timestamp=int(timestamp) if timestamp else None,
        )

    match = _LEGACY_STEM.match(stem)
    if match:
        return DecodedFilename(
            id=stem,
            base=match.group("base"),
            extension=ext,
            timestamp=int(match.group("timestamp")),
            legacy=True,
        )

    return DecodedFilename(
        id=stem,
        base=stem.split(SEPARATOR)[0] or stem,
        extension=ext,
        category=extract_category(filename),
        timestamp=extract_timestamp(filename),
        legacy=True,
    )


def recategorize(filename: str, category: Optional[str]) -> str:
    """Return the stored name `filename` should be renamed to for `category`.

    Canonical names keep their base, token and timestamp. Legacy names carry
    no token, so they are re-encoded under a fresh one.
    """
    decoded = decode(filename)
    ext = decoded.extension or DEFAULT_EXTENSION
    if decoded.legacy:
        return build_filename(
            sanitize_base(decoded.base), new_token(), category, decoded.timestamp or int(time.time() * 1000), ext
        )
    return build_filename(decoded.base, decoded.id, category, decoded.timestamp, ext)

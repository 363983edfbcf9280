"""Slash-delimited path helpers.

Paths are stored normalized: no leading or trailing slash, no empty
segments. The root is the empty string, so "/" and "" both address it.
"""

from typing import List

from .exceptions import InvalidPathError

# Characters a tree store refuses inside a single key
FORBIDDEN_KEY_CHARS = frozenset(".#$[]")


def split(path: str) -> List[str]:
    """Split a path into its non-empty segments."""
    if path is None:
        return []
    return [segment for segment in str(path).split("/") if segment]


def normalize(path: str) -> str:
    """Return the canonical form of a path ("" for the root)."""
    return "/".join(split(path))


def join(*segments: str) -> str:
    """Join path segments (each may itself contain slashes)."""
    parts: List[str] = []
    for segment in segments:
        parts.extend(split(segment))
    return "/".join(parts)


def parent(path: str) -> str:
    """Return the parent path; the root is its own parent."""
    parts = split(path)
    return "/".join(parts[:-1])


def basename(path: str):
    """Return the terminal segment, or None for the root."""
    parts = split(path)
    return parts[-1] if parts else None


def validate_key(key: str) -> str:
    """Check that a child key is addressable and return it.

    Raises:
        InvalidPathError: If the key is empty or contains "/" or ". # $ [ ]"
    """
    if not isinstance(key, str) or not key:
        raise InvalidPathError(repr(key), "key must be a non-empty string")
    if "/" in key:
        raise InvalidPathError(key, "key must not contain '/'")
    bad = FORBIDDEN_KEY_CHARS.intersection(key)
    if bad:
        raise InvalidPathError(key, f"key contains forbidden characters {sorted(bad)}")
    return key


def validate(path: str) -> str:
    """Validate every segment of a path and return it normalized."""
    for segment in split(path):
        validate_key(segment)
    return normalize(path)

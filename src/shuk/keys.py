"""Object key helpers.

Every object key shuk reads or writes is built by ``join_key_prefix`` so the
prefix rule lives in one place: a non-empty prefix ends in exactly one ``/``.
"""

from typing import Optional

from .constants import KEY_SEPARATOR


def normalize_prefix(prefix: Optional[str]) -> str:
    """
    Normalize a bucket prefix.
    
    Args:
        prefix: Raw prefix from configuration, may be None or empty
        
    Returns:
        Empty string for no prefix, otherwise the prefix with exactly one
        trailing separator
        
    Examples:
        >>> normalize_prefix("bar")
        'bar/'
        >>> normalize_prefix("bar//")
        'bar/'
        >>> normalize_prefix("")
        ''
    """
    if not prefix:
        return ""
    stripped = prefix.rstrip(KEY_SEPARATOR)
    if not stripped:
        return ""
    return stripped + KEY_SEPARATOR


def join_key_prefix(prefix: Optional[str], key: str) -> str:
    """Join a prefix and a key name into a full object key."""
    return normalize_prefix(prefix) + key.lstrip(KEY_SEPARATOR)

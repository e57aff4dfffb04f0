"""Object tag sets and their query-string wire format.

S3 accepts tags on PutObject / CreateMultipartUpload as a URL-encoded query
string (``managed_by=shuk&start_hash=...``) and returns them from
GetObjectTagging as a list of ``{"Key": ..., "Value": ...}`` dicts.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping
from urllib.parse import parse_qsl, quote, urlencode

from .constants import (
    TAG_DO_NOT_SCAN,
    TAG_END_HASH,
    TAG_MANAGED_BY,
    TAG_START_HASH,
    TOOL_ID,
)


@dataclass(frozen=True)
class ObjectTagSet:
    """Tags attached to every uploaded file."""
    start_hash: str
    end_hash: str
    managed_by: str = TOOL_ID

    def to_dict(self) -> Dict[str, str]:
        return {
            TAG_MANAGED_BY: self.managed_by,
            TAG_START_HASH: self.start_hash,
            TAG_END_HASH: self.end_hash,
        }


@dataclass(frozen=True)
class CatalogTagSet:
    """Tags attached to the catalog document so it never lists itself."""
    managed_by: str = TOOL_ID
    do_not_scan: bool = True

    def to_dict(self) -> Dict[str, str]:
        return {
            TAG_MANAGED_BY: self.managed_by,
            TAG_DO_NOT_SCAN: "true" if self.do_not_scan else "false",
        }


def encode_tags(tags: Mapping[str, str]) -> str:
    """Encode a tag mapping into the S3 ``Tagging`` query-string format."""
    return urlencode(list(tags.items()), quote_via=quote)


def decode_tags(encoded: str) -> Dict[str, str]:
    """Decode a ``Tagging`` query string back into a dict.

    Empty values are kept; an empty string decodes to an empty dict.
    """
    return dict(parse_qsl(encoded, keep_blank_values=True))


def tag_set_to_dict(tag_set: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    """Convert a GetObjectTagging ``TagSet`` list into a dict.

    Entries lacking a key are skipped; a missing value becomes ``""``.
    """
    result: Dict[str, str] = {}
    for tag in tag_set or []:
        key = tag.get("Key")
        if key is None:
            continue
        result[key] = tag.get("Value") or ""
    return result


def tag_value(tags: Mapping[str, str], key: str) -> str:
    """Return a tag's value, or ``""`` when the tag is absent."""
    return tags.get(key) or ""


def is_managed(tags: Mapping[str, str]) -> bool:
    """True when the tags mark the object as written by shuk."""
    return tag_value(tags, TAG_MANAGED_BY) == TOOL_ID


def is_do_not_scan(tags: Mapping[str, str]) -> bool:
    return tag_value(tags, TAG_DO_NOT_SCAN) == "true"

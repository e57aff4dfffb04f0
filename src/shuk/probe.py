"""Remote object lookups.

A lookup ends in one of three states: the key is absent (``NotFound``), the
object is there (``Found`` with its size and tags), or the store failed to
answer (``LookupFailed``). Not-found is a normal outcome, never an exception.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Union

from botocore.exceptions import BotoCoreError, ClientError

from .storage import is_not_found, service_error
from .tags import tag_set_to_dict, tag_value
from .constants import TAG_END_HASH, TAG_START_HASH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotFound:
    """No object exists at the key."""


@dataclass(frozen=True)
class Found:
    """Object exists; ``size`` is 0 when the store did not report one."""
    size: int
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def start_hash(self) -> str:
        return tag_value(self.tags, TAG_START_HASH)

    @property
    def end_hash(self) -> str:
        return tag_value(self.tags, TAG_END_HASH)


@dataclass(frozen=True)
class LookupFailed:
    """The store rejected the lookup for a reason other than not-found."""
    error: Exception


RemoteObjectState = Union[NotFound, Found, LookupFailed]


def object_exists(client: Any, bucket: str, key: str) -> bool:
    """
    Check whether an object exists with a metadata-only lookup.
    
    Returns:
        True if found, False on not-found
        
    Raises:
        RemoteServiceError: On any other failure
    """
    logger.debug(f"Testing if {key!r} exists in bucket {bucket!r}")
    try:
        client.head_object(Bucket=bucket, Key=key)
    except ClientError as e:
        if is_not_found(e):
            logger.debug(f"File {key!r} not found in bucket {bucket!r}")
            return False
        logger.warning(f"Service error when checking for {key!r} in bucket {bucket!r}")
        raise service_error("HeadObject", bucket, key, e) from e
    except BotoCoreError as e:
        logger.warning(f"SDK error when checking for {key!r} in bucket {bucket!r}")
        raise service_error("HeadObject", bucket, key, e) from e
    logger.debug(f"File {key!r} found in bucket {bucket!r}")
    return True


def _content_length(head: Dict[str, Any], key: str) -> int:
    size = head.get("ContentLength")
    try:
        size = int(size)
    except (TypeError, ValueError):
        size = -1
    if size < 0:
        logger.warning(
            f"Unable to determine the size of remote object {key!r}, it will be uploaded again"
        )
        return 0
    return size


def probe_object(client: Any, bucket: str, key: str) -> RemoteObjectState:
    """
    Fetch an object's size and tags.
    
    The size (HeadObject) and the tags (GetObjectTagging) are fetched
    independently. A not-found on either call yields ``NotFound``; any other
    failure yields ``LookupFailed``.
    """
    logger.debug(f"Probing s3://{bucket}/{key}")
    try:
        head = client.head_object(Bucket=bucket, Key=key)
        size = _content_length(head, key)
        tagging = client.get_object_tagging(Bucket=bucket, Key=key)
    except ClientError as e:
        if is_not_found(e):
            logger.debug(f"File {key!r} not found in bucket {bucket!r}")
            return NotFound()
        logger.warning(f"Lookup of {key!r} in bucket {bucket!r} failed: {e}")
        return LookupFailed(service_error("lookup", bucket, key, e))
    except BotoCoreError as e:
        logger.warning(f"Lookup of {key!r} in bucket {bucket!r} failed: {e}")
        return LookupFailed(service_error("lookup", bucket, key, e))

    tags = tag_set_to_dict(tagging.get("TagSet", []))
    logger.debug(f"Remote {key!r}: size={size}, tags={tags}")
    return Found(size=size, tags=tags)

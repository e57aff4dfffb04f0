"""Upload-or-skip decision for a single file."""

import logging
from enum import Enum

from shuk.common import RemoteServiceError
from .fingerprint import Fingerprint
from .probe import Found, LookupFailed, NotFound, RemoteObjectState

logger = logging.getLogger(__name__)


class SyncDecision(str, Enum):
    """What to do with a local file whose key may already exist remotely."""
    SKIP = "skip"
    UPLOAD = "upload"


def decide(local: Fingerprint, remote: RemoteObjectState) -> SyncDecision:
    """
    Decide whether a file must be uploaded.
    
    Rules, in order:
    1. Nothing at the key: upload.
    2. Different sizes: upload.
    3. Same size and both sampled hashes equal: skip (re-sign only).
    4. Same size, different hashes: upload. A hash mismatch never skips.
    
    A missing remote hash tag reads as ``""`` and never matches.
    
    Raises:
        RemoteServiceError: If the remote lookup failed; the caller cannot
            know what is at the key
    """
    if isinstance(remote, NotFound):
        logger.debug("No remote object, uploading")
        return SyncDecision.UPLOAD

    if isinstance(remote, LookupFailed):
        if isinstance(remote.error, RemoteServiceError):
            raise remote.error
        raise RemoteServiceError(f"Could not look up remote object: {remote.error}") from remote.error

    if not isinstance(remote, Found):
        raise TypeError(f"Unexpected remote state: {remote!r}")

    if remote.size != local.file_size:
        logger.warning(
            f"A file with the same name exists at the destination but sizes differ "
            f"(local={local.file_size}, remote={remote.size}); uploading"
        )
        return SyncDecision.UPLOAD

    if (
        remote.start_hash
        and local.start_hash == remote.start_hash
        and local.end_hash == remote.end_hash
    ):
        logger.debug(
            f"Local and remote match: start_hash={local.start_hash}, end_hash={local.end_hash}"
        )
        return SyncDecision.SKIP

    logger.warning(
        f"A file with the same name and size exists at the destination but partial hashes differ "
        f"(local={local.start_hash}/{local.end_hash}, remote={remote.start_hash}/{remote.end_hash}); uploading"
    )
    return SyncDecision.UPLOAD

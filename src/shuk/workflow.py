"""End-to-end operations: share one file, and the browse-mode actions."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from shuk.common import ForeignObjectError, LocalIoError, LogContext
from .catalog import Catalog, CatalogBuilder
from .config import StorageConfig
from .fingerprint import Fingerprint, compute_fingerprint
from .keys import join_key_prefix
from .probe import Found, NotFound, RemoteObjectState, object_exists, probe_object
from .progress import ProgressCallback
from .sync import SyncDecision, decide
from .tags import is_managed
from .transfer import TransferOrchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShareResult:
    """Outcome of sharing one file."""
    key: str
    url: str
    decision: SyncDecision
    fingerprint: Fingerprint


def lookup_remote(client: Any, bucket: str, key: str) -> RemoteObjectState:
    """Existence check first; size and tags are fetched only when the key exists."""
    if not object_exists(client, bucket, key):
        return NotFound()
    return probe_object(client, bucket, key)


def share_file(
    client: Any,
    storage: StorageConfig,
    file_path: Path,
    progress_callback: Optional[ProgressCallback] = None,
) -> ShareResult:
    """
    Upload a file unless an identical copy is already at its key, then sign a link.

    The key is the file's base name under the configured prefix.

    Raises:
        LocalIoError: If the file is missing or unreadable
        ForeignObjectError: If an object not written by shuk occupies the key
        RemoteServiceError: If a lookup or transfer call fails
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise LocalIoError(f"Not a file: {file_path}", path=str(file_path))

    key = join_key_prefix(storage.bucket_prefix, file_path.name)

    with LogContext(logger, bucket=storage.bucket_name, key=key):
        fingerprint = compute_fingerprint(file_path)
        state = lookup_remote(client, storage.bucket_name, key)

        if isinstance(state, Found) and not is_managed(state.tags):
            raise ForeignObjectError(
                f"s3://{storage.bucket_name}/{key} exists and is not managed by shuk; not overwriting",
                bucket=storage.bucket_name,
                key=key,
            )

        decision = decide(fingerprint, state)
        logger.info(f"Sync decision for {key}: {decision.value}")

        orchestrator = TransferOrchestrator(
            client,
            storage.bucket_name,
            storage.presigned_time,
            progress_callback=progress_callback,
        )
        url = orchestrator.upload(file_path, key, fingerprint.to_tags(), decision)

    return ShareResult(key=key, url=url, decision=decision, fingerprint=fingerprint)


def refresh_catalog(client: Any, storage: StorageConfig, local_path: Optional[Path] = None) -> Catalog:
    """Rebuild the catalog for the configured prefix and save it."""
    builder = CatalogBuilder(
        client,
        storage.bucket_name,
        storage.bucket_prefix,
        concurrency=storage.catalog_concurrency,
    )
    return builder.refresh(local_path)


def relink(client: Any, storage: StorageConfig, key: str) -> str:
    """Sign a fresh link for an already uploaded key."""
    return TransferOrchestrator(client, storage.bucket_name, storage.presigned_time).presign(key)


def remove(client: Any, storage: StorageConfig, key: str) -> bool:
    """Delete a managed object; see ``TransferOrchestrator.delete``."""
    return TransferOrchestrator(client, storage.bucket_name, storage.presigned_time).delete(key)

"""Catalog of shuk-managed objects under a bucket prefix.

The catalog is a snapshot: every run lists the prefix, fetches each object's
tags on a bounded thread pool and keeps the objects tagged as managed by
shuk. The result is saved as JSON in the user config directory and uploaded
next to the files, tagged ``do_not_scan`` so it never lists itself.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shuk.common import ShukError, user_config_dir
from .constants import (
    DEFAULT_CATALOG_CONCURRENCY,
    METADATA_FILE_NAME,
    TAG_END_HASH,
    TAG_START_HASH,
)
from .errors import CatalogOverflowError, EmptyCatalogError
from .keys import join_key_prefix, normalize_prefix
from .storage import service_error
from .tags import CatalogTagSet, encode_tags, is_do_not_scan, is_managed, tag_set_to_dict, tag_value

logger = logging.getLogger(__name__)

# Largest aggregate size reported; matches an unsigned 64-bit counter
MAX_TOTAL_SIZE = 2**64 - 1

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class CatalogEntry(BaseModel):
    """One managed object in the bucket."""

    model_config = ConfigDict(extra='forbid')

    filename: str = Field(description="Full object key")
    start_hash: str = ""
    end_hash: str = ""
    file_size: int = Field(default=0, ge=0)
    last_modified: datetime = EPOCH

    @field_validator('last_modified')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so entries stay comparable."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Catalog(BaseModel):
    """Snapshot of all managed objects under a prefix."""

    model_config = ConfigDict(extra='forbid')

    files: List[CatalogEntry] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def file_count(self) -> int:
        return len(self.files)

    def filenames(self) -> List[str]:
        return sorted(entry.filename for entry in self.files)

    def find(self, filename: str) -> Optional[CatalogEntry]:
        for entry in self.files:
            if entry.filename == filename:
                return entry
        return None

    def total_size(self) -> int:
        """
        Sum of all entry sizes.

        Raises:
            CatalogOverflowError: If the sum exceeds an unsigned 64-bit value
        """
        total = 0
        for entry in self.files:
            total += entry.file_size
            if total > MAX_TOTAL_SIZE:
                raise CatalogOverflowError("Total size overflow", entries=len(self.files))
        return total

    def total_size_formatted(self) -> str:
        """Human-readable total size; ``0 B`` if the total overflows."""
        try:
            size = self.total_size()
        except CatalogOverflowError as e:
            logger.warning(f"Could not compute total catalog size: {e}")
            size = 0
        return format_size(size)

    def most_recent_entry(self) -> CatalogEntry:
        """
        Entry with the latest modification time.

        Raises:
            EmptyCatalogError: If the catalog has no entries
        """
        if not self.files:
            raise EmptyCatalogError("No files in catalog")
        return max(self.files, key=lambda entry: entry.last_modified)


def format_size(size: int) -> str:
    kb = 1024
    mb = kb * 1024
    gb = mb * 1024

    if size >= gb:
        return f"{size / gb:.2f} GB"
    elif size >= mb:
        return f"{size / mb:.2f} MB"
    elif size >= kb:
        return f"{size / kb:.2f} KB"
    return f"{size} B"


def default_catalog_path() -> Path:
    """Where the local copy of the catalog lives."""
    return user_config_dir() / METADATA_FILE_NAME


def describe_object(client: Any, bucket: str, obj: Dict[str, Any]) -> Optional[CatalogEntry]:
    """
    Turn one listed object into a catalog entry.

    Args:
        client: S3 client handle for this task
        bucket: Bucket name
        obj: One element of a ListObjectsV2 ``Contents`` list

    Returns:
        The entry, or None if the object is foreign or marked do-not-scan

    Raises:
        ClientError: If the tag lookup fails
    """
    key = obj.get("Key")
    if not key:
        return None

    tagging = client.get_object_tagging(Bucket=bucket, Key=key)
    tags = tag_set_to_dict(tagging.get("TagSet", []))
    if not is_managed(tags) or is_do_not_scan(tags):
        logger.debug(f"Skipping {key}: tags={tags}")
        return None

    return CatalogEntry(
        filename=key,
        start_hash=tag_value(tags, TAG_START_HASH),
        end_hash=tag_value(tags, TAG_END_HASH),
        file_size=max(0, int(obj.get("Size") or 0)),
        last_modified=obj.get("LastModified") or EPOCH,
    )


def save_local_catalog(catalog: Catalog, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(catalog.model_dump_json(indent=2), encoding='utf-8')


def load_local_catalog(path: Optional[Path] = None) -> Optional[Catalog]:
    """Read a previously saved catalog; None if missing or unreadable."""
    path = path or default_catalog_path()
    if not path.exists():
        return None
    try:
        return Catalog.model_validate_json(path.read_text(encoding='utf-8'))
    except (OSError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable catalog at {path}: {e}")
        return None


class CatalogBuilder:
    """Builds and persists the catalog for one bucket prefix."""

    def __init__(
        self,
        client: Any,
        bucket: str,
        prefix: Optional[str] = None,
        concurrency: int = DEFAULT_CATALOG_CONCURRENCY,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.client = client
        self.bucket = bucket
        self.prefix = normalize_prefix(prefix)
        self.concurrency = concurrency

    @property
    def remote_key(self) -> str:
        return join_key_prefix(self.prefix, METADATA_FILE_NAME)

    def list_objects(self) -> List[Dict[str, Any]]:
        """
        List every object under the prefix, following pagination.

        Raises:
            RemoteServiceError: If listing fails
        """
        logger.debug(f"Listing objects in s3://{self.bucket}/{self.prefix}")
        objects: List[Dict[str, Any]] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
                objects.extend(page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise service_error("ListObjectsV2", self.bucket, self.prefix, e) from e
        logger.debug(f"Listed {len(objects)} objects")
        return objects

    def build(self) -> Catalog:
        """
        Build a fresh catalog.

        Entries come back in completion order. An object whose tag lookup
        fails is left out with a warning.
        """
        objects = self.list_objects()
        entries: List[CatalogEntry] = []
        failed = 0

        logger.debug(f"Fetching tags for {len(objects)} objects with {self.concurrency} workers")
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            future_to_key = {
                executor.submit(describe_object, self.client, self.bucket, obj): obj.get("Key")
                for obj in objects
            }
            for future in as_completed(future_to_key):
                key = future_to_key[future]
                try:
                    entry = future.result()
                except (ClientError, BotoCoreError, ValidationError, ValueError) as e:
                    failed += 1
                    logger.warning(f"Skipping {key} in catalog: {e}")
                    continue
                if entry is not None:
                    entries.append(entry)

        catalog = Catalog(files=entries, updated_at=datetime.now(timezone.utc))
        logger.info(
            f"Catalog built: {{'bucket': {self.bucket!r}, 'prefix': {self.prefix!r}, "
            f"'listed': {len(objects)}, 'managed': {len(entries)}, 'failed': {failed}}}"
        )
        return catalog

    def persist(self, catalog: Catalog, local_path: Optional[Path] = None) -> Optional[Path]:
        """
        Save the catalog locally, then upload it to the bucket.

        A local write failure is logged and does not stop the upload.

        Returns:
            The local path written, or None if the local save failed

        Raises:
            RemoteServiceError: If the upload fails
        """
        local_path = local_path or default_catalog_path()
        document = catalog.model_dump_json(indent=2)

        saved: Optional[Path] = local_path
        try:
            save_local_catalog(catalog, local_path)
            logger.debug(f"Catalog saved to {local_path}")
        except OSError as e:
            logger.warning(f"Failed to save catalog locally at {local_path}: {e}")
            saved = None

        logger.debug(f"Uploading catalog to s3://{self.bucket}/{self.remote_key}")
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self.remote_key,
                Body=document.encode('utf-8'),
                ContentType="application/json",
                Tagging=encode_tags(CatalogTagSet().to_dict()),
            )
        except (ClientError, BotoCoreError) as e:
            raise service_error("PutObject", self.bucket, self.remote_key, e) from e

        return saved

    def refresh(self, local_path: Optional[Path] = None) -> Catalog:
        """Build and persist; persistence failures are logged, not raised."""
        catalog = self.build()
        try:
            self.persist(catalog, local_path)
        except ShukError as e:
            logger.warning(f"Failed to save catalog: {e}")
        return catalog

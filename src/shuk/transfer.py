"""Upload orchestration: single-shot or multi-part, then a presigned link.

Files up to 4 GiB go up in one PutObject. Larger files use a multi-part
session with 5 MiB parts read and sent one at a time, so only one part is
ever held in memory. Tags are attached when the object (or the multi-part
session) is created, never per part.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from shuk.common import ForeignObjectError, LocalIoError, RemoteServiceError
from .constants import MULTIPART_THRESHOLD, PART_SIZE
from .progress import ProgressCallback, TransferProgressTracker
from .storage import is_not_found, service_error
from .sync import SyncDecision
from .tags import ObjectTagSet, encode_tags, is_managed, tag_set_to_dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartSpec:
    """One slice of a multi-part upload."""
    part_number: int
    offset: int
    length: int


def plan_parts(file_size: int, part_size: int = PART_SIZE) -> List[PartSpec]:
    """
    Split a file into consecutive parts.

    Part numbers start at 1 and increase by one; every part is ``part_size``
    bytes except the last, which holds the remainder.

    Args:
        file_size: Total bytes to upload
        part_size: Bytes per part

    Returns:
        ``ceil(file_size / part_size)`` parts covering the file exactly
    """
    if part_size <= 0:
        raise ValueError(f"part_size must be positive, got {part_size}")

    parts = []
    offset = 0
    part_number = 1
    while offset < file_size:
        length = min(file_size - offset, part_size)
        parts.append(PartSpec(part_number=part_number, offset=offset, length=length))
        offset += length
        part_number += 1
    return parts


def use_multipart(file_size: int, threshold: int = MULTIPART_THRESHOLD) -> bool:
    """Multi-part is used only for files strictly larger than the threshold."""
    return file_size > threshold


class TransferOrchestrator:
    """Moves one local file to one key and signs links for it."""

    def __init__(
        self,
        client: Any,
        bucket: str,
        presigned_time: int,
        progress_callback: Optional[ProgressCallback] = None,
        part_size: int = PART_SIZE,
        multipart_threshold: int = MULTIPART_THRESHOLD,
    ):
        self.client = client
        self.bucket = bucket
        self.presigned_time = presigned_time
        self.progress_callback = progress_callback
        self.part_size = part_size
        self.multipart_threshold = multipart_threshold

    def upload(self, file_path: Path, key: str, tags: ObjectTagSet, decision: SyncDecision) -> str:
        """
        Apply a sync decision and return a presigned link to the key.

        ``SKIP`` transfers nothing and only re-signs the existing object.

        Raises:
            LocalIoError: If the local file cannot be read
            RemoteServiceError: If the store rejects any call
        """
        if decision is SyncDecision.SKIP:
            logger.info(f"{key} is already uploaded, re-signing the link")
        else:
            self.put_file(file_path, key, tags)
        return self.presign(key)

    def put_file(self, file_path: Path, key: str, tags: ObjectTagSet) -> None:
        """Upload a file, picking the transfer strategy by size."""
        try:
            file_size = os.stat(file_path).st_size
        except OSError as e:
            raise LocalIoError(f"Failed to stat {file_path}: {e}", path=str(file_path)) from e

        tracker = TransferProgressTracker(
            total_bytes=file_size,
            file_name=Path(file_path).name,
            callback=self.progress_callback,
        )

        if use_multipart(file_size, self.multipart_threshold):
            logger.info(
                f"File size {file_size} is above {self.multipart_threshold}, "
                f"using multi-part upload for s3://{self.bucket}/{key}"
            )
            self._multipart_upload(file_path, key, tags, file_size, tracker)
        else:
            logger.info(f"Uploading {file_path} ({file_size} bytes) to s3://{self.bucket}/{key}")
            self._single_shot_upload(file_path, key, tags, tracker)

        tracker.log_final_summary()

    def _single_shot_upload(
        self,
        file_path: Path,
        key: str,
        tags: ObjectTagSet,
        tracker: TransferProgressTracker,
    ) -> None:
        # Threshold above our own boundary keeps s3transfer on a single PutObject
        config = TransferConfig(
            multipart_threshold=self.multipart_threshold + 1,
            use_threads=False,
        )
        try:
            self.client.upload_file(
                str(file_path),
                self.bucket,
                key,
                ExtraArgs={"Tagging": encode_tags(tags.to_dict())},
                Callback=tracker.advance,
                Config=config,
            )
        except OSError as e:
            raise LocalIoError(f"Failed to read {file_path}: {e}", path=str(file_path)) from e
        except (S3UploadFailedError, ClientError, BotoCoreError) as e:
            raise service_error("PutObject", self.bucket, key, e) from e

    def _multipart_upload(
        self,
        file_path: Path,
        key: str,
        tags: ObjectTagSet,
        file_size: int,
        tracker: TransferProgressTracker,
    ) -> None:
        try:
            response = self.client.create_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                Tagging=encode_tags(tags.to_dict()),
            )
        except (ClientError, BotoCoreError) as e:
            raise service_error("CreateMultipartUpload", self.bucket, key, e) from e

        upload_id = response.get("UploadId")
        if not upload_id:
            raise RemoteServiceError("Failed to get upload ID", bucket=self.bucket, key=key)
        logger.debug(f"Multi-part upload id for {key}: {upload_id}")

        try:
            completed_parts = self._upload_parts(file_path, key, upload_id, file_size, tracker)
            completed_parts.sort(key=lambda part: part["PartNumber"])
            logger.debug(f"Completing multi-part upload of {key} with {len(completed_parts)} parts")
            try:
                self.client.complete_multipart_upload(
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": completed_parts},
                )
            except (ClientError, BotoCoreError) as e:
                raise service_error("CompleteMultipartUpload", self.bucket, key, e) from e
        except BaseException:
            self._abort_multipart(key, upload_id)
            raise

    def _upload_parts(
        self,
        file_path: Path,
        key: str,
        upload_id: str,
        file_size: int,
        tracker: TransferProgressTracker,
    ) -> List[Dict[str, Any]]:
        completed_parts: List[Dict[str, Any]] = []
        try:
            f = open(file_path, 'rb')
        except OSError as e:
            raise LocalIoError(f"Failed to open {file_path}: {e}", path=str(file_path)) from e

        with f:
            for part in plan_parts(file_size, self.part_size):
                logger.debug(
                    f"Part {part.part_number}: offset={part.offset}, length={part.length}"
                )
                try:
                    data = f.read(part.length)
                except OSError as e:
                    raise LocalIoError(f"Failed to read {file_path}: {e}", path=str(file_path)) from e
                if len(data) != part.length:
                    raise LocalIoError(
                        f"Short read from {file_path}: expected {part.length} bytes "
                        f"at offset {part.offset}, got {len(data)}",
                        path=str(file_path),
                    )

                try:
                    response = self.client.upload_part(
                        Bucket=self.bucket,
                        Key=key,
                        UploadId=upload_id,
                        PartNumber=part.part_number,
                        Body=data,
                    )
                except (ClientError, BotoCoreError) as e:
                    raise service_error("UploadPart", self.bucket, key, e) from e

                etag = response.get("ETag")
                if not etag:
                    raise RemoteServiceError(
                        f"No ETag returned for part {part.part_number}",
                        bucket=self.bucket,
                        key=key,
                    )
                completed_parts.append({"PartNumber": part.part_number, "ETag": etag})
                tracker.advance(part.length)

        return completed_parts

    def _abort_multipart(self, key: str, upload_id: str) -> None:
        logger.warning(f"Aborting multi-part upload of {key} ({upload_id})")
        try:
            self.client.abort_multipart_upload(Bucket=self.bucket, Key=key, UploadId=upload_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Failed to abort multi-part upload {upload_id} for {key}; "
                f"it must be cleaned up out of band: {e}"
            )

    def presign(self, key: str) -> str:
        """Return a time-limited GET link for the key."""
        logger.debug(
            f"Presigning s3://{self.bucket}/{key} for {self.presigned_time} seconds"
        )
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.presigned_time,
            )
        except (ClientError, BotoCoreError) as e:
            raise service_error("presign", self.bucket, key, e) from e

    def delete(self, key: str) -> bool:
        """
        Delete a managed object.

        Returns:
            True if the object was deleted, False if it was already gone

        Raises:
            ForeignObjectError: If the object is not tagged as managed by shuk
            RemoteServiceError: If the store rejects a call
        """
        try:
            tagging = self.client.get_object_tagging(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                logger.info(f"{key} no longer exists in {self.bucket}")
                return False
            raise service_error("GetObjectTagging", self.bucket, key, e) from e
        except BotoCoreError as e:
            raise service_error("GetObjectTagging", self.bucket, key, e) from e

        if not is_managed(tag_set_to_dict(tagging.get("TagSet", []))):
            raise ForeignObjectError(
                f"Refusing to delete s3://{self.bucket}/{key}: not managed by shuk",
                bucket=self.bucket,
                key=key,
            )

        logger.info(f"Deleting s3://{self.bucket}/{key}")
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise service_error("DeleteObject", self.bucket, key, e) from e
        return True

"""S3 client construction and error classification."""

import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError, ProfileNotFound

from shuk.common import RemoteServiceError

logger = logging.getLogger(__name__)

# Error codes S3 uses for a missing key (HeadObject has no body, so only "404")
NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

DEFAULT_REGION = "us-east-1"


def create_s3_client(
    profile: Optional[str] = None,
    fallback_region: Optional[str] = None,
) -> Any:
    """
    Build a boto3 S3 client.
    
    Credentials come from the named profile when it exists, otherwise from
    boto3's default chain (environment, instance metadata). The region is the
    profile's or environment's region, falling back to ``fallback_region``.
    
    Args:
        profile: AWS profile name from the config file
        fallback_region: Region used when none is configured anywhere
        
    Returns:
        A boto3 S3 client; safe to share between threads
    """
    try:
        session = boto3.Session(profile_name=profile) if profile else boto3.Session()
    except ProfileNotFound:
        logger.warning(f"AWS profile {profile!r} not found, using default credential chain")
        session = boto3.Session()

    region = session.region_name or fallback_region or DEFAULT_REGION
    logger.debug(f"Creating S3 client: profile={profile!r}, region={region!r}")
    return session.client("s3", region_name=region)


def error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def is_not_found(error: ClientError) -> bool:
    """True when a ClientError means the key does not exist."""
    if error_code(error) in NOT_FOUND_CODES:
        return True
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return status == 404


def service_error(operation: str, bucket: str, key: str, error: Exception) -> RemoteServiceError:
    """Wrap a storage failure into a RemoteServiceError with context."""
    wrapped = RemoteServiceError(
        f"S3 {operation} failed for s3://{bucket}/{key}: {error}",
        operation=operation,
        bucket=bucket,
        key=key,
    )
    wrapped.__cause__ = error
    return wrapped

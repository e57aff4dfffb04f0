"""Configuration models for shuk."""

from pydantic import BaseModel, Field, ConfigDict, field_validator

from shuk.common import LoggingConfig
from .constants import DEFAULT_CATALOG_CONCURRENCY, DEFAULT_PRESIGNED_TIME
from .keys import normalize_prefix

# SigV4 presigned URLs are valid for at most seven days
MAX_PRESIGNED_TIME = 7 * 24 * 3600


class StorageConfig(BaseModel):
    """Bucket, link and credential settings."""
    
    model_config = ConfigDict(extra='forbid')
    
    bucket_name: str = Field(
        min_length=1,
        description="Bucket that receives uploads"
    )
    bucket_prefix: str = Field(
        default="",
        description="Key prefix (folder) inside the bucket; empty for the bucket root"
    )
    presigned_time: int = Field(
        default=DEFAULT_PRESIGNED_TIME,
        ge=1,
        le=MAX_PRESIGNED_TIME,
        description="Lifetime of shared links in seconds"
    )
    aws_profile: str | None = Field(
        default=None,
        description="AWS credentials profile; default credential chain when unset"
    )
    use_clipboard: bool = Field(
        default=False,
        description="Copy shared links to the system clipboard"
    )
    fallback_region: str = Field(
        default="us-east-1",
        description="Region used when neither profile nor environment sets one"
    )
    catalog_concurrency: int = Field(
        default=DEFAULT_CATALOG_CONCURRENCY,
        ge=1,
        le=64,
        description="Simultaneous tag lookups while building the catalog"
    )
    
    @field_validator('bucket_prefix', mode='before')
    @classmethod
    def normalize_bucket_prefix(cls, v: str | None) -> str:
        """Give a non-empty prefix exactly one trailing slash."""
        if v is None:
            return ""
        if isinstance(v, str):
            return normalize_prefix(v.strip())
        return v
    
    @field_validator('aws_profile', mode='before')
    @classmethod
    def blank_profile_is_none(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ShukConfig(BaseModel):
    """Root configuration for shuk."""
    
    model_config = ConfigDict(extra='forbid')
    
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig

"""Constants shared across shuk modules."""

# Value of the managed_by tag on every object shuk writes
TOOL_ID = "shuk"

# Tag keys
TAG_MANAGED_BY = "managed_by"
TAG_START_HASH = "start_hash"
TAG_END_HASH = "end_hash"
TAG_DO_NOT_SCAN = "do_not_scan"

# Bytes hashed from each end of a file for the sampled fingerprint
FINGERPRINT_SAMPLE_SIZE = 8192

# Files strictly larger than this go through multi-part upload (4 GiB)
MULTIPART_THRESHOLD = 4 * 1024 * 1024 * 1024

# Multi-part part size; 5 MiB is the S3 minimum for all but the last part
PART_SIZE = 5 * 1024 * 1024

# Simultaneous tag lookups while building the catalog
DEFAULT_CATALOG_CONCURRENCY = 10

# Catalog document name, locally and under the bucket prefix
METADATA_FILE_NAME = "shuk_metadata.json"

# Default link lifetime (one day)
DEFAULT_PRESIGNED_TIME = 86400

KEY_SEPARATOR = "/"

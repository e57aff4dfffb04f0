"""File fingerprinting utilities for change detection.

The fingerprint is sampled, not a full-content hash: it covers the file size
plus an MD5 of the first and of the last 8 KiB. Two different files with the
same size and identical first/last 8 KiB are reported as identical. That risk
is accepted so that multi-gigabyte files never have to be read in full.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from shuk.common import LocalIoError, compute_md5_hex, md5_hex
from .constants import FINGERPRINT_SAMPLE_SIZE
from .tags import ObjectTagSet

logger = logging.getLogger(__name__)

__all__ = ['Fingerprint', 'compute_fingerprint', 'compute_full_hash']


@dataclass(frozen=True)
class Fingerprint:
    """Sampled identity of a local file."""
    start_hash: str
    end_hash: str
    file_size: int

    def to_tags(self) -> ObjectTagSet:
        return ObjectTagSet(start_hash=self.start_hash, end_hash=self.end_hash)


def compute_fingerprint(file_path: Path, sample_size: int = FINGERPRINT_SAMPLE_SIZE) -> Fingerprint:
    """
    Compute the sampled fingerprint of a file.
    
    Reads up to ``sample_size`` bytes from the start. Files larger than
    ``sample_size`` also get the last ``sample_size`` bytes hashed; smaller
    (or equal) files reuse the start hash as the end hash.
    
    Args:
        file_path: Path to the file
        sample_size: Bytes to hash from each end
        
    Returns:
        Fingerprint with both hashes and the file size
        
    Raises:
        LocalIoError: If the file cannot be opened, read or seeked
    """
    logger.debug(f"Calculating partial hash of {file_path}")
    try:
        with open(file_path, 'rb') as f:
            file_size = os.fstat(f.fileno()).st_size

            start_hash = md5_hex(f.read(sample_size))

            if file_size > sample_size:
                f.seek(file_size - sample_size)
                end_hash = md5_hex(f.read(sample_size))
            else:
                end_hash = start_hash
    except OSError as e:
        raise LocalIoError(
            f"Failed to fingerprint {file_path}: {e}", path=str(file_path)
        ) from e

    logger.debug(
        f"Fingerprint of {file_path}: size={file_size}, "
        f"start_hash={start_hash}, end_hash={end_hash}"
    )
    return Fingerprint(start_hash=start_hash, end_hash=end_hash, file_size=file_size)


def compute_full_hash(file_path: Path) -> str:
    """MD5 of the whole file, for exact comparisons."""
    try:
        return compute_md5_hex(file_path)
    except OSError as e:
        raise LocalIoError(f"Failed to hash {file_path}: {e}", path=str(file_path)) from e

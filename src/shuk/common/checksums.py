"""Checksum utilities for file identity."""

import hashlib
from pathlib import Path

# Constants for checksum calculation
MD5_CHUNK_SIZE = 65536  # 64 KB chunks


def md5_hex(data: bytes) -> str:
    """Return the MD5 hex digest of an in-memory buffer."""
    return hashlib.md5(data).hexdigest()


def compute_md5_hex(file_path: Path) -> str:
    """
    Compute MD5 of the entire file as hex string.
    
    Used for exact comparison when the sampled fingerprint is not enough.
    
    Args:
        file_path: Path to the file
        
    Returns:
        MD5 digest as 32-character hex string
        
    Raises:
        OSError: If file cannot be read
    """
    hasher = hashlib.md5()
    
    with open(file_path, 'rb') as f:
        while chunk := f.read(MD5_CHUNK_SIZE):
            hasher.update(chunk)
    
    return hasher.hexdigest()

"""Progress tracking for uploads.

Tracks bytes sent against the exact file size and reports through an
optional callback, plus periodic log lines with rate and ETA.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class UploadProgress:
    """Progress information for file uploads."""
    bytes_uploaded: int
    total_bytes: int
    percentage: float
    file_name: str
    
    def __str__(self) -> str:
        return f"{self.file_name}: {self.percentage:.1f}% ({self.bytes_uploaded}/{self.total_bytes} bytes)"


ProgressCallback = Callable[[UploadProgress], None]


class TransferProgressTracker:
    """Tracks upload progress and calculates ETA.
    
    Features:
    - Bytes sent against a known total
    - Transfer rate (bytes/sec)
    - Estimated time remaining
    - Log line every ``log_step_percent`` percent
    """
    
    def __init__(
        self,
        total_bytes: int,
        file_name: str,
        callback: Optional[ProgressCallback] = None,
        log_step_percent: float = 10.0,
    ):
        """Initialize progress tracker.
        
        Args:
            total_bytes: Exact size of the upload
            file_name: Name shown in progress reports
            callback: Called with an UploadProgress after every chunk
            log_step_percent: Log progress every N percent
        """
        self.total_bytes = total_bytes
        self.file_name = file_name
        self.callback = callback
        self.log_step_percent = log_step_percent
        
        self.bytes_uploaded = 0
        self.start_time = time.time()
        self._next_log_percent = log_step_percent
    
    def advance(self, byte_count: int) -> None:
        """Record ``byte_count`` more bytes sent.
        
        Args:
            byte_count: Bytes written since the previous call
        """
        self.bytes_uploaded += byte_count
        progress = self.snapshot()
        
        if self.callback is not None:
            self.callback(progress)
        
        if progress.percentage >= self._next_log_percent:
            self._log_progress()
            while self._next_log_percent <= progress.percentage:
                self._next_log_percent += self.log_step_percent
    
    def snapshot(self) -> UploadProgress:
        if self.total_bytes > 0:
            percentage = (self.bytes_uploaded / self.total_bytes) * 100
        else:
            percentage = 100.0
        return UploadProgress(
            bytes_uploaded=self.bytes_uploaded,
            total_bytes=self.total_bytes,
            percentage=percentage,
            file_name=self.file_name,
        )
    
    def get_progress(self) -> dict:
        """Get current progress statistics.
        
        Returns:
            Dict with progress metrics
        """
        elapsed_time = time.time() - self.start_time
        
        if elapsed_time > 0:
            rate = self.bytes_uploaded / elapsed_time
        else:
            rate = 0.0
        
        remaining_bytes = max(0, self.total_bytes - self.bytes_uploaded)
        if rate > 0 and remaining_bytes > 0:
            eta_seconds = remaining_bytes / rate
        else:
            eta_seconds = 0.0
        
        return {
            "total_bytes": self.total_bytes,
            "bytes_uploaded": self.bytes_uploaded,
            "remaining_bytes": remaining_bytes,
            "percentage": self.snapshot().percentage,
            "elapsed_seconds": elapsed_time,
            "rate_bytes_per_sec": rate,
            "eta_seconds": eta_seconds,
        }
    
    def _log_progress(self) -> None:
        progress = self.get_progress()
        logger.info(
            f"Upload progress: {self.bytes_uploaded}/{self.total_bytes} bytes "
            f"({progress['percentage']:.1f}%) - "
            f"{progress['rate_bytes_per_sec'] / (1024 * 1024):.1f} MiB/sec - "
            f"ETA: {self._format_time(progress['eta_seconds'])}"
        )
    
    def _format_time(self, seconds: float) -> str:
        """Format seconds as human-readable time.
        
        Args:
            seconds: Time in seconds
            
        Returns:
            Formatted string (e.g., "2h 15m 30s")
        """
        if seconds <= 0:
            return "0s"
        
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = int(seconds % 60)
        
        parts = []
        if hours > 0:
            parts.append(f"{hours}h")
        if minutes > 0:
            parts.append(f"{minutes}m")
        if secs > 0 or not parts:
            parts.append(f"{secs}s")
        
        return " ".join(parts)
    
    def log_final_summary(self) -> None:
        """Log final transfer summary."""
        elapsed_time = time.time() - self.start_time
        logger.info(
            f"Upload complete: {self.bytes_uploaded}/{self.total_bytes} bytes of {self.file_name} "
            f"in {self._format_time(elapsed_time)}"
        )

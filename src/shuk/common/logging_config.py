"""The ``[logging]`` table of config.toml."""

from pathlib import Path
from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class LoggingConfig(BaseModel):
    """Console verbosity and an optional rotating log file."""

    model_config = ConfigDict(extra='forbid')

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Console log level; -v forces DEBUG"
    )
    format: Literal["simple", "detailed", "json"] = Field(
        default="simple",
        description="Console log format"
    )
    file: str | None = Field(default=None, description="Log file path, JSON lines")
    max_file_size_mb: int = Field(default=10, ge=1, description="Rotate the log file at this size")
    backup_count: int = Field(default=5, ge=0, description="Rotated log files to keep")

    @field_validator('level', 'format', mode='before')
    @classmethod
    def normalize_case(cls, v, info):
        """Levels are upper case and formats lower case, whatever the input."""
        if not isinstance(v, str):
            return v
        v = v.strip()
        return v.upper() if info.field_name == 'level' else v.lower()

    def log_path(self) -> Optional[Path]:
        """The log file with ``~`` expanded, or None when file logging is off."""
        if not self.file:
            return None
        return Path(self.file).expanduser()

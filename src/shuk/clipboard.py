"""Copy text to the system clipboard via the platform's command-line tool."""

import logging
import subprocess
import sys
from typing import List

from .errors import ClipboardError

logger = logging.getLogger(__name__)


def clipboard_commands(platform: str = sys.platform) -> List[List[str]]:
    """Candidate commands for a platform, in the order they are tried."""
    if platform.startswith("linux"):
        return [["wl-copy"], ["xclip", "-selection", "clipboard"]]
    if platform == "darwin":
        return [["pbcopy"]]
    if platform in ("win32", "cygwin"):
        return [["clip"]]
    return []


def copy_to_clipboard(text: str, platform: str = sys.platform) -> None:
    """
    Put ``text`` on the clipboard.
    
    On Linux Wayland's ``wl-copy`` is tried first, then X11's ``xclip``.
    
    Raises:
        ClipboardError: If no command is available or every command fails
    """
    commands = clipboard_commands(platform)
    if not commands:
        raise ClipboardError(f"Unsupported operating system: {platform}", platform=platform)

    failures = []
    for command in commands:
        logger.debug(f"Setting clipboard with {command[0]}")
        try:
            result = subprocess.run(command, input=text.encode(), capture_output=True, check=False)
        except OSError as e:
            failures.append(f"{command[0]}: {e}")
            continue
        if result.returncode == 0:
            return
        failures.append(f"{command[0]} exited with {result.returncode}")

    raise ClipboardError(
        f"Failed to copy to clipboard ({'; '.join(failures)})", platform=platform
    )

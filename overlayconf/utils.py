"""
overlayconf.utils
-----------------

Path and file helpers shared by the processor and the CLI.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

log = logging.getLogger(__name__)


def expand_path(path: Union[str, os.PathLike]) -> Path:
    """Expand ``~`` and environment variables in a path.

    Args:
        path: Path string or path-like object.

    Returns:
        The expanded Path (not resolved).

    Examples:
        >>> expand_path("~/configs/app.json")
        PosixPath('/home/user/configs/app.json')
        >>> expand_path("$HOME/.config/app.json")
        PosixPath('/home/user/.config/app.json')
    """
    return Path(os.path.expandvars(os.path.expanduser(os.fspath(path))))


def read_text(path: Path) -> Optional[str]:
    """Read a UTF-8 file, returning None if it is missing, unreadable or blank."""
    if not path.is_file():
        log.debug("Config file %s does not exist", path)
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Warning: Could not read config file %s: %s", path, e)
        return None
    if not text.strip():
        log.debug("Config file %s is empty", path)
        return None
    return text


def write_text(path: Path, text: str) -> None:
    """Write UTF-8 text to a file."""
    path.write_text(text, encoding="utf-8")
    log.debug("Wrote %d characters to %s", len(text), path)

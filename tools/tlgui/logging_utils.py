"""Logging setup for the frontend.

The log file lives in the temporary directory, next to the debug log the
backend writes, so both sides of a session can be inspected together.
"""

import logging
import os
from pathlib import Path

from .resources import LOG_FILE_NAME


def default_log_path() -> str:
    for var in ("TMPDIR", "TMP", "TEMP"):
        value = os.environ.get(var)
        if value:
            return str(Path(value) / LOG_FILE_NAME)
    return str(Path("/tmp") / LOG_FILE_NAME)


def configure_logging(
    log_path: str | None = None,
    level: int = logging.INFO,
    also_console: bool = False,
) -> str:
    """Attach a file handler (and optionally stderr) to the root logger.

    Calling this twice is harmless; the second call returns the path chosen
    by the first. Returns the file path actually in use.
    """
    root = logging.getLogger()
    if getattr(root, "_tlgui_log_path", None):
        return root._tlgui_log_path

    root.setLevel(level)
    requested = log_path or default_log_path()
    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    try:
        Path(requested).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(requested, encoding="utf-8")
        chosen = requested
    except OSError:
        chosen = str(Path.cwd() / LOG_FILE_NAME)
        handler = logging.FileHandler(chosen, encoding="utf-8")
    handler.setFormatter(fmt)
    root.addHandler(handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        root.addHandler(console)

    root._tlgui_log_path = chosen
    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", requested, chosen
    )
    return chosen

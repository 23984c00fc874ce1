"""
Centralized logging configuration for the GESLA tools.

Library modules should NOT call logging.basicConfig() - that's the
application's responsibility. Instead, they should just use:

    import logging
    logger = logging.getLogger(__name__)

Only the command line entry point calls setup_logging().
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level, as a number or a name such as 'DEBUG'
        log_file: Optional path to write logs to file
        format_string: Optional custom format string
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

"""Console/file logging for scripts that drive amrproj."""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from amrproj.schemas import InternalConfig

__all__ = ["setup_logging"]

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "amrproj"


def setup_logging(config: Optional["InternalConfig"] = None, level: Optional[str] = None,
                  log_file: Union[str, Path, None] = None) -> logging.Logger:
    """Attach console (and optional file) handlers to the package logger.

    The level comes from ``level``, else ``config.logging.level``, else
    WARNING. Existing handlers on the package logger are replaced, so
    repeated calls do not duplicate output.

    Returns
    -------
    logging.Logger
        The configured ``amrproj`` logger.
    """
    if level is None:
        level = config.logging.level if config is not None else "WARNING"
    log_level = getattr(logging, str(level).upper(), logging.WARNING)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    pkg = logging.getLogger(PACKAGE_LOGGER)
    pkg.setLevel(log_level)
    for handler in pkg.handlers[:]:
        pkg.removeHandler(handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        pkg.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    pkg.addHandler(ch)

    logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_file)
    return pkg

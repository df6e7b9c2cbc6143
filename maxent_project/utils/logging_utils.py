import logging
import sys
from typing import Iterable

NOISY_LOGGERS = ("rasterio", "rioxarray")


def setup_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Log to stdout, at DEBUG when verbose.

    Libraries in ``quiet_loggers`` are held at WARNING so that verbose runs
    only show this package's debug output.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

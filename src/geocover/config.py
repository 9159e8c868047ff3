"""
Runtime configuration for cell coverings.

Values are read from environment variables (a .env file is loaded first if
present) so deployments can tune caps and precision ladders without code changes.
"""
import logging
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _int_list(value: str) -> tuple[int, ...]:
    return tuple(int(part) for part in value.split(",") if part.strip())


# Result size caps
DEFAULT_MAX_CELLS = int(os.getenv("GEOCOVER_DEFAULT_MAX_CELLS", "100"))
MAX_CELLS_CEILING = int(os.getenv("GEOCOVER_MAX_CELLS_CEILING", "1000"))

# Above this latitude (degrees) box tests only compare latitudes
POLE_LATITUDE_THRESHOLD = float(os.getenv("GEOCOVER_POLE_LATITUDE", "85.0"))

# fine, medium, coarse
HEX_PRECISION_LADDER = _int_list(os.getenv("GEOCOVER_HEX_LADDER", "9,7,5"))
QUAD_PRECISION_LADDER = _int_list(os.getenv("GEOCOVER_QUAD_LADDER", "16,13,10"))

DEFAULT_ENGINE = os.getenv("GEOCOVER_DEFAULT_ENGINE", "hex")

LOG_LEVEL = os.getenv("GEOCOVER_LOG_LEVEL", "WARNING")


def configure_logging(level: str | None = None) -> None:
    """
    Apply the configured log level to the geocover loggers.

    Args:
        level: Level name overriding GEOCOVER_LOG_LEVEL
    """
    logging.getLogger("src.geocover").setLevel((level or LOG_LEVEL).upper())

import logging
from typing import Literal

LOG_FORMAT_DEBUG = (
    "[%(levelname)7s]: %(name)s - %(message)s --- %(pathname)s:%(lineno)d"
)
LOG_FORMAT_PROD = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Outbound provider calls and the SQLite test driver log every request.
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiosqlite": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
}


def setup_logging(env: Literal["local", "dev", "prod"]) -> None:
    """Configure root logging; debug detail outside prod."""
    debug = env in ("local", "dev")
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT_DEBUG if debug else LOG_FORMAT_PROD,
    )
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
    logging.getLogger("checkout_guard").setLevel(logging.DEBUG if debug else logging.INFO)

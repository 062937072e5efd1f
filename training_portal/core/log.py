"""Logging setup shared by the app and the CLI entry points."""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    root.setLevel(level.upper())
    # SQL echo is controlled by the engine, keep the driver quiet
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

"""Logging setup shared by the educator and learner processes.

Both processes own the terminal (Textual), so logs always go to a file.
"""
import logging
from pathlib import Path


def configure_logging(log_name: str, tag: str, log_dir: str = "logs") -> logging.Logger:
    # 1. Setup Log Directory
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / f"{log_name}.log"

    # 2. Configure Root Logger
    # force=True ensures we override Uvicorn's default logging config
    logging.basicConfig(
        filename=str(log_file),
        level=logging.INFO,
        format=f"%(asctime)s %(levelname)s [{tag}] %(name)s %(message)s",
        filemode="w",  # overwrite on restart
        force=True,
    )

    # 3. DEBUG for our own modules
    logger = logging.getLogger("sahayak")
    logger.setLevel(logging.DEBUG)
    return logger

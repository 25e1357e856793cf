import atexit
import logging
import os

from app import create_app
from config import BUCKETS, loadConfig
from db import DB
from errors import StorageError
from logutils import setupLogging

logger = logging.getLogger("runverbose")


def openStore(settings: dict) -> DB:
    """Open the process-wide store; failing to do so ends the process."""
    try:
        db = DB(settings["db_file"]).connect(BUCKETS)
    except StorageError as e:
        logger.critical("cannot open store: %s", e)
        raise SystemExit(1) from e
    atexit.register(db.close)
    return db


if __name__ == "__main__":
    settings = loadConfig()
    setupLogging(settings["log_level"])
    app = create_app(openStore(settings), settings)
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=False)

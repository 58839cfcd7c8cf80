import logging
import os
import sys

from smhelper.app import create_app, setup_logging, start_api
from smhelper.config import Settings

setup_logging()
logger = logging.getLogger("smhelper")

settings = Settings.from_env()
missing = settings.missing()
if missing:
    logger.error("Missing environment variables: %s. Please check your .env file.", ", ".join(missing))
    sys.exit(1)

app = create_app(settings)


if __name__ == "__main__":
    logger.info("Starting Social Media Helper API server...")
    start_api(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))

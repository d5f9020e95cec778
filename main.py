# main.py
import logging
import uvicorn
from designstudio.app import DesignStudioApp
from designstudio.config import Config, setup_logging

def main():
    # Setup logging
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        studio = DesignStudioApp()
        logger.info(f"Starting design studio API on {Config.HOST}:{Config.PORT}...")
        uvicorn.run(studio.app, host=Config.HOST, port=Config.PORT, log_config=None)
    except Exception as e:
        logger.error(f"Error starting server: {e}", exc_info=True)
        raise

if __name__ == "__main__":
    main()

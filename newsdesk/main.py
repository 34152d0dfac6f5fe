import sys
import uvicorn
from newsdesk.config import settings
from newsdesk.services.logger import logger

def main():
    try:
        uvicorn.run(
            "newsdesk.api:app",
            host=settings.WEB_HOST,
            port=settings.WEB_PORT,
            log_level=settings.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()

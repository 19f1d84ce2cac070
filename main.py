"""
Entry point for the Demo Entity service
"""

import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from reactive_demo.config.settings import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

if __name__ == "__main__":
    import uvicorn
    from reactive_demo.app import create_app

    logger.info(f"Starting Demo Entity service on port {settings.port}")
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)

"""Application starter."""

import os
import sys

import uvicorn

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from chatrelay.core.config import settings
from chatrelay.core.logging import setup_logger

logger = setup_logger(__name__)

if __name__ == "__main__":
    logger.info(f"Starting relay on port {settings.DOCS_PORT}")
    uvicorn.run(
        "chatrelay.main:app",
        host="0.0.0.0",
        port=settings.DOCS_PORT,
        reload=settings.DEBUG,
    )

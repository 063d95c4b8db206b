"""Startup script for the FastAPI backend.

This script starts the FastAPI server with configuration from environment variables.
"""

import os
import uvicorn
from dotenv import load_dotenv
from loguru import logger

# Load environment variables
load_dotenv()

if __name__ == "__main__":
    # Get configuration from environment
    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", "8000"))
    reload = os.getenv("API_RELOAD", "false").lower() == "true"
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    logger.info(f"Starting Contract Family Engine API on {host}:{port}")
    logger.info(f"CORS origins: {os.getenv('CORS_ORIGINS', 'http://localhost:3000,http://localhost:5173')}")

    # Start server
    uvicorn.run(
        "api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level
    )

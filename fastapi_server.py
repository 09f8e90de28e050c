#!/usr/bin/env python3
"""
FastAPI server for CryptoSentinel.

Runs the research API with uvicorn using host, port and CORS origins from the
loaded configuration (``sentinel.yaml`` when present, plus environment).
"""

from pathlib import Path

import uvicorn
from loguru import logger

from cryptosentinel.config import load_config
from cryptosentinel.server import create_app

CONFIG_FILE = Path("sentinel.yaml")

config = load_config(config_file=CONFIG_FILE if CONFIG_FILE.exists() else None)
app = create_app(config=config)

if __name__ == "__main__":
    host, port = config.web_server.host, config.web_server.port
    logger.info(f"Starting CryptoSentinel API on http://{host}:{port}")
    logger.info(f"API documentation: http://{host}:{port}/docs")

    uvicorn.run(app, host=host, port=port, log_level="info")

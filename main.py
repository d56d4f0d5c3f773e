"""
channel-transcriber entry point
"""

import os

import uvicorn

from channel_transcriber.utils import setup_logger, load_config

# Load configuration
config = load_config(os.getenv("CHANNEL_TRANSCRIBER_CONFIG", "config/app.yaml"))

# Configure logging
log_config = config.get("app", {}).get("logging", {})
setup_logger(
    log_dir=log_config.get("dir", "logs"),
    level=log_config.get("level", "INFO")
)

if __name__ == "__main__":
    from loguru import logger

    server_config = config.get("app", {}).get("server", {})
    host = server_config.get("host", "0.0.0.0")
    port = server_config.get("port", 8094)

    logger.info(f"Starting channel-transcriber: http://{host}:{port}")

    uvicorn.run(
        "channel_transcriber.server.main:app",
        host=host,
        port=port,
        log_level="info",
        reload=False
    )

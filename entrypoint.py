import uvicorn
import os
from logging_config import setup_logging

# Setup logging before importing app
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)

from constants import WS_PING_INTERVAL, WS_PING_TIMEOUT
from logging_config import get_logger

logger = get_logger(__name__)

if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    logger.info(f"Starting meeting relay on {host}:{port} (ping every {WS_PING_INTERVAL}s, timeout {WS_PING_TIMEOUT}s)")
    uvicorn.run(
        "app:app",
        host=host,
        port=port,
        ws_ping_interval=WS_PING_INTERVAL,
        ws_ping_timeout=WS_PING_TIMEOUT,
        log_config=None,
    )

import logging
import sys

# uvicorn emits these for every WebSocket handshake and teardown
WEBSOCKET_CHURN_MESSAGES = ("connection open", "connection closed")


class WebSocketChurnFilter(logging.Filter):
    """Filter out per-connection uvicorn chatter for the log streaming endpoint.

    Every dashboard tab opens one WebSocket per container, and these lines
    land in the dashboard's own container output.
    """

    def __init__(self, path: str = "/logs"):
        super().__init__()
        self.path = path

    def filter(self, record):
        if not record.name.startswith("uvicorn"):
            return True

        message = record.getMessage()
        if f'"WebSocket {self.path}' in message:
            return False

        if message in WEBSOCKET_CHURN_MESSAGES:
            return False

        return True


def setup_logging(level: str = "INFO"):
    """Configure root logging to stdout with the WebSocket churn filter."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(formatter)
    console_handler.addFilter(WebSocketChurnFilter())

    # Clear existing handlers and add our configured handler
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # uvicorn is started without its own log config, so its loggers
    # propagate into the handler above
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    return root_logger

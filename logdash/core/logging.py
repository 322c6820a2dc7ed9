import logging
from logdash.core.config import settings
from logdash.core.logging_config import setup_logging

# Use centralized logging configuration
setup_logging(settings.log_level)

# Create logger for this module
logger = logging.getLogger("docker_log_dashboard")

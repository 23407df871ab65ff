import os

from cgibridge.common.core.logging_config import setup_logging as common_setup_logging


def setup_logging():
    """
    Load the YAML config and initialize logging.
    """
    config_path = os.getenv("LOG_CONFIG_PATH", "config/gateway_log.yaml")
    common_setup_logging(config_path)

"""Configuration module for the Intacct bill payment run."""

from intacct_billpay.config.logging import configure_logging, get_logger
from intacct_billpay.config.settings import FlatSettings, get_settings

__all__ = ["FlatSettings", "get_settings", "configure_logging", "get_logger"]

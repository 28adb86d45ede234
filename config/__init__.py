"""
Process-wide configuration.

Import the shared instance with ``from config import config``.
"""

from config.config import AppConfig, load_config

config: AppConfig = load_config()

__all__ = ["AppConfig", "config", "load_config"]

"""
Configuration Adapters - Load configuration from various sources.
"""

from .environment import EnvironmentConfigProvider, normalize_page_id

__all__ = ["EnvironmentConfigProvider", "normalize_page_id"]

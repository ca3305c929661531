"""
Operations package for the Aerial Survey Pipeline

This package centralizes the operational tools around the pipeline core:
- Configuration management
- Pipeline orchestration (Click CLI)

The Config class is exposed at the package level for convenient imports:
    from ops import Config
"""

from .config_loader import Config

__all__ = ["Config"]

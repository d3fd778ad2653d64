"""
Project configuration loading.
"""

from strata.config.loader import Config, load_config, load_declarations
from strata.config.resolver import resolve_config

__all__ = ["Config", "load_config", "load_declarations", "resolve_config"]

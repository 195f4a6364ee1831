"""
Configuration defaults, loading and validation.
"""
from .defaults import DefaultConfig, RestParams, StreamParams, get_default_config
from .loader import ConfigLoader

__all__ = [
    "ConfigLoader",
    "DefaultConfig",
    "RestParams",
    "StreamParams",
    "get_default_config",
]

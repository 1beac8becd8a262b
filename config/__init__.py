"""
Config module - Runtime defaults for the history extractor.
"""

from .settings import DEFAULT_SETTINGS, OUTPUT_EXTENSIONS

__all__ = [
    'DEFAULT_SETTINGS',
    'OUTPUT_EXTENSIONS',
]

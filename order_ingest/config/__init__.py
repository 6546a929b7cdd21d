"""
Importer configuration: settings loading and collection date selection.
"""

from .date_selection import DateSelector
from .settings import IngestSettings, PlatformConfig, build_settings, load_settings

__all__ = ["DateSelector", "IngestSettings", "PlatformConfig", "build_settings", "load_settings"]

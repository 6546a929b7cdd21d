"""
Platform API clients.
"""

from .platform_client import PlatformClient, linear_backoff

__all__ = ["PlatformClient", "linear_backoff"]

"""
HTTP surface for CryptoSentinel.
"""

from .api import create_app

__all__ = ["create_app"]

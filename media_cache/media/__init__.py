"""
Media Transfer Layer.

This package is responsible for downloading asset bodies (cover images and
audio) from signed object-store URLs.
"""

from .fetcher import AssetFetcher

__all__ = ["AssetFetcher"]

"""
Catalog Layer.

This package talks to the S3-compatible bucket: it lists and reads objects,
signs short-lived access URLs, and turns the object layout into albums,
songs and releases.
"""

from .object_store import URL_VALIDITY_SECONDS, AccessUrlIssuer, ObjectStore, S3ObjectStore
from .scanner import CatalogScanner

__all__ = [
    "URL_VALIDITY_SECONDS",
    "AccessUrlIssuer",
    "CatalogScanner",
    "ObjectStore",
    "S3ObjectStore",
]

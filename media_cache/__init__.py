"""
media-cache: offline asset cache and signed-URL resolution for an
S3-hosted music catalog.
"""

__version__ = "0.1.0"

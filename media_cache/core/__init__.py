"""
Core resolution engine.

The `AssetResolver` decides, per request, whether a URL comes from the local
cache or from the issuer, and hands cache warming to the `TaskRunner` so the
caller never waits on it.
"""

"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .catalog import DEFAULT_ARTIST


class CacheConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Object store
    bucket: str
    region: str = "us-east-1"
    endpoint_url: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""

    # Catalog
    artist: str = DEFAULT_ARTIST

    # Cache behaviour
    cache_ttl_days: int = 7
    url_validity_seconds: int = 3600
    max_concurrent_fetches: int = 4
    fetch_attempts: int = 3

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    @field_validator("bucket")
    @classmethod
    def validate_bucket(cls, v: str) -> str:
        """S3 bucket names are 3-63 characters of lowercase letters, digits, dots and hyphens."""
        if not v:
            raise ValueError("Bucket name cannot be empty.")
        if not 3 <= len(v) <= 63:
            raise ValueError("Bucket name must be between 3 and 63 characters.")
        if any(not (c.islower() or c.isdigit() or c in ".-") for c in v):
            raise ValueError(
                "Bucket name may only contain lowercase letters, digits, '.' and '-'."
            )
        return v

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Endpoint URL must start with http:// or https://.")
        return v.rstrip("/")

    @field_validator("cache_ttl_days")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v < 1 or v > 365:
            raise ValueError("Cache TTL must be between 1 and 365 days.")
        return v

    @field_validator("url_validity_seconds")
    @classmethod
    def validate_url_validity(cls, v: int) -> int:
        # S3 SigV4 presigned URLs are capped at seven days
        if v < 60 or v > 604800:
            raise ValueError("URL validity must be between 60 and 604800 seconds.")
        return v

    @field_validator("max_concurrent_fetches")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent fetches."""
        if v < 1 or v > 32:
            raise ValueError("Max concurrent fetches must be between 1 and 32.")
        return v

    @field_validator("fetch_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Fetch attempts must be at least 1.")
        return v

    @model_validator(mode="after")
    def validate_credentials(self) -> "CacheConfig":
        """Access key and secret must be given together, or both left to boto3."""
        if bool(self.access_key_id) != bool(self.secret_access_key):
            raise ValueError(
                "Provide both access_key_id and secret_access_key, or neither to "
                "use the default AWS credential chain."
            )
        return self

    @property
    def cache_ttl_seconds(self) -> int:
        return self.cache_ttl_days * 86400

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}

"""
INI-backed persistence for CacheConfig: bucket connection, cache lifetime
and fetch tuning live in a single DEFAULT section.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from media_cache.exceptions import ConfigurationError
from media_cache.models.config import CacheConfig

log = logging.getLogger(__name__)

_INT_KEYS = {
    "cache_ttl_days",
    "url_validity_seconds",
    "max_concurrent_fetches",
    "fetch_attempts",
}


class ConfigManager:
    """Reads, migrates and writes the media-cache config.ini."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> CacheConfig:
        """
        Builds a CacheConfig from the INI file plus command-line overrides.

        Args:
            cli_options: Overrides keyed by CacheConfig field name.
                Entries whose value is None are ignored.

        Returns:
            A validated CacheConfig object.

        Raises:
            ConfigurationError: If the file is missing or unreadable, or a value does
            not validate.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'media-cache init' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Cannot parse {self.config_file_path}: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Added new settings with default values to config.ini."
                "[/yellow]"
            )

        config_from_file = self._get_config_as_dict()

        # None means "not given on the command line"
        if cli_options:
            config_from_file.update(
                {k: v for k, v in cli_options.items() if v is not None}
            )

        try:
            config_dir = self.config_file_path.parent
            return CacheConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Validates `settings` and writes them as a fresh config.ini, replacing
        any existing file.

        Args:
            settings: A dictionary of settings to save. The settings are
                validated before anything is written.

        Raises:
            ConfigurationError: If the settings are invalid or the file cannot
            be written.
        """
        try:
            validated = CacheConfig(
                **settings, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}
        for key in sorted(CacheConfig.get_ini_keys()):
            config["DEFAULT"][key] = str(getattr(validated, key))

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Cannot write {self.config_file_path}: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Collects known keys from the DEFAULT section, typed for CacheConfig."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {}
        for key in CacheConfig.get_ini_keys():
            if key not in section:
                continue
            if key in _INT_KEYS:
                try:
                    values[key] = section.getint(key)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid value for '{key}' in configuration file: {e}"
                    ) from e
            else:
                values[key] = section.get(key, "")
        return values

    def _migrate_if_needed(self) -> bool:
        """Fills in keys added since the file was written, using field defaults."""
        config_section = self._parser["DEFAULT"]
        needs_saving = False

        for key in sorted(CacheConfig.get_ini_keys()):
            field = CacheConfig.model_fields[key]
            if key in config_section or field.is_required():
                continue
            config_section[key] = str(field.get_default())
            needs_saving = True
            log.debug(
                f"config.ini: filled missing '{key}' "
                f"= '{config_section[key]}'"
            )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not write migrated settings to {self.config_file_path}: {e}")
                return False

        return needs_saving

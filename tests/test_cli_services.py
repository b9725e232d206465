"""
Tests for the service wiring shared by the CLI commands.
"""

from unittest.mock import MagicMock

import pytest

import media_cache.cli.app as cli_app
from media_cache.__main__ import exit_code_for
from media_cache.catalog import S3ObjectStore
from media_cache.exceptions import ConfigurationError, ResolutionError, StorageUnavailableError
from media_cache.storage import ConfigManager


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    config_file = tmp_path / "media-cache" / "config.ini"
    ConfigManager(config_file).save_new_config({"bucket": "my-music"})
    monkeypatch.setattr(cli_app, "CONFIG_FILE", config_file)
    monkeypatch.setattr(cli_app, "CACHE_DIR", tmp_path / "media-cache" / "assets")
    monkeypatch.setattr(
        S3ObjectStore, "from_config", classmethod(lambda cls, config: MagicMock())
    )
    return tmp_path


@pytest.mark.asyncio
async def test_background_sweep_runs_for_the_lifetime_of_the_services(config_home):
    async with cli_app.open_services() as services:
        cleanup = services.cache._cleanup_task
        assert cleanup is not None
        assert not cleanup.done()

    assert cleanup.done()


@pytest.mark.parametrize(
    "error, code",
    [
        (ConfigurationError("missing bucket"), 2),
        (StorageUnavailableError("bucket unreachable"), 3),
        (ResolutionError("no access URL"), 1),
        (RuntimeError("bug"), 1),
    ],
)
def test_exit_code_reflects_the_error_family(error, code):
    assert exit_code_for(error) == code

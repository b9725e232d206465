"""
Console entry point for `media-cache`.
Turns library errors into rich panels and sets the exit status.
"""

import logging
import sys

import typer
from rich.console import Console

from media_cache.cli.app import CACHE_DIR, CONFIG_FILE, app
from media_cache.cli.formatters import format_error_with_suggestions
from media_cache.exceptions import (
    ConfigurationError,
    MediaCacheError,
    StorageUnavailableError,
)

# 1 is left for unexpected failures
EXIT_CODES: dict[type[MediaCacheError], int] = {
    ConfigurationError: 2,
    StorageUnavailableError: 3,
}


def exit_code_for(error: BaseException) -> int:
    for error_type, code in EXIT_CODES.items():
        if isinstance(error, error_type):
            return code
    return 1


def main() -> None:
    """Runs the typer app and reports uncaught errors."""
    log = logging.getLogger("media_cache")
    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except KeyboardInterrupt:
        console.print(
            "\n[yellow]Interrupted. Partially fetched assets are swept from "
            f"{CACHE_DIR} on a later run.[/yellow]"
        )
        sys.exit(130)
    except MediaCacheError as e:
        context = {"config": str(CONFIG_FILE)} if isinstance(e, ConfigurationError) else None
        console.print(f"\n{format_error_with_suggestions(e, context)}")
        sys.exit(exit_code_for(e))
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
Utilities for classifying object keys and deriving display titles and release
dates from file names.
"""

import re
from datetime import date, timedelta

IMAGE_EXTENSIONS = (".jpg", ".png", ".jpeg")
AUDIO_EXTENSIONS = (".mp3", ".wav", ".m4a")

_IMAGE_EXT_RE = re.compile(r"\.(jpg|png|jpeg)$")
_AUDIO_EXT_RE = re.compile(r"\.(mp3|wav|m4a)$")
_TRAILING_DATE_RE = re.compile(r"-?(?P<date>\d{4}-\d{2}-\d{2})$")
_SIDECAR_DATE_RE = re.compile(r"Release Date:\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE)
_SIDECAR_TITLE_RE = re.compile(r"Title:\s*([^\n]+)", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def is_image(key: str) -> bool:
    return key.endswith(IMAGE_EXTENSIONS)


def is_audio(key: str) -> bool:
    return key.endswith(AUDIO_EXTENSIONS)


def basename(key: str) -> str:
    """Returns the last path segment of an object key."""
    return key.rsplit("/", 1)[-1]


def slugify(name: str) -> str:
    """Builds a stable identifier: whitespace runs become '-', lowercased."""
    return _WHITESPACE_RE.sub("-", name).lower()


def song_name(key: str) -> str:
    """File name of an audio key without its extension."""
    return _AUDIO_EXT_RE.sub("", basename(key))


def title_case_words(text: str) -> str:
    """'fortune-COOKIES' -> 'Fortune Cookies'."""
    return " ".join(word.capitalize() for word in text.split("-"))


def parse_cover_filename(key: str, default_title: str) -> tuple[str, str | None]:
    """
    Derives a release title and date from a cover image key.

    A trailing `YYYY-MM-DD` is taken as the release date and stripped from the
    title. A bare `cover` file name yields `default_title`.

    Args:
        key: The object key of the cover image.
        default_title: Title used when the file name carries none.

    Returns:
        A `(title, release_date)` tuple; `release_date` is None when absent.
    """
    filename = _IMAGE_EXT_RE.sub("", basename(key))

    match = _TRAILING_DATE_RE.search(filename)
    if match:
        release_date = match.group("date")
        title_part = filename[: match.start()]
        title = title_case_words(title_part) if title_part else default_title
        return title, release_date

    title = title_case_words(filename)
    if not filename or title.lower() == "cover":
        title = default_title
    return title, None


def parse_sidecar(content: str) -> tuple[str | None, str | None]:
    """
    Reads `Title: ...` and `Release Date: YYYY-MM-DD` lines from a release's
    text sidecar.

    Returns:
        A `(title, release_date)` tuple with None for missing fields.
    """
    title_match = _SIDECAR_TITLE_RE.search(content)
    date_match = _SIDECAR_DATE_RE.search(content)
    title = title_match.group(1).strip() if title_match else None
    return title or None, date_match.group(1) if date_match else None


def future_date(today: date, days: int = 30) -> str:
    return (today + timedelta(days=days)).isoformat()

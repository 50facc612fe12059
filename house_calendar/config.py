import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

DEFAULT_DATA_DIR = "data"
DEFAULT_HOLIDAY_COUNTRY = "FR"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    holiday_country: str | None
    host: str
    port: int


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read settings from the environment, loading a ``.env`` file first.

    An empty ``HOUSE_CALENDAR_HOLIDAY_COUNTRY`` turns holiday labels off.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    holiday_country = environ.get("HOUSE_CALENDAR_HOLIDAY_COUNTRY", DEFAULT_HOLIDAY_COUNTRY).strip().upper()
    raw_port = environ.get("HOUSE_CALENDAR_PORT", str(DEFAULT_PORT))
    try:
        port = int(raw_port)
    except ValueError as error:
        raise ValueError(f"HOUSE_CALENDAR_PORT must be an integer (got {raw_port!r})") from error

    return Settings(
        data_dir=Path(environ.get("HOUSE_CALENDAR_DATA_DIR", DEFAULT_DATA_DIR)),
        holiday_country=holiday_country or None,
        host=environ.get("HOUSE_CALENDAR_HOST", DEFAULT_HOST),
        port=port,
    )

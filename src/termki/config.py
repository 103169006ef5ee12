"""Configuration for termki. Stored at ~/.termki/config.json."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from termki.anki_connect import DEFAULT_URL
from termki.layout import RESERVED_IMAGE_ROWS
from termki.terminal_image import DEFAULT_MAX_WIDTH_CELLS


@dataclass
class Config:
    anki_connect_url: str = DEFAULT_URL
    media_dir: str | None = None
    practice_mode: bool = True
    max_width_cells: int = DEFAULT_MAX_WIDTH_CELLS
    reserved_image_rows: int = RESERVED_IMAGE_ROWS
    request_timeout: float = 10.0


def config_from_dict(data: dict[str, Any]) -> Config:
    known = {f.name for f in fields(Config)}
    return Config(**{k: v for k, v in data.items() if k in known})


def config_to_dict(config: Config) -> dict[str, Any]:
    return asdict(config)


def get_config_dir() -> Path:
    return Path(os.environ.get("TERMKI_CONFIG_DIR", Path.home() / ".termki"))


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


def load_config() -> Config:
    config_path = get_config_path()
    if not config_path.exists():
        return Config()
    try:
        data = json.loads(config_path.read_text())
        return config_from_dict(data)
    except Exception as e:
        print(f"Error reading config: {e}", file=sys.stderr)
        return Config()


def save_config(config: Config) -> None:
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(config_to_dict(config), indent=2))

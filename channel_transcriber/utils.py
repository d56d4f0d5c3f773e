"""
Shared helpers: loguru setup, YAML config, JSON files
"""

import json
import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logger(log_dir: str = "logs", level: str = "INFO") -> None:
    """Log to stderr and to one rotating file per day under log_dir"""
    logger.remove()
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)
    logger.add(
        Path(log_dir) / "{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level=level,
        rotation="100 MB",
        retention="7 days",
        encoding="utf-8",
    )


def load_config(config_path: str) -> dict:
    """Read the YAML config

    Raises:
        FileNotFoundError: no file at config_path
    """
    import yaml

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def save_json(data: dict, filepath: str) -> None:
    """Write UTF-8 JSON, creating the parent directory"""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_json(filepath: str) -> dict:
    """Read a JSON file; a missing or empty file reads as {}"""
    path = Path(filepath)
    if not path.exists():
        return {}

    with open(path, "r", encoding="utf-8") as f:
        return json.load(f) or {}


def format_duration(seconds: float) -> str:
    """75 -> '1:15', 3725 -> '1:02:05'"""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"

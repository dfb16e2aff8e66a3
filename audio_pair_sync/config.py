"""
Configuration for Audio Pair Sync

Settings are read once at startup from a JSON file that uses the plugin option
names (devicePairs, nmea2000); a few environment variables override the file.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

CONFIG_ENV = "AUDIO_PAIR_SYNC_CONFIG"
DEFAULT_CONFIG_PATH = "~/.config/audio-pair-sync/config.json"
DEFAULT_LOG_DIR = "~/.local/log/audio-pair-sync"


class BusSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    device_instance: int = Field(0, ge=0, le=255, alias="deviceInstance")


class PollingSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_interval: float = Field(2.0, gt=0, alias="sourceInterval")
    amp_interval: float = Field(5.0, gt=0, alias="ampInterval")
    request_timeout: float = Field(5.0, gt=0, alias="requestTimeout")


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(8000, ge=1, le=65535)


class LogSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    level: str = "INFO"
    directory: str = DEFAULT_LOG_DIR
    rotation: str = "10 MB"
    retention: str = "7 days"


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Raw records; the registry validates them one by one on import
    device_pairs: List[Dict[str, Any]] = Field(default_factory=list, alias="devicePairs")
    bus: BusSettings = Field(default_factory=BusSettings, alias="nmea2000")
    polling: PollingSettings = Field(default_factory=PollingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LogSettings = Field(default_factory=LogSettings)


def config_path() -> Path:
    return Path(os.path.expanduser(os.environ.get(CONFIG_ENV, DEFAULT_CONFIG_PATH)))


def _apply_env_overrides(settings: Settings) -> Settings:
    host = os.environ.get("AUDIO_PAIR_SYNC_HOST")
    if host:
        settings.server.host = host
    port = os.environ.get("AUDIO_PAIR_SYNC_PORT")
    if port:
        try:
            settings.server.port = int(port)
        except ValueError:
            logger.warning(f"Ignoring invalid AUDIO_PAIR_SYNC_PORT: {port}")
    level = os.environ.get("AUDIO_PAIR_SYNC_LOG_LEVEL")
    if level:
        settings.logging.level = level.upper()
    return settings


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from the config file, falling back to defaults"""
    path = path or config_path()
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read config {path}: {e}")
            data = {}
    else:
        logger.info(f"No config file at {path}, using defaults")

    try:
        settings = Settings.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"Invalid config {path}, using defaults: {e}")
        settings = Settings()
    return _apply_env_overrides(settings)

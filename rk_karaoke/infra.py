#!/usr/bin/env python3
"""
Infrastructure and Cross-Cutting Concerns

Configuration with smart defaults, logging setup and atomic file
persistence shared by the library index and the lyrics store.
"""

import os
import json
import logging
import tempfile
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, field

from .adapters import LrclibConfig
from .osc.bridge import BridgeConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# =============================================================================
# CONFIGURATION - Smart defaults, JSON file, environment overrides
# =============================================================================

class Config:
    """Configuration defaults and environment lookups."""

    DEFAULT_DATA_DIR = Path("data")
    DEFAULT_CONFIG_FILE = Path("config.json")
    DEFAULT_HTTP_PORT = 3000

    ENV_CONFIG = 'RK_KARAOKE_CONFIG'
    ENV_DATA_DIR = 'RK_KARAOKE_DATA_DIR'
    ENV_LOG_LEVEL = 'RK_KARAOKE_LOG_LEVEL'
    ENV_OSC_HOST = 'RK_KARAOKE_OSC_HOST'
    ENV_OSC_PORT = 'RK_KARAOKE_OSC_PORT'
    ENV_LRCLIB_ENABLED = 'RK_KARAOKE_LRCLIB_ENABLED'
    ENV_LRCLIB_TIMEOUT = 'RK_KARAOKE_LRCLIB_TIMEOUT'

    @classmethod
    def data_dir(cls) -> Path:
        override = os.environ.get(cls.ENV_DATA_DIR, '').strip()
        return Path(override) if override else cls.DEFAULT_DATA_DIR

    @classmethod
    def config_file(cls) -> Path:
        override = os.environ.get(cls.ENV_CONFIG, '').strip()
        return Path(override) if override else cls.DEFAULT_CONFIG_FILE

    @classmethod
    def log_level(cls, default: str = 'INFO') -> str:
        return os.environ.get(cls.ENV_LOG_LEVEL, default).upper()

    @staticmethod
    def env_flag(name: str, default: bool) -> bool:
        value = os.environ.get(name, '').strip().lower()
        if not value:
            return default
        return value in ('1', 'true', 'yes', 'on')

    @staticmethod
    def env_number(name: str, default: float) -> float:
        value = os.environ.get(name, '').strip()
        try:
            return float(value) if value else default
        except ValueError:
            logger.warning(f"Ignoring non-numeric {name}={value!r}")
            return default


@dataclass
class PathsConfig:
    """Where lyrics artifacts, the library index and batch files live."""
    lyrics_raw: Path
    lyrics_json: Path
    library: Path
    playlists: Path
    reports: Path

    @classmethod
    def under(cls, data_dir: Path) -> 'PathsConfig':
        return cls(
            lyrics_raw=data_dir / "lyrics" / "raw",
            lyrics_json=data_dir / "lyrics" / "json",
            library=data_dir / "library.json",
            playlists=data_dir / "playlists",
            reports=data_dir / "reports",
        )


@dataclass
class AppConfig:
    """Complete application configuration."""
    osc: BridgeConfig = field(default_factory=BridgeConfig)
    paths: PathsConfig = field(default_factory=lambda: PathsConfig.under(Config.data_dir()))
    lrclib: LrclibConfig = field(default_factory=LrclibConfig)
    http_port: int = Config.DEFAULT_HTTP_PORT


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Build the application config.

    Reads the JSON config file if present (same shape as config.json:
    osc, server, paths, providers.lrclib), then applies environment
    overrides.
    """
    config_path = Path(path) if path else Config.config_file()
    raw: Dict[str, Any] = {}
    if config_path.exists():
        raw = read_json_safe(config_path, {})
        logger.debug(f"Loaded config from {config_path}")
    elif path:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    osc_raw = raw.get('osc', {})
    osc = BridgeConfig(
        host=os.environ.get(Config.ENV_OSC_HOST) or osc_raw.get('host', BridgeConfig.host),
        port=int(Config.env_number(Config.ENV_OSC_PORT, osc_raw.get('port', BridgeConfig.port))),
        debounce_ms=int(osc_raw.get('debounceMs', BridgeConfig.debounce_ms)),
    )

    paths = PathsConfig.under(Config.data_dir())
    for attr, key in (
        ('lyrics_raw', 'lyricsRaw'),
        ('lyrics_json', 'lyricsJson'),
        ('library', 'library'),
        ('playlists', 'playlists'),
        ('reports', 'reports'),
    ):
        if raw.get('paths', {}).get(key):
            setattr(paths, attr, Path(raw['paths'][key]))

    lrclib_raw = raw.get('providers', {}).get('lrclib', {})
    # config.json stores the timeout in milliseconds
    timeout_ms = lrclib_raw.get('timeout')
    lrclib = LrclibConfig(
        enabled=Config.env_flag(Config.ENV_LRCLIB_ENABLED, lrclib_raw.get('enabled', True)),
        base_url=lrclib_raw.get('baseUrl', LrclibConfig.base_url),
        timeout=Config.env_number(
            Config.ENV_LRCLIB_TIMEOUT,
            timeout_ms / 1000.0 if timeout_ms else LrclibConfig.timeout,
        ),
        retries=int(lrclib_raw.get('retries', LrclibConfig.retries)),
    )

    http_port = int(raw.get('server', {}).get('httpPort', Config.DEFAULT_HTTP_PORT))
    return AppConfig(osc=osc, paths=paths, lrclib=lrclib, http_port=http_port)


# =============================================================================
# LOGGING
# =============================================================================

def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for CLI entry points."""
    level = 'DEBUG' if verbose else Config.log_level()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


# =============================================================================
# ATOMIC FILE PERSISTENCE
# =============================================================================

def write_text_atomic(file_path: Path, content: str) -> None:
    """
    Write text via a temp file in the same directory, then rename.

    Readers see either the old file or the complete new one.
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{file_path.name}.", suffix=".tmp", dir=file_path.parent
    )
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        os.replace(tmp_name, file_path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def write_json_atomic(file_path: Path, data: Any) -> None:
    """Serialize to 2-space indented JSON and write atomically."""
    write_text_atomic(file_path, json.dumps(data, indent=2, ensure_ascii=False))


def read_json_safe(file_path: Path, default: Any) -> Any:
    """Read JSON, returning default when the file does not exist."""
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        return default

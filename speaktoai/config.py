"""Application configuration: defaults, YAML loading and validation."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Iterable

import yaml

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = "sources/language-models/base.bin"
DEFAULT_TEMP_AUDIO_PATH = "/tmp"

_VALID_MODEL_TYPES = frozenset({"tiny", "base", "small", "medium", "large"})
_VALID_RECORDING_METHODS = frozenset({"arecord", "ffmpeg"})
_HOST_PATTERN = re.compile(r"[a-zA-Z0-9.-]+")
_DANGEROUS_CHARS = frozenset("&|;$<>(){}[]")
_FALLBACK_ALLOWED_COMMANDS = ("arecord", "ffmpeg", "whisper", "xdotool", "wl-copy", "xclip")


class ConfigValidationError(ValueError):
    """Raised after validation corrected one or more configuration issues."""

    def __init__(self, issues: list[str]) -> None:
        self.issues = list(issues)
        super().__init__("configuration validation issues: " + "; ".join(self.issues))


@dataclass
class GeneralSettings:
    debug: bool = False
    model_path: str = ""
    temp_audio_path: str = ""
    model_type: str = ""
    model_precision: str = ""
    language: str = ""
    log_file: str = ""


@dataclass
class HotkeySettings:
    start_recording: str = ""
    stop_recording: str = ""


@dataclass
class AudioSettings:
    device: str = ""
    sample_rate: int = 0
    format: str = ""
    channels: int = 0
    recording_method: str = ""
    expected_duration: int = 0
    enable_streaming: bool = False
    max_recording_time: int = 0


@dataclass
class OutputSettings:
    default_mode: str = ""
    clipboard_tool: str = ""
    type_tool: str = ""


@dataclass
class WebServerSettings:
    enabled: bool = False
    port: int = 0
    host: str = ""
    auth_token: str = ""
    api_version: str = ""
    log_requests: bool = False
    cors_origins: str = ""
    max_clients: int = 0


@dataclass
class SecuritySettings:
    allowed_commands: list[str] = field(default_factory=list)
    check_integrity: bool = False
    config_hash: str = ""
    max_temp_file_size: int = 0


@dataclass
class Config:
    """Complete application configuration; fields start empty until defaults are applied."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    hotkeys: HotkeySettings = field(default_factory=HotkeySettings)
    audio: AudioSettings = field(default_factory=AudioSettings)
    output: OutputSettings = field(default_factory=OutputSettings)
    web_server: WebServerSettings = field(default_factory=WebServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)

    def is_command_allowed(self, command: str) -> bool:
        """Return True if the base name of ``command`` is whitelisted."""
        return _base_name(command) in self.security.allowed_commands


def set_default_config(config: Config) -> None:
    """Fill ``config`` with the application defaults."""
    general = config.general
    general.debug = False
    general.model_path = DEFAULT_MODEL_PATH
    general.temp_audio_path = DEFAULT_TEMP_AUDIO_PATH
    general.model_type = "base"
    general.model_precision = "f16"
    general.language = "auto"
    general.log_file = ""

    config.hotkeys.start_recording = "altgr+comma"
    config.hotkeys.stop_recording = "altgr+comma"

    audio = config.audio
    audio.device = "default"
    audio.sample_rate = 16000
    audio.format = "s16le"
    audio.channels = 1
    audio.recording_method = "arecord"
    audio.expected_duration = 0
    audio.enable_streaming = False
    audio.max_recording_time = 300

    config.output.default_mode = "active_window"
    config.output.clipboard_tool = "auto"
    config.output.type_tool = "auto"

    web = config.web_server
    web.enabled = False
    web.port = 8080
    web.host = "localhost"
    web.auth_token = ""
    web.api_version = "v1"
    web.log_requests = True
    web.cors_origins = "*"
    web.max_clients = 10

    security = config.security
    security.allowed_commands = [
        "arecord", "ffmpeg", "whisper", "xdotool", "wl-copy", "xclip", "notify-send",
    ]
    security.check_integrity = False
    security.config_hash = ""
    security.max_temp_file_size = 50 * 1024 * 1024


def load_config(filename: str | Path) -> Config:
    """Load configuration from a YAML file on top of the defaults.

    An unreadable file yields the defaults. Malformed YAML raises
    ``yaml.YAMLError``; values of the wrong type raise ``ValueError``.
    Validation issues are corrected and logged, not raised.
    """
    config = Config()
    set_default_config(config)

    try:
        text = Path(filename).read_text(encoding="utf-8")
    except OSError as err:
        logger.warning("could not read config file: %s", err)
        logger.info("Using default configuration")
        return config

    data = yaml.safe_load(text)
    if data is not None:
        _apply_document(config, data)

    try:
        validate_config(config)
    except ConfigValidationError as err:
        logger.warning("Configuration validation error: %s", err)
        logger.info("Using validated configuration with corrections")

    return config


def validate_config(config: Config) -> None:
    """Correct invalid settings in place; raise ConfigValidationError listing what changed."""
    issues: list[str] = []
    general = config.general

    if general.model_path:
        general.model_path = _clean_path(general.model_path)
        if ".." in general.model_path:
            general.model_path = DEFAULT_MODEL_PATH
            issues.append("suspicious model path sanitized")

    if general.temp_audio_path:
        general.temp_audio_path = _clean_path(general.temp_audio_path)
        if ".." in general.temp_audio_path:
            general.temp_audio_path = DEFAULT_TEMP_AUDIO_PATH
            issues.append("suspicious temp audio path sanitized")

    if general.model_type not in _VALID_MODEL_TYPES:
        issues.append(f"invalid model type: {general.model_type}, using 'base'")
        general.model_type = "base"

    audio = config.audio
    if not 8000 <= audio.sample_rate <= 48000:
        issues.append(f"invalid sample rate: {audio.sample_rate}, using 16000")
        audio.sample_rate = 16000

    if not 1 <= audio.channels <= 2:
        issues.append(f"invalid channels: {audio.channels}, using 1")
        audio.channels = 1

    if audio.recording_method not in _VALID_RECORDING_METHODS:
        issues.append(f"invalid recording method: {audio.recording_method}, using 'arecord'")
        audio.recording_method = "arecord"

    if not 0 < audio.max_recording_time <= 1800:
        issues.append(f"invalid max recording time: {audio.max_recording_time}, using 300")
        audio.max_recording_time = 300

    web = config.web_server
    if web.enabled:
        if not 0 < web.port <= 65535:
            issues.append(f"invalid port: {web.port}, using 8080")
            web.port = 8080
        if not web.host:
            web.host = "localhost"
        elif not _HOST_PATTERN.fullmatch(web.host):
            issues.append(f"invalid host: {web.host}, using 'localhost'")
            web.host = "localhost"

    if not config.security.allowed_commands:
        config.security.allowed_commands = list(_FALLBACK_ALLOWED_COMMANDS)

    if issues:
        raise ConfigValidationError(issues)


def sanitize_command_args(args: Iterable[str]) -> list[str]:
    """Drop arguments containing shell metacharacters or path traversal."""
    return [
        arg for arg in args
        if not _DANGEROUS_CHARS.intersection(arg) and ".." not in arg
    ]


def _clean_path(path: str) -> str:
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _apply_document(config: Config, data: Any) -> None:
    if not isinstance(data, dict):
        raise ValueError("configuration document must be a mapping")
    section_names = {f.name for f in fields(config)}
    for key, value in data.items():
        if key not in section_names or value is None:
            continue
        if not isinstance(value, dict):
            raise ValueError(f"configuration section '{key}' must be a mapping")
        _apply_section(getattr(config, key), key, value)


def _apply_section(section: Any, section_name: str, values: dict) -> None:
    known = {f.name for f in fields(section)}
    for key, value in values.items():
        if key not in known or value is None:
            continue
        current = getattr(section, key)
        setattr(section, key, _coerce(f"{section_name}.{key}", current, value))


def _coerce(name: str, current: Any, value: Any) -> Any:
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{name}: expected a boolean, got {value!r}")
        return value
    if isinstance(current, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name}: expected an integer, got {value!r}")
        return value
    if isinstance(current, str):
        return _scalar_to_str(name, value)
    if isinstance(current, list):
        if not isinstance(value, list):
            raise ValueError(f"{name}: expected a list, got {value!r}")
        return [_scalar_to_str(name, item) for item in value]
    return value


def _scalar_to_str(name: str, value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ValueError(f"{name}: expected a scalar, got {value!r}")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
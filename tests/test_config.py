import pytest
import yaml

from speaktoai.config import (
    Config,
    ConfigValidationError,
    load_config,
    sanitize_command_args,
    set_default_config,
    validate_config,
)


def _defaults() -> Config:
    config = Config()
    set_default_config(config)
    return config


VALID_CONFIG = """
general:
  debug: true
  model_type: "base"
  language: "en"
  temp_audio_path: "/tmp"

audio:
  device: "default"
  sample_rate: 16000
  format: "S16_LE"
  channels: 1
  recording_method: "arecord"

output:
  default_mode: "clipboard"
  clipboard_tool: "auto"
  type_tool: "auto"

hotkeys:
  start_recording: "AltGr+,"
  stop_recording: "AltGr+."
"""


def test_load_valid_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(VALID_CONFIG)
    config = load_config(path)
    assert config.general.debug is True
    assert config.general.model_type == "base"
    assert config.audio.sample_rate == 16000
    assert config.output.default_mode == "clipboard"
    assert config.hotkeys.start_recording == "AltGr+,"


def test_load_minimal_config_keeps_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text('\ngeneral:\n  model_type: "tiny"\n')
    config = load_config(path)
    assert config.general.model_type == "tiny"
    assert config.audio.sample_rate == 16000
    assert config.audio.recording_method == "arecord"


def test_load_invalid_yaml_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("\ngeneral:\n  debug: true\n  invalid_yaml: [\n")
    with pytest.raises(yaml.YAMLError):
        load_config(path)


def test_load_empty_config_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    config = load_config(path)
    assert config == _defaults()


def test_load_nonexistent_file_gives_defaults():
    config = load_config("/non/existent/file.yaml")
    assert config.general.model_type == "base"


def test_load_unreadable_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("test: value")
    path.chmod(0)
    try:
        config = load_config(path)
    finally:
        path.chmod(0o644)
    assert config.general.model_type == "base"


def test_load_wrong_type_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("audio:\n  sample_rate: fast\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_load_corrects_invalid_values(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("audio:\n  channels: 5\n  recording_method: sox\n")
    config = load_config(path)
    assert config.audio.channels == 1
    assert config.audio.recording_method == "arecord"


def test_zero_config_then_defaults():
    config = Config()
    assert config.general.model_type == ""
    assert config.audio.sample_rate == 0
    set_default_config(config)
    assert config.general.model_type == "base"
    assert config.audio.sample_rate == 16000
    assert config.audio.channels == 1


def test_validate_default_config_passes():
    config = _defaults()
    assert validate_config(config) is None
    assert config.general.model_type == "base"
    assert config.audio.sample_rate == 16000


@pytest.mark.parametrize(
    "mutate, check",
    [
        (
            lambda c: setattr(c.general, "model_path", "../../../etc/passwd"),
            lambda c: c.general.model_path == "sources/language-models/base.bin",
        ),
        (
            lambda c: setattr(c.general, "model_type", "invalid"),
            lambda c: c.general.model_type == "base",
        ),
        (
            lambda c: setattr(c.audio, "sample_rate", 1000),
            lambda c: c.audio.sample_rate == 16000,
        ),
        (
            lambda c: setattr(c.audio, "sample_rate", 100000),
            lambda c: c.audio.sample_rate == 16000,
        ),
        (
            lambda c: setattr(c.audio, "channels", 5),
            lambda c: c.audio.channels == 1,
        ),
        (
            lambda c: setattr(c.audio, "recording_method", "invalid"),
            lambda c: c.audio.recording_method == "arecord",
        ),
    ],
    ids=[
        "path traversal",
        "invalid model type",
        "sample rate too low",
        "sample rate too high",
        "invalid channels",
        "invalid recording method",
    ],
)
def test_validate_corrects_and_raises(mutate, check):
    config = _defaults()
    mutate(config)
    with pytest.raises(ConfigValidationError) as info:
        validate_config(config)
    assert check(config)
    assert str(info.value).startswith("configuration validation issues: ")
    assert len(info.value.issues) == 1


def test_validate_web_server_host():
    config = _defaults()
    config.web_server.enabled = True
    config.web_server.host = "bad host!"
    config.web_server.port = 70000
    with pytest.raises(ConfigValidationError) as info:
        validate_config(config)
    assert config.web_server.host == "localhost"
    assert config.web_server.port == 8080
    assert len(info.value.issues) == 2


def test_validate_fills_empty_allowed_commands():
    config = _defaults()
    config.security.allowed_commands = []
    validate_config(config)
    assert config.security.allowed_commands == [
        "arecord", "ffmpeg", "whisper", "xdotool", "wl-copy", "xclip",
    ]


def test_validate_cleans_path():
    config = _defaults()
    config.general.model_path = "models//./base.bin"
    validate_config(config)
    assert config.general.model_path == "models/base.bin"


@pytest.mark.parametrize(
    "command, expected",
    [
        ("echo", True),
        ("/bin/echo", True),
        ("rm", False),
        ("", False),
        ("rm -rf /", False),
    ],
)
def test_is_command_allowed(command, expected):
    config = Config()
    config.security.allowed_commands = ["echo", "ls", "cat"]
    assert config.is_command_allowed(command) is expected


@pytest.mark.parametrize(
    "args, expected",
    [
        (["--help", "--version"], ["--help", "--version"]),
        (["../../../etc/passwd", "--help"], ["--help"]),
        (["file.txt", "$(rm -rf /)", "--safe"], ["file.txt", "--safe"]),
        ([], []),
    ],
)
def test_sanitize_command_args(args, expected):
    assert sanitize_command_args(args) == expected
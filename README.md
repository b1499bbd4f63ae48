# speaktoai

Building blocks for a push-to-talk dictation tool on Linux:

- `speaktoai.config`: YAML settings with defaults, validation that corrects
  bad values, and helpers that keep external commands safe.
- `speaktoai.security`: SHA-256 integrity checks of the configuration file
  and size limits for temporary audio files.
- `speaktoai.recorder` and `speaktoai.recorders`: run `arecord` or `ffmpeg`
  as a child process. The audio goes to a temporary WAV file, an in-memory
  buffer or a live stream, and the input level is reported while recording.
- `speaktoai.tempfiles`: tracks temporary audio files and deletes those that
  are left behind for too long.
- `speaktoai.keyboard`, `speaktoai.evdev_provider` and
  `speaktoai.hotkey_manager`: parse key combinations, listen on evdev
  keyboard devices, and turn recording on and off with one combination.

## Requirements

- Linux, with `arecord` (alsa-utils) or `ffmpeg` on the `PATH` for recording
- Read access to `/dev/input/event*` for evdev hotkeys, for example through
  membership of the `input` group
- PyYAML

## Configuration

```python
from speaktoai.config import load_config, sanitize_command_args

config = load_config("config.yaml")
print(config.is_command_allowed("/usr/bin/arecord"))   # True with the default whitelist

sanitize_command_args(["file.txt", "$(rm -rf /)", "--safe"])
# ['file.txt', '--safe']
```

A `Config` has the sections `general`, `hotkeys`, `audio`, `output`,
`web_server` and `security`. Each section is a dataclass.
`set_default_config(config)` fills in the defaults.

`load_config(filename)` starts from the defaults and overlays the YAML file:

- If the file cannot be read, it logs a warning and returns the defaults.
- Malformed YAML raises `yaml.YAMLError`.
- A value of the wrong type, such as text where a number belongs, raises
  `ValueError`.
- After loading, it calls `validate_config`. Any corrections are logged and
  the corrected configuration is returned.

`validate_config(config)` corrects the configuration in place:

- Paths that contain `..` are reset to their defaults.
- An unknown model type becomes `base`.
- A sample rate outside 8000–48000 becomes 16000.
- A channel count outside 1–2 becomes 1.
- A recording method other than `arecord` or `ffmpeg` becomes `arecord`.
- A maximum recording time outside 1–1800 seconds becomes 300.
- When the web server is enabled, an invalid port becomes 8080 and an
  invalid host becomes `localhost`.

If it changed anything, it then raises `ConfigValidationError`. The
exception's `issues` attribute lists what was changed.

A minimal file:

```yaml
general:
  model_type: "base"
  language: "auto"

audio:
  device: "default"
  sample_rate: 16000
  channels: 1
  recording_method: "arecord"   # or "ffmpeg"

hotkeys:
  start_recording: "ctrl+shift+r"
```

## Integrity and size limits

```python
from speaktoai.security import (
    IntegrityError,
    enforce_file_size_limit,
    update_config_hash,
    verify_config_integrity,
)

update_config_hash("config.yaml", config)        # stores the file's SHA-256 in config.security.config_hash
verify_config_integrity("config.yaml", config)   # IntegrityError on mismatch
enforce_file_size_limit("/tmp/audio.wav", config)
```

`verify_config_integrity` checks nothing unless
`config.security.check_integrity` is true and a hash is stored.
`enforce_file_size_limit` raises `IntegrityError` when the file is larger
than `config.security.max_temp_file_size`. A missing file raises `OSError`.

## Recording

```python
from speaktoai.recorders import get_recorder

recorder = get_recorder(config)   # ArecordRecorder or FFmpegRecorder
recorder.set_audio_level_callback(lambda level: print(f"level {level:.2f}"))

recorder.start_recording()
...
path = recorder.stop_recording()  # path of the recorded WAV file
recorder.cleanup_file()
```

`get_recorder` and `AudioRecorderFactory(config).create_recorder()` raise
`ValueError` for an unsupported recording method.

The output mode depends on the configuration:

- **Memory buffer**: used when `audio.expected_duration` is between 1 and 9
  seconds and the sample rate is at most 16000. The audio is kept in memory
  and `audio_level` is updated as data arrives.
- **Stream**: used when `audio.enable_streaming` is set. `get_audio_stream()`
  then returns a pipe that the command's output is forwarded to. In the
  other modes it returns a copy of the in-memory buffer.
- **Temporary file**: used otherwise. The file is named
  `audio_<timestamp>.wav` and is written to `general.temp_audio_path`, or to
  the system temporary directory if that is empty.

Starting or stopping the child process raises `RecordingError` on failure.
This includes stopping when nothing was started, and the case where a file
was expected but not written. A command still running after 60 seconds is
killed.

`calculate_audio_level(data)` gives the level of a chunk of 16-bit
little-endian PCM data.

Temporary files are tracked by the shared manager from
`speaktoai.tempfiles.get_temp_file_manager()`. Every 5 minutes it deletes
files that have been tracked for more than 30 minutes. You can also build a
separate `TempFileManager` and call `cleanup_old_files()` yourself.

## Hotkeys

```python
from speaktoai.keyboard import ConfigAdapter, EnvironmentType, parse_hotkey
from speaktoai.hotkey_manager import HotkeyManager

combo = parse_hotkey("ctrl+shift+r")   # KeyCombination(key='r', modifiers=['ctrl', 'shift'])

manager = HotkeyManager(ConfigAdapter("ctrl+shift+r"), EnvironmentType.X11)
manager.register_callbacks(recorder.start_recording, recorder.stop_recording)
manager.start()
...
manager.stop()
```

The first press of the combination calls the start callback. The next press
calls the stop callback.

`simulate_hotkey_press("start_recording")` and
`simulate_hotkey_press("stop_recording")` perform the same actions from code.
Any other name raises `HotkeyError`.

If no provider is passed, the manager chooses one:

- `EvdevKeyboardProvider`, when a keyboard device can be opened.
- `DummyKeyboardProvider` otherwise. It accepts hotkeys but never fires
  them, and logs how to enable hotkeys.

The evdev provider matches a combination's main key by its key name, such as
`r`, `f1` or `comma`. It treats `ctrl`, `alt`, `shift`, `super`, `meta` and
`win` as their left-hand keys. `rightctrl`, `rightalt` and `rightshift` can
be named directly.

## What this package does not do

This package records audio and reacts to hotkeys. It does not:

- turn speech into text, and does not load speech models;
- type or copy text into other applications;
- run the web server that the `web_server` settings describe;
- offer a D-Bus hotkey provider or a tray icon;
- provide a command to run it as a background program.

The `general`, `output` and `web_server` settings are loaded and validated
only.
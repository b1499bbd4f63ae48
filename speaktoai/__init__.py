"""Configuration, audio recording through arecord or ffmpeg, and evdev hotkeys for push-to-talk dictation."""

__version__ = "0.1.0"
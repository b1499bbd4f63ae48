"""Toggles recording from a single start/stop hotkey."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from speaktoai.evdev_provider import EvdevKeyboardProvider
from speaktoai.keyboard import (
    DummyKeyboardProvider,
    EnvironmentType,
    HotkeyError,
    KeyboardEventProvider,
)

logger = logging.getLogger(__name__)

RecordingCallback = Callable[[], object]


class HotkeyManager:
    """Listens for the recording hotkey and calls the start or stop callback."""

    def __init__(
        self,
        config,
        environment: EnvironmentType,
        provider: Optional[KeyboardEventProvider] = None,
    ) -> None:
        self.config = config
        self.environment = environment
        self.is_listening = False
        self.is_recording = False
        self.recording_started: Optional[RecordingCallback] = None
        self.recording_stopped: Optional[RecordingCallback] = None
        self._lock = threading.Lock()
        self.provider = provider if provider is not None else self._select_provider()

    def _select_provider(self) -> KeyboardEventProvider:
        evdev = EvdevKeyboardProvider(self.config, self.environment)
        if evdev.is_supported():
            logger.info("Using evdev keyboard provider (requires root permissions)")
            return evdev
        logger.info("evdev not available, hotkeys will be disabled")
        logger.warning(
            "No supported keyboard provider available. For hotkeys to work: "
            "run with sudo or add user to 'input' group, "
            "or use system-wide hotkey tools like sxhkd"
        )
        return DummyKeyboardProvider()

    def register_callbacks(
        self,
        recording_started: Optional[RecordingCallback],
        recording_stopped: Optional[RecordingCallback],
    ) -> None:
        """Set the functions called when recording should start and stop."""
        self.recording_started = recording_started
        self.recording_stopped = recording_stopped

    def start(self) -> None:
        """Register the recording hotkey with the provider and start it."""
        if self.is_listening:
            raise HotkeyError("hotkey manager is already running")
        self.is_listening = True

        hotkey = self.config.get_start_recording_hotkey()
        logger.info("Starting hotkey manager...")
        logger.info("- Start/Stop recording: %s", hotkey)

        try:
            self.provider.register_hotkey(hotkey, self._toggle_recording)
        except HotkeyError as err:
            raise HotkeyError(f"failed to register start/stop recording hotkey: {err}") from err
        self.provider.start()

    def stop(self) -> None:
        """Stop the provider if the manager is listening."""
        if self.is_listening:
            self.provider.stop()
            self.is_listening = False

    def simulate_hotkey_press(self, hotkey_name: str) -> None:
        """Act as if ``start_recording`` or ``stop_recording`` was pressed."""
        with self._lock:
            if hotkey_name == "start_recording":
                if not self.is_recording and self.recording_started is not None:
                    self.recording_started()
                    self.is_recording = True
            elif hotkey_name == "stop_recording":
                if self.is_recording and self.recording_stopped is not None:
                    self.recording_stopped()
                    self.is_recording = False
            else:
                raise HotkeyError(f"unknown hotkey: {hotkey_name}")

    def _toggle_recording(self) -> None:
        with self._lock:
            if not self.is_recording and self.recording_started is not None:
                logger.info("Start recording hotkey detected")
                try:
                    self.recording_started()
                except Exception as err:
                    logger.error("Error starting recording: %s", err)
                    raise
                self.is_recording = True
            elif self.is_recording and self.recording_stopped is not None:
                logger.info("Stop recording hotkey detected")
                try:
                    self.recording_stopped()
                except Exception as err:
                    logger.error("Error stopping recording: %s", err)
                    raise
                self.is_recording = False
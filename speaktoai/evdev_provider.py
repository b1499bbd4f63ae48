"""Keyboard hotkeys read straight from Linux input event devices."""

from __future__ import annotations

import glob
import logging
import os
import select
import struct
import threading
from dataclasses import dataclass
from typing import Optional

from speaktoai.keyboard import (
    EnvironmentType,
    HotkeyCallback,
    HotkeyError,
    KeyboardEventProvider,
    convert_modifier_to_evdev,
    is_modifier,
    parse_hotkey,
)

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_PATTERN = "/dev/input/event*"
EV_KEY = 1
KEY_DOWN = 1

_EVENT = struct.Struct("llHHi")
_POLL_INTERVAL = 0.2
_NAME_SIZE = 256
_KEY_BITS_SIZE = 96

_KEY_NAMES = {
    1: "esc", 2: "1", 3: "2", 4: "3", 5: "4", 6: "5", 7: "6", 8: "7", 9: "8",
    10: "9", 11: "0", 12: "minus", 13: "equal", 14: "backspace", 15: "tab",
    16: "q", 17: "w", 18: "e", 19: "r", 20: "t", 21: "y", 22: "u", 23: "i",
    24: "o", 25: "p", 26: "leftbrace", 27: "rightbrace", 28: "enter",
    29: "leftctrl", 30: "a", 31: "s", 32: "d", 33: "f", 34: "g", 35: "h",
    36: "j", 37: "k", 38: "l", 39: "semicolon", 40: "apostrophe", 41: "grave",
    42: "leftshift", 43: "backslash", 44: "z", 45: "x", 46: "c", 47: "v",
    48: "b", 49: "n", 50: "m", 51: "comma", 52: "dot", 53: "slash",
    54: "rightshift", 55: "kpasterisk", 56: "leftalt", 57: "space",
    58: "capslock", 59: "f1", 60: "f2", 61: "f3", 62: "f4", 63: "f5",
    64: "f6", 65: "f7", 66: "f8", 67: "f9", 68: "f10", 69: "numlock",
    70: "scrolllock", 71: "kp7", 72: "kp8", 73: "kp9", 74: "kpminus",
    75: "kp4", 76: "kp5", 77: "kp6", 78: "kpplus", 79: "kp1", 80: "kp2",
    81: "kp3", 82: "kp0", 83: "kpdot", 97: "rightctrl", 100: "rightalt",
    125: "leftmeta", 126: "rightmeta",
}


def key_name(key_code: int) -> str:
    """Return the name of a key code, or an empty string if it is not known."""
    return _KEY_NAMES.get(key_code, "")


def _ioc_read(number: int, size: int) -> int:
    return (2 << 30) | (size << 16) | (ord("E") << 8) | number


def _query(fd: int, request: int, size: int) -> bytes:
    try:
        import fcntl
    except ImportError:
        return b""
    buffer = bytearray(size)
    try:
        fcntl.ioctl(fd, request, buffer, True)
    except OSError:
        return b""
    return bytes(buffer)


@dataclass
class _InputDevice:
    path: str
    fd: int
    name: str
    has_key_events: bool

    @property
    def is_keyboard(self) -> bool:
        return "keyboard" in self.name.lower() or self.has_key_events

    def close(self) -> None:
        try:
            os.close(self.fd)
        except OSError:
            pass


def _open_device(path: str) -> _InputDevice:
    fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
    raw_name = _query(fd, _ioc_read(0x06, _NAME_SIZE), _NAME_SIZE)
    name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="replace")
    key_bits = _query(fd, _ioc_read(0x20 + EV_KEY, _KEY_BITS_SIZE), _KEY_BITS_SIZE)
    return _InputDevice(path, fd, name, any(key_bits))


class EvdevKeyboardProvider(KeyboardEventProvider):
    """Watches keyboard input devices and fires hotkeys whose modifiers are held."""

    def __init__(
        self,
        config,
        environment: EnvironmentType,
        device_pattern: str = DEFAULT_DEVICE_PATTERN,
    ) -> None:
        self.config = config
        self.environment = environment
        self.device_pattern = device_pattern
        self.callbacks: dict[str, HotkeyCallback] = {}
        self.is_listening = False
        self.modifier_state: dict[str, bool] = {}
        self._devices: list[_InputDevice] = []
        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()

    def _find_keyboard_devices(self) -> list[_InputDevice]:
        devices = []
        for path in sorted(glob.glob(self.device_pattern)):
            try:
                device = _open_device(path)
            except OSError as err:
                logger.warning("could not open input device %s: %s", path, err)
                continue
            if device.is_keyboard:
                devices.append(device)
            else:
                device.close()
        return devices

    def is_supported(self) -> bool:
        """Return True if at least one keyboard device can be opened."""
        devices = self._find_keyboard_devices()
        for device in devices:
            device.close()
        return bool(devices)

    def start(self) -> None:
        """Open keyboard devices and listen to each in a background thread."""
        if self.is_listening:
            raise HotkeyError("evdev keyboard provider already started")
        devices = self._find_keyboard_devices()
        if not devices:
            raise HotkeyError("no keyboard devices found")

        self._devices = devices
        self._stop_event = threading.Event()
        self.is_listening = True
        self._threads = [
            threading.Thread(
                target=self._listen, args=(device, self._stop_event),
                name=f"evdev-{device.path}", daemon=True,
            )
            for device in devices
        ]
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        """Stop the listener threads and close the devices."""
        if not self.is_listening:
            return
        self._stop_event.set()
        for thread in self._threads:
            thread.join()
        for device in self._devices:
            device.close()
        self._threads = []
        self._devices = []
        self.is_listening = False

    def register_hotkey(self, hotkey: str, callback: HotkeyCallback) -> None:
        """Call ``callback`` whenever ``hotkey`` is pressed."""
        self.callbacks[hotkey] = callback

    def handle_key_event(self, key_code: int, value: int) -> list[str]:
        """Process one key event; return the hotkeys whose callbacks were fired."""
        name = key_name(key_code) or f"KEY_{key_code}"

        with self._state_lock:
            if is_modifier(name):
                self.modifier_state[name.lower()] = value == KEY_DOWN
            if value != KEY_DOWN:
                return []
            state = dict(self.modifier_state)

        fired = []
        for hotkey, callback in list(self.callbacks.items()):
            combo = parse_hotkey(hotkey)
            if combo.key.casefold() != name.casefold():
                continue
            if all(state.get(convert_modifier_to_evdev(mod), False) for mod in combo.modifiers):
                threading.Thread(
                    target=self._run_callback, args=(hotkey, callback), daemon=True
                ).start()
                fired.append(hotkey)
        return fired

    @staticmethod
    def _run_callback(hotkey: str, callback: HotkeyCallback) -> None:
        try:
            callback()
        except Exception as err:  # noqa: BLE001 - a failing hotkey must not kill the listener
            logger.error("Hotkey %s callback failed: %s", hotkey, err)

    def _listen(self, device: _InputDevice, stop_event: threading.Event) -> None:
        pending = b""
        while not stop_event.is_set():
            try:
                ready, _, _ = select.select([device.fd], [], [], _POLL_INTERVAL)
            except (OSError, ValueError):
                return
            if not ready:
                continue
            try:
                data = os.read(device.fd, _EVENT.size * 64)
            except BlockingIOError:
                continue
            except OSError:
                continue
            if not data:
                continue
            pending += data
            usable = len(pending) - len(pending) % _EVENT.size
            for _sec, _usec, ev_type, code, value in _EVENT.iter_unpack(pending[:usable]):
                if ev_type == EV_KEY:
                    self.handle_key_event(code, value)
            pending = pending[usable:]
"""Hotkey vocabulary: key combinations, environments and keyboard providers."""

from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)

HotkeyCallback = Callable[[], Optional[object]]

_MODIFIERS = frozenset({
    "ctrl", "alt", "shift", "super", "meta", "win",
    "leftctrl", "rightctrl", "leftalt", "rightalt", "leftshift", "rightshift",
})

_EVDEV_MODIFIERS = {
    "ctrl": "leftctrl",
    "alt": "leftalt",
    "shift": "leftshift",
    "super": "leftmeta",
    "meta": "leftmeta",
    "win": "leftmeta",
}

_DUMMY_HELP = """Warning: Using dummy keyboard provider. Hotkeys will not be functional.

To enable hotkeys, try one of these solutions:

Modern Desktop Environments (GNOME/KDE):
   - Ensure D-Bus session is running
   - Check if 'dbus-daemon --session' is active

Other Desktop Environments (XFCE/i3/sway):
   - Add your user to 'input' group: sudo usermod -a -G input $USER
   - Then logout and login again
   - Or run the application with sudo (not recommended)

Alternative Solutions:
   - Use system hotkey tools like 'sxhkd' or 'xbindkeys'
   - Configure DE-specific keyboard shortcuts
   - Use the WebSocket interface for remote control
"""


class HotkeyError(Exception):
    """A keyboard provider or hotkey operation failed."""


class EnvironmentType(enum.IntEnum):
    """Kind of graphical session the program runs in."""

    UNKNOWN = 0
    WAYLAND = 1
    X11 = 2


@dataclass
class KeyCombination:
    """A main key together with the modifiers that must be held."""

    key: str = ""
    modifiers: list[str] = field(default_factory=list)


class KeyboardEventProvider(abc.ABC):
    """A source of keyboard events that triggers registered hotkeys."""

    @abc.abstractmethod
    def start(self) -> None:
        """Begin listening; raise HotkeyError on failure."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop listening."""

    @abc.abstractmethod
    def register_hotkey(self, hotkey: str, callback: HotkeyCallback) -> None:
        """Call ``callback`` whenever ``hotkey`` is pressed."""

    @abc.abstractmethod
    def is_supported(self) -> bool:
        """Whether this provider can work on the current system."""


class ConfigAdapter:
    """Supplies hotkey settings to the hotkey system."""

    def __init__(self, start_recording: str) -> None:
        self.start_recording = start_recording

    def get_start_recording_hotkey(self) -> str:
        """Return the hotkey that starts and stops recording."""
        return self.start_recording


class DummyKeyboardProvider(KeyboardEventProvider):
    """Fallback provider that accepts hotkeys but never fires them."""

    def __init__(self) -> None:
        self.callbacks: dict[str, HotkeyCallback] = {}
        self.is_listening = False

    def is_supported(self) -> bool:
        return True

    def start(self) -> None:
        """Mark the provider as listening and log how to get working hotkeys."""
        if self.is_listening:
            raise HotkeyError("dummy keyboard provider already started")
        self.is_listening = True
        logger.warning(_DUMMY_HELP)

    def stop(self) -> None:
        self.is_listening = False

    def register_hotkey(self, hotkey: str, callback: HotkeyCallback) -> None:
        """Store the callback; it is never called."""
        logger.info("Registered hotkey: %s (but it will not function with dummy provider)", hotkey)
        self.callbacks[hotkey] = callback


def parse_hotkey(hotkey_str: str) -> KeyCombination:
    """Split ``"mod+mod+key"`` into its key and lower-cased modifiers."""
    *modifiers, key = hotkey_str.split("+")
    return KeyCombination(
        key=key.strip(),
        modifiers=[modifier.strip().lower() for modifier in modifiers],
    )


def is_modifier(key_name: str) -> bool:
    """Return True if ``key_name`` names a modifier key."""
    return key_name.lower() in _MODIFIERS


def convert_modifier_to_evdev(modifier: str) -> str:
    """Map a generic modifier name to the evdev key name it is tracked by."""
    name = modifier.lower()
    return _EVDEV_MODIFIERS.get(name, name)
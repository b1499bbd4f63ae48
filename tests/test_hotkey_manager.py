import pytest

from speaktoai.hotkey_manager import HotkeyManager
from speaktoai.keyboard import (
    ConfigAdapter,
    EnvironmentType,
    HotkeyError,
    KeyboardEventProvider,
)


class MockProvider(KeyboardEventProvider):
    def __init__(self, start_error=None):
        self.start_error = start_error
        self.started = False
        self.stop_called = False
        self.callbacks = {}

    def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def stop(self):
        self.stop_called = True
        self.started = False

    def register_hotkey(self, hotkey, callback):
        self.callbacks[hotkey] = callback

    def is_supported(self):
        return True


def _manager(environment=EnvironmentType.X11, provider=None):
    config = ConfigAdapter("ctrl+shift+r")
    return HotkeyManager(config, environment, provider or MockProvider())


def test_new_hotkey_manager_defaults():
    config = ConfigAdapter("ctrl+shift+r")
    manager = HotkeyManager(config, EnvironmentType.X11)
    assert manager.config is config
    assert manager.environment == EnvironmentType.X11
    assert manager.is_recording is False
    assert isinstance(manager.provider, KeyboardEventProvider)


def test_start_success():
    provider = MockProvider()
    manager = _manager(provider=provider)
    manager.start()
    assert provider.started is True
    assert "ctrl+shift+r" in provider.callbacks


def test_start_provider_error():
    provider = MockProvider(start_error=HotkeyError("provider start failed"))
    manager = _manager(provider=provider)
    with pytest.raises(HotkeyError, match="provider start failed"):
        manager.start()
    assert provider.started is False


def test_start_twice_raises():
    manager = _manager()
    manager.start()
    with pytest.raises(HotkeyError, match="already running"):
        manager.start()


def test_stop_calls_provider():
    provider = MockProvider()
    manager = _manager(provider=provider)
    manager.start()
    manager.stop()
    assert provider.stop_called is True
    assert manager.is_listening is False


def test_stop_without_start_leaves_provider_alone():
    provider = MockProvider()
    manager = _manager(provider=provider)
    manager.stop()
    assert provider.stop_called is False


def test_register_callbacks():
    manager = _manager()
    calls = []
    manager.register_callbacks(lambda: calls.append("start"), lambda: calls.append("stop"))

    manager.simulate_hotkey_press("start_recording")
    manager.simulate_hotkey_press("stop_recording")
    assert calls == ["start", "stop"]


def test_is_recording_follows_state():
    manager = _manager()
    assert manager.is_recording is False
    manager.is_recording = True
    assert manager.is_recording is True
    manager.is_recording = False
    assert manager.is_recording is False


def test_simulate_start_recording():
    manager = _manager()
    calls = []
    manager.register_callbacks(lambda: calls.append("start"), lambda: calls.append("stop"))
    manager.simulate_hotkey_press("start_recording")
    assert calls == ["start"]
    assert manager.is_recording is True


def test_simulate_stop_recording():
    manager = _manager()
    calls = []
    manager.register_callbacks(lambda: calls.append("start"), lambda: calls.append("stop"))
    manager.is_recording = True
    manager.simulate_hotkey_press("stop_recording")
    assert calls == ["stop"]
    assert manager.is_recording is False


def test_simulate_invalid_action():
    manager = _manager()
    with pytest.raises(HotkeyError, match="unknown hotkey: invalid_action"):
        manager.simulate_hotkey_press("invalid_action")


def test_simulate_callback_error():
    manager = _manager()
    error = RuntimeError("callback error")

    def failing():
        raise error

    manager.register_callbacks(failing, lambda: None)
    with pytest.raises(RuntimeError) as caught:
        manager.simulate_hotkey_press("start_recording")
    assert caught.value is error
    assert manager.is_recording is False


def test_registered_hotkey_toggles_recording():
    provider = MockProvider()
    manager = _manager(provider=provider)
    calls = []
    manager.register_callbacks(lambda: calls.append("start"), lambda: calls.append("stop"))
    manager.start()

    toggle = provider.callbacks["ctrl+shift+r"]
    toggle()
    assert manager.is_recording is True
    toggle()
    assert manager.is_recording is False
    assert calls == ["start", "stop"]


def test_registered_hotkey_error_keeps_state():
    provider = MockProvider()
    manager = _manager(provider=provider)

    def failing():
        raise RuntimeError("boom")

    manager.register_callbacks(failing, lambda: None)
    manager.start()
    with pytest.raises(RuntimeError, match="boom"):
        provider.callbacks["ctrl+shift+r"]()
    assert manager.is_recording is False


@pytest.mark.parametrize(
    "environment",
    [EnvironmentType.X11, EnvironmentType.WAYLAND, EnvironmentType.UNKNOWN],
)
def test_environment_types(environment):
    manager = _manager(environment=environment)
    assert manager.environment == environment


@pytest.mark.parametrize(
    "hotkey, expected",
    [("ctrl+r", "ctrl+r"), ("ctrl+shift+alt+f1", "ctrl+shift+alt+f1"), ("", "")],
)
def test_config_adapter(hotkey, expected):
    manager = HotkeyManager(ConfigAdapter(hotkey), EnvironmentType.X11, MockProvider())
    assert manager.config.get_start_recording_hotkey() == expected
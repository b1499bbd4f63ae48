"""Concrete recorders driven by arecord or ffmpeg, and the factory that picks one."""

from __future__ import annotations

from typing import Optional

from speaktoai.config import Config
from speaktoai.recorder import AudioRecorder, BaseRecorder
from speaktoai.tempfiles import TempFileManager


class _CommandRecorder(BaseRecorder):
    """Shared start/stop behaviour for recorders built around one command."""

    command = ""

    def build_command_args(self) -> list[str]:
        raise NotImplementedError

    def start_recording(self) -> None:
        """Launch the recording command."""
        self.execute_recording_command(self.command, self.build_command_args())

    def stop_recording(self) -> str:
        """Stop the command and return the path of the recorded file."""
        try:
            self.stop_process()
        finally:
            if self.streaming_enabled:
                self._close_stream()
        return self.output_file


class ArecordRecorder(_CommandRecorder):
    """Records through ALSA's ``arecord``."""

    command = "arecord"

    def build_command_args(self) -> list[str]:
        """Return the arguments passed to arecord."""
        audio = self.config.audio
        args = [
            "-D", audio.device,
            "-f", audio.format,
            "-r", str(audio.sample_rate),
            "-c", str(audio.channels),
        ]
        if self.use_buffer or self.streaming_enabled:
            args += ["-t", "raw"]
        else:
            args.append(self.output_file)
        return args

    def start_recording(self) -> None:
        super().start_recording()

    def stop_recording(self) -> str:
        return super().stop_recording()


class FFmpegRecorder(_CommandRecorder):
    """Records from an ALSA device through ``ffmpeg``."""

    command = "ffmpeg"

    def build_command_args(self) -> list[str]:
        """Return the arguments passed to ffmpeg."""
        audio = self.config.audio
        args = [
            "-f", "alsa",
            "-i", audio.device,
            "-ar", str(audio.sample_rate),
            "-ac", str(audio.channels),
            "-q:a", "0",
        ]
        if self.streaming_enabled or self.use_buffer:
            args += ["-f", "wav", "-"]
        else:
            args.append(self.output_file)
        return args

    def start_recording(self) -> None:
        super().start_recording()

    def stop_recording(self) -> str:
        return super().stop_recording()


_RECORDERS: dict[str, type[_CommandRecorder]] = {
    "arecord": ArecordRecorder,
    "ffmpeg": FFmpegRecorder,
}


class AudioRecorderFactory:
    """Creates the recorder named by the configuration's recording method."""

    def __init__(self, config: Config, temp_manager: Optional[TempFileManager] = None) -> None:
        self.config = config
        self.temp_manager = temp_manager

    def create_recorder(self) -> AudioRecorder:
        """Return a new recorder; raise ValueError for an unknown method."""
        method = self.config.audio.recording_method
        try:
            recorder_class = _RECORDERS[method]
        except KeyError:
            raise ValueError(f"unsupported recording method: {method}") from None
        return recorder_class(self.config, self.temp_manager)


def get_recorder(config: Config) -> AudioRecorder:
    """Create a recorder straight from ``config``."""
    return AudioRecorderFactory(config).create_recorder()
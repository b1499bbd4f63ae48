"""Recording audio through an external command into a file, memory or a stream."""

from __future__ import annotations

import abc
import io
import logging
import os
import signal
import struct
import subprocess
import tempfile
import threading
import time
from datetime import datetime
from typing import IO, BinaryIO, Callable, Optional, Sequence

from speaktoai.config import Config
from speaktoai.tempfiles import TempFileManager, get_temp_file_manager

logger = logging.getLogger(__name__)

AudioLevelCallback = Callable[[float], None]

DEFAULT_COMMAND_TIMEOUT = 60.0
_CHUNK_SIZE = 4096
_STOP_ATTEMPTS = 3
_STOP_WAIT = 0.5
_SIGNAL_RETRY_DELAY = 0.1
_READER_JOIN_TIMEOUT = 1.0


class RecordingError(Exception):
    """Starting, stopping or storing a recording failed."""


def calculate_audio_level(data: bytes) -> float:
    """Return a loudness level for 16-bit little-endian PCM data.

    The mean square of the samples is normalised to full scale and scaled
    by ten; a trailing odd byte is ignored.
    """
    count = len(data) // 2
    if count == 0:
        return 0.0
    samples = struct.unpack(f"<{count}h", bytes(data[: count * 2]))
    mean_square = sum(sample * sample for sample in samples) / count
    level = mean_square / (32768.0 * 32768.0)
    return level * 10.0 if level > 0 else 0.0


class AudioRecorder(abc.ABC):
    """What every audio recorder offers."""

    @abc.abstractmethod
    def start_recording(self) -> None:
        """Begin recording."""

    @abc.abstractmethod
    def stop_recording(self) -> str:
        """Stop recording and return the path of the recorded file."""

    @property
    @abc.abstractmethod
    def output_file(self) -> str:
        """Path of the recorded audio file, or an empty string."""

    @abc.abstractmethod
    def cleanup_file(self) -> None:
        """Discard the recorded audio."""

    @abc.abstractmethod
    def use_streaming(self) -> bool:
        """Whether the recorder streams audio while recording."""

    @abc.abstractmethod
    def get_audio_stream(self) -> BinaryIO:
        """Return a readable binary stream of the recorded audio."""

    @abc.abstractmethod
    def set_audio_level_callback(self, callback: Optional[AudioLevelCallback]) -> None:
        """Set the function that receives audio level updates."""

    @property
    @abc.abstractmethod
    def audio_level(self) -> float:
        """The most recent audio level."""


class BaseRecorder(AudioRecorder):
    """Runs a recording command and collects its output.

    Short recordings (expected duration under ten seconds at no more than
    16 kHz) are kept in memory; others are written to a temporary file.
    With streaming enabled the command's output is forwarded to a pipe.
    """

    def __init__(self, config: Config, temp_manager: Optional[TempFileManager] = None) -> None:
        audio = config.audio
        self.config = config
        self.cmd_timeout = DEFAULT_COMMAND_TIMEOUT
        self.use_buffer = 0 < audio.expected_duration < 10 and audio.sample_rate <= 16000
        self.streaming_enabled = audio.enable_streaming
        self._temp_manager = temp_manager if temp_manager is not None else get_temp_file_manager()

        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._timer: Optional[threading.Timer] = None
        self._readers: list[threading.Thread] = []
        self._output_file = ""

        self._buffer = bytearray()
        self._buffer_lock = threading.Lock()

        self._level = 0.0
        self._level_callback: Optional[AudioLevelCallback] = None
        self._level_lock = threading.Lock()

        self._stream_reader: Optional[BinaryIO] = None
        self._stream_writer: Optional[IO[bytes]] = None
        self._stream_lock = threading.Lock()

    @property
    def output_file(self) -> str:
        return self._output_file

    @property
    def audio_level(self) -> float:
        with self._level_lock:
            return self._level

    def use_streaming(self) -> bool:
        return self.streaming_enabled

    def get_audio_stream(self) -> BinaryIO:
        """Return the streaming pipe, or a snapshot of the in-memory buffer."""
        if self.streaming_enabled and self._stream_reader is not None:
            return self._stream_reader
        with self._buffer_lock:
            return io.BytesIO(bytes(self._buffer))

    def set_audio_level_callback(self, callback: Optional[AudioLevelCallback]) -> None:
        with self._level_lock:
            self._level_callback = callback

    def cleanup_file(self) -> None:
        """Clear the in-memory buffer, or delete the temporary recording file."""
        with self._lock:
            if self.use_buffer:
                self._clear_buffer()
                return
            if not self._output_file:
                return
            self._temp_manager.remove_file(self._output_file, True)

    def start_process_template(self, cmd_name: str, args: Sequence[str], output_pipe: bool) -> None:
        """Start ``cmd_name``; in buffer mode with ``output_pipe``, capture its output."""
        with self._lock:
            self._reset_for_command()
            self._create_temp_file()
            capture = self.use_buffer and output_pipe
            process = self._launch(cmd_name, args, capture)
            if capture:
                self._start_reader(self._monitor_audio_level, process.stdout)

    def execute_recording_command(self, cmd_name: str, args: Sequence[str]) -> None:
        """Start ``cmd_name`` with output routed to a stream, the buffer or nowhere."""
        with self._lock:
            self._reset_for_command()
            writer = self._open_stream() if self.streaming_enabled else None
            try:
                self._create_temp_file()
                process = self._launch(cmd_name, args, capture=writer is not None or self.use_buffer)
            except RecordingError:
                if writer is not None:
                    self._close_stream()
                raise

            if writer is not None:
                self._start_reader(self._forward_stream, process.stdout, writer)
            elif self.use_buffer:
                self._start_reader(self._monitor_audio_level, process.stdout)

    def stop_process(self) -> None:
        """Interrupt the recording command and wait for it to end.

        Raises RecordingError if nothing was started, or if file output was
        expected and no file was written.
        """
        with self._lock:
            process = self._process
            if process is None:
                raise RecordingError("recording not started")
            self._cancel_timeout()

            for attempt in range(_STOP_ATTEMPTS):
                if attempt:
                    logger.info("Retry %d to stop recording process", attempt)
                if not self._interrupt(process):
                    time.sleep(_SIGNAL_RETRY_DELAY)
                    continue
                try:
                    code = process.wait(timeout=_STOP_WAIT)
                except subprocess.TimeoutExpired:
                    continue
                if code != 0:
                    logger.info("Process exited with status %s", code)
                break
            else:
                process.kill()
                process.wait()

            for reader in self._readers:
                reader.join(timeout=_READER_JOIN_TIMEOUT)

            if not self.use_buffer and not os.path.exists(self._output_file):
                raise RecordingError("audio file was not created")

    def _close_stream(self) -> None:
        with self._stream_lock:
            writer, self._stream_writer = self._stream_writer, None
        if writer is not None:
            try:
                writer.close()
            except OSError:
                pass

    def _open_stream(self) -> IO[bytes]:
        read_fd, write_fd = os.pipe()
        writer = open(write_fd, "wb")
        with self._stream_lock:
            self._stream_reader = open(read_fd, "rb")
            self._stream_writer = writer
        return writer

    def _update_audio_level(self, level: float) -> None:
        with self._level_lock:
            self._level = level
            callback = self._level_callback
        if callback is not None:
            callback(level)

    def _clear_buffer(self) -> None:
        with self._buffer_lock:
            self._buffer.clear()

    def _create_temp_file(self) -> None:
        if self.use_buffer:
            self._clear_buffer()
            return
        temp_dir = self.config.general.temp_audio_path or tempfile.gettempdir()
        try:
            os.makedirs(temp_dir, mode=0o755, exist_ok=True)
        except OSError as err:
            raise RecordingError(f"failed to create temp directory: {err}") from err
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        self._output_file = os.path.join(temp_dir, f"audio_{stamp}.wav")
        self._temp_manager.add_file(self._output_file)

    def _reset_for_command(self) -> None:
        self._cancel_timeout()
        self._process = None
        self._readers = []

    def _launch(self, cmd_name: str, args: Sequence[str], capture: bool) -> subprocess.Popen:
        try:
            process = subprocess.Popen(
                [cmd_name, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE if capture else subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as err:
            raise RecordingError(f"failed to start recording: {err}") from err
        self._process = process
        timer = threading.Timer(self.cmd_timeout, self._expire, args=(process,))
        timer.daemon = True
        timer.start()
        self._timer = timer
        return process

    def _cancel_timeout(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @staticmethod
    def _expire(process: subprocess.Popen) -> None:
        if process.poll() is None:
            logger.warning("Recording command timed out; killing it")
            process.kill()

    @staticmethod
    def _interrupt(process: subprocess.Popen) -> bool:
        try:
            process.send_signal(signal.SIGINT)
            return True
        except OSError as err:
            logger.warning("failed to interrupt process: %s", err)
        try:
            process.kill()
            return True
        except OSError as err:
            logger.warning("failed to kill process: %s", err)
            return False

    def _start_reader(self, target: Callable[..., None], *args: object) -> None:
        reader = threading.Thread(target=target, args=args, daemon=True)
        self._readers.append(reader)
        reader.start()

    def _monitor_audio_level(self, stdout: BinaryIO) -> None:
        try:
            for chunk in iter(lambda: stdout.read1(_CHUNK_SIZE), b""):
                with self._buffer_lock:
                    self._buffer.extend(chunk)
                self._update_audio_level(calculate_audio_level(chunk))
        except (OSError, ValueError) as err:
            logger.error("Error reading audio data: %s", err)
        finally:
            stdout.close()

    def _forward_stream(self, stdout: BinaryIO, writer: IO[bytes]) -> None:
        try:
            for chunk in iter(lambda: stdout.read1(_CHUNK_SIZE), b""):
                writer.write(chunk)
                writer.flush()
        except (OSError, ValueError):
            pass
        finally:
            self._close_stream()
            stdout.close()
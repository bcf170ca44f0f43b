"""Line channel to the backend, with blocking and event-driven readers.

Both readers share the channel's byte buffer, so switching modes never
loses data that was already read from the pipe, and both divert debug
lines into the session log before the caller sees anything.
"""

import enum
import logging
import os
from typing import BinaryIO, Callable, Protocol

from PySide6.QtCore import QSocketNotifier, QTimer

from .errors import BackendClosedError, BackendReadError
from .resources import DEBUG_PREFIXES, TEXT_BACKEND_CLOSED, TEXT_READ_ERROR

logger = logging.getLogger(__name__)

READ_CHUNK = 65536


def is_diagnostic(line: str) -> bool:
    return line.startswith(DEBUG_PREFIXES)


class IOMode(enum.Enum):
    BLOCKING = "blocking"
    NONBLOCKING = "nonblocking"


class EventLoop(Protocol):
    """The part of an event loop the event-driven reader needs."""

    def watch(self, fd: int, callback: Callable[[], None]) -> Callable[[], None]:
        """Call `callback` whenever `fd` is readable; return a cancel function."""
        ...

    def defer(self, callback: Callable[[], None]) -> None:
        """Run `callback` once control returns to the loop."""
        ...


class QtEventLoop:
    """EventLoop backed by the running QApplication."""

    def watch(self, fd: int, callback: Callable[[], None]) -> Callable[[], None]:
        notifier = QSocketNotifier(fd, QSocketNotifier.Type.Read)
        notifier.activated.connect(lambda *_: callback())
        notifier.setEnabled(True)

        def cancel() -> None:
            notifier.setEnabled(False)
            notifier.deleteLater()

        return cancel

    def defer(self, callback: Callable[[], None]) -> None:
        QTimer.singleShot(0, callback)


class Channel:
    """Newline-delimited text over a pair of pipe ends."""

    def __init__(self, reader: BinaryIO, writer: BinaryIO, log: list[str] | None = None):
        self._reader = reader
        self._writer = writer
        self._buffer = bytearray()
        self.log: list[str] = log if log is not None else []
        self.mode = IOMode.BLOCKING
        self.closed = False

    def fileno(self) -> int:
        return self._reader.fileno()

    def set_mode(self, mode: IOMode) -> None:
        if self.closed or mode is self.mode:
            return
        os.set_blocking(self.fileno(), mode is IOMode.BLOCKING)
        self.mode = mode
        logger.debug("Channel switched to %s mode", mode.value)

    # -- Read side --

    def fill(self) -> bool:
        """Read one chunk into the buffer. False means end of input.

        In non-blocking mode this raises BlockingIOError when nothing is
        available; any other OSError propagates.
        """
        if self.closed:
            return False
        data = os.read(self.fileno(), READ_CHUNK)
        if not data:
            return False
        self._buffer.extend(data)
        return True

    def has_line(self) -> bool:
        return b"\n" in self._buffer

    def pop_line(self) -> str | None:
        index = self._buffer.find(b"\n")
        if index < 0:
            return None
        raw = bytes(self._buffer[:index])
        del self._buffer[: index + 1]
        return _decode(raw)

    def pop_rest(self) -> str | None:
        """Return an unterminated trailing line left at end of input."""
        if not self._buffer:
            return None
        raw = bytes(self._buffer)
        self._buffer.clear()
        return _decode(raw)

    def divert(self, line: str) -> bool:
        """Append a debug line to the log. True if it was one."""
        if is_diagnostic(line):
            self.log.append(line)
            return True
        return False

    # -- Write side --

    def send(self, line: str) -> None:
        self.send_lines([line])

    def send_lines(self, lines: list[str]) -> None:
        if self.closed:
            raise BackendClosedError("Cannot write to a closed back end")
        payload = "".join(f"{line}\n" for line in lines).encode("utf-8")
        try:
            self._writer.write(payload)
            self._writer.flush()
        except (BrokenPipeError, ValueError) as e:
            raise BackendClosedError(f"Back end stopped reading: {e}") from e

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for stream in (self._writer, self._reader):
            try:
                stream.close()
            except OSError:
                pass


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r")


class BlockingReader:
    """Synchronous line reads used for bootstrap and round trips."""

    def __init__(self, channel: Channel):
        self.channel = channel

    def read_line(self) -> str | None:
        """Next protocol line, or None at end of input."""
        channel = self.channel
        channel.set_mode(IOMode.BLOCKING)
        while True:
            line = channel.pop_line()
            if line is None:
                try:
                    more = channel.fill()
                except OSError as e:
                    raise BackendReadError(f"{TEXT_READ_ERROR}\n{e}") from e
                if more:
                    continue
                line = channel.pop_rest()
                if line is None:
                    return None
            if not channel.divert(line):
                return line

    def read_line_no_eof(self) -> str:
        line = self.read_line()
        if line is None:
            raise BackendClosedError(TEXT_BACKEND_CLOSED)
        return line


class EventDrivenReader:
    """Delivers lines from the event loop's readability notifications.

    On end of input or a read error the channel is closed and `on_closed`
    runs instead of `on_line`.
    """

    def __init__(
        self,
        channel: Channel,
        loop: EventLoop,
        on_line: Callable[[str], None],
        on_closed: Callable[[], None],
    ):
        self.channel = channel
        self._loop = loop
        self._on_line = on_line
        self._on_closed = on_closed
        self._cancel: Callable[[], None] | None = None

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def start(self) -> None:
        if self.active:
            return
        self.channel.set_mode(IOMode.NONBLOCKING)
        self._cancel = self._loop.watch(self.channel.fileno(), self.on_readable)
        if self.channel.has_line():
            # The notifier will not fire for data already in the buffer
            self._loop.defer(self.on_readable)

    def stop(self) -> None:
        if self._cancel is not None:
            cancel, self._cancel = self._cancel, None
            cancel()

    def on_readable(self) -> None:
        if not self.active:
            return
        try:
            more = self.channel.fill()
        except BlockingIOError:
            more = True
        except OSError as e:
            logger.warning("Read from back end failed: %s", e)
            more = False

        self._deliver()
        if more or not self.active:
            return

        rest = self.channel.pop_rest()
        if rest is not None and not self.channel.divert(rest):
            self._on_line(rest)
            if not self.active:
                return
        self.stop()
        self.channel.close()
        self._on_closed()

    def _deliver(self) -> None:
        while self.active:
            line = self.channel.pop_line()
            if line is None:
                return
            if not self.channel.divert(line):
                self._on_line(line)

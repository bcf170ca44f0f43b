"""Pipe-backed stand-ins for the backend, the event loop and the view."""

import os

import pytest

from tlgui.backend import Session
from tlgui.channel import Channel

MENU_DATA = [
    "menudata",
    "year: 2025",
    "revision: 73970",
    "descs",
    "collection-basic: Collection Essential programs and files",
    "collection-latex: Collection LaTeX fundamental packages",
    "collection-langgerman: Collection German",
    "scheme-full: Scheme full scheme (everything)",
    "scheme-small: Scheme small scheme (basic + xetex, metapost, a few languages)",
    "enddescs",
    "vars",
    "TEXDIR: /usr/local/texlive/2025",
    "TEXMFLOCAL: /usr/local/texlive/texmf-local",
    "TEXMFSYSVAR: /usr/local/texlive/2025/texmf-var",
    "TEXMFSYSCONFIG: /usr/local/texlive/2025/texmf-config",
    "TEXMFHOME: ~/texmf",
    "TEXMFVAR: ~/.texlive2025/texmf-var",
    "TEXMFCONFIG: ~/.texlive2025/texmf-config",
    "selected_scheme: scheme-full",
    "scheme-full: 1",
    "scheme-small: 0",
    "collection-basic: 1",
    "collection-latex: 1",
    "collection-langgerman: 0",
    "this_platform: x86_64-linux",
    "binary_x86_64-linux: 1",
    "binary_win32: 0",
    "n_systems_selected: 1",
    "n_collections_selected: 2",
    "n_collections_available: 3",
    "instopt_portable: 0",
    "instopt_adjustpath: 0",
    "instopt_letter: 0",
    "tlpdbopt_install_docfiles: 1",
    "total_size: 300",
    "free_size: 500",
    "endvars",
    "schemes_order: scheme-full scheme-small",
    "binaries",
    "x86_64-linux: GNU/Linux on x86_64",
    "win32: Windows",
    "endbinaries",
    "endmenudata",
]


def vars_block(values: dict[str, str]) -> list[str]:
    return ["vars"] + [f"{k}: {v}" for k, v in values.items()] + ["endvars"]


class PipeBackend:
    """Both pipe ends a real backend process would hold."""

    def __init__(self, lines=(), eof: bool = False):
        out_r, self._out_w = os.pipe()
        self._in_r, in_w = os.pipe()
        os.set_blocking(self._in_r, False)
        self.channel = Channel(
            os.fdopen(out_r, "rb", buffering=0),
            os.fdopen(in_w, "wb", buffering=0),
        )
        self._received = bytearray()
        self.feed(lines)
        if eof:
            self.close_output()

    def feed(self, lines) -> None:
        data = "".join(f"{line}\n" for line in lines).encode("utf-8")
        if data:
            os.write(self._out_w, data)

    def feed_raw(self, data: bytes) -> None:
        os.write(self._out_w, data)

    def close_output(self) -> None:
        if self._out_w is not None:
            os.close(self._out_w)
            self._out_w = None

    def sent(self) -> list[str]:
        """Every line the frontend has written so far."""
        while True:
            try:
                chunk = os.read(self._in_r, 65536)
            except BlockingIOError:
                break
            if not chunk:
                break
            self._received.extend(chunk)
        return self._received.decode("utf-8").splitlines()

    def close(self) -> None:
        self.close_output()
        self.channel.close()
        os.close(self._in_r)


class FakeLoop:
    def __init__(self):
        self.watchers: dict[int, object] = {}
        self.deferred: list = []

    def watch(self, fd, callback):
        self.watchers[fd] = callback
        return lambda: self.watchers.pop(fd, None)

    def defer(self, callback) -> None:
        self.deferred.append(callback)

    def pump(self, rounds: int = 20) -> None:
        for _ in range(rounds):
            while self.deferred:
                self.deferred.pop(0)()
            if not self.watchers:
                return
            for callback in list(self.watchers.values()):
                callback()


class FakeSupervisor:
    def __init__(self, backends):
        self._backends = list(backends)
        self.session: Session | None = None
        self.spawned: list[list[str]] = []
        self.terminations = 0

    def spawn(self, args):
        self.spawned.append(list(args))
        backend = self._backends.pop(0)
        self.session = Session(channel=backend.channel)
        return self.session

    def respawn(self, args):
        self.terminate()
        return self.spawn(args)

    def terminate(self):
        if self.session is not None:
            self.session.channel.close()
            self.session = None
        self.terminations += 1


class FakeView:
    def __init__(self, answer: bool = True):
        self.answer = answer
        self.calls: list[tuple] = []
        self.questions: list[str] = []
        self.transcript: list[str] = []

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def select_mirror(self):
        self.calls.append(("select_mirror",))

    def show_loading(self, location):
        self.calls.append(("show_loading", location))

    def show_menu(self, tier):
        self.calls.append(("show_menu", tier))

    def config_changed(self):
        self.calls.append(("config_changed",))

    def ask_yes_no(self, message):
        self.questions.append(message)
        return self.answer

    def show_message(self, message):
        self.calls.append(("show_message", message))

    def show_error(self, message):
        self.calls.append(("show_error", message))

    def show_log(self, lines, abortable):
        self.calls.append(("show_log", list(lines), abortable))

    def append_log(self, line):
        self.transcript.append(line)

    def install_finished(self):
        self.calls.append(("install_finished",))

    def quit(self, status=0):
        self.calls.append(("quit", status))


@pytest.fixture
def backend():
    created = []

    def make(lines=(), eof=False):
        b = PipeBackend(lines, eof=eof)
        created.append(b)
        return b

    yield make
    for b in created:
        b.close()


@pytest.fixture
def loop():
    return FakeLoop()


@pytest.fixture
def view():
    return FakeView()

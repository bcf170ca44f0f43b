"""Backend process supervision.

The installer backend runs as a single child process for the whole
session. Its stderr is merged into stdout so diagnostics arrive in order
with protocol lines, and liveness is only ever observed through the
channel: a closed pipe means the process is gone.
"""

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from .channel import BlockingReader, Channel
from .errors import BackendStartError
from .resources import BACKEND_SCRIPT, DEFAULT_PERL, FRONTEND_FLAG, TEXT_START_ERROR

logger = logging.getLogger(__name__)

TERMINATE_TIMEOUT_S = 5.0


def default_backend_command() -> list[str]:
    """Command that starts the backend, before the frontend flag."""
    override = os.environ.get("TLGUI_BACKEND")
    if override:
        return shlex.split(override)
    instroot = os.environ.get("TLGUI_INSTROOT", os.getcwd())
    perl = "perl.exe" if os.name == "nt" else DEFAULT_PERL
    return [perl, str(Path(instroot) / BACKEND_SCRIPT)]


@dataclass
class Session:
    """Live connection to one backend process."""

    channel: Channel
    process: subprocess.Popen | None = None
    _reader: BlockingReader | None = field(default=None, repr=False)

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    @property
    def log(self) -> list[str]:
        return self.channel.log

    @property
    def reader(self) -> BlockingReader:
        if self._reader is None:
            self._reader = BlockingReader(self.channel)
        return self._reader


class BackendSupervisor:
    """Owns the backend child process; at most one session at a time."""

    def __init__(self, command: list[str] | None = None):
        self.command = list(command) if command is not None else default_backend_command()
        self.session: Session | None = None

    def argv(self, args: list[str]) -> list[str]:
        return self.command + [FRONTEND_FLAG] + list(args)

    def spawn(self, args: list[str]) -> Session:
        if self.session is not None:
            self.terminate()
        cmd = self.argv(args)
        logger.info("Starting back end: %s", " ".join(shlex.quote(a) for a in cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
            )
        except OSError as e:
            raise BackendStartError(f"{TEXT_START_ERROR}: {e}") from e
        logger.info("Back end running with pid %d", proc.pid)
        self.session = Session(channel=Channel(proc.stdout, proc.stdin), process=proc)
        return self.session

    def respawn(self, args: list[str]) -> Session:
        """Tear the current session down completely, then start afresh."""
        self.terminate()
        return self.spawn(args)

    def terminate(self) -> None:
        """Close the channel and signal the process. Safe to repeat."""
        session, self.session = self.session, None
        if session is None:
            return
        session.channel.close()
        proc = session.process
        if proc is None:
            return
        if proc.poll() is None:
            try:
                proc.terminate()
            except OSError as e:
                logger.debug("Signalling pid %d failed: %s", proc.pid, e)
        try:
            proc.wait(timeout=TERMINATE_TIMEOUT_S)
        except subprocess.TimeoutExpired:
            logger.warning("Back end %d ignored SIGTERM, killing", proc.pid)
            try:
                proc.kill()
                proc.wait(timeout=TERMINATE_TIMEOUT_S)
            except (OSError, subprocess.TimeoutExpired):
                pass
        logger.info("Back end %d exited with %s", proc.pid, proc.returncode)

"""Wizard state machine driving the backend session.

Stages, in order: Loading (with an optional MirrorSelect before it), Menu
with three tiers, Installing, Terminated. All reads outside the repository
fetch and the install stream are blocking; those two phases hand control
to the event loop and receive lines through an EventDrivenReader.

Any BackendError ends the session: the backend is terminated and the view
is told to quit, after showing whatever the user needs to see.
"""

import enum
import functools
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Protocol

from . import protocol
from .backend import BackendSupervisor, Session
from .channel import EventDrivenReader, EventLoop, IOMode
from .errors import BackendClosedError, BackendError
from .repository import replace_repository
from .resources import (
    ADVANCED_KEYS,
    ALL_TREES_KEYS,
    BASIC_KEYS,
    BINARIES_SELECTION,
    CALC_KEYS,
    COLLECTIONS_SELECTION,
    DISK_MARGIN,
    END_LOAD,
    ERROR_CONTEXT_LINES,
    MENU_DATA,
    MESS_YESNO,
    SELECTION_KEYS,
    SHORT_LOG_LINES,
    START_INST,
    TEXT_NOT_ENOUGH_ROOM,
)
from .state import InstallerState

logger = logging.getLogger(__name__)


class Stage(enum.Enum):
    LOADING = "loading"
    MIRROR_SELECT = "mirror-select"
    MENU = "menu"
    INSTALLING = "installing"
    TERMINATED = "terminated"


class MenuTier(enum.IntEnum):
    BASIC = 0
    ADVANCED = 1
    ALL_TREES = 2


class TerminationReason(enum.Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"
    QUIT = "quit"
    FAILED = "failed"


@dataclass(frozen=True)
class WizardStage:
    kind: Stage
    tier: MenuTier | None = None
    reason: TerminationReason | None = None

    def __str__(self) -> str:
        if self.tier is not None:
            return f"{self.kind.value}[{self.tier.name.lower()}]"
        if self.reason is not None:
            return f"{self.kind.value}[{self.reason.value}]"
        return self.kind.value


def editable_keys(tier: MenuTier) -> frozenset[str]:
    keys = set(BASIC_KEYS)
    if tier >= MenuTier.ADVANCED:
        keys.update(ADVANCED_KEYS)
    if tier >= MenuTier.ALL_TREES:
        keys.update(ALL_TREES_KEYS)
    return frozenset(keys)


class WizardView(Protocol):
    """What the wizard asks of the user interface."""

    def select_mirror(self) -> None:
        """Offer mirrors; answer with Wizard.mirror_selected or Wizard.abort."""

    def show_loading(self, location: str) -> None: ...

    def show_menu(self, tier: MenuTier) -> None: ...

    def config_changed(self) -> None: ...

    def ask_yes_no(self, message: str) -> bool: ...

    def show_message(self, message: str) -> None: ...

    def show_error(self, message: str) -> None: ...

    def show_log(self, lines: list[str], abortable: bool) -> None: ...

    def append_log(self, line: str) -> None: ...

    def install_finished(self) -> None: ...

    def quit(self, status: int = 0) -> None: ...


def _guarded(method):
    """Route backend failures of a wizard action to the failure path."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except BackendError as e:
            self._fail(e)
            return None

    return wrapper


class Wizard:
    def __init__(
        self,
        supervisor: BackendSupervisor,
        view: WizardView,
        loop: EventLoop,
        backend_args: list[str],
        *,
        select_repository: bool = False,
        location: str = "...",
        expect_admin: bool | None = None,
    ):
        self.supervisor = supervisor
        self.view = view
        self.loop = loop
        self.backend_args = list(backend_args)
        self.select_repository = select_repository
        self.location = location
        self.expect_admin = expect_admin
        self.state = InstallerState()
        self.stage = WizardStage(Stage.LOADING)
        self.transcript: list[str] = []
        self._reader: EventDrivenReader | None = None

    # -- Helpers --

    @property
    def session(self) -> Session:
        if self.supervisor.session is None:
            raise BackendClosedError("No back end session")
        return self.supervisor.session

    @property
    def log(self) -> list[str]:
        session = self.supervisor.session
        return session.log if session is not None else []

    @property
    def tier(self) -> MenuTier | None:
        return self.stage.tier

    @property
    def terminated(self) -> bool:
        return self.stage.kind is Stage.TERMINATED

    @property
    def exit_status(self) -> int:
        return 1 if self.stage.reason is TerminationReason.FAILED else 0

    def _enter(self, stage: WizardStage) -> None:
        logger.info("Stage %s -> %s", self.stage, stage)
        self.stage = stage

    def _require(self, kind: Stage) -> None:
        if self.stage.kind is not kind:
            raise RuntimeError(f"Not allowed in stage {self.stage}")

    def _install_reader(self, on_line, on_closed) -> None:
        self._remove_reader()
        self._reader = EventDrivenReader(self.session.channel, self.loop, on_line, on_closed)
        self._reader.start()

    def _remove_reader(self) -> None:
        if self._reader is not None:
            self._reader.stop()
            self._reader = None

    def _require_editable(self, key: str) -> None:
        if not self.can_edit(key):
            raise KeyError(f"{key} is not editable in stage {self.stage}")

    def _confirm(self) -> None:
        protocol.answer_yes_no(self.session, self.view.ask_yes_no)

    # -- Loading --

    def start(self) -> None:
        if self.select_repository:
            self._enter(WizardStage(Stage.MIRROR_SELECT))
            self.view.select_mirror()
        else:
            self._launch(respawn=False)

    def mirror_selected(self, location: str) -> None:
        """Take the chosen repository and (re)start the backend with it."""
        self.location = location
        self.backend_args = replace_repository(self.backend_args, location)
        self._launch(respawn=True)

    def restart_with_repository(self, location: str) -> None:
        """Switch repositories while loading: full restart of the backend."""
        self._remove_reader()
        self.mirror_selected(location)

    @_guarded
    def _launch(self, respawn: bool) -> None:
        if respawn:
            self.supervisor.respawn(self.backend_args)
        else:
            self.supervisor.spawn(self.backend_args)
        self._enter(WizardStage(Stage.LOADING))
        self.view.show_loading(self.location)
        self._read_until_location()

    def _read_until_location(self) -> None:
        reader = self.session.reader
        while True:
            line = reader.read_line()
            if line is None:
                raise BackendClosedError("Back end closed before loading a repository")
            if line == MESS_YESNO:
                self._confirm()
            elif line in (MENU_DATA, START_INST):
                self._on_menu_marker(line)
                return
            else:
                location = protocol.match_location(line)
                if location is None:
                    self.log.append(line)
                    continue
                # The fetch may stall; keep the user interface responsive
                self.location = location
                self.view.show_loading(location)
                self._install_reader(self._on_loading_line, self._on_loading_closed)
                return

    @_guarded
    def _on_loading_line(self, line: str) -> None:
        if line != END_LOAD:
            self.log.append(line)
            return
        self._remove_reader()
        self.session.channel.set_mode(IOMode.BLOCKING)
        logger.info("Repository %s loaded", self.location)
        self._read_until_menu()

    def _on_loading_closed(self) -> None:
        self._reader = None
        self._fail(BackendClosedError("Back end closed while loading a repository"))

    def _read_until_menu(self) -> None:
        reader = self.session.reader
        while True:
            line = reader.read_line()
            if line is None:
                raise BackendClosedError("Back end closed before sending menu data")
            if line == MESS_YESNO:
                self._confirm()
            elif line in (MENU_DATA, START_INST):
                self._on_menu_marker(line)
                return
            else:
                self.log.append(line)

    def _on_menu_marker(self, line: str) -> None:
        if line == START_INST:
            # Saved profile: no menu, straight to installation
            self.log.clear()
            self._run_installer()
            return
        self.state = protocol.read_menu_data(self.session.reader, self.expect_admin)
        self.log.clear()
        self._enter(WizardStage(Stage.MENU, tier=MenuTier.BASIC))
        self.view.show_menu(MenuTier.BASIC)

    # -- Menu --

    def escalate(self) -> MenuTier:
        """Basic -> Advanced -> AllTrees. Display only, no backend traffic."""
        self._require(Stage.MENU)
        tier = self.stage.tier
        if tier < MenuTier.ALL_TREES:
            tier = MenuTier(tier + 1)
            self._enter(WizardStage(Stage.MENU, tier=tier))
            self.view.show_menu(tier)
        return tier

    def can_edit(self, key: str) -> bool:
        return self.stage.kind is Stage.MENU and key in editable_keys(self.stage.tier)

    @_guarded
    def update_vars(self) -> None:
        protocol.recompute(self.session, self.state.config, self.view.ask_yes_no)
        self.view.config_changed()

    def set_option(self, key: str, value) -> None:
        if key in SELECTION_KEYS:
            raise KeyError(f"{key} is edited with its own selection method")
        self._require_editable(key)
        if key == "selected_scheme":
            self.select_scheme(str(value))
            return
        self.state.config.set(key, value)
        if key in CALC_KEYS:
            self.update_vars()
        else:
            self.view.config_changed()

    def select_scheme(self, scheme: str) -> None:
        self._require_editable("selected_scheme")
        if scheme not in self.state.scheme_descs:
            raise KeyError(f"Unknown scheme {scheme}")
        self.state.config.select_scheme(scheme)
        self.update_vars()

    def set_collections(self, selection: Mapping[str, bool]) -> None:
        self._require_editable(COLLECTIONS_SELECTION)
        self.state.config.set_collections(selection)
        self.update_vars()

    def set_binaries(self, selected: list[str]) -> None:
        self._require_editable(BINARIES_SELECTION)
        self.state.config.set_binaries(selected, self.state.binary_descs)
        self.update_vars()

    def commit_texdir(self, path: str) -> None:
        self._require_editable("TEXDIR")
        self.state.config.commit_texdir(path, self.state.release_year)
        self.update_vars()

    def toggle_portable(self) -> None:
        self._require_editable("instopt_portable")
        portable = not self.state.config.flag("instopt_portable")
        self.state.config.set_portable(portable, self.state.release_year, windows=os.name == "nt")
        self.view.config_changed()

    @_guarded
    def check_dir(self, path: str) -> bool:
        return protocol.check_dir(self.session, path, self.view.ask_yes_no)

    def quit_menu(self) -> None:
        """User declined to install."""
        self.log.clear()
        self._log_exit(reason=TerminationReason.QUIT)

    def request_install(self) -> bool:
        """Start installing unless the disk space check refuses."""
        self._require(Stage.MENU)
        if self.state.config.install_blocked(DISK_MARGIN):
            self.view.show_error(TEXT_NOT_ENOUGH_ROOM)
            return False
        self._start_install()
        return True

    @_guarded
    def _start_install(self) -> None:
        self._run_installer()

    # -- Installing --

    def _run_installer(self) -> None:
        self.log.clear()
        self.transcript.clear()
        self._enter(WizardStage(Stage.INSTALLING))
        self.view.show_log([], abortable=True)
        session = self.session
        session.channel.send(START_INST)
        protocol.write_vars(session.channel, self.state.config)
        self._install_reader(self._on_install_line, self._on_install_closed)

    def _on_install_line(self, line: str) -> None:
        logger.info("install: %s", line)
        self.transcript.append(line)
        self.view.append_log(line)

    def _on_install_closed(self) -> None:
        self._reader = None
        self.supervisor.terminate()
        self._enter(WizardStage(Stage.TERMINATED, reason=TerminationReason.COMPLETED))
        self.view.install_finished()

    # -- Termination --

    def abort(self) -> None:
        """Explicit user abort, valid in any stage."""
        if self.terminated:
            return
        self._remove_reader()
        self.supervisor.terminate()
        self._enter(WizardStage(Stage.TERMINATED, reason=TerminationReason.ABORTED))
        self.view.quit(0)

    def _fail(self, error: BackendError) -> None:
        if self.terminated:
            # The session already ended; keep its reason and exit status
            logger.debug("Ignoring %s after termination", error)
            return
        self._remove_reader()
        if isinstance(error, BackendClosedError):
            self._log_exit(str(error))
        else:
            self._err_exit(error)

    def _err_exit(self, error: BackendError) -> None:
        logger.error("%s", error)
        message = str(error)
        context = self.log[-ERROR_CONTEXT_LINES:]
        if context:
            message += "\n\n" + "\n".join(context)
        self.supervisor.terminate()
        self._enter(WizardStage(Stage.TERMINATED, reason=TerminationReason.FAILED))
        self.view.show_error(message)
        self.view.quit(1)

    def _log_exit(self, message: str | None = None, reason=TerminationReason.FAILED) -> None:
        lines = list(self.log)
        if message:
            logger.error("%s", message)
            # Nothing logged means nothing worth showing
            if lines:
                lines.append(message)
        self.supervisor.terminate()
        self._enter(WizardStage(Stage.TERMINATED, reason=reason))
        status = 1 if reason is TerminationReason.FAILED else 0
        if not lines:
            self.view.quit(status)
        elif len(lines) < SHORT_LOG_LINES:
            self.view.show_message("\n".join(lines))
            self.view.quit(status)
        else:
            # The log page's close button quits
            self.view.show_log(lines, abortable=False)

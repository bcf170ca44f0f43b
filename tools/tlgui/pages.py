"""Wizard pages and dialogs for the installer frontend."""

from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QApplication,
    QCheckBox,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from .repository import mirror_list
from .resources import (
    OPTION_LABELS,
    PATH_KEYS,
    TEXT_CANNOT_WRITE,
    TEXT_INSTALL_DONE,
    TEXT_LOADING,
    TEXT_NONEMPTY_DIR,
    TEXT_OWN_PLATFORM,
    TEXT_REALLY_ABORT,
    TEXT_TITLE,
)
from .state import InstallerState
from .wizard import MenuTier, Wizard, editable_keys


# ---------------------------------------------------------------------------
# Helper widgets
# ---------------------------------------------------------------------------


def _page_title(text: str) -> QLabel:
    lbl = QLabel(text)
    lbl.setObjectName("pageTitle")
    font = QFont()
    font.setPointSize(18)
    font.setBold(True)
    lbl.setFont(font)
    return lbl


def _info_label(text: str) -> QLabel:
    lbl = QLabel(text)
    lbl.setWordWrap(True)
    lbl.setTextInteractionFlags(Qt.TextSelectableByMouse)
    return lbl


def _section_label(text: str) -> QLabel:
    lbl = QLabel(text)
    font = QFont()
    font.setBold(True)
    lbl.setFont(font)
    lbl.setContentsMargins(0, 8, 0, 2)
    return lbl


def _is_nonempty_dir(path: str) -> bool:
    p = Path(path).expanduser()
    return p.is_dir() and any(p.iterdir())


class ButtonBar(QWidget):
    """Row of buttons: left-aligned group, stretch, right-aligned group."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._layout = QHBoxLayout(self)
        self._layout.setContentsMargins(0, 8, 0, 0)
        self._stretch_added = False

    def add_left(self, text: str, slot) -> QPushButton:
        btn = QPushButton(text)
        btn.clicked.connect(slot)
        self._layout.insertWidget(0, btn)
        return btn

    def add_right(self, text: str, slot, primary: bool = False) -> QPushButton:
        if not self._stretch_added:
            self._layout.addStretch()
            self._stretch_added = True
        btn = QPushButton(text)
        if primary:
            btn.setObjectName("primaryButton")
            btn.setDefault(True)
        btn.clicked.connect(slot)
        self._layout.addWidget(btn)
        return btn


# ---------------------------------------------------------------------------
# Loading / mirror selection
# ---------------------------------------------------------------------------


class LoadingPage(QWidget):
    """Splash shown while the backend contacts a repository.

    In selection mode the mirror choice continues the start-up; otherwise
    choosing a mirror restarts the backend with it.
    """

    def __init__(self, wizard: Wizard, instroot: str | None = None, parent=None):
        super().__init__(parent)
        self.wizard = wizard
        self._selecting = False

        layout = QVBoxLayout(self)
        layout.setAlignment(Qt.AlignCenter)
        layout.addWidget(_page_title(TEXT_TITLE), alignment=Qt.AlignCenter)

        self._status = _info_label("")
        self._status.setAlignment(Qt.AlignCenter)
        layout.addWidget(self._status)
        layout.addStretch()

        row = QHBoxLayout()
        self._mirrors = QComboBox()
        for label, location in mirror_list(instroot):
            self._mirrors.addItem(label, location)
        row.addWidget(self._mirrors, stretch=1)
        self._use_btn = QPushButton("Load repository")
        self._use_btn.clicked.connect(self._on_use_mirror)
        row.addWidget(self._use_btn)
        abort_btn = QPushButton("Abort")
        abort_btn.clicked.connect(self._on_abort)
        row.addWidget(abort_btn)
        layout.addLayout(row)

    def set_loading(self, location: str) -> None:
        self._selecting = False
        self._use_btn.setText("Load repository")
        self._status.setText(TEXT_LOADING.format(location=location))

    def set_selecting(self) -> None:
        self._selecting = True
        self._use_btn.setText("Continue")
        self._status.setText("Choose a repository to install from.")

    def _on_use_mirror(self) -> None:
        location = self._mirrors.currentData()
        if self._selecting:
            self.wizard.mirror_selected(location)
        else:
            self.wizard.restart_with_repository(location)

    def _on_abort(self) -> None:
        if confirm_abort(self):
            self.wizard.abort()


def confirm_abort(parent: QWidget) -> bool:
    ans = QMessageBox.question(
        parent, TEXT_TITLE, TEXT_REALLY_ABORT,
        QMessageBox.Yes | QMessageBox.No, QMessageBox.No,
    )
    return ans == QMessageBox.Yes


# ---------------------------------------------------------------------------
# Selection dialogs
# ---------------------------------------------------------------------------


class SchemeDialog(QDialog):
    def __init__(self, state: InstallerState, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Schemes")
        layout = QVBoxLayout(self)

        self._list = QListWidget()
        current = state.config.get("selected_scheme")
        for scheme in state.schemes_order:
            item = QListWidgetItem(state.scheme_descs.get(scheme, scheme))
            item.setData(Qt.UserRole, scheme)
            self._list.addItem(item)
            if scheme == current:
                self._list.setCurrentItem(item)
        layout.addWidget(self._list)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def selected(self) -> str | None:
        item = self._list.currentItem()
        return item.data(Qt.UserRole) if item else None


class CheckListDialog(QDialog):
    """Checkable list of ids with descriptions, plus select all/none."""

    def __init__(self, title: str, descs: dict[str, str], checked: set[str],
                 locked: str | None = None, parent=None):
        super().__init__(parent)
        self.setWindowTitle(title)
        self.resize(520, 560)
        self._locked = locked
        layout = QVBoxLayout(self)

        self._list = QListWidget()
        for ident in sorted(descs, key=lambda k: descs[k].lower()):
            item = QListWidgetItem(descs[ident])
            item.setData(Qt.UserRole, ident)
            item.setFlags(item.flags() | Qt.ItemIsUserCheckable)
            item.setCheckState(Qt.Checked if ident in checked else Qt.Unchecked)
            self._list.addItem(item)
        self._list.itemChanged.connect(self._on_item_changed)
        layout.addWidget(self._list)

        bar = ButtonBar()
        bar.add_left("None", lambda: self._set_all(False))
        bar.add_left("All", lambda: self._set_all(True))
        layout.addWidget(bar)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _items(self):
        for i in range(self._list.count()):
            yield self._list.item(i)

    def _set_all(self, on: bool) -> None:
        for item in self._items():
            if item.data(Qt.UserRole) != self._locked:
                item.setCheckState(Qt.Checked if on else Qt.Unchecked)

    def _on_item_changed(self, item: QListWidgetItem) -> None:
        if item.data(Qt.UserRole) == self._locked and item.checkState() != Qt.Checked:
            item.setCheckState(Qt.Checked)
            QMessageBox.information(self, self.windowTitle(), TEXT_OWN_PLATFORM)

    def selection(self) -> dict[str, bool]:
        return {
            item.data(Qt.UserRole): item.checkState() == Qt.Checked
            for item in self._items()
        }


class TexdirDialog(QDialog):
    """Edit the installation root; the backend vets every candidate."""

    def __init__(self, wizard: Wizard, parent=None):
        super().__init__(parent)
        self.wizard = wizard
        self.setWindowTitle(OPTION_LABELS["TEXDIR"])
        self.resize(560, 0)
        layout = QVBoxLayout(self)

        row = QHBoxLayout()
        self._edit = QLineEdit(wizard.state.config.get("TEXDIR", ""))
        self._edit.editingFinished.connect(self._check)
        row.addWidget(self._edit, stretch=1)
        browse = QPushButton("Browse...")
        browse.clicked.connect(self._browse)
        row.addWidget(browse)
        layout.addLayout(row)

        self._status = _info_label("")
        layout.addWidget(self._status)

        self._buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        self._buttons.accepted.connect(self._commit)
        self._buttons.rejected.connect(self.reject)
        layout.addWidget(self._buttons)
        self._check()

    def path(self) -> str:
        return self._edit.text().strip()

    def _browse(self) -> None:
        chosen = QFileDialog.getExistingDirectory(self, OPTION_LABELS["TEXDIR"], self.path())
        if chosen:
            self._edit.setText(chosen)
            self._check()

    def _check(self) -> None:
        ok = bool(self.path()) and bool(self.wizard.check_dir(self.path()))
        self._status.setText("" if ok else TEXT_CANNOT_WRITE)
        self._status.setStyleSheet("" if ok else "color: #c0392b;")
        self._buttons.button(QDialogButtonBox.Ok).setEnabled(ok)

    def _commit(self) -> None:
        if _is_nonempty_dir(self.path()):
            ans = QMessageBox.warning(
                self, TEXT_TITLE, TEXT_NONEMPTY_DIR.format(path=self.path()),
                QMessageBox.Yes | QMessageBox.No, QMessageBox.No,
            )
            if ans != QMessageBox.Yes:
                return
        self.accept()


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------


class MenuPage(QWidget):
    """Configuration menu; the tier decides which options are shown."""

    def __init__(self, wizard: Wizard, parent=None):
        super().__init__(parent)
        self.wizard = wizard
        self._value_labels: dict[str, QLabel] = {}
        self._checkboxes: dict[str, QCheckBox] = {}
        self._stats: dict[str, QLabel] = {}
        self._outer = QVBoxLayout(self)
        self._body: QWidget | None = None

    def rebuild(self, tier: MenuTier) -> None:
        if self._body is not None:
            self._outer.removeWidget(self._body)
            self._body.deleteLater()
        self._value_labels.clear()
        self._checkboxes.clear()
        self._stats.clear()

        state = self.wizard.state
        keys = editable_keys(tier)
        self._body = QWidget()
        layout = QVBoxLayout(self._body)

        layout.addWidget(_page_title(f"{TEXT_TITLE} {state.release_year}"))
        layout.addWidget(_info_label(f"r. {state.revision}"))

        layout.addWidget(_section_label("Installation folders"))
        grid = QGridLayout()
        row = 0
        for key in ("TEXDIR", "TEXMFLOCAL", "TEXMFHOME", "TEXMFSYSVAR",
                    "TEXMFSYSCONFIG", "TEXMFVAR", "TEXMFCONFIG"):
            if key not in keys or key not in state.config:
                continue
            grid.addWidget(QLabel(OPTION_LABELS[key]), row, 0)
            value = _info_label("")
            self._value_labels[key] = value
            grid.addWidget(value, row, 1)
            btn = QPushButton("Change")
            btn.clicked.connect(lambda _=False, k=key: self._edit_path(k))
            grid.addWidget(btn, row, 2)
            row += 1
        if tier >= MenuTier.ADVANCED and "instopt_portable" in state.config:
            cb = QCheckBox(OPTION_LABELS["instopt_portable"])
            cb.clicked.connect(lambda _=False: self.wizard.toggle_portable())
            self._checkboxes["instopt_portable"] = cb
            grid.addWidget(cb, row, 0, 1, 3)
        layout.addLayout(grid)

        if tier >= MenuTier.ADVANCED:
            layout.addWidget(_section_label("Selections"))
            sel = QGridLayout()
            for i, (name, title, slot) in enumerate((
                ("scheme", "Selected scheme", self._choose_scheme),
                ("extra_platforms", "Additional platforms", self._choose_binaries),
                ("collections", "Collections", self._choose_collections),
            )):
                sel.addWidget(QLabel(title), i, 0)
                self._stats[name] = QLabel()
                sel.addWidget(self._stats[name], i, 1)
                btn = QPushButton("Change")
                btn.clicked.connect(slot)
                sel.addWidget(btn, i, 2)
            layout.addLayout(sel)

        layout.addWidget(_section_label("Options"))
        for key, label in OPTION_LABELS.items():
            if key in PATH_KEYS or key == "instopt_portable":
                continue
            if key not in keys or key not in state.config:
                continue
            cb = QCheckBox(label)
            cb.clicked.connect(lambda checked, k=key: self.wizard.set_option(k, checked))
            self._checkboxes[key] = cb
            layout.addWidget(cb)

        size_row = QHBoxLayout()
        size_row.addWidget(QLabel("Disk space required (MB):"))
        self._stats["total_size"] = QLabel()
        size_row.addWidget(self._stats["total_size"])
        if state.config.number("free_size", -1) >= 0:
            size_row.addWidget(QLabel("Available:"))
            self._stats["free_size"] = QLabel()
            size_row.addWidget(self._stats["free_size"])
        size_row.addStretch()
        layout.addLayout(size_row)
        layout.addStretch()

        line = QFrame()
        line.setFrameShape(QFrame.HLine)
        layout.addWidget(line)
        bar = ButtonBar()
        if tier == MenuTier.BASIC:
            bar.add_left("Advanced", self.wizard.escalate)
        elif tier == MenuTier.ADVANCED:
            bar.add_left("Customize all trees", self.wizard.escalate)
        bar.add_right("Quit", self.wizard.quit_menu)
        bar.add_right("Install", self.wizard.request_install, primary=True)
        layout.addWidget(bar)

        self._outer.addWidget(self._body)
        self.refresh()

    def refresh(self) -> None:
        state = self.wizard.state
        cfg = state.config
        for key, lbl in self._value_labels.items():
            lbl.setText(cfg.get(key, ""))
        portable = cfg.flag("instopt_portable")
        for key, cb in self._checkboxes.items():
            cb.setChecked(cfg.flag(key))
            if key == "instopt_adjustpath":
                cb.setEnabled(not portable)
        stats = state.stats()
        if "scheme" in self._stats:
            self._stats["scheme"].setText(stats["scheme"])
            extra = stats["extra_platforms"]
            self._stats["extra_platforms"].setText(str(extra) if extra else "None")
            self._stats["collections"].setText(
                f"{stats['collections_selected']} / {stats['collections_available']}"
            )
        self._stats["total_size"].setText(stats["total_size"])
        if "free_size" in self._stats:
            self._stats["free_size"].setText(stats["free_size"])

    def _edit_path(self, key: str) -> None:
        if key == "TEXDIR":
            dlg = TexdirDialog(self.wizard, self)
            if dlg.exec() == QDialog.Accepted:
                self.wizard.commit_texdir(dlg.path())
            return
        value, ok = QInputDialog.getText(
            self, OPTION_LABELS[key], OPTION_LABELS[key],
            QLineEdit.Normal, self.wizard.state.config.get(key, ""),
        )
        if ok and value.strip():
            self.wizard.set_option(key, value.strip().replace("\\", "/"))

    def _choose_scheme(self) -> None:
        dlg = SchemeDialog(self.wizard.state, self)
        if dlg.exec() == QDialog.Accepted and dlg.selected():
            self.wizard.select_scheme(dlg.selected())

    def _choose_binaries(self) -> None:
        state = self.wizard.state
        dlg = CheckListDialog(
            "Binaries", state.binary_descs, set(state.selected_binaries()),
            locked=state.config.get("this_platform"), parent=self,
        )
        if dlg.exec() == QDialog.Accepted:
            self.wizard.set_binaries([p for p, on in dlg.selection().items() if on])

    def _choose_collections(self) -> None:
        state = self.wizard.state
        dlg = CheckListDialog(
            "Collections", state.collection_descs, set(state.selected_collections()),
            parent=self,
        )
        if dlg.exec() == QDialog.Accepted:
            self.wizard.set_collections(dlg.selection())


# ---------------------------------------------------------------------------
# Log
# ---------------------------------------------------------------------------


class LogPage(QWidget):
    """Scrolling transcript; also used to show a long log before exiting."""

    def __init__(self, wizard: Wizard, parent=None):
        super().__init__(parent)
        self.wizard = wizard
        layout = QVBoxLayout(self)

        self._view = QPlainTextEdit()
        self._view.setReadOnly(True)
        layout.addWidget(self._view, stretch=1)

        self._status = _info_label("")
        layout.addWidget(self._status)

        bar = ButtonBar()
        self._abort_btn = bar.add_right("Abort", self._on_abort)
        self._close_btn = bar.add_right("Close", self._on_close, primary=True)
        layout.addWidget(bar)

    def reset(self, lines: list[str], abortable: bool) -> None:
        self._view.setPlainText("\n".join(lines))
        self._scroll_to_end()
        self._status.setText("")
        self._abort_btn.setVisible(abortable)
        self._abort_btn.setEnabled(abortable)
        self._close_btn.setEnabled(not abortable)

    def append(self, line: str) -> None:
        self._view.appendPlainText(line)
        self._scroll_to_end()

    def finished(self) -> None:
        self._status.setText(TEXT_INSTALL_DONE)
        self._close_btn.setEnabled(True)
        self._abort_btn.setEnabled(False)

    def _scroll_to_end(self) -> None:
        sb = self._view.verticalScrollBar()
        sb.setValue(sb.maximum())

    def _on_abort(self) -> None:
        if confirm_abort(self):
            self.wizard.abort()

    def _on_close(self) -> None:
        QApplication.exit(self.wizard.exit_status)


# ---------------------------------------------------------------------------
# Main window
# ---------------------------------------------------------------------------


class InstallerWindow(QWidget):
    """Top-level window; implements the wizard's view protocol."""

    def __init__(self, wizard_factory, instroot: str | None = None):
        super().__init__()
        self.setWindowTitle(TEXT_TITLE)
        self.resize(760, 620)
        self.wizard: Wizard = wizard_factory(self)

        root = QVBoxLayout(self)
        self._stack = QStackedWidget()
        self._loading = LoadingPage(self.wizard, instroot)
        self._menu = MenuPage(self.wizard)
        self._log = LogPage(self.wizard)
        for page in (self._loading, self._menu, self._log):
            self._stack.addWidget(page)
        root.addWidget(self._stack)

    def closeEvent(self, event) -> None:
        if self.wizard.terminated:
            event.accept()
        elif confirm_abort(self):
            self.wizard.abort()
            event.accept()
        else:
            event.ignore()

    # -- WizardView --

    def select_mirror(self) -> None:
        self._loading.set_selecting()
        self._stack.setCurrentWidget(self._loading)

    def show_loading(self, location: str) -> None:
        self._loading.set_loading(location)
        self._stack.setCurrentWidget(self._loading)
        QApplication.processEvents()

    def show_menu(self, tier: MenuTier) -> None:
        self._menu.rebuild(tier)
        self._stack.setCurrentWidget(self._menu)

    def config_changed(self) -> None:
        self._menu.refresh()

    def ask_yes_no(self, message: str) -> bool:
        ans = QMessageBox.question(self, TEXT_TITLE, message, QMessageBox.Yes | QMessageBox.No)
        return ans == QMessageBox.Yes

    def show_message(self, message: str) -> None:
        QMessageBox.information(self, TEXT_TITLE, message)

    def show_error(self, message: str) -> None:
        QMessageBox.critical(self, TEXT_TITLE, message)

    def show_log(self, lines: list[str], abortable: bool) -> None:
        self._log.reset(lines, abortable)
        self._stack.setCurrentWidget(self._log)

    def append_log(self, line: str) -> None:
        self._log.append(line)

    def install_finished(self) -> None:
        self._log.finished()

    def quit(self, status: int = 0) -> None:
        QApplication.exit(status)

"""Installer frontend application entry point."""

import logging
import os
import sys

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QApplication, QMessageBox

from .backend import BackendSupervisor
from .channel import QtEventLoop
from .errors import RepositoryArgumentError
from .logging_utils import configure_logging
from .pages import InstallerWindow
from .repository import parse_arguments
from .resources import TEXT_TITLE
from .wizard import Wizard

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    configure_logging(level=logging.DEBUG if os.environ.get("TLGUI_DEBUG") else logging.INFO)
    args = sys.argv[1:] if argv is None else argv

    app = QApplication(sys.argv[:1])
    app.setApplicationName(TEXT_TITLE)

    try:
        opts = parse_arguments(args)
    except RepositoryArgumentError as e:
        logger.error("%s", e)
        QMessageBox.critical(None, TEXT_TITLE, str(e))
        return 1

    supervisor = BackendSupervisor()
    loop = QtEventLoop()
    instroot = os.environ.get("TLGUI_INSTROOT", os.getcwd())

    def make_wizard(view):
        return Wizard(
            supervisor,
            view,
            loop,
            opts.backend_args,
            select_repository=opts.select_repository,
            location=opts.location,
        )

    window = InstallerWindow(make_wizard, instroot=instroot)
    window.show()
    # Start inside the event loop so an early exit reaches a running loop
    QTimer.singleShot(0, window.wizard.start)

    try:
        status = app.exec()
    finally:
        supervisor.terminate()
    return status


if __name__ == "__main__":
    sys.exit(main())

"""Command-line handling for repositories and the mirror list."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from .errors import RepositoryArgumentError
from .resources import (
    GUI_OPTION,
    MIRRORS,
    REPOSITORY_OPTIONS,
    SELECT_REPOSITORY_OPTION,
)

logger = logging.getLogger(__name__)


@dataclass
class LaunchOptions:
    """Parsed command line: what the frontend consumes, what it forwards."""

    backend_args: list[str] = field(default_factory=list)
    select_repository: bool = False
    location: str = "..."


def normalize_args(argv: list[str]) -> list[str]:
    """'--opt' becomes '-opt' and '-opt=value' becomes '-opt', 'value'."""
    out: list[str] = []
    for arg in argv:
        if arg.startswith("--") and len(arg) > 2:
            arg = arg[1:]
        if arg.startswith("-") and "=" in arg:
            opt, _, value = arg.partition("=")
            out.extend([opt, value])
        else:
            out.append(arg)
    return out


def possible_repository(location: str) -> bool:
    if location == "ctan":
        return True
    parsed = urlparse(location)
    if parsed.scheme in ("http", "https", "ftp"):
        return bool(parsed.netloc)
    if parsed.scheme == "file":
        return Path(parsed.path).is_dir()
    return Path(location).is_dir()


def parse_arguments(argv: list[str]) -> LaunchOptions:
    """Split frontend options from backend ones and validate repositories.

    Raises RepositoryArgumentError before anything is spawned.
    """
    args = normalize_args(argv)
    opts = LaunchOptions()
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == SELECT_REPOSITORY_OPTION:
            opts.select_repository = True
        elif arg == GUI_OPTION:
            if i + 1 < len(args) and not args[i + 1].startswith("-"):
                i += 1
        elif arg in REPOSITORY_OPTIONS:
            if i + 1 >= len(args):
                raise RepositoryArgumentError(f"{arg} requires an argument")
            location = args[i + 1]
            if not possible_repository(location):
                raise RepositoryArgumentError(
                    f"{location} not a local or remote repository"
                )
            opts.location = location
            opts.backend_args.extend([arg, location])
            i += 1
        else:
            opts.backend_args.append(arg)
        i += 1
    return opts


def replace_repository(args: list[str], location: str) -> list[str]:
    """Drop any repository option and append ``-repository location``."""
    out: list[str] = []
    i = 0
    while i < len(args):
        if args[i] in REPOSITORY_OPTIONS:
            i += 2
            continue
        out.append(args[i])
        i += 1
    out.extend(["-repository", location])
    return out


def has_local_repository(instroot: str) -> bool:
    root = Path(instroot)
    return (root / "archive").is_dir() or (
        root / "texmf-dist" / "web2c" / "texmf.cnf"
    ).is_file()


def mirror_list(instroot: str | None = None) -> list[tuple[str, str]]:
    """(label, location) pairs, a local repository first if there is one."""
    mirrors = list(MIRRORS)
    if instroot and has_local_repository(instroot):
        mirrors.insert(0, (f"{instroot} (Local repository)", instroot))
    return mirrors

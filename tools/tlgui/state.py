"""Configuration state shared between the wizard and its pages."""

import posixpath
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping

from .resources import SCHEME_CUSTOM


def forward_slashify(path: str) -> str:
    return path.replace("\\", "/")


def _number(value: str | None, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


class ConfigTable:
    """Option name to string value, as exchanged with the backend.

    Every mutation goes through a method here; pages never poke at the
    underlying dict.
    """

    def __init__(self, values: Mapping[str, str] | None = None):
        self._values: dict[str, str] = {}
        if values:
            self.replace(values)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ConfigTable):
            return self._values == other._values
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"ConfigTable({self._values!r})"

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def items(self):
        return self._values.items()

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    def flag(self, key: str) -> bool:
        return _number(self._values.get(key), 0) != 0

    def number(self, key: str, default: float = 0) -> float:
        return _number(self._values.get(key), default)

    # -- Mutation --

    def set(self, key: str, value) -> None:
        if isinstance(value, bool):
            value = int(value)
        self._values[key] = str(value)

    def replace(self, values: Mapping[str, str]) -> None:
        self._values = {k: str(v) for k, v in values.items()}

    def ensure_scheme(self, schemes_order: list[str]) -> None:
        """Make `selected_scheme` a member of `schemes_order`."""
        if not schemes_order:
            return
        if self._values.get("selected_scheme") not in schemes_order:
            self._values["selected_scheme"] = schemes_order[0]

    def select_scheme(self, scheme: str) -> None:
        self._values["selected_scheme"] = scheme
        for key in self._values:
            if key.startswith("scheme-"):
                self._values[key] = "1" if key == scheme else "0"

    def set_collections(self, selection: Mapping[str, bool]) -> None:
        for coll, selected in selection.items():
            self.set(coll, selected)
        self._values["selected_scheme"] = SCHEME_CUSTOM

    def set_binaries(self, selected: Iterable[str], platforms: Iterable[str]) -> None:
        chosen = set(selected)
        own = self._values.get("this_platform")
        if own:
            chosen.add(own)
        count = 0
        for platform in platforms:
            on = platform in chosen
            count += on
            self.set(f"binary_{platform}", on)
            if platform == "win32":
                self.set("collection-wintools", on)
        self.set("n_systems_selected", count)

    def commit_canonical_local(self, release_year: str) -> None:
        """Keep TEXMFLOCAL beside the root, one level above a year component."""
        texdir = forward_slashify(self._values.get("TEXDIR", ""))
        if posixpath.basename(texdir) == release_year:
            base = posixpath.dirname(texdir)
        else:
            base = texdir
        local = forward_slashify(self._values.get("TEXMFLOCAL", ""))
        if base != posixpath.dirname(local):
            self._values["TEXMFLOCAL"] = posixpath.join(base, "texmf-local")

    def commit_texdir(self, path: str, release_year: str) -> None:
        texdir = forward_slashify(path).rstrip("/") or "/"
        self._values["TEXDIR"] = texdir
        self._values["TEXMFSYSVAR"] = f"{texdir}/texmf-var"
        self._values["TEXMFSYSCONFIG"] = f"{texdir}/texmf-config"
        self.commit_canonical_local(release_year)
        if self.flag("instopt_portable"):
            self._mirror_user_trees()

    def set_portable(self, portable: bool, release_year: str, windows: bool = False) -> None:
        self.set("instopt_portable", portable)
        self.commit_canonical_local(release_year)
        if portable:
            self._mirror_user_trees()
            self.set("instopt_adjustpath", 0)
            if windows:
                self.set("tlpdbopt_desktop_integration", 0)
                self.set("tlpdbopt_file_assocs", 0)
                self.set("tlpdbopt_w32_multi_user", 0)
        else:
            self._values["TEXMFHOME"] = "~/texmf"
            self._values["TEXMFVAR"] = f"~/.texlive{release_year}/texmf-var"
            self._values["TEXMFCONFIG"] = f"~/.texlive{release_year}/texmf-config"
            if windows:
                self.set("instopt_adjustpath", 1)
                self.set("tlpdbopt_desktop_integration", 1)
                self.set("tlpdbopt_file_assocs", 1)
                self.set("tlpdbopt_w32_multi_user", 1)

    def _mirror_user_trees(self) -> None:
        v = self._values
        v["TEXMFHOME"] = v.get("TEXMFLOCAL", "")
        v["TEXMFVAR"] = v.get("TEXMFSYSVAR", "")
        v["TEXMFCONFIG"] = v.get("TEXMFSYSCONFIG", "")

    # -- Checks --

    def install_blocked(self, margin: float) -> bool:
        """True when the computed size does not fit into known free space."""
        free = self.number("free_size", -1)
        if free < 0:
            return False
        return self.number("total_size", 0) >= free - margin


@dataclass
class InstallerState:
    """Everything the bootstrap handshake produced."""

    config: ConfigTable = field(default_factory=ConfigTable)
    release_year: str = ""
    revision: str = ""
    is_admin: bool = False
    collection_descs: dict[str, str] = field(default_factory=dict)
    scheme_descs: dict[str, str] = field(default_factory=dict)
    binary_descs: dict[str, str] = field(default_factory=dict)
    schemes_order: list[str] = field(default_factory=list)

    def selected_binaries(self) -> list[str]:
        return [p for p in self.binary_descs if self.config.flag(f"binary_{p}")]

    def selected_collections(self) -> list[str]:
        return [c for c in self.collection_descs if self.config.flag(c)]

    def stats(self) -> dict:
        cfg = self.config
        systems = int(cfg.number("n_systems_selected", 0))
        scheme = cfg.get("selected_scheme", "")
        return {
            "extra_platforms": max(systems - 1, 0),
            "collections_selected": int(cfg.number("n_collections_selected", 0)),
            "collections_available": int(cfg.number("n_collections_available", 0)),
            "scheme": self.scheme_descs.get(scheme, scheme),
            "total_size": cfg.get("total_size", "0"),
            "free_size": cfg.get("free_size", "-1"),
        }

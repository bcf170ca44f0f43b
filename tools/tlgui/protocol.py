"""Structured exchanges with the backend.

The backend talks in newline-terminated lines. Configuration travels in
blocks framed by a start and an end token, each interior line being
``key: value``. The handshake after ``menudata`` has a fixed order and any
deviation from it is fatal; nothing here tries to resynchronise.
"""

import logging
import re
import sys
from typing import Callable, Mapping

from .backend import Session
from .channel import BlockingReader, Channel
from .errors import ProtocolError
from .resources import (
    BINARIES,
    CALC,
    CHECK_DIR,
    DESCS,
    END_BINARIES,
    END_DESCS,
    END_MENU_DATA,
    END_MESS,
    END_VARS,
    MESS_YESNO,
    SCHEME_CUSTOM,
    SCHEME_CUSTOM_DESC,
    VARS,
)
from .state import ConfigTable, InstallerState, forward_slashify

logger = logging.getLogger(__name__)

KEY_VALUE_RE = re.compile(r"^([^:]+): (.*)$")
DESC_RE = re.compile(r"^([^:]+): (\S+) (.*)$")
YEAR_RE = re.compile(r"^year: (\S+)$")
# Older backends announce the revision as "svn:"
REVISION_RE = re.compile(r"^(?:revision|svn): (\S+)$")
ADMIN_RE = re.compile(r"^admin: ([01])$")
SCHEMES_ORDER_RE = re.compile(r"^schemes_order: (.*)$")
LOCATION_RE = re.compile(r"^location: (.+)$")


def match_location(line: str) -> str | None:
    m = LOCATION_RE.match(line)
    return m.group(1) if m else None


def expect(reader: BlockingReader, token: str) -> None:
    line = reader.read_line_no_eof()
    if line != token:
        raise ProtocolError(f"'{token}' expected but {line} found", line)


def _expect_match(reader: BlockingReader, pattern: re.Pattern, what: str) -> re.Match:
    line = reader.read_line_no_eof()
    m = pattern.match(line)
    if m is None:
        raise ProtocolError(f"{what} expected but {line} found", line)
    return m


def read_block(reader: BlockingReader, start: str, end: str) -> dict[str, str]:
    """Read a ``start`` ... ``end`` block of ``key: value`` lines."""
    expect(reader, start)
    return _read_block_body(reader, start, end)


def _read_block_body(reader: BlockingReader, start: str, end: str) -> dict[str, str]:
    values: dict[str, str] = {}
    while True:
        line = reader.read_line_no_eof()
        if line == end:
            return values
        m = KEY_VALUE_RE.match(line)
        if m is None:
            raise ProtocolError(f"Illegal line {line} in {start} section", line)
        values[m.group(1)] = m.group(2)


def read_descs(reader: BlockingReader) -> tuple[dict[str, str], dict[str, str]]:
    """Collection and scheme descriptions, in that order."""
    expect(reader, DESCS)
    collections: dict[str, str] = {}
    schemes: dict[str, str] = {}
    while True:
        line = reader.read_line_no_eof()
        if line == END_DESCS:
            break
        m = DESC_RE.match(line)
        if m is None:
            raise ProtocolError(f"Illegal line {line} in descs section", line)
        ident, kind, desc = m.groups()
        if kind == "Collection":
            collections[ident] = desc
        elif kind == "Scheme":
            schemes[ident] = desc
    schemes[SCHEME_CUSTOM] = SCHEME_CUSTOM_DESC
    return collections, schemes


def read_vars(reader: BlockingReader) -> dict[str, str]:
    return _vars_defaults(read_block(reader, VARS, END_VARS))


def _vars_defaults(values: dict[str, str]) -> dict[str, str]:
    values.setdefault("total_size", "0")
    return values


def encode_vars(table: Mapping[str, str] | ConfigTable) -> list[str]:
    return [VARS] + [f"{k}: {v}" for k, v in table.items()] + [END_VARS]


def decode_vars(lines: list[str]) -> dict[str, str]:
    """Parse a complete vars block given as a list of lines."""
    if not lines or lines[0] != VARS or lines[-1] != END_VARS:
        raise ProtocolError("Incomplete vars block")
    values: dict[str, str] = {}
    for line in lines[1:-1]:
        m = KEY_VALUE_RE.match(line)
        if m is None:
            raise ProtocolError(f"Illegal line {line} in vars section", line)
        values[m.group(1)] = m.group(2)
    return values


def write_vars(channel: Channel, table: ConfigTable) -> None:
    channel.send_lines(encode_vars(table))


def read_menu_data(reader: BlockingReader, expect_admin: bool | None = None) -> InstallerState:
    """Parse the handshake that follows a ``menudata`` line."""
    if expect_admin is None:
        expect_admin = sys.platform == "win32"
    state = InstallerState()

    state.release_year = _expect_match(reader, YEAR_RE, "year").group(1)
    state.revision = _expect_match(reader, REVISION_RE, "revision").group(1)
    if expect_admin:
        state.is_admin = _expect_match(reader, ADMIN_RE, "admin: [0|1]").group(1) == "1"

    state.collection_descs, state.scheme_descs = read_descs(reader)
    state.config = ConfigTable(read_vars(reader))

    order = _expect_match(reader, SCHEMES_ORDER_RE, "schemes_order").group(1)
    state.schemes_order = order.split()
    if not state.schemes_order:
        raise ProtocolError("schemes_order is empty", order)
    state.config.ensure_scheme(state.schemes_order)

    state.binary_descs = read_block(reader, BINARIES, END_BINARIES)
    expect(reader, END_MENU_DATA)

    logger.info(
        "Menu data: release %s r%s, %d vars, %d schemes, %d platforms",
        state.release_year,
        state.revision,
        len(state.config),
        len(state.schemes_order),
        len(state.binary_descs),
    )
    return state


def recompute(session: Session, table: ConfigTable, ask: Callable[[str], bool]) -> ConfigTable:
    """Send the table for recalculation and replace it with the answer."""
    session.channel.send(CALC)
    write_vars(session.channel, table)
    line = read_reply(session, ask)
    if line != VARS:
        raise ProtocolError(f"'{VARS}' expected but {line} found", line)
    table.replace(_vars_defaults(_read_block_body(session.reader, VARS, END_VARS)))
    logger.debug("Recomputed vars: total_size=%s", table.get("total_size"))
    return table


def check_dir(session: Session, path: str, ask: Callable[[str], bool]) -> bool:
    """Ask the backend whether `path` can be created or written to."""
    session.channel.send_lines([CHECK_DIR, forward_slashify(path)])
    return read_reply(session, ask) != "0"


def read_reply(session: Session, ask: Callable[[str], bool]) -> str:
    """First line of a round-trip reply, answering confirmations before it."""
    while True:
        line = session.reader.read_line_no_eof()
        if line != MESS_YESNO:
            return line
        answer_yes_no(session, ask)


def answer_yes_no(session: Session, ask: Callable[[str], bool]) -> bool:
    """Finish a ``mess_yesno`` exchange: read the body, ask, reply."""
    body: list[str] = []
    while True:
        line = session.reader.read_line()
        if line is None:
            raise ProtocolError("Error while reading a question from the back end")
        if line == END_MESS:
            break
        body.append(line)
    answer = ask("\n".join(body))
    session.channel.send("y" if answer else "n")
    return answer

"""Lists of owners, permissions and dates for files on a 1st Edition disk.

A permissions file is free text up to a line starting with ``=``. After that
each line describes one file::

    [-xu][-r][-w][-r][-w] uid /full/path mtime

The first five characters give execute (``x``) or setuid (``u``), then owner
read and write, then other read and write. The path is taken without its
leading slash, and without a leading ``/usr/``. The timestamp is in sixtieths
of a second since the start of the year.
"""
from __future__ import annotations

import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

I_SETUID = 0o000040
I_EXEC = 0o000020
I_UREAD = 0o000010
I_UWRITE = 0o000004
I_OREAD = 0o000002
I_OWRITE = 0o000001

PERMLIST_SIZE = 500

_NUMBER = re.compile(r"[ \t\n\r\f\v]*([+-]?[0-9]+)")


@dataclass(frozen=True)
class FilePerm:
    """Owner, permission bits and modification time for one file."""

    name: str
    flags: int
    uid: int
    mtime: int


def _strtol(text: str) -> int:
    match = _NUMBER.match(text)
    return int(match.group(1)) if match else 0


def parse_perm_line(line: str) -> FilePerm | None:
    """Parse one permissions line, or return None if it is not one."""
    if not line or line[0] not in "-xu":
        return None
    flags = 0
    if line[0] == "x":
        flags |= I_EXEC
    if line[0] == "u":
        flags |= I_SETUID | I_EXEC
    for position, letter, bit in (
        (1, "r", I_UREAD),
        (2, "w", I_UWRITE),
        (3, "r", I_OREAD),
        (4, "w", I_OWRITE),
    ):
        if line[position:position + 1] == letter:
            flags |= bit
    uid = _strtol(line[5:]) & 0xFF

    slash = line.find("/")
    if slash < 0:
        return None
    space = line.find(" ", slash)
    if space < 0:
        return None
    path = line[slash:space]
    name = path[5:] if path.startswith("/usr/") else path[1:]
    mtime = _strtol(line[space + 1:]) & 0xFFFFFFFF
    return FilePerm(name=name, flags=flags, uid=uid, mtime=mtime)


def parse_permsfile(lines: Iterable[str]) -> list[FilePerm]:
    """Parse the lines of a permissions file, up to its limit of entries."""
    perms: list[FilePerm] = []
    started = False
    for line in lines:
        if not started:
            started = line.startswith("=")
            continue
        if len(perms) >= PERMLIST_SIZE:
            break
        perm = parse_perm_line(line)
        if perm is not None:
            perms.append(perm)
    return perms


def read_permsfile(path: str | os.PathLike[str] | None) -> list[FilePerm]:
    """Read a permissions file; a missing or unreadable file gives no entries."""
    if path is None:
        return []
    try:
        with open(path, encoding="latin-1") as handle:
            return parse_permsfile(handle)
    except OSError:
        return []


def find_perm(perms: Sequence[FilePerm], directory: str, name: str) -> FilePerm | None:
    """Return the entry for ``directory/name``, or None if there is none."""
    key = f"{directory}/{name}"
    return next((perm for perm in perms if perm.name == key), None)
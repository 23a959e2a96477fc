"""Turn a PDP-11 a.out file into a paper-tape style absolute load file.

The load file is a series of blocks. Each block is::

    001 000 count-lo count-hi origin-lo origin-hi data... checksum

where count includes the six header bytes and the checksum makes the byte
sum of the block zero modulo 256. A block whose count is exactly six is the
last one; it has no checksum and its origin is the start address.
"""
from __future__ import annotations

import os
import struct
import sys
from dataclasses import dataclass

HEADER_SIZE = 16
MAX_BLOCK_DATA = 65536
_HEADER_FORMAT = "<8H"
# Bytes to step back over for headers whose text starts inside the header.
_HEADER_BACKUP = {0o407: 0, 0o405: 12}


class LoadFileError(Exception):
    """Raised when an a.out file is too short to convert."""


@dataclass(frozen=True)
class LoaderHeader:
    """The eight 16-bit words of an a.out header."""

    magic: int
    text: int
    data: int
    bss: int
    syms: int
    entry: int
    unused: int
    flag: int


def parse_header(data: bytes) -> LoaderHeader:
    """Decode the 16-byte little-endian a.out header at the start of ``data``."""
    if len(data) < HEADER_SIZE:
        raise LoadFileError("a.out header is truncated")
    return LoaderHeader(*struct.unpack_from(_HEADER_FORMAT, data))


def _header(count: int, origin: int) -> bytes:
    total = count + 6
    return bytes(
        (1, 0, total & 0xFF, (total >> 8) & 0xFF, origin & 0xFF, (origin >> 8) & 0xFF)
    )


def data_block(data: bytes, origin: int = 0) -> bytes:
    """Return one checksummed block loading ``data`` at ``origin``.

    Data of 64K or more does not fit a block and yields nothing.
    """
    if len(data) >= MAX_BLOCK_DATA:
        return b""
    head = _header(len(data), origin)
    checksum = sum(head) + sum(data)
    return head + bytes(data) + bytes(((-checksum) & 0xFF,))


def end_block(origin: int) -> bytes:
    """Return the final block, which carries the start address."""
    return _header(0, origin)


def _sections(data: bytes) -> tuple[LoaderHeader, bytes, bytes]:
    header = parse_header(data)
    backup = _HEADER_BACKUP.get(header.magic, 0)
    start = HEADER_SIZE - backup
    text_size = (header.text + backup) & 0xFFFF
    text = data[start:start + text_size]
    if len(text) != text_size:
        raise LoadFileError("text segment is truncated")
    data_start = start + text_size
    initialised = data[data_start:data_start + header.data]
    if len(initialised) != header.data:
        raise LoadFileError("data segment is truncated")
    return header, text, initialised


def convert_aout(data: bytes, origin: int = 0) -> bytes:
    """Convert the bytes of an a.out file into load-file bytes."""
    _, text, initialised = _sections(data)
    return data_block(text, 0) + data_block(initialised, 0) + end_block(origin)


def convert_file(in_path: str | os.PathLike[str], out_path: str | os.PathLike[str]) -> None:
    """Convert the a.out at ``in_path`` into a load file at ``out_path``.

    The output file is created if needed and written from its start.
    """
    fd = os.open(out_path, os.O_WRONLY | os.O_CREAT, 0o666)
    with os.fdopen(fd, "wb") as out:
        with open(in_path, "rb") as src:
            raw = src.read()
        header = parse_header(raw)
        print(f"magic 0{header.magic:o}")
        print(
            f"text {header.text}, data {header.data}, "
            f"bss {header.bss}, syms {header.syms}"
        )
        print(f"entry {header.entry:o}, flag {header.flag:o}")
        _, text, initialised = _sections(raw)
        for section in (text, initialised):
            print(f"load: {len(section)} bytes")
            out.write(data_block(section, 0))
        out.write(end_block(0))


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point: ``[a.out [loadfile]]``."""
    args = list(sys.argv[1:] if argv is None else argv)
    filename = args[0] if args else "a.out"
    output = args[1] if len(args) > 1 else "loadfile"
    try:
        convert_file(filename, output)
    except OSError as exc:
        name = exc.filename if exc.filename is not None else filename
        print(f"{name}: {exc.strerror or exc}", file=sys.stderr)
        print(f"{filename}: failed?", file=sys.stderr)
    except LoadFileError:
        print(f"{filename}: failed?", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
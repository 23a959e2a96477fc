"""Symbol tables for the disassembler: instruction and data symbols.

Symbols are either inferred from branch, jump and reference targets while
disassembling, or loaded from the symbol table of an 0407 a.out file.
"""
from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

PDP_MEM_SIZE = 65536

ASYM_UNDEFINED = 0
ASYM_ABSOLUTE = 1
ASYM_TEXT = 2
ASYM_DATA = 3
ASYM_BSS = 4
ASYM_UNDEFEXT = 40
ASYM_ABSEXT = 41
ASYM_TEXTEXT = 42
ASYM_DATAEXT = 43
ASYM_BSSDEXT = 44

_DATA_TYPES = frozenset((ASYM_DATA, ASYM_BSS, ASYM_DATAEXT, ASYM_BSSDEXT))
_TEXT_TYPES = frozenset((ASYM_TEXT, ASYM_TEXTEXT))

_SYM0407 = struct.Struct("<8sHH")
SYM0407_SIZE = _SYM0407.size
_NAME_LIMIT = 11


class SymbolType(enum.IntEnum):
    """Kinds of symbol, in increasing order of precedence."""

    BRANCH = 0
    FUNCTION = 1
    DATA = 2
    JSRTEXT = 3  # an ASCII string following jsr r5,xxx
    JSRDATA = 4  # binary data following jsr r5,xxx


_FORMATS = {
    SymbolType.BRANCH: "{}",
    SymbolType.FUNCTION: "func{}",
    SymbolType.DATA: "data{}",
    SymbolType.JSRTEXT: "jsrtext{}",
    SymbolType.JSRDATA: "jsrdata{}",
}


@dataclass
class Symbol:
    """A named location; ``size`` is used by the jsr r5 symbol types."""

    name: str | None
    type: SymbolType
    size: int = 0


def _check_addr(addr: int) -> int:
    if not 0 <= addr < PDP_MEM_SIZE:
        raise ValueError(f"address {addr} is outside the address space")
    return addr


class SymbolTable:
    """Instruction and data symbols, keyed by address."""

    def __init__(self) -> None:
        self.isym: dict[int, Symbol] = {}
        self.dsym: dict[int, Symbol] = {}
        self.counters = {kind: 1 for kind in SymbolType}

    def _table(self, kind: SymbolType) -> dict[int, Symbol]:
        return self.dsym if kind is SymbolType.DATA else self.isym

    def add(self, addr: int, type: SymbolType | int, size: int = 0) -> None:
        """Record an unnamed symbol unless one of equal or higher type exists."""
        kind = SymbolType(type)
        _check_addr(addr)
        table = self._table(kind)
        existing = table.get(addr)
        if existing is not None and existing.type >= kind:
            return
        table[addr] = Symbol(None, kind, size)

    def _next_name(self, kind: SymbolType) -> str:
        name = _FORMATS[kind].format(self.counters[kind])
        self.counters[kind] += 1
        return name[:_NAME_LIMIT]

    def patch_names(self) -> None:
        """Give names to symbols in address order.

        Instruction symbols that already have a name keep it; every data
        symbol is given a generated name.
        """
        for addr in sorted(self.isym):
            symbol = self.isym[addr]
            if symbol.name is None:
                symbol.name = self._next_name(symbol.type)
        for addr in sorted(self.dsym):
            symbol = self.dsym[addr]
            symbol.name = self._next_name(symbol.type)

    def get_isym(self, addr: int) -> Symbol | None:
        """Return the instruction symbol at ``addr``, if any."""
        return self.isym.get(addr)

    def get_dsym(self, addr: int) -> Symbol | None:
        """Return the data symbol at ``addr``, if any."""
        return self.dsym.get(addr)

    def load_0407(self, data: bytes, base: int) -> None:
        """Load the symbols of an 0407 symbol table, relocated by ``base``.

        Each entry is an eight-byte name, a type word and an address word.
        Text symbols named ``l`` followed by a digit are branch labels.
        """
        for offset in range(0, len(data) - SYM0407_SIZE + 1, SYM0407_SIZE):
            raw_name, sym_type, sym_addr = _SYM0407.unpack_from(data, offset)
            name = raw_name.split(b"\0", 1)[0].decode("latin-1")
            addr = (sym_addr + base) & 0xFFFF
            if sym_type in _DATA_TYPES:
                self.dsym[addr] = Symbol(name, SymbolType.DATA, 0)
            elif sym_type in _TEXT_TYPES:
                is_label = len(name) >= 2 and name[0] == "l" and name[1].isdigit()
                kind = SymbolType.BRANCH if is_label else SymbolType.FUNCTION
                self.isym[addr] = Symbol(name, kind, 0)

    def dump(self) -> str:
        """Return one line per symbol: address, type, size and name."""
        lines = []
        for addr in sorted(set(self.isym) | set(self.dsym)):
            for table in (self.isym, self.dsym):
                symbol = table.get(addr)
                if symbol is not None:
                    name = "(null)" if symbol.name is None else symbol.name
                    lines.append(
                        f"0{addr:06o} {int(symbol.type)} {symbol.size} {name}\n"
                    )
        return "".join(lines)
"""
First-seen symbol allocation for tech and module keys.

Each distinct key gets one compact character, handed out in the order keys
are first met during a row-major scan. The tables travel in the token as
`key:code` pairs so a decoder can invert them without prior knowledge.
"""

from typing import Dict, Iterable, Optional

from constants import (
    RESERVED_SYMBOL_CHARS,
    TABLE_ENTRY_DELIMITER,
    TABLE_PAIR_DELIMITER,
)

# Last code point that is not a UTF-16 surrogate.
_MAX_CODE_POINT = 0x10FFFF
_SURROGATES = range(0xD800, 0xE000)


class SymbolSpaceExhausted(RuntimeError):
    pass


class SymbolAllocator:
    """Hands out one character per distinct key, skipping reserved characters."""

    def __init__(self, start: int, reserved: Iterable[str] = RESERVED_SYMBOL_CHARS) -> None:
        self._next = start
        self._reserved = frozenset(reserved)
        self.codes: Dict[str, str] = {}

    def code_for(self, key: str) -> str:
        code = self.codes.get(key)
        if code is None:
            code = self._allocate()
            self.codes[key] = code
        return code

    def _allocate(self) -> str:
        while self._next <= _MAX_CODE_POINT:
            cp = self._next
            self._next += 1
            if cp in _SURROGATES:
                continue
            ch = chr(cp)
            if ch not in self._reserved:
                return ch
        raise SymbolSpaceExhausted("no symbol codes left to allocate")


def format_symbol_table(codes: Dict[str, str]) -> str:
    return TABLE_ENTRY_DELIMITER.join(
        f"{key}{TABLE_PAIR_DELIMITER}{code}" for key, code in codes.items()
    )


def _parse_entry(entry: str) -> Optional[tuple]:
    key, sep, code = entry.rpartition(TABLE_PAIR_DELIMITER)
    if not sep or not key or len(code) != 1:
        return None
    return key, code


def parse_symbol_table(text: str) -> Dict[str, str]:
    """Return the reverse `code -> key` map, skipping malformed entries."""
    reverse: Dict[str, str] = {}
    if not text:
        return reverse
    for entry in text.split(TABLE_ENTRY_DELIMITER):
        parsed = _parse_entry(entry)
        if parsed is None:
            continue
        key, code = parsed
        reverse[code] = key
    return reverse

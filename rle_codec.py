"""
Run-length encoding for the per-cell character streams of a share token.

A run of one character is written as the character alone; longer runs are
the character followed by the decimal run length. ASCII digits are reserved
as counts, so streams fed to `compress_rle` must not contain them.
"""

from typing import List, Optional

DIGITS = "0123456789"


class RLEFormatError(ValueError):
    pass


class RLELimitExceeded(RLEFormatError):
    pass


def compress_rle(text: str) -> str:
    if not text:
        return ""
    out: List[str] = []
    current = text[0]
    run = 1
    for ch in text[1:]:
        if ch == current:
            run += 1
            continue
        out.append(current if run == 1 else f"{current}{run}")
        current = ch
        run = 1
    out.append(current if run == 1 else f"{current}{run}")
    return "".join(out)


def decompress_rle(text: str, limit: Optional[int] = None) -> str:
    """Expand `text`; with `limit`, fail before the output grows past it."""
    if not text:
        return ""
    out: List[str] = []
    total = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in DIGITS:
            raise RLEFormatError(f"count without a symbol at offset {i}")
        j = i + 1
        while j < n and text[j] in DIGITS:
            j += 1
        if j == i + 1:
            count = 1
        else:
            digits = text[i + 1:j]
            if limit is not None and len(digits.lstrip("0")) > len(str(limit)):
                raise RLELimitExceeded(f"run at offset {i} exceeds {limit} symbols")
            try:
                count = int(digits)
            except ValueError as exc:
                raise RLEFormatError(f"unreadable run length at offset {i}") from exc
            if count == 0:
                raise RLEFormatError(f"zero-length run at offset {i}")
        total += count
        if limit is not None and total > limit:
            raise RLELimitExceeded(f"stream expands past {limit} symbols")
        out.append(ch * count)
        i = j
    return "".join(out)

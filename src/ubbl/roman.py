"""Roman numeral codec for Part labels.

``to_int`` is a best-effort subtractive decode: it scans left to right and
subtracts a symbol when the next symbol is larger, otherwise adds it. No
canonical-form check is made, so ``"IIII"`` decodes to 4 and ``"IC"`` to 99.

``to_roman`` is the canonical encoder (1-3999).
"""
from __future__ import annotations

ROMAN_SYMBOLS: dict[str, int] = {
    "I": 1, "V": 5, "X": 10, "L": 50,
    "C": 100, "D": 500, "M": 1000,
}

_ENCODE_TABLE: tuple[tuple[int, str], ...] = (
    (1000, "M"), (900, "CM"), (500, "D"), (400, "CD"),
    (100, "C"), (90, "XC"), (50, "L"), (40, "XL"),
    (10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I"),
)


def is_roman(label: str) -> bool:
    """True when every character of ``label`` is a Roman symbol."""
    text = label.strip().upper()
    return bool(text) and all(ch in ROMAN_SYMBOLS for ch in text)


def to_int(roman: str) -> int:
    """Decode a Roman numeral (case-insensitive).

    Raises ValueError on an empty label or a non-Roman symbol.
    """
    text = roman.strip().upper()
    if not text:
        raise ValueError("Empty Roman numeral")
    values: list[int] = []
    for ch in text:
        value = ROMAN_SYMBOLS.get(ch)
        if value is None:
            raise ValueError(f"Invalid Roman numeral symbol {ch!r} in {roman!r}")
        values.append(value)

    total = 0
    for i, value in enumerate(values):
        nxt = values[i + 1] if i + 1 < len(values) else 0
        if value < nxt:
            total -= value
        else:
            total += value
    return total


def to_roman(n: int) -> str:
    """Encode 1..3999 as a canonical uppercase Roman numeral."""
    if not 1 <= n <= 3999:
        raise ValueError(f"Roman numerals cover 1..3999, got {n}")
    out: list[str] = []
    remaining = n
    for value, symbol in _ENCODE_TABLE:
        while remaining >= value:
            out.append(symbol)
            remaining -= value
    return "".join(out)

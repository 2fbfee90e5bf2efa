"""Rough token count estimation for prompt text."""

from __future__ import annotations

import unicodedata

_HAN_RANGES = (
    (0x2E80, 0x2E99),
    (0x2E9B, 0x2EF3),
    (0x2F00, 0x2FD5),
    (0x3005, 0x3005),
    (0x3007, 0x3007),
    (0x3021, 0x3029),
    (0x3038, 0x303B),
    (0x3400, 0x4DBF),
    (0x4E00, 0x9FFF),
    (0xF900, 0xFA6D),
    (0xFA70, 0xFAD9),
    (0x16FE2, 0x16FE3),
    (0x16FF0, 0x16FF1),
    (0x20000, 0x2A6DF),
    (0x2A700, 0x2B739),
    (0x2B740, 0x2B81D),
    (0x2B820, 0x2CEA1),
    (0x2CEB0, 0x2EBE0),
    (0x2F800, 0x2FA1D),
    (0x30000, 0x3134A),
    (0x31350, 0x323AF),
)

_HAN_WEIGHT = 0.6
_OTHER_WEIGHT = 0.3


def _is_han(char: str) -> bool:
    code = ord(char)
    return any(low <= code <= high for low, high in _HAN_RANGES)


def estimate_token_count(text: str) -> int:
    """Estimate the tokens in ``text``; the result is never below one.

    Han characters count about 0.6 tokens; letters, digits, punctuation and
    symbols about 0.3; whitespace and anything else is ignored.
    """
    total = 0.0
    for char in text:
        if _is_han(char):
            total += _HAN_WEIGHT
        elif unicodedata.category(char)[0] in "LNPS":
            total += _OTHER_WEIGHT
    return max(int(total + 0.5), 1)
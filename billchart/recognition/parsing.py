"""
recognition/parsing.py
----------------------
Turns the raw text read from one label ROI into a validated kWh value.

Rules:
* All digits in the text are concatenated ("8 2 5" → "825").
* Up to 4 digits: the number itself is the only candidate.
* More than 4 digits means noise was merged into the read. The last 4, 3
  and 2 digits are the candidates; the longest is accepted only if every
  shorter suffix is also in range, so "71825" → 1825 but "42500" → None.
* Anything outside [min_value, max_value] is rejected, never clamped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_DIGIT_RUN = re.compile(r"[0-9]+")
_MAX_DIRECT_DIGITS = 4
_SUFFIX_LENGTHS = (4, 3, 2)


@dataclass(frozen=True)
class ParsedLabel:
    value: Optional[int]
    digits: str = ""
    above_range: bool = False
    """A clean read (≤ 4 digits) that exceeded the maximum."""


def parse_label_value(text: str, min_value: int = 20, max_value: int = 3000) -> ParsedLabel:
    digits = "".join(_DIGIT_RUN.findall(text or ""))
    if not digits:
        return ParsedLabel(value=None)

    def in_range(v: int) -> bool:
        return min_value <= v <= max_value

    if len(digits) <= _MAX_DIRECT_DIGITS:
        value = int(digits)
        if in_range(value):
            return ParsedLabel(value=value, digits=digits)
        return ParsedLabel(value=None, digits=digits, above_range=value > max_value)

    candidates = [int(digits[-n:]) for n in _SUFFIX_LENGTHS]
    if all(in_range(v) for v in candidates):
        return ParsedLabel(value=candidates[0], digits=digits)
    return ParsedLabel(value=None, digits=digits)

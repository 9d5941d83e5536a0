"""Lenient parsing of user-typed numbers."""

import math
from typing import Union


def parse_number(value: Union[str, float, int, None]) -> float:
    """
    Parse form input into a float.

    Blank, partial ("1.", "-"), invalid and non-finite input all give 0.0,
    so a calculator never sees a half-typed value as an exception.
    Thousands separators are accepted.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = value.strip().replace(",", "")
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0

    if not math.isfinite(number):
        return 0.0
    return number

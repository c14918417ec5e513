"""Phone number normalization."""

import re

_SEPARATORS = re.compile(r"[\s\-().]")
_E164 = re.compile(r"^\+[1-9]\d{7,14}$")


def normalize_phone_number(raw: str, country_calling_code: str) -> str:
    """
    Convert a locally formatted phone number to E.164.

    Numbers already carrying an international prefix (``+`` or ``00``) keep
    their own country code. Otherwise a single trunk ``0`` is dropped and
    ``country_calling_code`` is prepended, so ``"0244123456"`` becomes
    ``"+233244123456"`` for code ``"233"``.

    Raises:
        ValueError: If the result is not a valid E.164 number
    """
    number = _SEPARATORS.sub("", raw.strip())

    if number.startswith("+"):
        candidate = number
    elif number.startswith("00"):
        candidate = "+" + number[2:]
    else:
        if number.startswith("0"):
            number = number[1:]
        candidate = f"+{country_calling_code.lstrip('+')}{number}"

    if not _E164.match(candidate):
        raise ValueError(f"Invalid phone number: {raw!r}")

    return candidate

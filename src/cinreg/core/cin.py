from __future__ import annotations

import re

MIN_CIN_LENGTH = 16

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def normalize_cin(raw: str | None) -> str:
    """Turn free-form CIN input (e.g. ``hixa-834927-105562-4398``) into its storage key.

    Uppercases first, then drops everything outside ``[A-Z0-9]``. Never raises;
    short or empty results are rejected later by write validation.
    """
    if raw is None:
        return ""
    return _NON_ALNUM.sub("", str(raw).upper())


def is_valid_cin(raw: str | None) -> bool:
    return len(normalize_cin(raw)) >= MIN_CIN_LENGTH

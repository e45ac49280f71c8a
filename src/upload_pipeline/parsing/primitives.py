from __future__ import annotations

from typing import Any, Callable

from .types import ViolationCode


class ParseError(Exception):
    """
    A single field violation.

    `params` are the positional arguments for the catalog template of `code`,
    the field name always comes first.
    """

    def __init__(self, code: ViolationCode, *params: Any) -> None:
        self.code = code
        self.params = params
        super().__init__(f"{code.value}: {params}")


def normalize_cell(v: Any) -> Any:
    """Strip text values and turn blank ones (padding only) into `None`."""
    if v is None:
        return None
    if isinstance(v, str):
        s = v.strip()
        return s or None
    return v


## -- parsers (value already known to be non-`None`)

def parse_required_text(v: Any, *, field: str) -> str:
    """
    Parse required text.
    Raises on `None`, on non `str` input and on empty strings.
    """
    v = normalize_cell(v)
    if v is None:
        raise ParseError(ViolationCode.missing_required, field)
    if not isinstance(v, str):
        raise ParseError(ViolationCode.invalid_value, field)
    return v


def parse_optional_text(v: Any) -> str | None:
    v = normalize_cell(v)
    if v is None:
        return None
    return str(v).strip()


def parse_int(v: Any, *, field: str) -> int:
    """Parse integers. Raise on non `int` or `None`."""
    v = normalize_cell(v)
    if v is None:
        raise ParseError(ViolationCode.missing_required, field)
    if isinstance(v, bool):
        raise ParseError(ViolationCode.invalid_int, field)
    try:
        # "12.3" or "1e-4" should fail, not be coerced to `int`
        if isinstance(v, str) and (("." in v) or ("e" in v.lower())):
            raise ValueError(v)
        return int(v)
    except (TypeError, ValueError):
        raise ParseError(ViolationCode.invalid_int, field)


## -- rules (applied to the parsed value)

Rule = Callable[[Any, str], None]


def length(min_len: int, max_len: int) -> Rule:
    """Text length must be within `[min_len, max_len]`."""
    def check(value: Any, field: str) -> None:
        if not (min_len <= len(str(value)) <= max_len):
            raise ParseError(ViolationCode.invalid_length, field, min_len, max_len)
    return check


def digits(integer: int) -> Rule:
    """At most `integer` digits, sign excluded."""
    def check(value: Any, field: str) -> None:
        if len(str(abs(int(value)))) > integer:
            raise ParseError(ViolationCode.too_many_digits, field, integer)
    return check

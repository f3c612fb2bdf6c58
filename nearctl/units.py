"""Token and gas amounts with the textual forms accepted on the command line."""

from __future__ import annotations

import re
from dataclasses import dataclass

YOCTO_PER_NEAR = 10**24
GAS_PER_TGAS = 10**12
DEFAULT_FUNCTION_CALL_GAS = 100 * GAS_PER_TGAS
MAX_GAS = 300 * GAS_PER_TGAS
MAX_YOCTONEAR = 2**128 - 1

_AMOUNT_RE = re.compile(r"^\s*(?P<number>[0-9]*\.?[0-9]*)\s*(?P<unit>[a-zA-Z]*)\s*$")


class AmountFormatError(ValueError):
    """Raised when a balance or gas string cannot be parsed."""


def _split_amount(raw: str) -> tuple[str, str]:
    match = _AMOUNT_RE.match(raw or "")
    if not match or match.group("number") in {"", "."}:
        raise AmountFormatError(f"'{raw}' is not a valid amount")
    return match.group("number"), match.group("unit").lower()


def _scale(number: str, factor: int, *, raw: str) -> int:
    width = len(str(factor)) - 1
    whole, _, fraction = number.partition(".")
    if len(fraction) > width:
        raise AmountFormatError(f"'{raw}' has more than {width} decimal places")
    return int(whole or "0") * factor + int(fraction.ljust(width, "0"))


def _format_scaled(value: int, factor: int) -> str:
    whole, fraction = divmod(value, factor)
    if not fraction:
        return str(whole)
    width = len(str(factor)) - 1
    return f"{whole}.{str(fraction).rjust(width, '0').rstrip('0')}"


@dataclass(frozen=True, order=True)
class NearBalance:
    """An amount of NEAR tokens held as an integer number of yoctoNEAR."""

    yoctonear: int

    @classmethod
    def from_near(cls, near: int | str) -> "NearBalance":
        return cls.parse(f"{near}NEAR")

    @classmethod
    def parse(cls, raw: str) -> "NearBalance":
        """Parse ``10NEAR``, ``0.5 near`` or ``10000yoctonear``."""

        number, unit = _split_amount(raw)
        if unit == "yoctonear":
            if "." in number:
                raise AmountFormatError(f"'{raw}' must be a whole number of yoctoNEAR")
            yoctonear = int(number)
        elif unit == "near":
            yoctonear = _scale(number, YOCTO_PER_NEAR, raw=raw)
        else:
            raise AmountFormatError(
                f"'{raw}' needs a unit (example: 10NEAR or 0.5near or 10000yoctonear)"
            )
        if yoctonear > MAX_YOCTONEAR:
            raise AmountFormatError(f"'{raw}' exceeds the largest representable amount")
        return cls(yoctonear)

    def __str__(self) -> str:
        return f"{_format_scaled(self.yoctonear, YOCTO_PER_NEAR)} NEAR"


@dataclass(frozen=True, order=True)
class NearGas:
    """Prepaid gas for a function call."""

    gas: int

    @classmethod
    def parse(cls, raw: str) -> "NearGas":
        """Parse ``100 TeraGas``, ``30 Tgas`` or ``1000000 gas``."""

        number, unit = _split_amount(raw)
        if unit in {"teragas", "tgas"}:
            return cls(_scale(number, GAS_PER_TGAS, raw=raw))
        if unit == "gas":
            if "." in number:
                raise AmountFormatError(f"'{raw}' must be a whole amount of gas")
            return cls(int(number))
        raise AmountFormatError(f"'{raw}' needs a unit (example: 100 TeraGas or 30 Tgas)")

    def __str__(self) -> str:
        return f"{_format_scaled(self.gas, GAS_PER_TGAS)} Tgas"

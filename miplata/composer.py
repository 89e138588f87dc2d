import re
from decimal import Decimal, DecimalException
from typing import Any, List, NamedTuple, Union

from miplata.constants import InvestmentType

_NON_NEGATIVE_INTEGER = re.compile(r"[0-9]+")


class InvalidRequest(ValueError):
    """Raised when user input cannot be turned into a MiPlata request."""


class InvalidAmount(InvalidRequest):
    pass


class InvalidType(InvalidRequest):
    pass


class InvalidId(InvalidRequest):
    pass


class InvestmentRequest(NamedTuple):
    amount: str
    investment_type: InvestmentType

    def args(self) -> List[Union[int, str]]:
        """
        Arguments of ``MiPlata.invest``. The amount is sent as entered, as an
        integer when it is whole and as the original text otherwise.
        """
        value = Decimal(self.amount)
        if value == value.to_integral_value():
            amount = int(value)
        else:
            amount = self.amount
        return [amount, int(self.investment_type)]


class WithdrawalRequest(NamedTuple):
    investment_id: str

    def args(self) -> List[int]:
        """Arguments of ``MiPlata.withdraw``."""
        return [int(self.investment_id)]


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return ""


def _parse_amount(raw_amount: Any) -> str:
    amount = _as_text(raw_amount)
    if not amount:
        raise InvalidAmount("Amount is required.")
    try:
        value = Decimal(amount)
        positive = value.is_finite() and value > 0
    except DecimalException:
        raise InvalidAmount(f"Amount '{amount}' is not a number.")
    if not positive:
        raise InvalidAmount(f"Amount must be a positive number, got '{amount}'.")
    return amount


def _parse_type(raw_type: Any) -> InvestmentType:
    if isinstance(raw_type, bool):
        raise InvalidType(f"Invalid investment type {raw_type!r}.")
    if isinstance(raw_type, str):
        text = raw_type.strip()
        if _NON_NEGATIVE_INTEGER.fullmatch(text):
            raw_type = int(text)
        else:
            try:
                return InvestmentType[text.upper()]
            except KeyError:
                raise InvalidType(f"Invalid investment type '{raw_type}'.")
    if not isinstance(raw_type, int):
        raise InvalidType(f"Invalid investment type {raw_type!r}.")
    try:
        return InvestmentType(raw_type)
    except ValueError:
        choices = ", ".join(f"{t.value} ({t.name.lower()})" for t in InvestmentType)
        raise InvalidType(f"Investment type must be one of {choices}, got {raw_type}.")


def compose_invest(raw_amount: Any, raw_type: Any) -> InvestmentRequest:
    """
    Validates an amount of USDC and an investment type.

    The amount must be a positive, finite number and is kept as entered. The
    type is 0, 1 or 2, given as an integer, a numeric string or an
    ``InvestmentType`` name.
    """
    amount = _parse_amount(raw_amount)
    investment_type = _parse_type(raw_type)
    return InvestmentRequest(amount=amount, investment_type=investment_type)


def compose_withdraw(raw_id: Any) -> WithdrawalRequest:
    """Validates the id of an investment to withdraw."""
    investment_id = _as_text(raw_id)
    if not _NON_NEGATIVE_INTEGER.fullmatch(investment_id):
        raise InvalidId(f"Investment id must be a non-negative integer, got {raw_id!r}.")
    return WithdrawalRequest(investment_id=investment_id)

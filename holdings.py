"""Holdings predicates, validation and helpers for working with exchanges.

Holdings are mappings of account name to a non-negative amount. Amounts may be
``int``, ``float`` or ``Decimal``; when a ``Decimal`` shows up on either side of
a rebalance, arithmetic is carried out in ``Decimal`` so that totals compare
exactly.
"""
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog

from errors import (
    EmptyHoldingsError,
    HoldingsErrorKind,
    HoldingsTypeError,
    InvalidAmountError,
    MissingHoldingsError,
    UnequalTotalsError,
)
from models import Amount, Exchange

logger = structlog.get_logger()


def is_mapping(value: Any) -> bool:
    """Whether ``value`` is a mapping keyed by account names."""
    return isinstance(value, Mapping) and all(isinstance(key, str) for key in value)


def is_empty(value: Optional[Mapping]) -> bool:
    return len(value or {}) == 0


def is_valid_amount(value: Any) -> bool:
    """Whether ``value`` is a finite, non-negative number.

    ``bool`` is rejected even though it subclasses ``int``.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value >= 0
    if isinstance(value, float):
        return math.isfinite(value) and value >= 0
    if isinstance(value, Decimal):
        return value.is_finite() and value >= 0
    return False


def find_invalid_amount(holdings: Mapping) -> Optional[Tuple[str, Any]]:
    """Return the first ``(account, value)`` pair whose value is not a valid amount."""
    for account, value in holdings.items():
        if not is_valid_amount(value):
            return account, value
    return None


def is_valid_holdings(holdings: Optional[Mapping]) -> bool:
    return find_invalid_amount(holdings or {}) is None


def usable_amounts(holdings: Any) -> Dict[str, Amount]:
    """Copy the entries of ``holdings`` that hold valid amounts.

    Anything that is not a mapping keyed by account names yields ``{}``.
    """
    if not is_mapping(holdings):
        return {}
    return {account: value for account, value in holdings.items() if is_valid_amount(value)}


def align_amount_types(current: Mapping, desired: Mapping) -> Tuple[Dict[str, Amount], Dict[str, Amount]]:
    """Copy both holdings, promoting floats to ``Decimal`` if either side uses ``Decimal``.

    Floats are converted through ``str`` so ``0.1`` becomes ``Decimal("0.1")``.
    Without any ``Decimal`` the copies hold the original values.
    """
    values = list(current.values()) + list(desired.values())
    if not any(isinstance(value, Decimal) for value in values):
        return dict(current), dict(desired)

    def promote(holdings: Mapping) -> Dict[str, Amount]:
        return {
            account: Decimal(str(value)) if isinstance(value, float) else value
            for account, value in holdings.items()
        }

    return promote(current), promote(desired)


def holdings_total(holdings: Mapping) -> Amount:
    return sum(holdings.values(), 0)


def are_holdings_equal(holdings_a: Mapping, holdings_b: Mapping) -> bool:
    """Whether two sets of holdings add up to exactly the same total."""
    holdings_a, holdings_b = align_amount_types(holdings_a, holdings_b)
    return holdings_total(holdings_a) == holdings_total(holdings_b)


def validate_holdings(current: Any, desired: Any) -> None:
    """Validate a pair of current and desired holdings.

    Checks run in a fixed order and the first failing check raises:
    missing holdings, wrong type, empty holdings, bad values, then totals.
    Current holdings are always checked before desired holdings at each stage.

    Raises:
        MissingHoldingsError: current or desired holdings are ``None``
        HoldingsTypeError: holdings are not a mapping keyed by strings
        EmptyHoldingsError: holdings have no entries
        InvalidAmountError: an amount is non-numeric, non-finite or negative
        UnequalTotalsError: current and desired totals differ
    """
    if current is None:
        raise MissingHoldingsError(HoldingsErrorKind.missing_current, side="current")
    if desired is None:
        raise MissingHoldingsError(HoldingsErrorKind.missing_desired, side="desired")
    if not is_mapping(current):
        raise HoldingsTypeError(
            HoldingsErrorKind.current_wrong_type, side="current", type=type(current).__name__
        )
    if not is_mapping(desired):
        raise HoldingsTypeError(
            HoldingsErrorKind.desired_wrong_type, side="desired", type=type(desired).__name__
        )
    if is_empty(current):
        raise EmptyHoldingsError(HoldingsErrorKind.current_empty, side="current")
    if is_empty(desired):
        raise EmptyHoldingsError(HoldingsErrorKind.desired_empty, side="desired")

    invalid = find_invalid_amount(current)
    if invalid is not None:
        account, value = invalid
        raise InvalidAmountError(
            HoldingsErrorKind.current_bad_value, side="current", account=account, value=value
        )
    invalid = find_invalid_amount(desired)
    if invalid is not None:
        account, value = invalid
        raise InvalidAmountError(
            HoldingsErrorKind.desired_bad_value, side="desired", account=account, value=value
        )

    aligned_current, aligned_desired = align_amount_types(current, desired)
    current_total = holdings_total(aligned_current)
    desired_total = holdings_total(aligned_desired)
    if current_total != desired_total:
        raise UnequalTotalsError(
            HoldingsErrorKind.unequal_totals,
            current_total=current_total,
            desired_total=desired_total
        )

    logger.debug(
        "Holdings validated",
        current_accounts=len(current),
        desired_accounts=len(desired),
        total=str(current_total)
    )


def apply_exchanges(current: Mapping, exchanges: Iterable[Exchange]) -> Dict[str, Amount]:
    """Return a copy of ``current`` with every exchange applied.

    Accounts missing from ``current`` start at zero.
    """
    balances: Dict[str, Amount] = dict(current)
    for exchange in exchanges:
        balances[exchange.from_] = _add(balances.get(exchange.from_, 0), -exchange.amount)
        balances[exchange.to] = _add(balances.get(exchange.to, 0), exchange.amount)
    return balances


def _add(balance: Amount, delta: Amount) -> Amount:
    if isinstance(delta, Decimal) and isinstance(balance, float):
        balance = Decimal(str(balance))
    return balance + delta


def to_exchange_string(exchange: Exchange) -> str:
    """Represent an exchange as a single sortable string, e.g. ``"RED-YELLOW-10"``."""
    parts = [exchange.from_, exchange.to, exchange.amount]
    return "-".join(str(part) for part in parts if part is not None)


def sort_exchanges(exchanges: Iterable[Exchange]) -> List[Exchange]:
    """Sort exchanges into a canonical order so two results can be compared.

    Exchanges are ordered by the code points of their ``to_exchange_string``
    form, so the order does not depend on the locale. It carries no meaning
    for the rebalance itself.
    """
    return sorted(exchanges, key=to_exchange_string)

import math
from enum import Enum
from typing import Any, Dict, Optional


class HoldingsErrorKind(str, Enum):
    missing_current = "missing current holdings"
    missing_desired = "missing desired holdings"
    current_wrong_type = "invalid current holdings: wrong type"
    desired_wrong_type = "invalid desired holdings: wrong type"
    current_empty = "invalid current holdings: empty"
    desired_empty = "invalid desired holdings: empty"
    current_bad_value = "invalid current holdings: bad value"
    desired_bad_value = "invalid desired holdings: bad value"
    unequal_totals = "totals must be equal"

    @property
    def code(self) -> str:
        """Machine-readable error code, e.g. ``CURRENT_BAD_VALUE``."""
        return self.name.upper()


class HoldingsError(ValueError):
    """Base error for holdings that cannot be rebalanced.

    ``str(error)`` is always the kind's message; the offending side and any
    structured details (account name, value, totals) live on the instance.
    """

    def __init__(
        self,
        kind: HoldingsErrorKind,
        side: Optional[str] = None,
        **context: Any
    ):
        super().__init__(kind.value)
        self.kind = kind
        self.side = side
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.code,
            "side": self.side,
            **{key: _jsonable(value) for key, value in self.context.items()}
        }


class MissingHoldingsError(HoldingsError):
    pass


class HoldingsTypeError(HoldingsError, TypeError):
    pass


class EmptyHoldingsError(HoldingsError):
    pass


class InvalidAmountError(HoldingsError):
    @property
    def account(self) -> Optional[str]:
        return self.context.get("account")

    @property
    def value(self) -> Any:
        return self.context.get("value")


class UnequalTotalsError(HoldingsError):
    pass


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        # NaN and infinities have no JSON representation
        return value if math.isfinite(value) else repr(value)
    return str(value)

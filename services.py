from collections import defaultdict
from collections.abc import Mapping
from typing import Any, Dict, List
import structlog

from errors import HoldingsError
from holdings import align_amount_types, apply_exchanges, usable_amounts, validate_holdings
from models import Amount, Exchange, RebalanceRequest, RebalanceResponse

# Configure structured logging
logger = structlog.get_logger()


def exchange_holdings(current: Mapping[str, Amount], desired: Mapping[str, Amount]) -> List[Exchange]:
    """Work out the exchanges that turn the current holdings into the desired ones.

    Surplus accounts are drained in lexicographic order into owed accounts,
    which are also filled in lexicographic order. An account's remaining
    deficit accounts for whatever it has already received from earlier
    surplus accounts.

    The holdings are assumed to be valid with equal totals (see
    ``validate_holdings``). Entries without a usable amount are skipped rather
    than rejected, so invalid input gives an incomplete result instead of an
    error.
    """
    current, desired = align_amount_types(usable_amounts(current), usable_amounts(desired))

    owed_accounts = sorted(
        account for account, amount in desired.items()
        if amount > current.get(account, 0)
    )
    surplus_accounts = sorted(
        account for account, amount in current.items()
        if amount > desired.get(account, 0)
    )

    received: Dict[str, Amount] = defaultdict(int)
    exchanges: List[Exchange] = []

    for surplus_account in surplus_accounts:
        transfer_amount = current[surplus_account] - desired.get(surplus_account, 0)

        for owed_account in owed_accounts:
            if transfer_amount <= 0:
                break

            owed_amount = (
                desired[owed_account]
                - current.get(owed_account, 0)
                - received[owed_account]
            )
            if owed_amount <= 0:
                continue

            amount = min(transfer_amount, owed_amount)
            exchanges.append(Exchange(from_=surplus_account, to=owed_account, amount=amount))
            received[owed_account] += amount
            transfer_amount -= amount

            logger.debug(
                "Exchange generated",
                from_account=surplus_account,
                to_account=owed_account,
                amount=str(amount),
                remaining=str(transfer_amount)
            )

    return exchanges


class Rebalance:
    """Rebalances a set of account holdings from their current to their desired amounts."""

    def __init__(self, current_holdings: Mapping[str, Amount], desired_holdings: Mapping[str, Amount]):
        self.current_holdings = current_holdings
        self.desired_holdings = desired_holdings

    def validate(self) -> None:
        """Raise a ``HoldingsError`` if the holdings cannot be rebalanced."""
        validate_holdings(self.current_holdings, self.desired_holdings)

    def solve(self) -> List[Exchange]:
        """Generate the exchanges without validating the holdings first."""
        return exchange_holdings(self.current_holdings, self.desired_holdings)

    def solution(self) -> List[Exchange]:
        """Validate the holdings, then generate the exchanges."""
        self.validate()
        return self.solve()


class RebalanceService:
    def rebalance(self, request: RebalanceRequest) -> RebalanceResponse:
        """Solve a rebalance request, returning the exchanges and resulting balances."""

        logger.info(
            "Processing rebalance",
            current_accounts=_count(request.current),
            desired_accounts=_count(request.desired)
        )

        try:
            exchanges = Rebalance(request.current, request.desired).solution()
        except HoldingsError as e:
            logger.warning("Holdings rejected", **e.to_dict())
            raise

        balances = apply_exchanges(request.current, exchanges)

        logger.info(
            "Rebalance solved",
            exchanges=len(exchanges),
            accounts=len(balances)
        )

        return RebalanceResponse(exchanges=exchanges, count=len(exchanges), balances=balances)


def _count(holdings: Any) -> Any:
    return len(holdings) if isinstance(holdings, Mapping) else None


# Factory function for dependency injection
def get_rebalance_service() -> RebalanceService:
    return RebalanceService()

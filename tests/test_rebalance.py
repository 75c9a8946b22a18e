import pytest
from decimal import Decimal

from errors import UnequalTotalsError
from holdings import apply_exchanges, sort_exchanges
from models import Exchange
from services import Rebalance, exchange_holdings


def exchange(from_, to, amount):
    return Exchange(from_=from_, to=to, amount=amount)


def assert_conserved(current, desired, exchanges):
    balances = apply_exchanges(current, exchanges)
    for account in set(current) | set(desired):
        assert balances.get(account, 0) == desired.get(account, 0), account


FIXED_CASES = [
    ({"YELLOW": 24}, {"RED": 24}),
    ({"YELLOW": 10, "RED": 20}, {"YELLOW": 20, "RED": 10}),
    ({"YELLOW": 10, "RED": 10}, {"YELLOW": 8, "RED": 8, "GREEN": 4}),
    ({"YELLOW": 3, "RED": 2, "GREEN": 4, "BLUE": 5}, {"YELLOW": 5, "RED": 4, "GREEN": 3, "BLUE": 2}),
    ({"RED": 9, "GREEN": 3}, {"YELLOW": 4, "RED": 4, "GREEN": 1, "BLUE": 2, "ORANGE": 1}),
    ({"A": 7, "B": 0, "C": 5}, {"A": 0, "B": 12}),
    ({"A": 1, "B": 1, "C": 1, "D": 1}, {"E": 4}),
    ({"A": 4}, {"A": 1, "B": 1, "C": 1, "D": 1}),
    ({"A": 5, "B": 5}, {"A": 5, "B": 5}),
]


class TestRebalancer:
    """Test the documented rebalance scenarios."""

    def test_rejects_unequal_totals(self):
        """Input and output totals must match."""
        r = Rebalance({"YELLOW": 24}, {"RED": 30})

        with pytest.raises(UnequalTotalsError, match="totals must be equal"):
            r.solution()

    def test_simple_case(self):
        """A single account renamed to another."""
        r = Rebalance({"YELLOW": 24}, {"RED": 24})

        assert r.solution() == [exchange("YELLOW", "RED", 24)]

    def test_swap(self):
        """Two accounts swapping amounts need a single exchange."""
        r = Rebalance({"YELLOW": 10, "RED": 20}, {"YELLOW": 20, "RED": 10})

        assert r.solution() == [exchange("RED", "YELLOW", 10)]

    def test_new_account(self):
        """Accounts missing from the current holdings can be funded."""
        r = Rebalance({"YELLOW": 10, "RED": 10}, {"YELLOW": 8, "RED": 8, "GREEN": 4})

        expected = sort_exchanges([
            exchange("YELLOW", "GREEN", 2),
            exchange("RED", "GREEN", 2),
        ])
        assert sort_exchanges(r.solution()) == expected

    def test_many_accounts(self):
        """Several surplus accounts fill several owed accounts."""
        r = Rebalance(
            {"YELLOW": 3, "RED": 2, "GREEN": 4, "BLUE": 5},
            {"YELLOW": 5, "RED": 4, "GREEN": 3, "BLUE": 2}
        )

        expected = sort_exchanges([
            exchange("GREEN", "YELLOW", 1),
            exchange("BLUE", "YELLOW", 1),
            exchange("BLUE", "RED", 2),
        ])
        assert sort_exchanges(r.solution()) == expected

    def test_repeated_runs(self):
        """Running the same rebalance twice gives the same exchanges."""
        current = {"YELLOW": 3, "RED": 2, "GREEN": 4, "BLUE": 5}
        desired = {"YELLOW": 5, "RED": 4, "GREEN": 3, "BLUE": 2}

        first = Rebalance(current, desired).solution()
        second = Rebalance(current, desired).solution()

        assert first == second
        assert sort_exchanges(first) == sort_exchanges(second)

    def test_near_optimal_number_of_exchanges(self):
        """The greedy order picks one of the acceptable three-exchange answers."""
        r = Rebalance(
            {"RED": 9, "GREEN": 3},
            {"YELLOW": 4, "RED": 4, "GREEN": 1, "BLUE": 2, "ORANGE": 1}
        )
        exchanges = sort_exchanges(r.solution())

        possible_solution_1 = sort_exchanges([
            exchange("RED", "YELLOW", 4),
            exchange("RED", "ORANGE", 1),
            exchange("GREEN", "BLUE", 2),
        ])
        possible_solution_2 = sort_exchanges([
            exchange("GREEN", "YELLOW", 2),
            exchange("RED", "YELLOW", 2),
            exchange("RED", "ORANGE", 1),
        ])

        assert exchanges in [possible_solution_1, possible_solution_2]
        # GREEN drains into BLUE first, then RED covers ORANGE and YELLOW
        assert exchanges == possible_solution_1


class TestExchangeOrder:
    """Test the deterministic generation order."""

    def test_emission_order(self):
        """Surplus accounts are drained, and owed accounts filled, alphabetically."""
        exchanges = exchange_holdings(
            {"RED": 9, "GREEN": 3},
            {"YELLOW": 4, "RED": 4, "GREEN": 1, "BLUE": 2, "ORANGE": 1}
        )

        assert exchanges == [
            exchange("GREEN", "BLUE", 2),
            exchange("RED", "ORANGE", 1),
            exchange("RED", "YELLOW", 4),
        ]

    def test_key_order_does_not_matter(self):
        """Reordering the holdings keys gives the same output sequence."""
        current = {"BLUE": 5, "GREEN": 4, "RED": 2, "YELLOW": 3}
        desired = {"RED": 4, "YELLOW": 5, "BLUE": 2, "GREEN": 3}
        reordered_current = dict(reversed(list(current.items())))
        reordered_desired = dict(reversed(list(desired.items())))

        assert exchange_holdings(current, desired) == exchange_holdings(reordered_current, reordered_desired)

    def test_partially_filled_account_takes_only_the_remainder(self):
        """An owed account already part-funded receives only what is still missing."""
        exchanges = exchange_holdings({"A": 3, "B": 5, "C": 0}, {"C": 6, "D": 2})

        assert exchanges == [
            exchange("A", "C", 3),
            exchange("B", "C", 3),
            exchange("B", "D", 2),
        ]


class TestProperties:
    """Test conservation and non-degeneracy over a set of fixed cases."""

    @pytest.mark.parametrize("current,desired", FIXED_CASES)
    def test_conservation(self, current, desired):
        exchanges = Rebalance(current, desired).solution()

        assert_conserved(current, desired, exchanges)

    @pytest.mark.parametrize("current,desired", FIXED_CASES)
    def test_non_degenerate(self, current, desired):
        for ex in Rebalance(current, desired).solution():
            assert ex.amount > 0
            assert ex.from_ != ex.to

    def test_balanced_holdings_need_no_exchanges(self):
        assert Rebalance({"A": 5, "B": 5}, {"B": 5, "A": 5}).solution() == []

    def test_zero_desired_is_not_owed(self):
        """Accounts desired at zero never receive anything."""
        exchanges = Rebalance({"A": 7, "B": 0, "C": 5}, {"A": 0, "B": 12, "Z": 0}).solution()

        assert all(ex.to != "Z" for ex in exchanges)
        assert_conserved({"A": 7, "B": 0, "C": 5}, {"A": 0, "B": 12, "Z": 0}, exchanges)

    def test_inputs_are_not_mutated(self):
        current = {"YELLOW": 10, "RED": 10}
        desired = {"YELLOW": 8, "RED": 8, "GREEN": 4}

        Rebalance(current, desired).solution()

        assert current == {"YELLOW": 10, "RED": 10}
        assert desired == {"YELLOW": 8, "RED": 8, "GREEN": 4}


class TestAmountTypes:
    """Test integer, float and Decimal amounts."""

    def test_float_amounts(self):
        current = {"A": 1.5, "B": 2.5}
        desired = {"A": 0.5, "B": 3.5}

        assert Rebalance(current, desired).solution() == [exchange("A", "B", 1.0)]

    def test_decimal_amounts(self):
        current = {"A": Decimal("0.10"), "B": Decimal("0.20")}
        desired = {"C": Decimal("0.30")}

        exchanges = Rebalance(current, desired).solution()

        assert exchanges == [
            exchange("A", "C", Decimal("0.10")),
            exchange("B", "C", Decimal("0.20")),
        ]
        assert all(isinstance(ex.amount, Decimal) for ex in exchanges)
        assert_conserved(current, desired, exchanges)

    def test_decimal_mixed_with_float(self):
        """Floats are promoted to Decimal when the other side uses Decimal."""
        current = {"A": 0.1, "B": 0.2}
        desired = {"C": Decimal("0.3")}

        exchanges = Rebalance(current, desired).solution()

        assert sort_exchanges(exchanges) == sort_exchanges([
            exchange("A", "C", Decimal("0.1")),
            exchange("B", "C", Decimal("0.2")),
        ])

    def test_large_integers_stay_exact(self):
        current = {"A": 10 ** 30 + 1, "B": 0}
        desired = {"A": 1, "B": 10 ** 30}

        assert Rebalance(current, desired).solution() == [exchange("A", "B", 10 ** 30)]


class TestFacade:
    """Test the Rebalance wrapper."""

    def test_solve_skips_validation(self):
        """solve() trusts its input and returns a partial answer on unequal totals."""
        r = Rebalance({"YELLOW": 24}, {"RED": 30})

        assert r.solve() == [exchange("YELLOW", "RED", 24)]

    def test_validate_is_silent_on_success(self):
        assert Rebalance({"YELLOW": 24}, {"RED": 24}).validate() is None

    def test_solution_validates_first(self):
        r = Rebalance({"YELLOW": 24}, None)

        with pytest.raises(ValueError, match="missing desired holdings"):
            r.solution()

    def test_solve_skips_unusable_amounts(self):
        """solve() on non-numeric amounts returns an incomplete answer instead of failing."""
        assert Rebalance({"A": "10"}, {"B": 10}).solve() == []
        assert Rebalance({"A": 10, "B": "x"}, {"C": 10, "D": float("nan")}).solve() == [
            exchange("A", "C", 10),
        ]

    def test_solve_on_missing_holdings(self):
        assert Rebalance(None, {"B": 10}).solve() == []
        assert Rebalance({"A": 10}, [("B", 10)]).solve() == []

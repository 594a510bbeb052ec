"""Tests for the Wilder-smoothed RSI calculator."""

from decimal import Decimal

import pytest

from rsi_monitor.signals.rsi import compute_rsi, rsi_from_candles


def _d(values: list[int | str]) -> list[Decimal]:
    return [Decimal(str(v)) for v in values]


class TestComputeRsi:
    """Boundary values and known results."""

    def test_strictly_increasing_is_100(self) -> None:
        assert compute_rsi(_d(list(range(1, 16)))) == Decimal("100.00")

    def test_strictly_decreasing_is_0(self) -> None:
        assert compute_rsi(_d(list(range(15, 0, -1)))) == Decimal("0.00")

    def test_flat_window_is_50(self) -> None:
        assert compute_rsi(_d([42] * 15)) == Decimal("50.00")

    def test_too_few_prices_is_none(self) -> None:
        assert compute_rsi(_d(list(range(14)))) is None
        assert compute_rsi([]) is None

    def test_exactly_period_plus_one_is_defined(self) -> None:
        assert compute_rsi(_d(list(range(15)))) is not None

    def test_known_seed_value(self) -> None:
        # gains 9, losses 1 over the seed -> 100 * 9 / 10
        prices = _d([100, 109, 108] + [108] * 12)
        assert compute_rsi(prices) == Decimal("90.00")

    def test_wilder_smoothing_applies_after_seed(self) -> None:
        # seed: avg_gain 1, avg_loss 0; next delta -14 -> avg_gain 13/14, avg_loss 1
        prices = _d(list(range(100, 115)) + [100])
        expected = Decimal("100") - Decimal("100") / (1 + (Decimal(13) / 14) / Decimal(1))
        assert compute_rsi(prices) == expected.quantize(Decimal("0.01"))

    def test_rounded_to_two_places(self) -> None:
        prices = _d([100, 101, 100.5, 102, 101, 103, 102.5, 104, 103, 105, 104, 106, 105.5, 107, 106, 108])
        result = compute_rsi(prices)
        assert result is not None
        assert result == result.quantize(Decimal("0.01"))

    @pytest.mark.parametrize(
        "prices",
        [
            [1, 3, 2, 5, 4, 8, 7, 6, 9, 12, 10, 11, 15, 14, 13, 16, 20],
            [50, 49, 51, 48, 52, 47, 53, 46, 54, 45, 55, 44, 56, 43, 57],
            ["0.0001", "0.0002", "0.00015", "0.0003", "0.00025", "0.0001", "0.0002",
             "0.0004", "0.0001", "0.0002", "0.0003", "0.0001", "0.0005", "0.0002", "0.0001"],
        ],
    )
    def test_result_in_range(self, prices: list) -> None:
        result = compute_rsi(_d(prices))
        assert result is not None
        assert Decimal("0") <= result <= Decimal("100")

    def test_custom_period(self) -> None:
        assert compute_rsi(_d([1, 2, 3, 4, 5, 6]), period=5) == Decimal("100.00")
        assert compute_rsi(_d([1, 2, 3, 4, 5]), period=5) is None

    def test_deterministic(self) -> None:
        prices = _d([10, 12, 11, 13, 12, 14, 13, 15, 14, 16, 15, 17, 16, 18, 17])
        assert compute_rsi(prices) == compute_rsi(list(prices))


class TestRsiFromCandles:

    def test_uses_closes(self, make_rsi_candles) -> None:
        assert rsi_from_candles(make_rsi_candles(87)) == Decimal("87.00")

    def test_short_window_is_none(self, make_candles) -> None:
        candles = make_candles(_d(list(range(10))))
        assert rsi_from_candles(candles) is None

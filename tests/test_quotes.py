"""
Tests for building instruments and curves from quote dictionaries.
"""

from datetime import date

import pytest

from curvelib.config import BootstrapConfig
from curvelib.conventions import DayCount, year_fraction
from curvelib.curves import (
    FRA,
    Future,
    InterestRateSwap,
    OISSwap,
    bootstrap_from_quotes,
    bootstrap_outcome_from_quotes,
    instrument_from_quote,
    instruments_from_quotes,
)
from curvelib.errors import CollaboratorError, ConvergenceError, InvalidInstrumentError

ANCHOR = date(2024, 1, 15)
ACT = DayCount.ACT_365


@pytest.fixture
def quotes():
    return [
        {"instrument_type": "FRA", "start_tenor": "0D", "tenor": "3M", "quote": 0.0530},
        {"instrument_type": "FUT", "tenor": "3M", "quote": 94.75},
        {"instrument_type": "OIS", "tenor": "1Y", "quote": 0.0500},
        {"instrument_type": "OIS", "tenor": "2Y", "quote": 0.0460, "pay_freq": "SEMI"},
        {"instrument_type": "IRS", "tenor": "5Y", "quote": 0.0430, "fixed_freq": "ANNUAL",
         "float_freq": "QUARTERLY"},
        {"instrument_type": "SWAP", "tenor": "10Y", "quote": 0.0415},
    ]


class TestInstrumentFromQuote:

    def test_types(self, quotes):
        insts = instruments_from_quotes(ANCHOR, quotes)
        assert [type(i) for i in insts] == [FRA, Future, OISSwap, OISSwap,
                                           InterestRateSwap, InterestRateSwap]

    def test_names(self, quotes):
        insts = instruments_from_quotes(ANCHOR, quotes)
        assert [i.instrument_id for i in insts] == [
            "FRA 0Dx3M", "FUT 3M", "OIS 1Y", "OIS 2Y", "IRS 5Y", "IRS 10Y"
        ]
        named = instrument_from_quote({**quotes[2], "name": "SOFR 1Y"}, ANCHOR)
        assert named.instrument_id == "SOFR 1Y"

    def test_ois_schedule(self):
        inst = instrument_from_quote(
            {"instrument_type": "OIS", "tenor": "2Y", "quote": 0.04, "pay_freq": "SEMI"}, ANCHOR
        )
        assert len(inst.schedule) == 4
        expected = year_fraction(ANCHOR, date(2026, 1, 15), ACT)
        assert inst.maturity == pytest.approx(expected)

    def test_fra_dates(self):
        inst = instrument_from_quote(
            {"instrument_type": "FRA", "start_tenor": "3M", "tenor": "6M", "quote": 0.045}, ANCHOR
        )
        assert inst.start == pytest.approx(year_fraction(ANCHOR, date(2024, 4, 15), ACT))
        assert inst.end == pytest.approx(year_fraction(ANCHOR, date(2024, 7, 15), ACT))
        assert inst.instrument_id == "FRA 3Mx6M"

    def test_future(self):
        inst = instrument_from_quote(
            {"instrument_type": "FUTURE", "tenor": "6M", "quote": 95.40, "convexity": 0.0001},
            ANCHOR
        )
        assert inst.rate == pytest.approx(0.046)
        assert inst.convexity_adjustment == 0.0001
        assert inst.period == pytest.approx(year_fraction(date(2024, 7, 15), date(2024, 10, 15), ACT))

    def test_business_day_roll(self):
        # 2024-06-15 is a Saturday
        inst = instrument_from_quote(
            {"instrument_type": "FRA", "start_tenor": "0D", "tenor": "5M", "quote": 0.05}, ANCHOR
        )
        assert inst.end == pytest.approx(year_fraction(ANCHOR, date(2024, 6, 17), ACT))

    def test_missing_tenor(self):
        with pytest.raises(InvalidInstrumentError):
            instrument_from_quote({"instrument_type": "OIS", "quote": 0.05}, ANCHOR)

    def test_missing_quote(self):
        with pytest.raises(InvalidInstrumentError):
            instrument_from_quote({"instrument_type": "OIS", "tenor": "1Y"}, ANCHOR)

    def test_non_numeric_quote(self):
        with pytest.raises(InvalidInstrumentError):
            instrument_from_quote({"instrument_type": "OIS", "tenor": "1Y", "quote": "abc"}, ANCHOR)

    def test_unknown_type(self):
        with pytest.raises(InvalidInstrumentError, match="Unknown instrument type"):
            instrument_from_quote({"instrument_type": "DEPO", "tenor": "1Y", "quote": 0.05}, ANCHOR)

    def test_bad_frequency(self):
        with pytest.raises(InvalidInstrumentError):
            instrument_from_quote(
                {"instrument_type": "OIS", "tenor": "1Y", "quote": 0.05, "pay_freq": "WEEKLY"},
                ANCHOR
            )

    def test_calendar_failure_wrapped(self):
        with pytest.raises(CollaboratorError) as info:
            instrument_from_quote({"instrument_type": "OIS", "tenor": "5X", "quote": 0.05}, ANCHOR)
        assert info.value.collaborator == "DateUtils.add_tenor"
        assert isinstance(info.value.__cause__, ValueError)


class TestBootstrapFromQuotes:

    def test_reprices(self, quotes):
        curve = bootstrap_from_quotes(ANCHOR, quotes, name="usd")
        assert curve.name == "usd"
        assert curve.anchor_date == ANCHOR
        for inst in instruments_from_quotes(ANCHOR, quotes):
            assert abs(inst.implied_rate(curve) - inst.rate) < 1e-9

    def test_dated_queries(self, quotes):
        curve = bootstrap_from_quotes(ANCHOR, quotes)
        t = year_fraction(ANCHOR, date(2027, 1, 15), ACT)
        assert curve.discount_factor(date(2027, 1, 15)) == pytest.approx(curve.discount_factor(t))

    def test_outcome(self, quotes):
        outcome = bootstrap_outcome_from_quotes(
            ANCHOR, quotes, BootstrapConfig(interpolation="monotonic_cubic")
        )
        assert outcome.success
        assert len(outcome.diagnostics) == len(quotes)

    def test_partial_raises(self):
        bad = [
            {"instrument_type": "OIS", "tenor": "1Y", "quote": 0.05},
            {"instrument_type": "FRA", "start_tenor": "1Y", "tenor": "2Y", "quote": -1.5},
        ]
        config = BootstrapConfig(negative_rate_policy="warn", partial_on_failure=True)
        with pytest.raises(ConvergenceError):
            bootstrap_from_quotes(ANCHOR, bad, config)

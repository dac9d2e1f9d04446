"""
Tests for multi-curve construction.
"""

import pytest

from curvelib.config import BootstrapConfig
from curvelib.conventions import Frequency
from curvelib.curves import (
    FRA,
    CurveSet,
    Future,
    InterestRateSwap,
    MultiCurveBuilder,
    OISSwap,
    Tenor,
    create_flat_curve,
)
from curvelib.errors import ConvergenceError, InsufficientInstrumentsError


@pytest.fixture
def ois():
    return [OISSwap(t, q) for t, q in
            ((0.5, 0.0520), (1.0, 0.0500), (2.0, 0.0460), (5.0, 0.0415), (10.0, 0.0408))]


@pytest.fixture
def three_month():
    return [
        FRA(0.0, 0.25, 0.0545),
        FRA(0.25, 0.5, 0.0540),
        Future(0.5, 94.70),
        InterestRateSwap(2.0, 0.0490),
        InterestRateSwap(5.0, 0.0445),
    ]


@pytest.fixture
def six_month():
    return [
        FRA(0.0, 0.5, 0.0555),
        FRA(0.5, 1.0, 0.0520),
        InterestRateSwap(3.0, 0.0480, float_frequency=Frequency.SEMI_ANNUAL),
    ]


@pytest.fixture
def broken():
    # A forward of -150% needs a negative discount factor
    return [FRA(0.0, 0.5, 0.05), FRA(0.5, 1.5, -1.5)]


class TestTenor:

    def test_parse(self):
        assert Tenor.from_string("3M") == Tenor.M3
        assert Tenor.from_string(" 6m ") == Tenor.M6
        assert Tenor.from_string("O/N") == Tenor.ON
        assert Tenor.from_string("1Y") == Tenor.M12
        assert Tenor.from_string(Tenor.M1) is Tenor.M1

    def test_unknown(self):
        with pytest.raises(ValueError):
            Tenor.from_string("2W")

    def test_period(self):
        assert Tenor.M3.period_years == 0.25
        assert Tenor.default() == Tenor.M3


class TestDualCurve:

    def test_build(self, ois, three_month, six_month):
        curves = MultiCurveBuilder().build(ois, {"3M": three_month, Tenor.M6: six_month})
        assert curves.success
        assert not curves.self_discounting
        assert curves.tenors == (Tenor.M3, Tenor.M6)
        assert curves.discount_curve.name == "discount"
        assert curves.forward_curve("3M").name == "3M"
        assert set(curves.outcomes) == {"discount", "3M", "6M"}

    def test_projection_reprices_on_discount_curve(self, ois, three_month):
        curves = MultiCurveBuilder().build(ois, {"3M": three_month})
        fwd, disc = curves.forward_curve("3M"), curves.discount_curve
        for inst in three_month:
            assert abs(inst.implied_rate(fwd, disc) - inst.rate) < 1e-9
        for inst in ois:
            assert abs(inst.implied_rate(disc) - inst.rate) < 1e-9
        assert curves.forward_rate("3M", 0.25, 0.5) == pytest.approx(0.0540, abs=1e-10)

    def test_discount_curve_shared(self, ois, three_month, six_month):
        curves = MultiCurveBuilder(max_workers=1).build(ois, {"3M": three_month, "6M": six_month})
        assert curves.outcome("3M").discount_curve is curves.discount_curve
        assert curves.outcome("6M").discount_curve is curves.discount_curve
        assert curves.outcome("3M").discount_outcome is curves.outcome()

    def test_sensitivities_reach_discount_quotes(self, ois, three_month):
        curves = MultiCurveBuilder().build(ois, {"3M": three_month})
        record = curves.outcome("3M").sensitivities(4.0)
        assert {e.curve for e in record} == {"3M", "discount"}

    def test_discount_only(self, ois):
        curves = MultiCurveBuilder().build(ois)
        assert curves.tenors == ()
        assert curves.forward_curve("3M") is curves.discount_curve
        assert not curves.has_forward_curve("3M")


class TestFailures:

    def test_failed_tenor_recorded(self, ois, three_month, broken):
        config = BootstrapConfig(negative_rate_policy="warn")
        curves = MultiCurveBuilder(config).build(ois, {"3M": three_month, "6M": broken})
        assert not curves.success
        assert isinstance(curves.failures[Tenor.M6], ConvergenceError)
        assert curves.has_forward_curve("3M")
        assert not curves.has_forward_curve("6M")

    def test_partial_tenor_recorded(self, ois, broken):
        config = BootstrapConfig(negative_rate_policy="warn", partial_on_failure=True)
        curves = MultiCurveBuilder(config).build(ois, {"6M": broken})
        assert Tenor.M6 in curves.failures
        assert curves.forward_curve("6M").is_partial

    def test_fail_fast(self, ois, three_month, broken):
        config = BootstrapConfig(negative_rate_policy="warn")
        with pytest.raises(ConvergenceError):
            MultiCurveBuilder(config, fail_fast=True).build(ois, {"3M": three_month, "6M": broken})

    def test_discount_failure_is_fatal(self, three_month, broken):
        config = BootstrapConfig(negative_rate_policy="warn", partial_on_failure=True)
        with pytest.raises(ConvergenceError):
            MultiCurveBuilder(config).build(broken, {"3M": three_month})

    def test_nothing_to_build(self):
        with pytest.raises(InsufficientInstrumentsError):
            MultiCurveBuilder().build([], {})


class TestSelfDiscounting:

    def test_first_tenor_discounts(self, three_month, six_month):
        curves = MultiCurveBuilder().build(None, {"3M": three_month, "6M": six_month})
        assert curves.self_discounting
        assert curves.discount_curve is curves.forward_curve("3M")
        assert curves.outcome("6M").discount_curve is None
        for inst in six_month:
            fwd = curves.forward_curve("6M")
            assert abs(inst.implied_rate(fwd, fwd) - inst.rate) < 1e-9

    def test_failed_first_tenor_skipped(self, three_month, broken):
        config = BootstrapConfig(negative_rate_policy="warn")
        curves = MultiCurveBuilder(config).build([], {"1M": broken, "3M": three_month})
        assert curves.discount_curve is curves.forward_curve("3M")
        assert Tenor.M1 in curves.failures

    def test_all_tenors_fail(self, broken):
        config = BootstrapConfig(negative_rate_policy="warn")
        with pytest.raises(ConvergenceError):
            MultiCurveBuilder(config).build([], {"3M": broken})

    def test_single_curve(self, ois):
        curves = MultiCurveBuilder().build_single_curve(ois, name="sofr")
        assert curves.self_discounting
        assert curves.discount_curve.name == "sofr"
        assert curves.outcome().curve is curves.discount_curve


class TestCurveSet:

    def test_read_only(self):
        curve = create_flat_curve(0.04)
        curves = CurveSet(curve, forward_curves={Tenor.M3: curve})
        with pytest.raises(TypeError):
            curves.forward_curves[Tenor.M6] = curve
        with pytest.raises(AttributeError):
            curves.discount_curve = curve

    def test_discount_factor(self):
        curve = create_flat_curve(0.03)
        curves = CurveSet.single_curve(curve)
        assert curves.discount_factor(2.0) == curve.discount_factor(2.0)
        assert curves.forward_curve(Tenor.M6) is curve

    def test_build_many(self, ois, three_month, six_month):
        sets = MultiCurveBuilder().build_many({
            "usd": (ois, {"3M": three_month}),
            "eur": (None, {"6M": six_month}),
        })
        assert list(sets) == ["usd", "eur"]
        assert not sets["usd"].self_discounting
        assert sets["eur"].self_discounting

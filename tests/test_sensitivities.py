"""
Tests for adjoint curve sensitivities and the bump-and-rebuild checks.
"""

import numpy as np
import pandas as pd
import pytest

from curvelib.config import BootstrapConfig
from curvelib.curves import FRA, CurveBootstrapper, Future, InterestRateSwap, OISSwap, bootstrap
from curvelib.risk import BumpEngine, SensitivityRecord


OIS = [(1.0, 0.050), (2.0, 0.046), (3.0, 0.0435), (5.0, 0.0415), (10.0, 0.0408)]
IRS = [(1.0, 0.0535), (2.0, 0.0495), (3.0, 0.047), (5.0, 0.045)]


@pytest.fixture
def discount():
    return CurveBootstrapper(name="discount").bootstrap([OISSwap(t, q) for t, q in OIS])


@pytest.fixture
def projection(discount):
    swaps = [InterestRateSwap(t, q) for t, q in IRS]
    return CurveBootstrapper(discount_curve=discount, name="3M").bootstrap(swaps)


class TestAnalytic:
    """Single-pillar curves with closed-form derivatives."""

    def test_one_period_ois(self):
        q = 0.05
        record = bootstrap([OISSwap(1.0, q)]).sensitivities(1.0)
        assert len(record) == 1
        assert record.get("OIS 1Y") == pytest.approx(-1.0 / (1.0 + q) ** 2, rel=1e-12)

    def test_fra_from_today(self):
        q = 0.04
        record = bootstrap([FRA(0.0, 0.5, q)]).sensitivities(0.5)
        assert record.get("FRA 0Mx6M") == pytest.approx(-0.5 / (1.0 + 0.5 * q) ** 2, rel=1e-12)

    def test_future_per_unit_rate(self):
        """Futures are differentiated against the futures rate, not the price."""
        fut = Future.from_rate(0.0, 0.05)
        record = bootstrap([fut]).sensitivities(0.25)
        assert record.values()[0] == pytest.approx(-0.25 / (1.0 + 0.25 * 0.05) ** 2, rel=1e-10)


class TestAdjointVsBump:

    @pytest.mark.parametrize("method", ["log_linear", "linear_zero_rate", "flat_forward",
                                        "natural_cubic", "monotonic_cubic"])
    @pytest.mark.parametrize("t", [0.7, 2.0, 4.2, 10.0])
    def test_single_curve(self, method, t):
        outcome = bootstrap([OISSwap(m, q) for m, q in OIS], BootstrapConfig(interpolation=method))
        verification = BumpEngine(outcome).verify_sensitivities(t, tolerance=1e-6)
        assert verification.within_tolerance, verification.to_frame()
        assert len(verification.checks) == len(OIS)

    def test_pillar_jacobian(self, discount):
        adjoint = discount.jacobian()
        bumped = BumpEngine(discount).pillar_jacobian()
        assert list(adjoint.columns) == list(bumped.columns)
        np.testing.assert_allclose(adjoint.values, bumped.values, atol=1e-6)

    def test_chained_through_discount_curve(self, projection):
        verification = BumpEngine(projection).verify_sensitivities(3.5, tolerance=1e-6)
        assert verification.within_tolerance, verification.to_frame()
        curves = {c.curve for c in verification.checks}
        assert curves == {"3M", "discount"}
        assert verification.max_abs_diff < 1e-6

    def test_chained_jacobian(self, projection):
        adjoint = projection.jacobian()
        bumped = BumpEngine(projection).pillar_jacobian()
        assert adjoint.shape == (len(IRS), len(IRS) + len(OIS))
        np.testing.assert_allclose(adjoint.values, bumped.values, atol=1e-6)


class TestStructure:

    def test_reverse_mode_matches_forward_mode(self, projection):
        t = 2.6
        record = projection.sensitivities(t)
        forward = projection.curve.node_sensitivities(t) @ projection.jacobian().values
        np.testing.assert_allclose(record.values(), forward, rtol=1e-10, atol=1e-14)

    def test_local_scheme_ignores_later_quotes(self, discount):
        record = discount.sensitivities(2.0)
        assert record.get("OIS 3Y") == 0.0
        assert record.get("OIS 10Y") == 0.0
        assert record.get("OIS 2Y") < 0

    def test_own_quotes_are_lower_triangular(self, discount):
        matrix = discount.pillar_jacobian()
        assert np.allclose(matrix, np.tril(matrix))
        assert np.all(np.diag(matrix) < 0)

    def test_non_local_scheme_spreads(self):
        outcome = bootstrap([OISSwap(m, q) for m, q in OIS],
                            BootstrapConfig(interpolation="natural_cubic"))
        record = outcome.sensitivities(4.0)
        assert abs(record.get("OIS 10Y")) > 0

    def test_single_period_instruments_do_not_read_discounting(self, discount):
        fras = [FRA(0.0, 0.5, 0.052), FRA(0.5, 1.0, 0.051), FRA(1.0, 1.5, 0.049)]
        outcome = CurveBootstrapper(discount_curve=discount, name="6M").bootstrap(fras)
        record = outcome.sensitivities(1.2)
        assert all(e.value == 0.0 for e in record if e.curve == "discount")
        assert any(e.value != 0.0 for e in record if e.curve == "6M")

    def test_projection_depends_on_discount_quotes(self, projection):
        record = projection.sensitivities(5.0)
        assert any(abs(e.value) > 1e-6 for e in record if e.curve == "discount")


class TestSensitivityRecord:

    def test_accessors(self, projection):
        record = projection.sensitivities(3.0)
        assert isinstance(record, SensitivityRecord)
        assert record.curve == "3M"
        assert record.discount_factor == projection.curve.discount_factor(3.0)
        assert record.get("IRS 3Y", curve="3M") == record.to_dict()[("3M", "IRS 3Y")]
        assert record.get("OIS 2Y") == record.to_dict()[("discount", "OIS 2Y")]

    def test_unknown_key(self, projection):
        record = projection.sensitivities(3.0)
        with pytest.raises(KeyError):
            record.get("OIS 7Y")
        with pytest.raises(KeyError):
            record.get("IRS 3Y", curve="discount")

    def test_series(self, projection):
        series = projection.sensitivities(3.0).to_series()
        assert isinstance(series, pd.Series)
        assert series.index.names == ["curve", "instrument"]
        assert series[("3M", "IRS 5Y")] == 0.0

    def test_jacobian_frame(self, projection):
        frame = projection.jacobian()
        assert list(frame.index) == [f"IRS {t:g}Y" for t, _ in IRS]
        assert frame.columns.names == ["curve", "instrument"]


class TestBumpEngine:

    def test_rejects_partial(self):
        config = BootstrapConfig(negative_rate_policy="warn", partial_on_failure=True)
        outcome = bootstrap([OISSwap(1.0, 0.05), FRA(1.0, 2.0, -1.5)], config)
        with pytest.raises(ValueError):
            BumpEngine(outcome)

    def test_rejects_bad_bump(self, discount):
        with pytest.raises(ValueError):
            BumpEngine(discount, bump=0.0)

    def test_rebuild_moves_one_pillar(self, discount):
        engine = BumpEngine(discount)
        bumped = engine.rebuild({("discount", "OIS 3Y"): 1e-4}).curve
        base = discount.curve
        assert bumped.discount_factor(2.0) == base.discount_factor(2.0)
        assert bumped.discount_factor(3.0) < base.discount_factor(3.0)

    def test_rebuild_propagates_to_projection(self, projection):
        engine = BumpEngine(projection)
        bumped = engine.rebuild({("discount", "OIS 5Y"): 1e-4})
        assert bumped.discount_curve.discount_factor(5.0) < projection.discount_curve.discount_factor(5.0)
        for inst in bumped.instruments:
            assert abs(inst.implied_rate(bumped.curve, bumped.discount_curve) - inst.rate) < 1e-9

    def test_failures_listed(self, discount):
        verification = BumpEngine(discount).verify_sensitivities(4.0, tolerance=1e-30)
        assert len(verification.failures()) <= len(verification.checks)
        assert verification.to_frame().shape[0] == len(OIS)

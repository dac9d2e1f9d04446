#!/usr/bin/env python
"""
Curve Library Demo Script

This script walks through the curve construction workflow:
1. Build an OIS discounting curve from market quotes
2. Build a 3M projection curve on top of it
3. Inspect solver diagnostics and repricing errors
4. Compute adjoint sensitivities and check them against bump-and-rebuild
5. Export curves and diagnostics to CSV

Usage:
    python run_demo.py [--output-dir OUTPUT_DIR] [--interpolation METHOD]
"""

import argparse
import sys
from datetime import date
from pathlib import Path

import pandas as pd

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from curvelib.config import BootstrapConfig
from curvelib.curves import (
    CurveSet,
    MultiCurveBuilder,
    instruments_from_quotes,
)
from curvelib.risk import BumpEngine


OIS_QUOTES = [
    ("1M", 0.0532), ("3M", 0.0530), ("6M", 0.0522), ("1Y", 0.0500),
    ("2Y", 0.0460), ("3Y", 0.0435), ("5Y", 0.0415), ("7Y", 0.0410),
    ("10Y", 0.0408), ("15Y", 0.0410), ("20Y", 0.0405), ("30Y", 0.0395),
]

LIBOR_3M_QUOTES = [
    {"instrument_type": "FRA", "start_tenor": "0D", "tenor": "3M", "quote": 0.0548},
    {"instrument_type": "FRA", "start_tenor": "3M", "tenor": "6M", "quote": 0.0541},
    {"instrument_type": "FUT", "tenor": "6M", "quote": 94.70, "convexity": 0.00005},
    {"instrument_type": "IRS", "tenor": "2Y", "quote": 0.0488},
    {"instrument_type": "IRS", "tenor": "5Y", "quote": 0.0441},
    {"instrument_type": "IRS", "tenor": "10Y", "quote": 0.0432},
]


def build_curves(valuation_date: date, config: BootstrapConfig) -> CurveSet:
    """Build the OIS discounting curve and the 3M projection curve."""
    print("\n" + "="*60)
    print("Building Curves")
    print("="*60)

    ois_quotes = [{"instrument_type": "OIS", "tenor": t, "quote": q} for t, q in OIS_QUOTES]
    for tenor, rate in OIS_QUOTES:
        print(f"  OIS {tenor:>4s} @ {rate*100:.3f}%")

    discount = instruments_from_quotes(valuation_date, ois_quotes)
    forward = instruments_from_quotes(valuation_date, LIBOR_3M_QUOTES)

    builder = MultiCurveBuilder(config, anchor_date=valuation_date)
    curves = builder.build(discount, {"3M": forward})

    print(f"\nInterpolation: {config.interpolation.value}")
    print(f"Discount curve: {len(curves.discount_curve)} pillars")
    for tenor in curves.tenors:
        print(f"{tenor.label} forward curve: {len(curves.forward_curve(tenor))} pillars")
    for tenor, error in curves.failures.items():
        print(f"{tenor.label} FAILED: {error}")
    return curves


def show_diagnostics(curves: CurveSet) -> pd.DataFrame:
    """Print per-pillar solver diagnostics for every curve."""
    print("\n" + "="*60)
    print("Solver Diagnostics")
    print("="*60)

    frames = []
    for name, outcome in curves.outcomes.items():
        frame = outcome.diagnostics_frame()
        frame.insert(0, "curve", name)
        frames.append(frame)
        fallbacks = sum(d.used_fallback for d in outcome.diagnostics)
        print(f"\n{name}: max repricing error {outcome.max_repricing_error:.2e}, "
              f"{fallbacks} fallback solves, {outcome.passes} global passes")
        for warning in outcome.warnings:
            print(f"  WARNING: {warning}")

    diagnostics = pd.concat(frames, ignore_index=True)
    with pd.option_context("display.width", 120, "display.max_columns", None):
        print()
        print(diagnostics[["curve", "instrument_id", "maturity", "discount_factor",
                           "solver", "iterations", "residual"]].to_string(index=False))
    return diagnostics


def show_curve(curves: CurveSet) -> pd.DataFrame:
    """Print zero and forward rates at standard tenors."""
    print("\n" + "="*60)
    print("Curve Summary")
    print("="*60)

    disc = curves.discount_curve
    fwd = curves.forward_curve("3M")
    rows = []
    for t in [0.25, 0.5, 1, 2, 3, 5, 7, 10, 15, 20, 30]:
        rows.append({
            "tenor": t,
            "discount_factor": disc.discount_factor(t),
            "ois_zero_%": disc.zero_rate(t) * 100,
            "3m_forward_%": fwd.forward_rate(t, t + 0.25) * 100,
        })
    summary = pd.DataFrame(rows)
    print(summary.to_string(index=False, float_format=lambda x: f"{x:.6f}"))
    return summary


def show_sensitivities(curves: CurveSet, horizon: float) -> pd.Series:
    """Adjoint sensitivities of a 3M-curve discount factor to every quote."""
    print("\n" + "="*60)
    print(f"Sensitivities of P_3M(0, {horizon:g}Y) (per bp)")
    print("="*60)

    record = curves.outcome("3M").sensitivities(horizon)
    series = record.to_series() * 1e-4
    for (curve, inst_id), value in series.items():
        if value != 0.0:
            print(f"  {curve:>8s}  {inst_id:<12s} {value:+.4e}")

    print("\nChecking against bump-and-rebuild...")
    verification = BumpEngine(curves.outcome("3M")).verify_sensitivities(horizon)
    print(f"  Max abs diff: {verification.max_abs_diff:.3e}")
    print(f"  Max rel diff: {verification.max_rel_diff:.3e}")
    print(f"  Within tolerance: {verification.within_tolerance}")
    for check in verification.failures():
        print(f"  MISMATCH {check.curve}/{check.instrument_id}: "
              f"adjoint {check.adjoint:.6e} vs bump {check.finite_difference:.6e}")
    return series


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Curve Library Demo")
    parser.add_argument(
        "--output-dir",
        type=str,
        default="./output",
        help="Output directory for CSV exports"
    )
    parser.add_argument(
        "--interpolation",
        type=str,
        default="log_linear",
        help="Interpolation scheme (log_linear, linear_zero_rate, natural_cubic, "
             "monotonic_cubic, flat_forward)"
    )
    parser.add_argument(
        "--horizon",
        type=float,
        default=4.0,
        help="Maturity in years for the sensitivity report"
    )
    args = parser.parse_args()

    output_dir = Path(args.output_dir)
    valuation_date = date(2024, 1, 15)
    config = BootstrapConfig(interpolation=args.interpolation)

    print("="*60)
    print("CURVE LIBRARY DEMO")
    print(f"Valuation Date: {valuation_date}")
    print("="*60)

    curves = build_curves(valuation_date, config)
    diagnostics = show_diagnostics(curves)
    summary = show_curve(curves)
    sensitivities = show_sensitivities(curves, args.horizon)

    output_dir.mkdir(parents=True, exist_ok=True)
    diagnostics.to_csv(output_dir / "diagnostics.csv", index=False)
    summary.to_csv(output_dir / "curve_summary.csv", index=False)
    curves.discount_curve.to_frame().to_csv(output_dir / "discount_curve.csv", index=False)
    curves.forward_curve("3M").to_frame().to_csv(output_dir / "forward_3m_curve.csv", index=False)
    sensitivities.to_frame().to_csv(output_dir / "sensitivities.csv")
    print(f"\nExported results to {output_dir}")

    print("\n" + "="*60)
    print("DEMO COMPLETE")
    print("="*60)


if __name__ == "__main__":
    main()

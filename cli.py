"""Resilience lab CLI.

Command-line interface for the harvested fish population model and the
early-warning-signal engine.

Usage:
    python cli.py simulate --K 10 --c 1 --y0 8 [--no-noise] [--output traj.csv]
    python cli.py equilibria --K 10 --c 1 2 2.5 3
    python cli.py compare --K 10 --c 1 2.5 [--seed 42]
    python cli.py forced --K 10 --c-start 0 --c-end 5 [--plot forced.png]
    python cli.py ews data.csv --column 0 --window 100 [--detrend gaussian]
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
import traceback
from typing import Any

import numpy as np


# ===================================================================
# Text formatting utilities
# ===================================================================

def _header(title: str, width: int = 78) -> str:
    """Return a formatted section header."""
    lines = [
        "",
        "=" * width,
        f"  {title}",
        "=" * width,
    ]
    return "\n".join(lines)


def _subheader(title: str, width: int = 78) -> str:
    """Return a formatted sub-section header."""
    return f"\n--- {title} {'-' * max(0, width - len(title) - 5)}"


def _table(headers: list[str], rows: list[list[str]], indent: int = 2) -> str:
    """Build a simple text table with auto-sized columns."""
    if not rows:
        return "  (no data)"

    col_widths = []
    for i, header in enumerate(headers):
        width = max([len(str(header))] + [len(str(row[i])) for row in rows if i < len(row)])
        col_widths.append(width + 2)

    prefix = " " * indent
    hdr_line = prefix + "".join(str(h).ljust(w) for h, w in zip(headers, col_widths))
    sep_line = prefix + "-" * sum(col_widths)
    body_lines = [
        prefix + "".join(str(c).ljust(w) for c, w in zip(row, col_widths))
        for row in rows
    ]
    return "\n".join([hdr_line, sep_line] + body_lines)


def _kv(key: str, value: Any, indent: int = 4) -> str:
    """Format a key-value pair."""
    return f"{' ' * indent}{key:30s}: {value}"


def _ff(v: float, decimals: int = 4) -> str:
    """Format a float."""
    return f"{v:.{decimals}f}"


def _config_from_args(args: argparse.Namespace):
    from resilience.config import (
        EWSConfig,
        ModelParams,
        NoiseConfig,
        ResilienceConfig,
        SimulationConfig,
    )

    return ResilienceConfig(
        model=ModelParams(K=args.K, c=args.c),
        simulation=SimulationConfig(t_start=0.0, t_end=args.t_end, dt=args.dt, y0=args.y0),
        noise=NoiseConfig(low=args.noise_low, high=args.noise_high, enabled=not args.no_noise),
        ews=(
            EWSConfig(detrend=args.detrend) if args.window is None
            else EWSConfig(window_size=args.window, detrend=args.detrend)
        ),
        random_seed=args.seed,
    )


# ===================================================================
# Commands
# ===================================================================

def cmd_simulate(args: argparse.Namespace) -> int:
    """Integrate the model once and summarise the trajectory."""
    from experiments.fisheries_resilience import run_configured
    from resilience.simulator import simulate_from_config

    config = _config_from_args(args)
    if args.window is not None:
        result = run_configured(config)
        traj = result["trajectory"]
    else:
        result = None
        traj = simulate_from_config(config)

    params, sim = config.model, config.simulation
    print(_header("Simulation"))
    print(_kv("K / c", f"{params.K:g} / {params.c:g}"))
    print(_kv("Grid", f"[0, {sim.t_end:g}] step {sim.dt:g} ({len(traj)} points)"))
    noise = config.noise
    print(_kv("Noise", "off" if not noise.enabled else f"U[{noise.low:g}, {noise.high:g}], seed={config.random_seed}"))
    print(_kv("x(0)", _ff(traj.states[0])))
    print(_kv("x(T)", _ff(traj.final_state)))
    print(_kv("min / max", f"{_ff(traj.states.min())} / {_ff(traj.states.max())}"))

    if result is not None:
        print(_subheader(f"Kendall tau (window={config.ews.window_size}, detrend={config.ews.detrend})"))
        for name, tau in result["kendall"].items():
            print(_kv(name, _ff(tau, 3)))

    if args.output:
        traj.to_frame().to_csv(args.output, index=False)
        print(_kv("Trajectory written to", args.output))
    if args.plot:
        from resilience.plotting import plot_trajectory, save_figure

        save_figure(plot_trajectory(traj), args.plot)
        print(_kv("Figure written to", args.plot))
    return 0


def cmd_equilibria(args: argparse.Namespace) -> int:
    """Tabulate equilibria and their stability for several harvest rates."""
    from resilience.simulator import find_equilibria, fold_points

    print(_header(f"Equilibria (K={args.K:g})"))
    rows = []
    for c in args.c:
        for eq in find_equilibria(args.K, c):
            rows.append([
                _ff(c, 3), _ff(eq.state), _ff(eq.eigenvalue),
                "stable" if eq.stable else "unstable",
            ])
    print(_table(["c", "x*", "f'(x*)", "type"], rows))

    print(_subheader("Fold points"))
    folds = fold_points(args.K)
    if not folds:
        print("  (no bistable range for this K)")
    for c_fold, x_fold in folds:
        print(_kv(f"c = {_ff(c_fold)}", f"x = {_ff(x_fold)}"))
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare EWS on stationary segments for several harvest rates."""
    from experiments.fisheries_resilience import run_resilience_comparison

    results = run_resilience_comparison(
        K=args.K,
        harvest_rates=tuple(args.c),
        y0=args.y0,
        t_end=args.t_end,
        dt=args.dt,
        burn_in=args.burn_in,
        noise_range=(args.noise_low, args.noise_high),
        seed=args.seed,
        window_fraction=args.window_fraction,
        detrend_method=args.detrend,
    )

    print(_header("Resilience comparison"))
    rows = [
        [_ff(c, 3), _ff(r["equilibrium"]), _ff(r["recovery_rate"]),
         _ff(r["ar1"]), _ff(r["variance"], 6)]
        for c, r in results.items()
    ]
    print(_table(["c", "x*", "recovery", "AR(1)", "variance"], rows))
    return 0


def cmd_forced(args: argparse.Namespace) -> int:
    """Ramp the harvest rate through the fold and report EWS trends."""
    from experiments.fisheries_resilience import run_forced_transition

    result = run_forced_transition(
        K=args.K,
        forcing_table=((0.0, args.c_start), (args.t_end, args.c_end)),
        y0=args.y0,
        t_end=args.t_end,
        dt=args.dt,
        noise_range=(args.noise_low, args.noise_high),
        seed=args.seed,
        window_fraction=args.window_fraction,
        detrend_method=args.detrend,
        bandwidth=args.bandwidth,
    )

    print(_header("Forced transition"))
    print(_kv("Upper fold c", _ff(result["fold_c"])))
    t_tr = result["transition_time"]
    print(_kv("Transition time", "none" if t_tr is None else _ff(t_tr, 2)))
    print(_kv("EWS windows", result["ews"].n_windows))
    print(_subheader("Kendall tau"))
    for name, tau in result["kendall"].items():
        print(_kv(name, _ff(tau, 3)))

    if args.plot:
        from resilience.plotting import plot_ews, save_figure

        save_figure(plot_ews(result["ews"], series=result["pre_transition"]), args.plot)
        print(_kv("Figure written to", args.plot))
    return 0


def cmd_ews(args: argparse.Namespace) -> int:
    """Early-warning signals for one column of an observation matrix."""
    from resilience.datasets import load_dataset, load_observation_matrix, select_longitude
    from resilience.early_warning import compute_ews, kendall_trend, window_from_fraction
    from resilience.types import ScalarSeries

    if args.coords:
        if args.lon is None:
            raise ValueError("--lon is required together with --coords")
        dataset = load_dataset(args.input, args.coords)
        series = select_longitude(dataset, args.lon)
    else:
        matrix = load_observation_matrix(args.input)
        values = matrix[:, args.column]
        values = values[np.isfinite(values)]
        series = ScalarSeries(values, name=f"column {args.column}")
    series = series.between(args.start, args.end)

    window = args.window
    if window is None:
        window = window_from_fraction(max(len(series), 1), args.window_fraction)
    result = compute_ews(series, window, detrend_method=args.detrend, bandwidth=args.bandwidth)

    print(_header(f"Early-warning signals: {series.name}"))
    print(_kv("Observations", len(series)))
    print(_kv("Window", window))
    print(_kv("Detrending", result.detrend_method))
    print(_kv("Windows", result.n_windows))
    if not result.is_empty:
        print(_subheader("Kendall tau"))
        for name, tau in kendall_trend(result).items():
            print(_kv(name, _ff(tau, 3)))

    if args.output:
        result.to_frame().to_csv(args.output)
        print(_kv("EWS written to", args.output))
    if args.plot:
        from resilience.plotting import plot_ews, save_figure

        save_figure(plot_ews(result), args.plot)
        print(_kv("Figure written to", args.plot))
    return 0


# ===================================================================
# Argument parser
# ===================================================================

def _add_model_args(p: argparse.ArgumentParser, t_end: float, dt: float) -> None:
    p.add_argument("--K", type=float, default=10.0, help="Carrying capacity (default: 10)")
    p.add_argument("--y0", type=float, default=8.0, help="Initial population (default: 8)")
    p.add_argument("--t-end", dest="t_end", type=float, default=t_end,
                   help=f"End time (default: {t_end:g})")
    p.add_argument("--dt", type=float, default=dt, help=f"RK4 step (default: {dt:g})")


def _add_noise_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--noise-low", dest="noise_low", type=float, default=-1.0,
                   help="Lower bound of uniform noise (default: -1)")
    p.add_argument("--noise-high", dest="noise_high", type=float, default=1.0,
                   help="Upper bound of uniform noise (default: 1)")
    p.add_argument("--seed", type=int, default=42,
                   help="Random seed for reproducibility (default: 42)")


def _add_ews_args(p: argparse.ArgumentParser, detrend: str) -> None:
    p.add_argument("--window-fraction", dest="window_fraction", type=float, default=0.5,
                   help="Rolling window as a fraction of the series (default: 0.5)")
    p.add_argument("--detrend", choices=["none", "linear", "gaussian"], default=detrend,
                   help=f"Detrending method (default: {detrend})")


def build_parser() -> argparse.ArgumentParser:
    """Construct the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="resilience",
        description="Resilience lab CLI -- harvested population model and "
                    "early-warning signals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              python cli.py simulate --K 10 --c 1 --no-noise
              python cli.py equilibria --K 10 --c 1 2.5
              python cli.py compare --c 1 2.5 --seed 42
              python cli.py forced --c-start 0 --c-end 5
              python cli.py ews data.csv --column 3 --window 200
        """),
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ---- simulate ----
    p_sim = subparsers.add_parser("simulate", help="Integrate the model once")
    _add_model_args(p_sim, t_end=100.0, dt=0.01)
    p_sim.add_argument("--c", type=float, default=1.0, help="Harvest rate (default: 1)")
    _add_noise_args(p_sim)
    p_sim.add_argument("--no-noise", action="store_true", help="Disable process noise")
    p_sim.add_argument("--window", type=int, default=None,
                       help="Also compute EWS with this window length (samples)")
    p_sim.add_argument("--detrend", choices=["none", "linear", "gaussian"], default="gaussian",
                       help="Detrending for --window (default: gaussian)")
    p_sim.add_argument("--output", help="Write the trajectory to this CSV file")
    p_sim.add_argument("--plot", help="Write a trajectory figure to this path")

    # ---- equilibria ----
    p_eq = subparsers.add_parser("equilibria", help="Equilibria and fold points")
    p_eq.add_argument("--K", type=float, default=10.0, help="Carrying capacity (default: 10)")
    p_eq.add_argument("--c", type=float, nargs="+", default=[1.0, 2.5],
                      help="Harvest rates to evaluate (default: 1 2.5)")

    # ---- compare ----
    p_cmp = subparsers.add_parser("compare", help="Compare EWS across harvest rates")
    _add_model_args(p_cmp, t_end=500.0, dt=0.1)
    p_cmp.add_argument("--c", type=float, nargs="+", default=[1.0, 2.5],
                       help="Harvest rates to compare (default: 1 2.5)")
    p_cmp.add_argument("--burn-in", dest="burn_in", type=float, default=200.0,
                       help="Time discarded before the stationary segment (default: 200)")
    _add_noise_args(p_cmp)
    _add_ews_args(p_cmp, detrend="linear")

    # ---- forced ----
    p_forced = subparsers.add_parser("forced", help="Ramp c through the fold")
    _add_model_args(p_forced, t_end=1000.0, dt=0.2)
    p_forced.add_argument("--c-start", dest="c_start", type=float, default=0.0,
                          help="Harvest rate at t=0 (default: 0)")
    p_forced.add_argument("--c-end", dest="c_end", type=float, default=5.0,
                          help="Harvest rate at t_end (default: 5)")
    p_forced.add_argument("--bandwidth", type=float, default=None,
                          help="Gaussian bandwidth in samples (default: 10%% of series)")
    _add_noise_args(p_forced)
    _add_ews_args(p_forced, detrend="gaussian")
    p_forced.add_argument("--plot", help="Write an EWS figure to this path")

    # ---- ews ----
    p_ews = subparsers.add_parser("ews", help="EWS for one column of a data file")
    p_ews.add_argument("input", help="Observation matrix (.csv, .npy or .npz)")
    p_ews.add_argument("--column", type=int, default=0, help="Column index (default: 0)")
    p_ews.add_argument("--coords", help="Coordinate file; select the column by --lon")
    p_ews.add_argument("--lon", type=float, help="Longitude to select (with --coords)")
    p_ews.add_argument("--start", default=None,
                       help="First time to keep (number, or date such as 2004-06-01)")
    p_ews.add_argument("--end", default=None,
                       help="Last time to keep (number, or date such as 2004-06-01)")
    p_ews.add_argument("--window", type=int, default=None,
                       help="Window length in samples (overrides --window-fraction)")
    p_ews.add_argument("--bandwidth", type=float, default=None,
                       help="Gaussian bandwidth in samples (default: 10%% of series)")
    _add_ews_args(p_ews, detrend="gaussian")
    p_ews.add_argument("--output", help="Write the EWS table to this CSV file")
    p_ews.add_argument("--plot", help="Write an EWS figure to this path")

    return parser


# ===================================================================
# Main entry point
# ===================================================================

_COMMAND_MAP = {
    "simulate": cmd_simulate,
    "equilibria": cmd_equilibria,
    "compare": cmd_compare,
    "forced": cmd_forced,
    "ews": cmd_ews,
}


def main(argv: list[str] | None = None) -> int:
    """CLI main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )

    if args.command is None:
        parser.print_help()
        return 0

    handler = _COMMAND_MAP.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except Exception as exc:
        print(f"\nError: {exc}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc(file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Stochastic Lattice - Command Line Runner

Builds a lattice, feeds it a constant input for a number of passes and logs
the summary vector after each one.

Usage:
    python -m lattice --topology torus --shape 5 5 --state-dim 3 --passes 10 --seed 7
    python -m lattice --topology layered --shape 4 4 2 --learn
"""

import argparse
import logging
from typing import List, Optional

import numpy as np

from .engine import create_lattice
from .lattice_constants import (
    TOPOLOGY_KINDS, TOPOLOGY_TORUS, NOISE_DISTRIBUTIONS, NOISE_NORMAL,
    DEFAULT_HURST, DEFAULT_PATH_LENGTH, LatticeConfig,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stochastic lattice propagation")
    parser.add_argument("--topology", choices=TOPOLOGY_KINDS, default=TOPOLOGY_TORUS)
    parser.add_argument("--shape", type=int, nargs="+", default=[5, 5],
                        help="Axis extents, or layer sizes for the layered topology")
    parser.add_argument("--state-dim", type=int, default=3)
    parser.add_argument("--flow-dim", type=int, default=None, help="Defaults to --state-dim")
    parser.add_argument("--radius", type=int, nargs="+", default=None, help="Per-axis torus radius")
    parser.add_argument("--passes", type=int, default=10)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--correlated", action="store_true", help="Use Hurst-path noise")
    parser.add_argument("--hurst", type=float, default=DEFAULT_HURST)
    parser.add_argument("--path-length", type=int, default=DEFAULT_PATH_LENGTH)
    parser.add_argument("--distribution", choices=NOISE_DISTRIBUTIONS, default=NOISE_NORMAL)
    parser.add_argument("--learn", action="store_true",
                        help="After each pass, learn from (summary - input)")
    parser.add_argument("--save", default=None, help="Write a JSON snapshot when done")
    return parser


def run(args: argparse.Namespace) -> np.ndarray:
    config = LatticeConfig(
        correlated=args.correlated,
        hurst=args.hurst,
        path_length=args.path_length,
        distribution=args.distribution,
        seed=args.seed,
    )
    flow_dim = args.flow_dim if args.flow_dim is not None else args.state_dim
    lattice = create_lattice(
        args.topology, args.shape, args.state_dim, flow_dim,
        radius=args.radius, config=config,
    )

    signal = np.zeros(args.state_dim)
    signal[0] = 1.0
    summary = signal
    for n in range(1, args.passes + 1):
        summary = lattice.propagate(signal)
        logger.info(f"Pass {n}: summary={np.array2string(summary, precision=4)}")
        if args.learn:
            lattice.learn(summary - signal)

    logger.info(f"Stats: {lattice.stats.to_dict()}, max flow drift={lattice.max_flow_drift():.3e}")
    if args.save:
        lattice.save_state(args.save)
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )
    args = build_parser().parse_args(argv)
    try:
        run(args)
    except (ValueError, IndexError) as e:
        logger.error(f"Lattice run failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

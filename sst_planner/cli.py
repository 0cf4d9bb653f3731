# cli.py
"""
Command line entry point: plan through an obstacle map and report the path.

Map files use the map editor's JSON layout::

    {
      "circles":    [{"center": [x, y], "radius": r}],
      "rectangles": [{"corner1": [x, y], "corner2": [x, y]}],
      "polygons":   [[[x, y], [x, y], [x, y]]]
    }
"""

import argparse
import json
import logging
import sys

import numpy as np
from tqdm import tqdm

from .collision import CollisionChecker, ObstacleSet
from .config import BATCH_SIZE, PlannerConfig, PropagationStrategy, SelectionPolicy
from .dynamics import make_model
from .errors import ConfigurationError, ObstacleFileError
from .planner import path_length
from .sst import SSTPlanner

LOG_FMT = "[%(asctime)s] %(levelname)-7s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def load_obstacles(filename):
    """Load an ObstacleSet from a map file, raising ObstacleFileError."""
    try:
        with open(filename, "r") as f:
            data = json.load(f)
    except OSError as e:
        raise ObstacleFileError(f"can not read obstacle file {filename}: {e}") from e
    except json.JSONDecodeError as e:
        raise ObstacleFileError(f"{filename} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ObstacleFileError(f"{filename}: expected a JSON object at top level")

    obstacles = ObstacleSet()
    try:
        for circle in data.get("circles", []):
            obstacles.add_circle(np.array(circle["center"], dtype=float), float(circle["radius"]))
        for rect in data.get("rectangles", []):
            obstacles.add_rectangle(np.array(rect["corner1"], dtype=float),
                                    np.array(rect["corner2"], dtype=float))
        for poly in data.get("polygons", []):
            obstacles.add_polygon(np.array(poly, dtype=float))
    except (KeyError, TypeError, ValueError) as e:
        raise ObstacleFileError(f"{filename}: malformed obstacle entry: {e}") from e

    logger.info("loaded %d obstacles from %s", len(obstacles), filename)
    return obstacles


def _corner(model, fraction):
    """Point a fraction of the way across the obstacle plane, per axis."""
    lo, hi = model.bounds[list(model.config_dims)].T
    return lo + fraction * (hi - lo)


def _full_state(model, values, name):
    state = np.zeros(model.state_dim)
    values = np.asarray(values, dtype=float)
    if len(values) > model.state_dim:
        raise ConfigurationError(f"--{name} has {len(values)} values, model {model.name} "
                                 f"has {model.state_dim} state dimensions")
    state[:len(values)] = values
    return state


def build_parser():
    parser = argparse.ArgumentParser(
        prog="sst-plan",
        description="Stable Sparse RRT kinodynamic planning through a 2D obstacle map")
    parser.add_argument("obstacles", help="JSON obstacle map")
    parser.add_argument("--max-iterations", type=int, default=5000)
    parser.add_argument("--time-budget", type=float, default=None,
                        help="wall clock limit in seconds")
    parser.add_argument("--model", choices=["point", "dubins", "boat"], default="point")
    parser.add_argument("--selection", choices=[s.value for s in SelectionPolicy],
                        default=SelectionPolicy.UNIFORM.value)
    parser.add_argument("--propagation", choices=[p.value for p in PropagationStrategy],
                        default=PropagationStrategy.RANDOM_CONTROL.value)
    parser.add_argument("--batch", type=int, default=None,
                        help="propagate this many random controls per iteration")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--start", type=float, nargs="+", default=None,
                        help="start state, missing dimensions are 0 "
                             "(default: 10%% in from the lower world corner)")
    parser.add_argument("--goal", type=float, nargs=2, default=None,
                        help="goal centre (default: 10%% in from the upper world corner)")
    parser.add_argument("--goal-radius", type=float, default=0.5)
    parser.add_argument("--stop-on-goal", action="store_true")
    parser.add_argument("--show-witnesses", action="store_true",
                        help="draw witnesses and their representatives")
    parser.add_argument("--plot", action="store_true", help="show the tree when done")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format=LOG_FMT, datefmt="%H:%M:%S")

    try:
        obstacles = load_obstacles(args.obstacles)
        model = make_model(args.model)
        config = PlannerConfig(
            seed=args.seed,
            max_iterations=args.max_iterations,
            time_budget=args.time_budget,
            stop_on_goal=args.stop_on_goal,
            selection=args.selection,
            propagation=args.propagation,
            batch_propagation=args.batch is not None,
            batch_size=args.batch or BATCH_SIZE,
        )
        checker = CollisionChecker(obstacles, bounds=model.bounds[list(model.config_dims)],
                                   footprint=model.footprint)
        start = _full_state(model, _corner(model, 0.1) if args.start is None else args.start,
                            "start")
        goal = _corner(model, 0.9) if args.goal is None else args.goal
        planner = SSTPlanner(model, checker, start, (goal, args.goal_radius), config)
    except (ObstacleFileError, ConfigurationError) as e:
        logger.error("%s", e)
        return 2

    with planner:
        with tqdm(total=config.max_iterations, desc="SST", unit="iter") as pbar:
            def on_iteration(p, outcome):
                pbar.update(1)
                if p.best_goal_id is not None:
                    pbar.set_postfix({"best_cost": f"{p.best_cost:.3f}"})

            result = planner.plan(callback=on_iteration)

        if result.success:
            print(f"Path found: cost {result.cost:.3f}, {len(result.edges)} edges, "
                  f"length {path_length(result.states, model):.3f}")
        else:
            print(f"No path after {result.stats.iterations} iterations")
        print(result.stats.summary())

        if args.plot:
            import matplotlib.pyplot as plt
            from .visualization import plot_snapshot

            plot_snapshot(planner.snapshot(), obstacles, show_witnesses=args.show_witnesses)
            plt.show()

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())

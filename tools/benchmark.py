"""Deterministic benchmarking harness for the line scheduler.

Runs the optimizer over synthetic workloads for a range of seeds and prints a
timing/profit table. ``--tune N`` instead runs an Optuna study over the main
GA hyperparameters (install the ``tuning`` extra).
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, List

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from rich.table import Table  # noqa: E402

from line_scheduler.common.console import get_console  # noqa: E402
from line_scheduler.services.genetic_optimizer import (  # noqa: E402
    GeneticAlgorithmConfig,
    GeneticSchedulerOptimizer,
)
from line_scheduler.services.local_search import LocalSearchConfig  # noqa: E402
from line_scheduler.utils.genetic_algorithm_logger import GeneticAlgorithmLogger  # noqa: E402
from tests.fixtures.synthetic_workloads import generate_workload  # noqa: E402


def _run_iteration(args: argparse.Namespace, seed: int, **overrides: Any) -> Dict[str, Any]:
    context = generate_workload(
        order_count=args.orders, product_count=args.products, max_quantity=args.max_quantity
    )
    config = GeneticAlgorithmConfig(
        population_size=overrides.get("population_size", args.population),
        max_generations=args.generations,
        crossover_rate=overrides.get("crossover_rate", 0.8),
        mutation_rate=overrides.get("mutation_rate", 0.1),
        local_search_elites=args.elites,
        local_search=LocalSearchConfig(initial_temperature=args.temperature),
        seed=seed,
    )

    optimizer = GeneticSchedulerOptimizer(config)
    started = time.perf_counter()
    best = optimizer.optimize(context)
    elapsed = time.perf_counter() - started
    schedule = optimizer.get_detailed_schedule()

    return {
        "seed": seed,
        "operations": context.total_operations,
        "generations": len(optimizer.generation_history),
        "fitness": best.fitness,
        "profit": schedule.profit,
        "production_cost": schedule.production_cost,
        "penalty": schedule.penalty,
        "late_orders": len(schedule.late_order_ids),
        "seconds": elapsed,
        "history": optimizer.generation_history,
    }


def run_benchmark(args: argparse.Namespace) -> List[Dict[str, Any]]:
    return [_run_iteration(args, seed) for seed in range(args.seed, args.seed + args.runs)]


def run_tuning(args: argparse.Namespace, trials: int) -> Dict[str, Any]:
    import optuna

    def objective(trial):
        params = {
            "population_size": trial.suggest_int("population_size", 10, 80, step=10),
            "crossover_rate": trial.suggest_float("crossover_rate", 0.5, 1.0),
            "mutation_rate": trial.suggest_float("mutation_rate", 0.01, 0.3),
        }
        return _run_iteration(args, args.seed + trial.number, **params)["fitness"]

    study = optuna.create_study(direction="minimize")
    study.optimize(objective, n_trials=trials)
    return {"best_params": study.best_params, "best_fitness": study.best_value}


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--orders", type=int, default=20, help="Synthetic orders per run")
    parser.add_argument("--products", type=int, default=5, help="Synthetic products")
    parser.add_argument("--max-quantity", type=int, default=3, help="Largest order quantity")
    parser.add_argument("--runs", type=int, default=3, help="Number of seeds to run")
    parser.add_argument("--seed", type=int, default=1, help="First seed")
    parser.add_argument("--population", type=int, default=30)
    parser.add_argument("--generations", type=int, default=20)
    parser.add_argument("--elites", type=int, default=3, help="Local search elites")
    parser.add_argument(
        "--temperature", type=float, default=50.0, help="Local search start temperature"
    )
    parser.add_argument("--history", action="store_true", help="Print the last run's history")
    parser.add_argument("--json", action="store_true", help="Dump raw results as JSON")
    parser.add_argument("--tune", type=int, metavar="TRIALS", help="Run an Optuna study")
    args = parser.parse_args()

    console = get_console()

    if args.tune:
        result = run_tuning(args, args.tune)
        console.print("[bold cyan]Tuning result[/bold cyan]")
        console.print(json.dumps(result, indent=2))
        return

    results = run_benchmark(args)

    if args.json:
        console.print(
            json.dumps([{k: v for k, v in r.items() if k != "history"} for r in results], indent=2)
        )
        return

    table = Table(title="Line scheduler benchmark")
    for column in ("Seed", "Ops", "Gens", "Profit", "Cost", "Penalty", "Late", "Time"):
        table.add_column(column, justify="right")
    for r in results:
        table.add_row(
            str(r["seed"]),
            str(r["operations"]),
            str(r["generations"]),
            f"{r['profit']:.2f}",
            f"{r['production_cost']:.2f}",
            f"{r['penalty']:.2f}",
            str(r["late_orders"]),
            f"{r['seconds']:.2f}s",
        )
    console.print(table)

    if args.history and results:
        GeneticAlgorithmLogger.print_generation_history(results[-1]["history"], console)


if __name__ == "__main__":
    main()

from datetime import timedelta
from typing import Dict, List, Optional, TYPE_CHECKING
import logging
import math

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from line_scheduler.models import ScheduleResult
from line_scheduler.utils.utils import style_datetime, style_duration

if TYPE_CHECKING:
    from line_scheduler.services.chromosome import ProductionChromosome
    from line_scheduler.services.genetic_optimizer import GeneticAlgorithmConfig

LOGGER_NAME = "line_scheduler.services.genetic_optimizer"


def _improvement_pct(old_fitness: float, new_fitness: float) -> float:
    if not math.isfinite(old_fitness) or old_fitness == 0:
        return 0.0
    return (old_fitness - new_fitness) / abs(old_fitness) * 100


class GeneticAlgorithmLogger:
    """Logger for genetic algorithm optimization progress and results."""

    def __init__(self):
        self.logger = logging.getLogger(LOGGER_NAME)

    @staticmethod
    def print_optimization_config(config: "GeneticAlgorithmConfig", console: Console):
        """Print genetic algorithm configuration details."""
        console.print(f"\n[bold yellow]⚙️  Genetic Algorithm Configuration[/bold yellow]")
        console.print(f"Population size: {config.population_size}")
        console.print(f"Max generations: {config.max_generations}")
        console.print(f"Crossover rate: {config.crossover_rate}")
        console.print(
            f"Mutation rate: {config.mutation_rate} "
            f"(+{config.mutation_rate_step} after {config.stagnation_threshold} "
            f"stagnant generations, max {config.max_mutation_rate})"
        )
        console.print(f"Tournament size: {config.tournament_size}")
        console.print(f"Local search elites: {config.local_search_elites}")
        ls = config.local_search
        console.print(
            f"  • temperature {ls.initial_temperature} → {ls.min_temperature} "
            f"(x{ls.cooling_rate} per sweep), tabu tenure {ls.tabu_tenure}"
        )
        if config.time_limit_seconds is not None:
            console.print(
                f"Time limit: {style_duration(timedelta(seconds=config.time_limit_seconds))}"
            )

    @staticmethod
    def print_optimization_summary(
        schedule: ScheduleResult,
        chromosome: "ProductionChromosome",
        optimization_time: float,
        console: Console,
    ):
        """Print optimization summary with key metrics."""
        console.print(f"\n[bold green]✅ Optimization Complete![/bold green]")
        console.print(f"Optimization time: {optimization_time:.2f} seconds")
        console.print(
            f"[bold cyan]🎯 Final Fitness Score: {chromosome.fitness:.2f}[/bold cyan] (lower is better)"
        )

        summary = Table(title="💰 Profit Breakdown", box=box.ROUNDED)
        summary.add_column("Metric", style="bold")
        summary.add_column("Value", justify="right")
        summary.add_row("Revenue", f"{schedule.revenue:.2f}")
        summary.add_row("Production cost", f"{schedule.production_cost:.2f}")
        summary.add_row("Penalty", f"{schedule.penalty:.2f}")
        summary.add_row("Profit", f"[bold]{schedule.profit:.2f}[/bold]")
        summary.add_row("Operations", str(len(schedule.jobs)))
        summary.add_row(
            "Blocks opened", str(sum(1 for job in schedule.jobs if job.charged_cost > 0))
        )
        summary.add_row("Late orders", str(len(schedule.late_order_ids)))
        if schedule.completion_times:
            summary.add_row(
                "Last completion", style_datetime(max(schedule.completion_times.values()))
            )
        console.print(summary)

    @staticmethod
    def print_generation_history(
        generation_history: List[Dict], console: Optional[Console] = None
    ) -> None:
        """Print a detailed table showing the evolution across generations."""
        if console is None:
            console = Console()

        table = Table(
            title="🧬 Genetic Algorithm Evolution History",
            show_header=True,
            header_style="bold magenta",
        )

        table.add_column("Gen", style="cyan", width=4)
        table.add_column("Current Best", style="green", width=12)
        table.add_column("Global Best", style="bold green", width=12)
        table.add_column("Average", style="yellow", width=12)
        table.add_column("Worst", style="red", width=12)
        table.add_column("Stagnation", style="yellow", width=10)
        table.add_column("Mutation", style="blue", width=8)
        table.add_column("Improvement", style="bold", width=12)

        for data in generation_history:
            if data["new_best"]:
                improvement = Text("🎯 NEW BEST", style="bold green")
            elif data["stagnation"] == 0:
                improvement = Text("✅ Progress", style="green")
            else:
                improvement = Text(f"⏳ Stagnant", style="dim")

            if data["stagnation"] > 10:
                stagnation_style = "bold red"
            elif data["stagnation"] > 5:
                stagnation_style = "red"
            elif data["stagnation"] > 0:
                stagnation_style = "yellow"
            else:
                stagnation_style = "green"

            table.add_row(
                str(data["generation"]),
                f"{data['best_fitness']:.2f}",
                f"{data['global_best_fitness']:.2f}",
                f"{data['avg_fitness']:.2f}",
                f"{data['worst_fitness']:.2f}",
                Text(str(data["stagnation"]), style=stagnation_style),
                f"{data['mutation_rate']:.2f}",
                improvement,
            )

        console.print("\n")
        console.print(table)

        if generation_history:
            initial_best = generation_history[0]["best_fitness"]
            final_best = generation_history[-1]["global_best_fitness"]

            console.print(f"\n[bold green]📊 Evolution Summary:[/bold green]")
            console.print(f"  Initial Best Fitness: {initial_best:.2f}")
            console.print(f"  Final Best Fitness: {final_best:.2f}")
            console.print(
                f"  Total Improvement: {_improvement_pct(initial_best, final_best):.1f}%"
            )
            console.print(f"  Generations Run: {len(generation_history)}")
            new_best_count = sum(1 for data in generation_history if data["new_best"])
            console.print(f"  New Best Found: {new_best_count} times")

    def configure_evolution_logging(self, level: str = "INFO") -> None:
        """Configure logging to see genetic algorithm evolution progress.

        Args:
            level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        """
        logging.basicConfig(
            level=getattr(logging, level.upper()),
            format="%(asctime)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler()],
        )
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(getattr(logging, level.upper()))

    def log_optimization_start(
        self, num_operations: int, config: "GeneticAlgorithmConfig"
    ) -> None:
        self.logger.info(
            f"🧬 Starting genetic algorithm optimization with {num_operations} operations"
        )
        self.logger.info(
            f"   Population size: {config.population_size}, Max generations: {config.max_generations}"
        )
        self.logger.info(
            f"   Local search on top {config.local_search_elites} individuals per generation"
        )

    def log_new_best_found(
        self, generation: int, fitness: float, old_fitness: float
    ) -> None:
        self.logger.info(
            f"🎯 NEW BEST found in generation {generation}! "
            f"Profit: {-fitness:.2f} (improved by {_improvement_pct(old_fitness, fitness):.1f}%)"
        )

    def log_generation_summary(self, generation_data: Dict) -> None:
        """Log generation summary (every generation for first 10, then every 10th)."""
        generation = generation_data["generation"]
        found_new_best = generation_data["new_best"]
        if generation <= 10 or generation % 10 == 0 or found_new_best:
            stagnation = generation_data["stagnation"]
            stagnation_status = (
                "🔥 Active" if stagnation == 0 else f"⏳ Stagnant ({stagnation})"
            )
            self.logger.info(
                f"📊 Gen {generation:3d}: Best={generation_data['best_fitness']:.2f} "
                f"Global={generation_data['global_best_fitness']:.2f} "
                f"Avg={generation_data['avg_fitness']:.2f} "
                f"Mutation={generation_data['mutation_rate']:.2f} {stagnation_status}"
            )
        else:
            self.logger.debug(
                f"Gen {generation}: Best={generation_data['best_fitness']:.2f}"
            )

    def log_time_limit_reached(self, generation: int, time_limit: float) -> None:
        self.logger.info(
            f"⏹️  Stopping before generation {generation + 1}: time limit of {time_limit}s reached."
        )

    def log_callback_failure(self, error: Exception) -> None:
        self.logger.warning(f"Progress callback failed: {error}")

    def log_optimization_complete(
        self,
        generations_run: int,
        final_fitness: float,
        initial_fitness: float,
        best_schedule: ScheduleResult,
    ) -> None:
        """Log optimization completion summary with cost breakdown."""
        self.logger.info(f"✅ Optimization complete! Ran {generations_run} generations")
        self.logger.info(
            f"   Final fitness: {final_fitness:.2f} "
            f"(improved {_improvement_pct(initial_fitness, final_fitness):.1f}% from start)"
        )
        self.logger.info(
            f"   Revenue {best_schedule.revenue:.2f}, production cost "
            f"{best_schedule.production_cost:.2f}, penalty {best_schedule.penalty:.2f}"
        )
        if best_schedule.late_order_ids:
            self.logger.info(
                f"   ⚠️  Late orders: {len(best_schedule.late_order_ids)} "
                f"({', '.join(str(order_id) for order_id in best_schedule.late_order_ids[:5])}"
                f"{', ...' if len(best_schedule.late_order_ids) > 5 else ''})"
            )
        else:
            self.logger.info(f"   🎉 Every order finishes by its deadline")

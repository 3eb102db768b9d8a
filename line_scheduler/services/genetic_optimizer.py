from dataclasses import dataclass, field
from datetime import datetime
from typing import (
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
    TYPE_CHECKING,
)
import random
import time

from line_scheduler.common.settings import evolution_logging_enabled, get_default_seed
from line_scheduler.models import Order, Product, ScheduleContext, ScheduleResult
from line_scheduler.services.chromosome import (
    PopulationInitializer,
    ProductionChromosome,
)
from line_scheduler.services.decoder import ScheduleDecoder
from line_scheduler.services.genetic_operators import GeneticOperators
from line_scheduler.services.local_search import HybridLocalSearch, LocalSearchConfig

if TYPE_CHECKING:
    from line_scheduler.utils.genetic_algorithm_logger import GeneticAlgorithmLogger


@dataclass
class GeneticAlgorithmConfig:
    """Configuration for the genetic algorithm."""

    population_size: int = 50
    max_generations: int = 100
    crossover_rate: float = 0.8
    mutation_rate: float = 0.1  # Base rate, restored whenever the search progresses
    tournament_size: int = 5
    stagnation_threshold: int = 10  # Generations without improvement before boosting mutation
    mutation_rate_step: float = 0.05
    max_mutation_rate: float = 0.5
    local_search_elites: int = 5  # Best individuals refined per generation
    local_search: LocalSearchConfig = field(default_factory=LocalSearchConfig)
    time_limit_seconds: Optional[float] = None  # Checked between generations only
    seed: Optional[int] = None  # None = LINE_SCHEDULER_SEED or unseeded

    def __post_init__(self):
        if self.population_size < 1:
            raise ValueError("population_size must be at least 1")
        if self.max_generations < 0:
            raise ValueError("max_generations must not be negative")
        for name in ("crossover_rate", "mutation_rate", "max_mutation_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.tournament_size < 1:
            raise ValueError("tournament_size must be at least 1")
        if self.local_search_elites < 0:
            raise ValueError("local_search_elites must not be negative")


class GeneticSchedulerOptimizer:
    """
    Genetic Algorithm optimizer for production line scheduling.

    Evolves (operation sequence, line assignment) chromosomes by:
    1. Seeding a population with product-clustered, deadline-sorted and random individuals
    2. Evaluating fitness (-profit) with the deterministic decoder
    3. Evolving through tournament selection, OX/uniform crossover and mutation
    4. Refining the best individuals of each generation with VNS + SA + TS local search
    """

    def __init__(self, config: Optional[GeneticAlgorithmConfig] = None):
        self.config = config or GeneticAlgorithmConfig()
        seed = self.config.seed if self.config.seed is not None else get_default_seed()
        self.rng = random.Random(seed)
        self.context: Optional[ScheduleContext] = None
        self.decoder: Optional[ScheduleDecoder] = None
        self.best_chromosome: Optional[ProductionChromosome] = None
        self.mutation_rate = self.config.mutation_rate
        self.stagnation_counter = 0
        self.generation_history: List[Dict] = []  # Track evolution across generations

    def optimize(
        self,
        context: ScheduleContext,
        logger: Optional["GeneticAlgorithmLogger"] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> ProductionChromosome:
        """
        Find the most profitable schedule for the admitted orders.

        Args:
            context: Products, admitted orders and plan start
            logger: Optional logger for evolution logging and display
            progress_callback: Optional callback for progress updates (generation, total_generations)

        Returns:
            The best chromosome found; decode it with get_detailed_schedule()
        """
        self.context = context
        self.decoder = ScheduleDecoder(context)
        self.mutation_rate = self.config.mutation_rate
        self.stagnation_counter = 0
        self.generation_history = []

        if not context.orders:
            self.best_chromosome = ProductionChromosome.empty()
            self.best_chromosome.fitness = 0.0
            return self.best_chromosome

        if logger:
            logger.log_optimization_start(context.total_operations, self.config)

        started = time.monotonic()
        operators = GeneticOperators(
            self.rng, context.num_lines, self.config.tournament_size
        )
        local_search = HybridLocalSearch(self.decoder, self.rng, self.config.local_search)

        population = PopulationInitializer(context, self.rng).initialize(
            self.config.population_size
        )
        self._evaluate_population(population)
        best_chromosome = min(population, key=lambda c: c.fitness).copy()
        initial_fitness = best_chromosome.fitness

        for generation in range(self.config.max_generations):
            if self._time_limit_reached(started):
                if logger:
                    logger.log_time_limit_reached(generation, self.config.time_limit_seconds)
                break

            if progress_callback:
                try:
                    progress_callback(generation + 1, self.config.max_generations)
                except Exception as e:
                    # Don't let callback errors stop optimization
                    if logger:
                        logger.log_callback_failure(e)

            self._adjust_mutation_rate()
            parents = operators.select_parents(population)
            new_population = operators.create_next_generation(
                parents, self.config.crossover_rate, self.mutation_rate
            )
            self._evaluate_population(new_population)
            self._refine_elites(new_population, local_search)

            current_best = min(new_population, key=lambda c: c.fitness)
            found_new_best = current_best.fitness < best_chromosome.fitness
            if found_new_best:
                if logger:
                    logger.log_new_best_found(
                        generation + 1, current_best.fitness, best_chromosome.fitness
                    )
                best_chromosome = current_best.copy()
                self.stagnation_counter = 0
            else:
                self.stagnation_counter += 1

            fitness_scores = [chromosome.fitness for chromosome in new_population]
            generation_data = {
                "generation": generation + 1,
                "best_fitness": current_best.fitness,
                "avg_fitness": sum(fitness_scores) / len(fitness_scores),
                "worst_fitness": max(fitness_scores),
                "global_best_fitness": best_chromosome.fitness,
                "stagnation": self.stagnation_counter,
                "mutation_rate": self.mutation_rate,
                "new_best": found_new_best,
            }
            self.generation_history.append(generation_data)
            if logger:
                logger.log_generation_summary(generation_data)

            population = new_population

        self.best_chromosome = best_chromosome

        if logger:
            logger.log_optimization_complete(
                len(self.generation_history),
                best_chromosome.fitness,
                initial_fitness,
                self.get_detailed_schedule(),
            )

        return best_chromosome

    def get_detailed_schedule(
        self, chromosome: Optional[ProductionChromosome] = None
    ) -> ScheduleResult:
        """Decode ``chromosome`` (default: the stored best) into a reportable schedule."""
        if self.decoder is None:
            raise RuntimeError("Optimizer has not been run yet")
        target = chromosome if chromosome is not None else self.best_chromosome
        if target is None:
            raise RuntimeError("No best chromosome available")
        return self.decoder.decode(target)

    def _evaluate_population(self, population: List[ProductionChromosome]) -> None:
        for chromosome in population:
            self.decoder.evaluate(chromosome)

    def _refine_elites(
        self, population: List[ProductionChromosome], local_search: HybridLocalSearch
    ) -> None:
        """Run the hybrid local search on the best individuals, in place."""
        population.sort(key=lambda c: c.fitness)
        elite_count = min(len(population), self.config.local_search_elites)
        for chromosome in population[:elite_count]:
            local_search.refine(chromosome)

    def _adjust_mutation_rate(self) -> None:
        """Boost mutation while stagnating, restore the base rate otherwise."""
        if self.stagnation_counter > self.config.stagnation_threshold:
            self.mutation_rate = min(
                self.config.max_mutation_rate,
                self.mutation_rate + self.config.mutation_rate_step,
            )
        else:
            self.mutation_rate = self.config.mutation_rate

    def _time_limit_reached(self, started: float) -> bool:
        limit = self.config.time_limit_seconds
        return limit is not None and time.monotonic() - started >= limit


def optimize_schedule(
    products: List[Product],
    orders: List[Order],
    plan_start: datetime,
    config: Optional[GeneticAlgorithmConfig] = None,
    enable_evolution_logging: Optional[bool] = None,
    log_level: str = "INFO",
) -> Tuple[ScheduleResult, ProductionChromosome, "GeneticSchedulerOptimizer"]:
    """
    Convenience function to optimize a production plan using the genetic algorithm.

    Args:
        products: Products with their unit processing times
        orders: Orders already admitted for this plan (arrival filtering is the caller's job)
        plan_start: Anchor of the 4h block grid
        config: Genetic algorithm configuration (optional)
        enable_evolution_logging: Whether to enable logging to see evolution progress
            (optional, defaults to LINE_SCHEDULER_EVOLUTION_LOGGING)
        log_level: Logging level for evolution tracking ("DEBUG", "INFO", "WARNING", "ERROR")

    Returns:
        Tuple of (best_schedule, best_chromosome, optimizer)
        The optimizer contains generation_history for displaying evolution if desired.
    """
    if enable_evolution_logging is None:
        enable_evolution_logging = evolution_logging_enabled()

    logger = None
    if enable_evolution_logging:
        from line_scheduler.utils.genetic_algorithm_logger import GeneticAlgorithmLogger

        logger = GeneticAlgorithmLogger()
        logger.configure_evolution_logging(log_level)

    context = ScheduleContext(products=products, orders=orders, plan_start=plan_start)
    optimizer = GeneticSchedulerOptimizer(config)
    best_chromosome = optimizer.optimize(context, logger)

    return optimizer.get_detailed_schedule(), best_chromosome, optimizer

from .chromosome import PopulationInitializer, ProductionChromosome
from .cost_model import aligned_deadline, block_cost, cost_coefficient, next_block_start
from .decoder import ScheduleDecoder, decode
from .genetic_operators import GeneticOperators
from .genetic_optimizer import (
    GeneticAlgorithmConfig,
    GeneticSchedulerOptimizer,
    optimize_schedule,
)
from .local_search import HybridLocalSearch, LocalSearchConfig

__all__ = [
    "PopulationInitializer",
    "ProductionChromosome",
    "aligned_deadline",
    "block_cost",
    "cost_coefficient",
    "next_block_start",
    "ScheduleDecoder",
    "decode",
    "GeneticOperators",
    "GeneticAlgorithmConfig",
    "GeneticSchedulerOptimizer",
    "optimize_schedule",
    "HybridLocalSearch",
    "LocalSearchConfig",
]

from typing import List, Optional, Sequence, Tuple, TypeVar
import random

from line_scheduler.services.chromosome import ProductionChromosome

T = TypeVar("T")


class GeneticOperators:
    """Selection, crossover and mutation over production chromosomes."""

    def __init__(
        self,
        rng: random.Random,
        num_lines: int,
        tournament_size: int = 5,
    ):
        self.rng = rng
        self.num_lines = num_lines
        self.tournament_size = tournament_size

    # MARK: - Selection

    def tournament_selection(
        self, population: Sequence[ProductionChromosome]
    ) -> ProductionChromosome:
        """Pick the fittest of ``tournament_size`` contenders drawn with replacement."""
        contenders = [
            population[self.rng.randrange(len(population))]
            for _ in range(self.tournament_size)
        ]
        return min(contenders, key=lambda chromosome: chromosome.fitness)

    def select_parents(
        self, population: Sequence[ProductionChromosome]
    ) -> List[ProductionChromosome]:
        """Run one tournament per population slot."""
        return [self.tournament_selection(population) for _ in range(len(population))]

    # MARK: - Crossover

    def crossover(
        self, parent1: ProductionChromosome, parent2: ProductionChromosome
    ) -> Tuple[ProductionChromosome, ProductionChromosome]:
        """OX on the operation sequence, uniform crossover on the machine assignment."""
        size = len(parent1)
        if size == 0:
            return parent1.copy(), parent2.copy()

        cut1 = self.rng.randrange(size)
        cut2 = self.rng.randrange(size)
        start, end = min(cut1, cut2), max(cut1, cut2)

        child1_sequence = self.order_crossover(
            parent1.operation_sequence, parent2.operation_sequence, start, end
        )
        child2_sequence = self.order_crossover(
            parent2.operation_sequence, parent1.operation_sequence, start, end
        )
        child1_assignment = self.uniform_crossover(
            parent1.machine_assignment, parent2.machine_assignment
        )
        child2_assignment = self.uniform_crossover(
            parent2.machine_assignment, parent1.machine_assignment
        )

        return (
            ProductionChromosome(child1_sequence, child1_assignment),
            ProductionChromosome(child2_sequence, child2_assignment),
        )

    @staticmethod
    def order_crossover(
        donor: Sequence[T], other: Sequence[T], start: int, end: int
    ) -> List[T]:
        """Perform order crossover (OX) for sequence order.

        ``donor[start..end]`` (inclusive) is copied in place; the remaining
        positions are filled circularly from ``end + 1`` with ``other``'s genes,
        read in order from ``end + 1`` and skipping genes already placed.
        """
        size = len(donor)
        child: List[Optional[T]] = [None] * size
        child[start : end + 1] = donor[start : end + 1]
        placed = set(donor[start : end + 1])

        child_index = (end + 1) % size
        for offset in range(size):
            gene = other[(end + 1 + offset) % size]
            if gene in placed:
                continue
            child[child_index] = gene
            placed.add(gene)
            child_index = (child_index + 1) % size

        return [gene for gene in child if gene is not None]

    def uniform_crossover(self, first: Sequence[int], second: Sequence[int]) -> List[int]:
        return [
            a if self.rng.random() < 0.5 else b for a, b in zip(first, second)
        ]

    # MARK: - Mutation

    def mutate(self, chromosome: ProductionChromosome, mutation_rate: float) -> None:
        """Swap two sequence positions and/or reassign one line, each gated by the rate."""
        size = len(chromosome)

        if self.rng.random() < mutation_rate and size > 1:
            index1, index2 = self.rng.sample(range(size), 2)
            sequence = chromosome.operation_sequence
            sequence[index1], sequence[index2] = sequence[index2], sequence[index1]

        if self.rng.random() < mutation_rate and size > 0 and self.num_lines > 1:
            index = self.rng.randrange(size)
            chromosome.machine_assignment[index] = self.different_line(
                chromosome.machine_assignment[index]
            )

    def different_line(self, current: int) -> int:
        """Uniformly random line other than ``current``."""
        choice = self.rng.randint(1, self.num_lines - 1)
        return choice if choice < current else choice + 1

    # MARK: - Generation

    def create_next_generation(
        self,
        parents: List[ProductionChromosome],
        crossover_rate: float,
        mutation_rate: float,
    ) -> List[ProductionChromosome]:
        """Elitism, then crossover + mutation on random parent pairs until full."""
        population_size = len(parents)
        if population_size == 0:
            return []

        elite = min(parents, key=lambda chromosome: chromosome.fitness)
        next_generation = [elite.copy()]

        while len(next_generation) < population_size:
            parent1 = self.rng.choice(parents)
            parent2 = self.rng.choice(parents)

            if self.rng.random() < crossover_rate:
                child1, child2 = self.crossover(parent1, parent2)
            else:
                child1, child2 = parent1.copy(), parent2.copy()

            self.mutate(child1, mutation_rate)
            self.mutate(child2, mutation_rate)
            next_generation.extend([child1, child2])

        # Trim to exact population size
        return next_generation[:population_size]

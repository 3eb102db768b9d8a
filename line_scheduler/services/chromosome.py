from dataclasses import dataclass, field
from typing import List
import random

from line_scheduler.models import (
    OperationId,
    ScheduleConsistencyError,
    ScheduleContext,
)


@dataclass
class ProductionChromosome:
    """
    DNA representation for the genetic algorithm.

    Two index-aligned genes fully determine a schedule:
    - operation_sequence: a permutation of every operation (reservation order)
    - machine_assignment: the production line (1..num_lines) of each position
    """

    operation_sequence: List[OperationId]
    machine_assignment: List[int]
    fitness: float = field(default=float("inf"))  # Lower is better (-profit)

    def __post_init__(self):
        if len(self.operation_sequence) != len(self.machine_assignment):
            raise ValueError(
                f"Operation sequence ({len(self.operation_sequence)}) and machine "
                f"assignment ({len(self.machine_assignment)}) lengths differ"
            )
        if len(set(self.operation_sequence)) != len(self.operation_sequence):
            raise ValueError("Operation sequence contains duplicates")

    def __len__(self) -> int:
        return len(self.operation_sequence)

    def copy(self) -> "ProductionChromosome":
        return ProductionChromosome(
            list(self.operation_sequence), list(self.machine_assignment), self.fitness
        )

    def restore(self, snapshot: "ProductionChromosome") -> None:
        """Overwrite this chromosome in place with the genes of ``snapshot``."""
        self.operation_sequence[:] = snapshot.operation_sequence
        self.machine_assignment[:] = snapshot.machine_assignment
        self.fitness = snapshot.fitness

    def validate(self, context: ScheduleContext) -> None:
        """Check the permutation and line-range invariants against ``context``."""
        if len(self.operation_sequence) != len(self.machine_assignment):
            raise ScheduleConsistencyError("Chromosome genes are not index-aligned")
        expected = set(context.operations())
        if (
            len(self.operation_sequence) != len(expected)
            or set(self.operation_sequence) != expected
        ):
            raise ScheduleConsistencyError(
                "Operation sequence is not a permutation of the context operations"
            )
        for position, line_id in enumerate(self.machine_assignment):
            if not 1 <= line_id <= context.num_lines:
                raise ScheduleConsistencyError(
                    f"Line {line_id} at position {position} is outside 1..{context.num_lines}"
                )

    @classmethod
    def empty(cls) -> "ProductionChromosome":
        return cls([], [])


class PopulationInitializer:
    """
    Seeds the initial population with three cohorts:

    1. first 40%: operations clustered by product id (favours batching)
    2. next 30%: operations sorted by aligned deadline (urgent work first)
    3. remaining: random shuffle of the identity sequence

    Machine assignment is always uniformly random per position.
    """

    PRODUCT_COHORT_SHARE = 0.4
    DEADLINE_COHORT_SHARE = 0.7  # Cumulative

    def __init__(self, context: ScheduleContext, rng: random.Random):
        self.context = context
        self.rng = rng
        orders = {order.order_id: order for order in context.orders}
        self._operations = context.operations()
        self._product_of = {
            op: orders[op.order_id].product_id for op in self._operations
        }
        self._deadline_of = {
            op: orders[op.order_id].aligned_deadline for op in self._operations
        }

    def initialize(self, population_size: int) -> List[ProductionChromosome]:
        population = []
        for index in range(population_size):
            sequence = self._sequence_for(index, population_size)
            assignment = [
                self.rng.randint(1, self.context.num_lines)
                for _ in range(len(sequence))
            ]
            population.append(ProductionChromosome(sequence, assignment))
        return population

    def _sequence_for(self, index: int, population_size: int) -> List[OperationId]:
        if index < population_size * self.PRODUCT_COHORT_SHARE:
            return sorted(self._operations, key=self._product_of.__getitem__)
        if index < population_size * self.DEADLINE_COHORT_SHARE:
            return sorted(self._operations, key=self._deadline_of.__getitem__)
        sequence = list(self._operations)
        self.rng.shuffle(sequence)
        return sequence

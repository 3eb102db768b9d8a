"""Hybrid VNS + SA + TS intensification for elite chromosomes.

VNS picks the neighbourhood, simulated annealing decides whether a worse move
is accepted, and a short tabu list blocks recently used moves unless they beat
the best fitness seen in the run (aspiration).
"""

from __future__ import annotations

import logging
import math
import random
from collections import deque
from dataclasses import dataclass
from typing import Deque, Hashable, Tuple

from line_scheduler.services.chromosome import ProductionChromosome
from line_scheduler.services.decoder import ScheduleDecoder

logger = logging.getLogger(__name__)

MoveSignature = Tuple[Hashable, ...]

MACHINE_REASSIGNMENT = 1
SEQUENCE_SWAP = 2
SEQUENCE_RELOCATION = 3
NEIGHBORHOOD_COUNT = 3


@dataclass
class LocalSearchConfig:
    """Annealing schedule and tabu tenure for the hybrid local search."""

    initial_temperature: float = 200.0
    cooling_rate: float = 0.95  # Applied once per full sweep of the neighbourhoods
    min_temperature: float = 1.0
    tabu_tenure: int = 10

    def __post_init__(self):
        if not 0.0 < self.cooling_rate < 1.0:
            raise ValueError(f"cooling_rate must be in (0, 1), got {self.cooling_rate}")
        if self.min_temperature <= 0.0:
            raise ValueError("min_temperature must be positive")
        if self.tabu_tenure < 1:
            raise ValueError("tabu_tenure must be at least 1")


class HybridLocalSearch:
    def __init__(
        self,
        decoder: ScheduleDecoder,
        rng: random.Random,
        config: LocalSearchConfig | None = None,
    ):
        self.decoder = decoder
        self.rng = rng
        self.config = config or LocalSearchConfig()
        self.num_lines = decoder.context.num_lines
        # Move signatures forbidden at the end of the last refine() call
        self.tabu: Deque[MoveSignature] = deque(maxlen=self.config.tabu_tenure)

    def refine(self, chromosome: ProductionChromosome) -> int:
        """Improve ``chromosome`` in place and return the number of accepted moves.

        ``chromosome.fitness`` must already hold its decoded fitness. On exit the
        chromosome holds the best state seen during the run, so its fitness never
        gets worse than on entry.
        """
        if len(chromosome) == 0:
            return 0

        config = self.config
        temperature = config.initial_temperature
        tabu = self.tabu = deque(maxlen=config.tabu_tenure)
        best = chromosome.copy()
        entry_fitness = chromosome.fitness
        accepted_moves = 0

        while temperature > config.min_temperature:
            k = MACHINE_REASSIGNMENT
            while k <= NEIGHBORHOOD_COUNT:
                snapshot = chromosome.copy()
                signature = self._apply_move(chromosome, k)
                new_fitness = self.decoder.decode(chromosome).fitness
                delta = new_fitness - snapshot.fitness

                if signature in tabu and not new_fitness < best.fitness:
                    accept = False
                elif delta < 0:
                    accept = True
                else:
                    accept = self.rng.random() < math.exp(-delta / temperature)

                if accept:
                    chromosome.fitness = new_fitness
                    if new_fitness < best.fitness:
                        best = chromosome.copy()
                    tabu.append(signature)
                    accepted_moves += 1
                    k = MACHINE_REASSIGNMENT
                else:
                    chromosome.restore(snapshot)
                    k += 1

            temperature *= config.cooling_rate

        chromosome.restore(best)
        logger.debug(
            "Local search: %.2f -> %.2f after %d accepted moves",
            entry_fitness,
            best.fitness,
            accepted_moves,
        )
        return accepted_moves

    def _apply_move(self, chromosome: ProductionChromosome, k: int) -> MoveSignature:
        size = len(chromosome)
        sequence = chromosome.operation_sequence
        assignment = chromosome.machine_assignment

        if k == MACHINE_REASSIGNMENT:
            position = self.rng.randrange(size)
            old_line = assignment[position]
            if self.num_lines > 1:
                new_line = self.rng.randint(1, self.num_lines - 1)
                assignment[position] = new_line if new_line < old_line else new_line + 1
            return ("MACH", position, old_line)

        if k == SEQUENCE_SWAP:
            first = self.rng.randrange(size)
            second = self.rng.randrange(size)
            if size > 1:
                while second == first:
                    second = self.rng.randrange(size)
            sequence[first], sequence[second] = sequence[second], sequence[first]
            return ("SWAP", min(first, second), max(first, second))

        source = self.rng.randrange(size)
        target = self.rng.randrange(size)
        if size > 1:
            while target == source:
                target = self.rng.randrange(size)
        # The machine entry travels with its operation
        sequence.insert(target, sequence.pop(source))
        assignment.insert(target, assignment.pop(source))
        return ("INSERT", source)

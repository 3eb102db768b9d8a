from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
import math

# MARK: - Constants

NUM_LINES = 3
BLOCK_HOURS = 4.0
PENALTY_RATE = 0.1
BASE_PAY_PER_BLOCK = 200.0


# MARK: - Errors


class ScheduleConsistencyError(LookupError):
    """Raised when orders, products or a chromosome reference something that does not exist."""


# MARK: - Models


@dataclass
class Product:
    product_id: int
    unit_processing_hours: float  # May be fractional, above or below one block

    def __post_init__(self):
        if not math.isfinite(self.unit_processing_hours) or self.unit_processing_hours < 0:
            raise ValueError(
                f"Product {self.product_id} has invalid processing time "
                f"{self.unit_processing_hours}"
            )


@dataclass
class Order:
    order_id: int
    product_id: int
    quantity: int
    total_value: float
    deadline: datetime
    arrival_time: datetime

    def __post_init__(self):
        if self.quantity < 0:
            raise ValueError(
                f"Order {self.order_id} has negative quantity {self.quantity}"
            )

    @property
    def aligned_deadline(self) -> datetime:
        """Deadline normalized to 08:00:00 on its calendar date."""
        return self.deadline.replace(hour=8, minute=0, second=0, microsecond=0)


@dataclass(frozen=True, order=True)
class OperationId:
    order_id: int
    piece: int  # 1-based piece index within the order

    def __str__(self) -> str:
        return f"O{self.order_id}_{self.piece}"


@dataclass
class ScheduleContext:
    products: list[Product]
    orders: list[Order]
    plan_start: datetime
    num_lines: int = NUM_LINES
    block_hours: float = BLOCK_HOURS
    penalty_rate: float = PENALTY_RATE
    base_pay_per_block: float = BASE_PAY_PER_BLOCK

    def operations(self) -> list[OperationId]:
        """Identity operation sequence: orders in list order, pieces ascending."""
        return [
            OperationId(order.order_id, piece)
            for order in self.orders
            for piece in range(1, order.quantity + 1)
        ]

    @property
    def total_operations(self) -> int:
        return sum(order.quantity for order in self.orders)


@dataclass
class LineState:
    free_time: datetime  # Next instant the line is available
    paid_until: datetime  # End of the currently funded block
    current_product: Optional[int] = None


@dataclass
class ScheduledJob:
    operation_id: OperationId
    order_id: int
    product_id: int
    line_id: int
    start: datetime
    end: datetime
    cost_coefficient: float
    charged_cost: float
    merged: bool = False  # Consolidated into another operation's block


@dataclass
class ScheduleResult:
    production_cost: float
    penalty: float
    revenue: float
    fitness: float
    jobs: list[ScheduledJob] = field(default_factory=list)
    completion_times: dict[int, datetime] = field(default_factory=dict)
    late_order_ids: list[int] = field(default_factory=list)

    @property
    def profit(self) -> float:
        return -self.fitness

    def jobs_for_line(self, line_id: int) -> list[ScheduledJob]:
        return sorted(
            (job for job in self.jobs if job.line_id == line_id),
            key=lambda job: job.start,
        )

    @classmethod
    def empty(cls) -> "ScheduleResult":
        return cls(production_cost=0.0, penalty=0.0, revenue=0.0, fitness=0.0)

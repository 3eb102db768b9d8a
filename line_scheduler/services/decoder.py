from datetime import datetime, timedelta
from typing import Dict, List, Set, Tuple

from line_scheduler.models import (
    LineState,
    OperationId,
    Order,
    Product,
    ScheduleConsistencyError,
    ScheduleContext,
    ScheduledJob,
    ScheduleResult,
)
from line_scheduler.services.chromosome import ProductionChromosome
from line_scheduler.services.cost_model import (
    block_cost,
    cost_coefficient,
    next_block_start,
)


class ScheduleDecoder:
    """
    Deterministic decoder: chromosome -> timed, costed schedule.

    Operations are reserved strictly in chromosome sequence order on the line
    their position is assigned to. Each line pays wages in 4h blocks aligned to
    a grid anchored at the plan start:

    1. An operation of the product already running on the line joins the open
       block for free when the remaining paid time covers it.
    2. Otherwise a new block opens on the next grid instant and is charged
       ``base_pay_per_block * cost_coefficient(start)``.
    3. An order's tail piece (its last piece, for products under one block)
       pulls other unmerged tail pieces of the same product assigned to the
       same line into a single block while the group still fits in it.

    The decoder only reads the context; all line state is local to a call.
    """

    def __init__(self, context: ScheduleContext):
        self.context = context
        self.products: Dict[int, Product] = {}
        self.orders: Dict[int, Order] = {}

        for product in context.products:
            if product.product_id in self.products:
                raise ScheduleConsistencyError(
                    f"Duplicate product id {product.product_id}"
                )
            self.products[product.product_id] = product

        for order in context.orders:
            if order.order_id in self.orders:
                raise ScheduleConsistencyError(f"Duplicate order id {order.order_id}")
            if order.product_id not in self.products:
                raise ScheduleConsistencyError(
                    f"Order {order.order_id} references unknown product {order.product_id}"
                )
            self.orders[order.order_id] = order

        self.revenue = sum(order.total_value for order in context.orders)
        self.block = timedelta(hours=context.block_hours)

    def evaluate(self, chromosome: ProductionChromosome) -> float:
        """Decode ``chromosome`` and store its fitness on it."""
        chromosome.fitness = self.decode(chromosome).fitness
        return chromosome.fitness

    def decode(self, chromosome: ProductionChromosome) -> ScheduleResult:
        if not self.context.orders:
            return ScheduleResult.empty()

        sequence = chromosome.operation_sequence
        assignment = chromosome.machine_assignment
        if len(sequence) != len(assignment):
            raise ScheduleConsistencyError("Chromosome genes are not index-aligned")

        resolved = [
            self._resolve(operation_id, line_id)
            for operation_id, line_id in zip(sequence, assignment)
        ]
        # Every id is known and in range, so no duplicates plus the full count is a permutation
        if len(set(sequence)) != len(sequence):
            raise ScheduleConsistencyError("Operation sequence contains duplicates")
        if len(sequence) != self.context.total_operations:
            raise ScheduleConsistencyError(
                f"Operation sequence has {len(sequence)} operations, "
                f"expected {self.context.total_operations}"
            )
        tail_positions, tail_pools = self._collect_tail_pieces(sequence, resolved)

        plan_start = self.context.plan_start
        lines = [
            LineState(free_time=plan_start, paid_until=plan_start)
            for _ in range(self.context.num_lines)
        ]
        emitted: Set[int] = set()
        pieces_done: Dict[int, int] = {order_id: 0 for order_id in self.orders}
        completion_times: Dict[int, datetime] = {}
        jobs: List[ScheduledJob] = []
        production_cost = 0.0

        for position in range(len(sequence)):
            # Already emitted as part of an earlier tail-piece group
            if position in emitted:
                continue

            order, product = resolved[position]
            line_id = assignment[position]
            group = [position]
            group_hours = product.unit_processing_hours

            if position in tail_positions:
                for other in tail_pools[product.product_id]:
                    if other == position or other in emitted:
                        continue
                    if assignment[other] != line_id:
                        continue
                    other_hours = resolved[other][1].unit_processing_hours
                    if group_hours + other_hours <= self.context.block_hours:
                        group.append(other)
                        group_hours += other_hours
            emitted.update(group)

            duration = timedelta(seconds=int(group_hours * 3600))
            state = lines[line_id - 1]

            if (
                state.current_product == product.product_id
                and state.paid_until - state.free_time >= duration
            ):
                start = state.free_time
                end = start + duration
                state.free_time = end
                charged = 0.0
            else:
                start = next_block_start(
                    plan_start, state.free_time, self.context.block_hours
                )
                end = start + duration
                charged = block_cost(start, self.context.base_pay_per_block)
                production_cost += charged
                state.free_time = end
                state.paid_until = start + self.block
                state.current_product = product.product_id

            coefficient = cost_coefficient(start)
            for member in group:
                member_order = resolved[member][0]
                jobs.append(
                    ScheduledJob(
                        operation_id=sequence[member],
                        order_id=member_order.order_id,
                        product_id=product.product_id,
                        line_id=assignment[member],
                        start=start,
                        end=end,
                        cost_coefficient=coefficient,
                        charged_cost=charged if member == position else 0.0,
                        merged=member != position,
                    )
                )
                pieces_done[member_order.order_id] += 1
                if pieces_done[member_order.order_id] == member_order.quantity:
                    completion_times[member_order.order_id] = end

        penalty = 0.0
        late_order_ids = []
        for order in self.context.orders:
            completed = completion_times.get(order.order_id)
            if completed is not None and completed > order.aligned_deadline:
                penalty += order.total_value * self.context.penalty_rate
                late_order_ids.append(order.order_id)

        fitness = -(self.revenue - production_cost - penalty)

        return ScheduleResult(
            production_cost=production_cost,
            penalty=penalty,
            revenue=self.revenue,
            fitness=fitness,
            jobs=jobs,
            completion_times=completion_times,
            late_order_ids=late_order_ids,
        )

    def _resolve(self, operation_id: OperationId, line_id: int) -> Tuple[Order, Product]:
        order = self.orders.get(operation_id.order_id)
        if order is None:
            raise ScheduleConsistencyError(
                f"Operation {operation_id} references unknown order {operation_id.order_id}"
            )
        if not 1 <= operation_id.piece <= order.quantity:
            raise ScheduleConsistencyError(
                f"Operation {operation_id} is outside order quantity {order.quantity}"
            )
        if not 1 <= line_id <= self.context.num_lines:
            raise ScheduleConsistencyError(
                f"Operation {operation_id} assigned to line {line_id} outside "
                f"1..{self.context.num_lines}"
            )
        return order, self.products[order.product_id]

    def _collect_tail_pieces(
        self,
        sequence: List[OperationId],
        resolved: List[Tuple[Order, Product]],
    ) -> Tuple[Set[int], Dict[int, List[int]]]:
        """Flag tail pieces and group their positions by product, in sequence order."""
        tail_positions: Set[int] = set()
        tail_pools: Dict[int, List[int]] = {}
        for position, operation_id in enumerate(sequence):
            order, product = resolved[position]
            if operation_id.piece != order.quantity:
                continue
            if product.unit_processing_hours >= self.context.block_hours:
                continue
            tail_positions.add(position)
            tail_pools.setdefault(product.product_id, []).append(position)
        return tail_positions, tail_pools


def decode(chromosome: ProductionChromosome, context: ScheduleContext) -> ScheduleResult:
    """Decode ``chromosome`` against ``context`` (see :class:`ScheduleDecoder`)."""
    return ScheduleDecoder(context).decode(chromosome)

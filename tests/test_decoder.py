from datetime import datetime, timedelta
import random

import pytest

from line_scheduler.models import (
    OperationId,
    Order,
    Product,
    ScheduleConsistencyError,
    ScheduleContext,
)
from line_scheduler.services import (
    GeneticSchedulerOptimizer,
    PopulationInitializer,
    ProductionChromosome,
    ScheduleDecoder,
    decode,
)
from tests.conftest import PLAN_START
from tests.fixtures.synthetic_workloads import generate_workload

NEXT_DAY = PLAN_START + timedelta(days=1)


def hours(value: float) -> timedelta:
    return timedelta(hours=value)


def chromosome(genes: list[tuple[int, int]], lines: list[int]) -> ProductionChromosome:
    return ProductionChromosome(
        [OperationId(order_id, piece) for order_id, piece in genes], list(lines)
    )


def context_for(
    products: list[Product], orders: list[Order], plan_start: datetime = PLAN_START
) -> ScheduleContext:
    return ScheduleContext(products=products, orders=orders, plan_start=plan_start)


def test_single_full_block_order():
    context = context_for(
        [Product(1, 4.0)], [Order(1, 1, 1, 1000.0, NEXT_DAY, PLAN_START)]
    )

    result = decode(chromosome([(1, 1)], [1]), context)

    assert len(result.jobs) == 1
    job = result.jobs[0]
    assert job.start == PLAN_START
    assert job.end == PLAN_START + hours(4)
    assert job.charged_cost == 200.0
    assert job.cost_coefficient == 1.0
    assert result.production_cost == 200.0
    assert result.penalty == 0.0
    assert result.revenue == 1000.0
    assert result.fitness == -800.0
    assert result.profit == 800.0
    assert result.completion_times == {1: PLAN_START + hours(4)}


def test_tail_pieces_share_one_block():
    context = context_for(
        [Product(1, 2.0)],
        [
            Order(1, 1, 1, 500.0, NEXT_DAY, PLAN_START),
            Order(2, 1, 1, 500.0, NEXT_DAY, PLAN_START),
        ],
    )

    result = decode(chromosome([(1, 1), (2, 1)], [1, 1]), context)

    assert len(result.jobs) == 2
    assert sum(1 for job in result.jobs if job.charged_cost > 0) == 1
    assert result.production_cost == 200.0
    for job in result.jobs:
        assert job.start == PLAN_START
        assert job.end == PLAN_START + hours(4)
    assert [job.merged for job in result.jobs] == [False, True]
    assert [job.operation_id for job in result.jobs] == [
        OperationId(1, 1),
        OperationId(2, 1),
    ]


def test_tail_pieces_on_different_lines_are_not_merged():
    context = context_for(
        [Product(1, 2.0)],
        [
            Order(1, 1, 1, 500.0, NEXT_DAY, PLAN_START),
            Order(2, 1, 1, 500.0, NEXT_DAY, PLAN_START),
        ],
    )

    result = decode(chromosome([(1, 1), (2, 1)], [1, 2]), context)

    assert result.production_cost == 400.0
    assert not any(job.merged for job in result.jobs)
    assert {job.line_id for job in result.jobs} == {1, 2}
    assert all(job.end == PLAN_START + hours(2) for job in result.jobs)


def test_tail_merge_stops_at_block_capacity():
    context = context_for(
        [Product(1, 1.5)],
        [
            Order(1, 1, 1, 300.0, NEXT_DAY, PLAN_START),
            Order(2, 1, 1, 300.0, NEXT_DAY, PLAN_START),
            Order(3, 1, 1, 300.0, NEXT_DAY, PLAN_START),
        ],
    )

    result = decode(chromosome([(1, 1), (2, 1), (3, 1)], [1, 1, 1]), context)

    assert [job.merged for job in result.jobs] == [False, True, False]
    merged_window = (PLAN_START, PLAN_START + hours(3))
    assert (result.jobs[0].start, result.jobs[0].end) == merged_window
    assert (result.jobs[1].start, result.jobs[1].end) == merged_window
    # Only one hour of paid time is left, so the third piece opens the next block
    assert result.jobs[2].start == PLAN_START + hours(4)
    assert result.jobs[2].charged_cost == 200.0
    assert result.production_cost == 400.0


def test_product_at_block_length_is_never_a_tail_piece():
    context = context_for(
        [Product(1, 4.0)],
        [
            Order(1, 1, 1, 500.0, NEXT_DAY, PLAN_START),
            Order(2, 1, 1, 500.0, NEXT_DAY, PLAN_START),
        ],
    )

    result = decode(chromosome([(1, 1), (2, 1)], [1, 1]), context)

    assert not any(job.merged for job in result.jobs)
    assert [job.start for job in result.jobs] == [PLAN_START, PLAN_START + hours(4)]
    assert result.production_cost == 400.0


def test_same_product_runs_in_the_open_block_for_free():
    context = context_for(
        [Product(1, 1.5)], [Order(1, 1, 3, 900.0, NEXT_DAY, PLAN_START)]
    )

    result = decode(chromosome([(1, 1), (1, 2), (1, 3)], [1, 1, 1]), context)

    starts = [job.start for job in result.jobs]
    costs = [job.charged_cost for job in result.jobs]
    assert starts == [PLAN_START, PLAN_START + hours(1.5), PLAN_START + hours(4)]
    assert costs == [200.0, 0.0, 200.0]
    assert result.completion_times[1] == PLAN_START + hours(5.5)


def test_product_switch_opens_a_new_block():
    context = context_for(
        [Product(1, 2.0), Product(2, 3.0)],
        [
            Order(1, 1, 2, 500.0, NEXT_DAY, PLAN_START),
            Order(2, 2, 2, 500.0, NEXT_DAY, PLAN_START),
        ],
    )

    result = decode(chromosome([(1, 1), (2, 1), (1, 2), (2, 2)], [1, 1, 2, 2]), context)

    line_one = result.jobs_for_line(1)
    assert [job.start for job in line_one] == [PLAN_START, PLAN_START + hours(4)]
    assert [job.charged_cost for job in line_one] == [200.0, 200.0]


def test_operation_longer_than_a_block_waits_for_the_next_grid_line():
    context = context_for(
        [Product(1, 5.0)], [Order(1, 1, 2, 2000.0, NEXT_DAY, PLAN_START)]
    )

    result = decode(chromosome([(1, 1), (1, 2)], [1, 1]), context)

    assert result.jobs[0].end == PLAN_START + hours(5)
    assert result.jobs[1].start == PLAN_START + hours(8)
    # 16:00 falls in the evening band
    assert result.jobs[1].charged_cost == 240.0
    assert result.production_cost == 440.0


def test_night_block_uses_night_coefficient():
    night_start = datetime(2025, 11, 26, 4, 0)
    context = context_for(
        [Product(1, 4.0)],
        [Order(1, 1, 1, 1000.0, datetime(2025, 11, 26, 17, 0), night_start)],
        plan_start=night_start,
    )

    result = decode(chromosome([(1, 1)], [2]), context)

    assert result.jobs[0].cost_coefficient == 2.0
    assert result.production_cost == 400.0
    # Finishing exactly at the aligned deadline is on time
    assert result.completion_times[1] == datetime(2025, 11, 26, 8, 0)
    assert result.penalty == 0.0


def test_late_order_pays_penalty():
    context = context_for(
        [Product(1, 4.0)], [Order(1, 1, 1, 1000.0, PLAN_START, PLAN_START)]
    )

    result = decode(chromosome([(1, 1)], [1]), context)

    assert result.penalty == 100.0
    assert result.late_order_ids == [1]
    assert result.fitness == -(1000.0 - 200.0 - 100.0)


def test_deadline_time_of_day_is_ignored():
    deadline = PLAN_START.replace(hour=23, minute=30)
    context = context_for(
        [Product(1, 4.0)], [Order(1, 1, 1, 1000.0, deadline, PLAN_START)]
    )

    result = decode(chromosome([(1, 1)], [1]), context)

    # Aligned to 08:00 the same day, so a 12:00 finish is late
    assert result.penalty == 100.0


def test_no_orders_decodes_to_zero():
    context = context_for([Product(1, 2.0)], [])

    result = decode(ProductionChromosome.empty(), context)

    assert result.fitness == 0.0
    assert result.production_cost == 0.0
    assert result.penalty == 0.0
    assert result.revenue == 0.0
    assert result.jobs == []


def test_zero_quantity_order_contributes_revenue_only():
    context = context_for(
        [Product(1, 4.0)],
        [
            Order(1, 1, 1, 1000.0, NEXT_DAY, PLAN_START),
            Order(2, 1, 0, 250.0, PLAN_START, PLAN_START),
        ],
    )

    result = decode(chromosome([(1, 1)], [1]), context)

    assert result.revenue == 1250.0
    assert 2 not in result.completion_times
    assert result.penalty == 0.0
    assert result.fitness == -(1250.0 - 200.0)


def test_evaluate_stores_fitness(mixed_context):
    decoder = ScheduleDecoder(mixed_context)
    candidate = ProductionChromosome(
        mixed_context.operations(), [1] * mixed_context.total_operations
    )

    fitness = decoder.evaluate(candidate)

    assert candidate.fitness == fitness
    assert fitness == decoder.decode(candidate).fitness


def test_decode_is_pure(mixed_context):
    candidate = ProductionChromosome(
        mixed_context.operations(), [1, 2, 3, 1, 2, 3][: mixed_context.total_operations]
    )
    before = candidate.copy()
    decoder = ScheduleDecoder(mixed_context)

    first = decoder.decode(candidate)
    second = decoder.decode(candidate)

    assert first == second
    assert candidate.operation_sequence == before.operation_sequence
    assert candidate.machine_assignment == before.machine_assignment


def test_every_operation_is_scheduled_once_on_the_grid():
    context = generate_workload(order_count=12, product_count=5, start=PLAN_START)
    decoder = ScheduleDecoder(context)
    population = PopulationInitializer(context, random.Random(7)).initialize(10)

    for candidate in population:
        result = decoder.decode(candidate)

        assert sorted(job.operation_id for job in result.jobs) == sorted(
            context.operations()
        )
        for job in result.jobs:
            assert job.start >= PLAN_START
            assert job.end >= job.start
            if job.charged_cost > 0:
                assert (job.start - PLAN_START) % hours(4) == timedelta(0)
        assert result.production_cost == pytest.approx(
            sum(job.charged_cost for job in result.jobs)
        )
        assert set(result.completion_times) == {
            order.order_id for order in context.orders if order.quantity > 0
        }


def test_jobs_on_a_line_do_not_overlap_across_blocks():
    context = generate_workload(order_count=10, product_count=4, start=PLAN_START)
    decoder = ScheduleDecoder(context)
    candidate = PopulationInitializer(context, random.Random(3)).initialize(1)[0]

    result = decoder.decode(candidate)

    for line_id in range(1, context.num_lines + 1):
        blocks = sorted({(job.start, job.end) for job in result.jobs_for_line(line_id)})
        for (_, previous_end), (next_start, _) in zip(blocks, blocks[1:]):
            assert next_start >= previous_end


class TestFailFast:
    def test_unknown_product_reference(self):
        context = context_for(
            [Product(1, 2.0)], [Order(1, 9, 1, 100.0, NEXT_DAY, PLAN_START)]
        )
        with pytest.raises(ScheduleConsistencyError):
            ScheduleDecoder(context)

    def test_duplicate_order_ids(self):
        context = context_for(
            [Product(1, 2.0)],
            [
                Order(1, 1, 1, 100.0, NEXT_DAY, PLAN_START),
                Order(1, 1, 1, 100.0, NEXT_DAY, PLAN_START),
            ],
        )
        with pytest.raises(ScheduleConsistencyError):
            ScheduleDecoder(context)

    def test_unknown_order_in_chromosome(self, mixed_context):
        with pytest.raises(ScheduleConsistencyError):
            decode(chromosome([(42, 1)], [1]), mixed_context)

    def test_piece_outside_order_quantity(self, mixed_context):
        with pytest.raises(ScheduleConsistencyError):
            decode(chromosome([(2, 2)], [1]), mixed_context)

    def test_missing_operation(self):
        # Dropping a piece would otherwise hide the order's lateness penalty
        context = context_for(
            [Product(1, 4.0)], [Order(1, 1, 2, 1000.0, PLAN_START, PLAN_START)]
        )
        with pytest.raises(ScheduleConsistencyError):
            decode(chromosome([(1, 1)], [1]), context)

    def test_duplicated_operation(self):
        context = context_for(
            [Product(1, 4.0)], [Order(1, 1, 2, 1000.0, PLAN_START, PLAN_START)]
        )
        # Bypasses the constructor check the way in-place gene edits can
        candidate = chromosome([(1, 1), (1, 2)], [1, 1])
        candidate.operation_sequence[1] = OperationId(1, 1)
        with pytest.raises(ScheduleConsistencyError):
            decode(candidate, context)

    def test_detailed_schedule_rejects_incomplete_chromosome(self, mixed_context):
        optimizer = GeneticSchedulerOptimizer()
        optimizer.decoder = ScheduleDecoder(mixed_context)
        with pytest.raises(ScheduleConsistencyError):
            optimizer.get_detailed_schedule(chromosome([(1, 1), (1, 2)], [1, 1]))

    @pytest.mark.parametrize("line_id", [0, 4])
    def test_line_out_of_range(self, mixed_context, line_id):
        with pytest.raises(ScheduleConsistencyError):
            decode(chromosome([(2, 1)], [line_id]), mixed_context)

from datetime import datetime, timedelta

import pytest
from rich.console import Console

from line_scheduler.common.console import get_console
from line_scheduler.models import Order, Product, ScheduleContext
from line_scheduler.services import GeneticAlgorithmConfig, LocalSearchConfig

# Wednesday 08:00, on the block grid
PLAN_START = datetime(2025, 11, 26, 8, 0)


@pytest.fixture
def console() -> Console:
    return get_console()


@pytest.fixture
def plan_start() -> datetime:
    return PLAN_START


@pytest.fixture
def products() -> list[Product]:
    return [
        Product(product_id=1, unit_processing_hours=4.0),
        Product(product_id=2, unit_processing_hours=3.0),
        Product(product_id=3, unit_processing_hours=2.0),
    ]


@pytest.fixture
def mixed_context(products: list[Product]) -> ScheduleContext:
    """Three products, four orders, a mix of tail-mergeable and full-block work."""
    next_day = PLAN_START + timedelta(days=1)
    orders = [
        Order(1, 1, 2, 1000.0, next_day, PLAN_START),
        Order(2, 2, 1, 800.0, next_day, PLAN_START),
        Order(3, 3, 2, 600.0, PLAN_START + timedelta(days=2), PLAN_START),
        Order(4, 3, 1, 400.0, next_day, PLAN_START),
    ]
    return ScheduleContext(products=products, orders=orders, plan_start=PLAN_START)


@pytest.fixture
def fast_config() -> GeneticAlgorithmConfig:
    """Small, seeded configuration that keeps the hybrid search quick."""
    return GeneticAlgorithmConfig(
        population_size=12,
        max_generations=4,
        crossover_rate=0.8,
        mutation_rate=0.1,
        local_search_elites=2,
        local_search=LocalSearchConfig(initial_temperature=20.0, cooling_rate=0.7),
        seed=2025,
    )

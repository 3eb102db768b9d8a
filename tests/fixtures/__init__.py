"""Helper fixtures for constructing deterministic production planning workloads."""

from .synthetic_workloads import (
    generate_synthetic_orders,
    generate_synthetic_products,
    generate_workload,
)

__all__ = [
    "generate_synthetic_orders",
    "generate_synthetic_products",
    "generate_workload",
]

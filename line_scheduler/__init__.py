"""Wage-block aware production line scheduling with a hybrid genetic algorithm."""

__version__ = "0.1.0"

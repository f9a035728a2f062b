"""Ethereum Virtual Machine interpreter with basic-block code analysis."""

__version__ = "0.1.0"

__all__ = ["analysis", "arith", "environment", "interpreter", "stack", "state"]
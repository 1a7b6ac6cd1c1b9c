"""Allocation validation package."""

from goal_allocations.validation.validator import AllocationValidator

__all__ = ["AllocationValidator"]

"""
Goal Allocations - Source Package

The goal-funding allocation engine of a personal portfolio app:
which share of each account funds which savings goal.

DESIGN PRINCIPLES:
1. No account is ever committed beyond 100%
2. Fail early, fail visibly
3. No silent corrections
4. Nothing is saved until the whole matrix validates
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Goal Allocations Team"

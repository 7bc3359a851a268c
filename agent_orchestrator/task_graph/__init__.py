"""
Task graph: dependency validation and execution layering.
"""

from .dag import TaskDependencyGraph

__all__ = ["TaskDependencyGraph"]

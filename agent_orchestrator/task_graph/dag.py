"""
Task dependency graph.

Builds a DAG from each task's `depends_on` set, rejects cycles and peels the
graph into execution layers with Kahn's algorithm.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Sequence, Set

from ..errors import DependencyCycleError, TaskValidationError
from ..models.assignment import ExecutionLayer
from ..models.task import Task

logger = logging.getLogger(__name__)


class TaskDependencyGraph:
    """
    Directed acyclic graph over a submitted task set.

    Example:
        graph = TaskDependencyGraph()
        layers = graph.build([a, b, c, d])
        # [[a], [b, c], [d]] when b and c depend on a and d on both
    """

    def __init__(self):
        self._tasks: Dict[str, Task] = {}
        self._submission_index: Dict[str, int] = {}
        # task id -> ids of tasks that depend on it
        self._dependents: Dict[str, Set[str]] = {}
        self._layers: List[ExecutionLayer] = []

    @property
    def layers(self) -> List[ExecutionLayer]:
        return list(self._layers)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def build(self, tasks: Sequence[Task]) -> List[ExecutionLayer]:
        """
        Validate the task set and derive its execution layers.

        Args:
            tasks: tasks in submission order

        Returns:
            Layers in execution order; an empty task set yields []

        Raises:
            TaskValidationError: duplicate ids or a dependency outside the set
            DependencyCycleError: the remaining tasks after peeling form a cycle
        """
        self._index(tasks)

        in_degree = {task_id: len(task.depends_on) for task_id, task in self._tasks.items()}
        current = [task_id for task_id, degree in in_degree.items() if degree == 0]
        layers: List[ExecutionLayer] = []
        placed = 0

        while current:
            ordered = self._order_layer(current)
            layers.append(ExecutionLayer(
                index=len(layers),
                tasks=tuple(self._tasks[task_id] for task_id in ordered),
            ))
            placed += len(ordered)

            next_layer = []
            for task_id in ordered:
                for dependent in self._dependents[task_id]:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        next_layer.append(dependent)
            current = next_layer

        if placed < len(self._tasks):
            remaining = {task_id for task_id, degree in in_degree.items() if degree > 0}
            cycle = self._find_cycle(remaining)
            logger.error(f"Dependency cycle among {len(remaining)} tasks: {' -> '.join(cycle)}")
            self._layers = []
            raise DependencyCycleError(remaining, cycle)

        self._layers = layers
        logger.debug(
            f"Built {len(layers)} layers from {len(self._tasks)} tasks: "
            f"{[layer.task_ids for layer in layers]}"
        )
        return list(layers)

    def topological_order(self) -> List[str]:
        """Task ids of the last successful build, dependencies first"""
        return [task_id for layer in self._layers for task_id in layer.task_ids]

    def dependents_of(self, task_id: str) -> Set[str]:
        """Every task that transitively depends on `task_id`"""
        found: Set[str] = set()
        queue = deque(self._dependents.get(task_id, ()))
        while queue:
            current = queue.popleft()
            if current in found:
                continue
            found.add(current)
            queue.extend(self._dependents.get(current, ()))
        return found

    # =========================================================================
    # Internal
    # =========================================================================

    def _index(self, tasks: Sequence[Task]) -> None:
        self._tasks = {}
        self._submission_index = {}
        self._dependents = {}
        self._layers = []

        for position, task in enumerate(tasks):
            if task.id in self._tasks:
                raise TaskValidationError(f"Duplicate task id: {task.id}", task_id=task.id)
            self._tasks[task.id] = task
            self._submission_index[task.id] = position
            self._dependents[task.id] = set()

        for task in tasks:
            for dep_id in task.depends_on:
                if dep_id not in self._tasks:
                    raise TaskValidationError(
                        f"Task {task.id} depends on unknown task: {dep_id}",
                        task_id=task.id,
                        dependency=dep_id,
                    )
                self._dependents[dep_id].add(task.id)

    def _order_layer(self, task_ids: List[str]) -> List[str]:
        # Priority descending, then submission order
        return sorted(
            task_ids,
            key=lambda task_id: (
                -self._tasks[task_id].priority.rank,
                self._submission_index[task_id],
            ),
        )

    def _find_cycle(self, remaining: Set[str]) -> List[str]:
        """
        Walk dependency edges inside `remaining` until a node repeats.

        Every remaining node still has an unpeeled dependency inside the set,
        so the walk always closes a cycle.
        """
        start = min(remaining, key=lambda task_id: self._submission_index[task_id])
        path: List[str] = []
        seen: Dict[str, int] = {}
        current = start

        while current not in seen:
            seen[current] = len(path)
            path.append(current)
            candidates = [d for d in self._tasks[current].depends_on if d in remaining]
            current = min(candidates, key=lambda task_id: self._submission_index[task_id])

        cycle = path[seen[current]:]
        cycle.append(current)
        return cycle

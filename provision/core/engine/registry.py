"""
Step registry — the full step set and dependency-safe enumeration.

Holds every registered step and produces execution orders. Ordering uses
Kahn's algorithm; when several steps are ready at once, the one
registered first goes first, so the same config always yields the same
order. Reverse order is the forward order over the same subset, flipped,
which guarantees dependents are torn down before their dependencies.

No I/O, no subprocess.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable, Iterator

from provision.core.errors import CycleDetectedError, DuplicateStepError, UnknownStepError
from provision.core.models.step import Direction, Step

logger = logging.getLogger(__name__)


class StepRegistry:
    """Registered steps, keyed by id, in registration order."""

    def __init__(self, steps: Iterable[Step] = ()) -> None:
        self._steps: dict[str, Step] = {}
        for step in steps:
            self.register(step)

    def register(self, step: Step) -> None:
        """Add a step.

        Raises:
            DuplicateStepError: A step with the same id already exists.
        """
        if step.id in self._steps:
            raise DuplicateStepError(step.id)
        self._steps[step.id] = step
        logger.debug("Registered step: %s (depends on: %s)", step.id, ", ".join(step.depends_on) or "-")

    def get(self, step_id: str) -> Step:
        step = self._steps.get(step_id)
        if step is None:
            raise UnknownStepError(step_id)
        return step

    def ids(self) -> list[str]:
        return list(self._steps.keys())

    def steps(self) -> list[Step]:
        return list(self._steps.values())

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps.values())

    # ── Validation ──────────────────────────────────────────────

    def validate(self) -> None:
        """Check the whole graph.

        Raises:
            UnknownStepError: A step depends on an unregistered id.
            CycleDetectedError: The dependency graph has a cycle.
        """
        for step in self._steps.values():
            for dep in step.depends_on:
                if dep not in self._steps:
                    raise UnknownStepError(dep, referenced_by=step.id)
        self._topological(self.ids())

    def dependencies_of(self, step_id: str) -> set[str]:
        """All transitive dependencies of a step."""
        seen: set[str] = set()
        stack = list(self.get(step_id).depends_on)
        while stack:
            dep = stack.pop()
            if dep in seen:
                continue
            seen.add(dep)
            stack.extend(self.get(dep).depends_on)
        return seen

    # ── Ordering ────────────────────────────────────────────────

    def resolve_order(
        self,
        step_ids: Iterable[str] | None = None,
        direction: Direction = Direction.FORWARD,
        include_dependencies: bool = False,
    ) -> list[Step]:
        """Return a topologically valid execution order.

        Args:
            step_ids: Requested subset (default: every step).
            direction: FORWARD respects ``depends_on``; REVERSE is the
                exact reverse of the forward order over the same subset.
            include_dependencies: Close the subset over transitive
                dependencies. Otherwise dependencies outside the subset
                are treated as already-met preconditions.

        Raises:
            UnknownStepError: A requested or referenced id is unknown.
            CycleDetectedError: No valid order exists.
        """
        self.validate()

        if step_ids is None:
            subset = self.ids()
        else:
            subset = []
            for sid in step_ids:
                if sid not in self._steps:
                    raise UnknownStepError(sid)
                if sid not in subset:
                    subset.append(sid)

        if include_dependencies:
            closed = set(subset)
            for sid in subset:
                closed |= self.dependencies_of(sid)
            subset = [sid for sid in self._steps if sid in closed]

        order = self._topological(subset)
        if direction == Direction.REVERSE:
            order.reverse()
        return [self._steps[sid] for sid in order]

    def _topological(self, subset: list[str]) -> list[str]:
        """Kahn's algorithm restricted to ``subset``."""
        members = set(subset)
        rank = {sid: i for i, sid in enumerate(self._steps)}

        in_degree: dict[str, int] = {sid: 0 for sid in subset}
        successors: dict[str, list[str]] = {sid: [] for sid in subset}
        for sid in subset:
            for dep in self._steps[sid].depends_on:
                if dep in members:
                    in_degree[sid] += 1
                    successors[dep].append(sid)

        ready = [(rank[sid], sid) for sid, deg in in_degree.items() if deg == 0]
        heapq.heapify(ready)
        order: list[str] = []
        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for succ in successors[node]:
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    heapq.heappush(ready, (rank[succ], succ))

        if len(order) < len(subset):
            remaining = [sid for sid in subset if in_degree[sid] > 0]
            raise CycleDetectedError(self._find_cycle(remaining, members))
        return order

    def _find_cycle(self, remaining: list[str], members: set[str]) -> list[str]:
        """Name one concrete cycle among the steps Kahn could not order."""
        pending = set(remaining)
        for start in remaining:
            path: list[str] = []
            on_path: dict[str, int] = {}
            node: str | None = start
            while node is not None and node not in on_path:
                on_path[node] = len(path)
                path.append(node)
                node = next(
                    (d for d in self._steps[node].depends_on if d in members and d in pending),
                    None,
                )
            if node is not None:
                cycle = path[on_path[node]:]
                return cycle + [node]
        return sorted(pending)

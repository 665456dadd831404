"""Pure-function rules for task planning.

Rules are stateless functions: (input, context) -> RuleResult or a plain
value. No database, no side effects. The repositories and importers load
whatever rows a rule needs and hand them in.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Mapping

from patterns.workflow_states import TaskStatus


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Plan import rules
# ---------------------------------------------------------------------------

PLAN_ITEM_REQUIRED = ("name", "start", "end")


def check_plan_item_complete(item: Mapping[str, Any]) -> RuleResult:
    """An imported plan item needs a name, a start and an end."""
    missing = [key for key in PLAN_ITEM_REQUIRED if not str(item.get(key) or "").strip()]
    return RuleResult(
        passed=not missing,
        rule_name="plan_item_complete",
        message="Plan item complete" if not missing else f"Missing {', '.join(missing)}",
        details={"missing": missing},
    )


def status_for_progress(progress: float | int | None) -> TaskStatus:
    """Infer a task status from a 0-100 completion number.

    100 -> done, anything above 0 -> in_progress, otherwise todo.
    """
    value = progress or 0
    if value >= 100:
        return TaskStatus.DONE
    if value > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.TODO


# ---------------------------------------------------------------------------
# Dependency graph rules
# ---------------------------------------------------------------------------

def check_not_self_dependency(predecessor_id: int, successor_id: int) -> RuleResult:
    passed = predecessor_id != successor_id
    return RuleResult(
        passed=passed,
        rule_name="not_self_dependency",
        message="Distinct tasks" if passed else "A task cannot depend on itself.",
        details={"predecessor_id": predecessor_id, "successor_id": successor_id},
    )


def build_adjacency(edges: Iterable[tuple[Hashable, Hashable]]) -> dict[Hashable, set]:
    """Map each predecessor to the set of its direct successors."""
    adjacency: dict[Hashable, set] = {}
    for predecessor, successor in edges:
        adjacency.setdefault(predecessor, set()).add(successor)
    return adjacency


def creates_cycle(
    adjacency: Mapping[Hashable, Iterable[Hashable]],
    predecessor: Hashable,
    successor: Hashable,
) -> bool:
    """Would adding ``predecessor -> successor`` close a cycle?

    It does exactly when ``predecessor`` is already reachable from
    ``successor``. Breadth-first over the existing edges.
    """
    if predecessor == successor:
        return True
    seen = {successor}
    queue = deque([successor])
    while queue:
        node = queue.popleft()
        for nxt in adjacency.get(node, ()):
            if nxt == predecessor:
                return True
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return False


def check_acyclic(depends_on: Mapping[Hashable, Iterable[Hashable]]) -> RuleResult:
    """Check that a ``node -> prerequisites`` mapping has no cycle.

    Kahn's algorithm; whatever cannot be ordered sits on or behind a cycle
    and is reported in ``details["blocked"]``.
    """
    indegree = {node: 0 for node in depends_on}
    dependents: dict[Hashable, list] = {node: [] for node in depends_on}
    for node, prerequisites in depends_on.items():
        for prereq in prerequisites:
            indegree[node] += 1
            dependents.setdefault(prereq, []).append(node)
            indegree.setdefault(prereq, 0)

    queue = deque(node for node, degree in indegree.items() if degree == 0)
    ordered = []
    while queue:
        node = queue.popleft()
        ordered.append(node)
        for dependent in dependents.get(node, ()):
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                queue.append(dependent)

    placed = set(ordered)
    blocked = [node for node in indegree if node not in placed]
    return RuleResult(
        passed=not blocked,
        rule_name="acyclic",
        message="No cycles" if not blocked else "Dependencies form a cycle.",
        details={"order": ordered, "blocked": blocked},
    )


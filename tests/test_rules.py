"""Test planning rules and task workflow states."""
from patterns.rules_engine import (
    build_adjacency,
    check_acyclic,
    check_not_self_dependency,
    check_plan_item_complete,
    creates_cycle,
    status_for_progress,
)
from patterns.workflow_states import StatusTransition, TaskStatus, is_completed


def test_plan_item_complete():
    result = check_plan_item_complete({"name": "Pour slab", "start": "2024-03-01", "end": "2024-03-04"})
    assert result.passed
    assert result.details["missing"] == []


def test_plan_item_missing_fields():
    result = check_plan_item_complete({"name": "Pour slab", "start": "", "end": None})
    assert not result.passed
    assert result.details["missing"] == ["start", "end"]
    assert "start" in result.message


def test_status_for_progress():
    assert status_for_progress(100) == TaskStatus.DONE
    assert status_for_progress(40) == TaskStatus.IN_PROGRESS
    assert status_for_progress(0.5) == TaskStatus.IN_PROGRESS
    assert status_for_progress(0) == TaskStatus.TODO
    assert status_for_progress(None) == TaskStatus.TODO


def test_self_dependency_rejected():
    assert not check_not_self_dependency(3, 3).passed
    assert check_not_self_dependency(3, 4).passed


def test_creates_cycle_direct_and_transitive():
    adjacency = build_adjacency([(1, 2), (2, 3)])
    assert creates_cycle(adjacency, 2, 1)
    assert creates_cycle(adjacency, 3, 1)
    assert not creates_cycle(adjacency, 1, 3)
    assert not creates_cycle(adjacency, 4, 1)


def test_creates_cycle_self_edge():
    assert creates_cycle({}, 5, 5)


def test_check_acyclic_orders_prerequisites_first():
    result = check_acyclic({"frame": ["footing"], "footing": [], "roof": ["frame"]})
    assert result.passed
    order = result.details["order"]
    assert order.index("footing") < order.index("frame") < order.index("roof")


def test_check_acyclic_reports_blocked_nodes():
    result = check_acyclic({"a": ["c"], "b": ["a"], "c": ["b"], "d": []})
    assert not result.passed
    assert set(result.details["blocked"]) == {"a", "b", "c"}
    assert "d" in result.details["order"]


def test_legacy_completed_counts_as_done():
    assert is_completed("done")
    assert is_completed("completed")
    assert is_completed(TaskStatus.DONE)
    assert not is_completed("in_progress")
    assert not is_completed(None)


def test_transition_enters_done_only_on_change():
    assert StatusTransition(1, 1, "in_progress", "done").enters_done
    assert not StatusTransition(1, 1, "done", "done").enters_done
    assert not StatusTransition(1, 1, "done", "done").changed


def test_legacy_completed_to_done_is_not_a_completion():
    change = StatusTransition(1, 1, "completed", "done")
    assert change.changed
    assert not change.enters_done


def test_plan_item_blank_values_are_missing():
    result = check_plan_item_complete({"name": "   ", "start": "2024-03-01", "end": " "})
    assert not result.passed
    assert result.details["missing"] == ["name", "end"]

"""Tests for dependency graph helpers."""

from __future__ import annotations

from taskboard_cli.models.task import GenericTask, ProjectTask
from taskboard_cli.services.dependency_graph import (
    build_graph,
    dependents_of,
    find_cycle,
    find_unblocked,
    has_cycle,
    incomplete_dependencies,
    unknown_dependencies,
)


def _project(task_id, deps=(), status="pending"):
    return ProjectTask(
        id=task_id, title=task_id.upper(), variant="project", dependencies=list(deps), status=status
    )


def test_build_graph_with_overrides():
    """Overrides replace stored edges; generic tasks have none."""
    tasks = [_project("a"), _project("b", ["a"]), GenericTask(id="g", title="G")]
    graph = build_graph(tasks, {"a": ["b"]})
    assert graph == {"a": ["b"], "b": ["a"], "g": []}


def test_find_cycle_returns_path():
    """The cycle path starts and ends with the same id."""
    graph = {"a": ["b"], "b": ["c"], "c": ["a"]}
    assert find_cycle(graph, "a") == ["a", "b", "c", "a"]


def test_find_cycle_ignores_unrelated_cycles_and_leaves():
    """Only cycles reachable from the start count; unknown ids are leaves."""
    graph = {"a": ["b", "ghost"], "b": [], "x": ["y"], "y": ["x"]}
    assert find_cycle(graph, "a") is None
    assert has_cycle(graph)


def test_find_cycle_shared_subtree_is_not_a_cycle():
    """A diamond (two paths to one node) is not a cycle."""
    graph = {"a": ["b", "c"], "b": ["d"], "c": ["d"], "d": []}
    assert find_cycle(graph, "a") is None
    assert not has_cycle(graph)


def test_find_cycle_long_chain():
    """Long chains do not hit the recursion limit."""
    graph = {str(i): [str(i + 1)] for i in range(5000)}
    graph["5000"] = ["0"]
    cycle = find_cycle(graph, "0")
    assert cycle[0] == cycle[-1] == "0"
    assert len(cycle) == 5002


def test_dependents_and_incomplete():
    """Dependents can be limited to active tasks; only completed deps count as done."""
    a = _project("a", status="completed")
    b = _project("b", ["a", "c"])
    c = _project("c")
    d = _project("d", ["a"], status="cancelled")
    lookup = {t.id: t for t in (a, b, c, d)}

    assert dependents_of(lookup.values(), "a") == [b, d]
    assert dependents_of(lookup.values(), "a", active_only=True) == [b]
    assert incomplete_dependencies(b, lookup) == [c]
    assert unknown_dependencies(["a", "zz"], lookup) == ["zz"]


def test_find_unblocked():
    """Completing the last open dependency unblocks the dependent."""
    a = _project("a", status="completed")
    b = _project("b", ["a"])
    c = _project("c", ["a", "b"])
    assert find_unblocked([a, b, c], "a") == [b]

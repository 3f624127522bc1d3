"""Dependency graph helpers for project tasks.

Edges point from a task to the tasks it depends on. Only records that carry
a ``dependencies`` field contribute edges; ids with no matching record are
treated as leaves.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from taskboard_cli.models.task import TaskRecord

Graph = dict[str, list[str]]


def dependencies_of(task: TaskRecord) -> list[str]:
    return list(getattr(task, "dependencies", None) or [])


def build_graph(
    tasks: Iterable[TaskRecord], overrides: Mapping[str, list[str]] | None = None
) -> Graph:
    """Build the adjacency list, optionally substituting proposed edges.

    Args:
        tasks: Every task in the collection
        overrides: ``task_id -> dependencies`` to use instead of the stored ones
    """
    graph: Graph = {task.id: dependencies_of(task) for task in tasks}
    for task_id, deps in (overrides or {}).items():
        graph[task_id] = list(deps)
    return graph


def find_cycle(graph: Graph, start: str) -> list[str] | None:
    """Depth-first search for a cycle reachable from ``start``.

    Visited and recursion-stack sets are created fresh for every call.

    Returns:
        The cycle as a list of ids (first id repeated at the end), or None
    """
    visited: set[str] = {start}
    on_stack: set[str] = {start}
    path: list[str] = [start]
    # Explicit stack of edge iterators; chains can be longer than the recursion limit
    pending = [iter(graph.get(start, []))]

    while pending:
        dep = next(pending[-1], None)
        if dep is None:
            pending.pop()
            on_stack.discard(path.pop())
            continue
        if dep in on_stack:
            return path[path.index(dep):] + [dep]
        if dep not in visited:
            visited.add(dep)
            on_stack.add(dep)
            path.append(dep)
            pending.append(iter(graph.get(dep, [])))
    return None


def has_cycle(graph: Graph) -> bool:
    """Check the whole graph, starting a fresh search from every node."""
    return any(find_cycle(graph, node) for node in graph)


def dependents_of(
    tasks: Iterable[TaskRecord], task_id: str, *, active_only: bool = False
) -> list[TaskRecord]:
    """Tasks listing ``task_id`` among their dependencies."""
    return [
        task
        for task in tasks
        if task.id != task_id
        and task_id in dependencies_of(task)
        and (task.is_active or not active_only)
    ]


def incomplete_dependencies(
    task: TaskRecord, lookup: Mapping[str, TaskRecord]
) -> list[TaskRecord]:
    """Existing dependencies of ``task`` that are not completed."""
    result = []
    for dep_id in dependencies_of(task):
        dep = lookup.get(dep_id)
        if dep is not None and dep.status != "completed":
            result.append(dep)
    return result


def unknown_dependencies(deps: Iterable[str], lookup: Mapping[str, TaskRecord]) -> list[str]:
    return [dep_id for dep_id in deps if dep_id not in lookup]


def find_unblocked(
    tasks: Iterable[TaskRecord], completed_id: str
) -> list[TaskRecord]:
    """Active dependents of ``completed_id`` whose dependencies are now all completed."""
    tasks = list(tasks)
    lookup = {task.id: task for task in tasks}
    return [
        task
        for task in dependents_of(tasks, completed_id, active_only=True)
        if not incomplete_dependencies(task, lookup)
    ]

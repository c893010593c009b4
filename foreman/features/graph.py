"""
Dependency graph queries over the feature list.

The graph is derived, never stored: a map from feature ID to the IDs of
features that list it in dependsOn (reverse edges). It is rebuilt from
the current feature list on every query.

dependsOn is allowed to contain cycles and IDs that don't exist yet.
Every traversal here uses an explicit stack and a visited set so cycles
terminate, and unknown IDs are treated as satisfied.
"""

from typing import Optional

from foreman.features.models import Feature, DuplicateFeatureId, FAILING, PASSING

DependencyGraph = dict[str, list[str]]


def index_by_id(features: list[Feature]) -> dict[str, Feature]:
    """Map feature ID to feature.

    Raises:
        DuplicateFeatureId: if two features share an ID
    """
    by_id: dict[str, Feature] = {}
    for feature in features:
        if feature.id in by_id:
            raise DuplicateFeatureId(feature.id)
        by_id[feature.id] = feature
    return by_id


def build_dependency_graph(features: list[Feature]) -> DependencyGraph:
    """Build the reverse dependency index: id -> [ids that depend on it]."""
    graph: DependencyGraph = {}
    for feature in features:
        graph.setdefault(feature.id, [])
        for dep in feature.depends_on:
            dependents = graph.setdefault(dep, [])
            if feature.id not in dependents:
                dependents.append(feature.id)
    return graph


def find_affected_chain(
    graph: DependencyGraph,
    start_id: str,
    visited: Optional[set[str]] = None,
) -> list[str]:
    """Return every feature that transitively depends on start_id.

    Depth-first pre-order over reverse edges. `visited` is updated in place,
    so callers can share it across several starting points. The start ID is
    never part of the result, even when a cycle leads back to it.
    """
    if visited is None:
        visited = set()
    visited.add(start_id)

    chain: list[str] = []
    stack = list(reversed(graph.get(start_id, [])))
    while stack:
        feature_id = stack.pop()
        if feature_id in visited:
            continue
        visited.add(feature_id)
        chain.append(feature_id)
        stack.extend(reversed(graph.get(feature_id, [])))
    return chain


def would_create_circular_dependency(features: list[Feature], feature_id: str, new_dependency: str) -> bool:
    """True if adding `feature_id dependsOn new_dependency` would close a cycle."""
    if feature_id == new_dependency:
        return True
    graph = build_dependency_graph(features)
    return new_dependency in find_affected_chain(graph, feature_id)


def sort_by_dependency_order(features: list[Feature]) -> list[Feature]:
    """Topological order (dependencies first) via DFS post-order.

    Edges that lead back into the node currently being visited are skipped,
    so a cycle never drops or duplicates a feature: the output always has
    the same length as the input.
    """
    by_id = index_by_id(features)
    done: set[str] = set()
    visiting: set[str] = set()
    ordered: list[Feature] = []

    for root in features:
        if root.id in done:
            continue
        # Stack of (feature, iterator over its dependencies)
        stack = [(root, iter(root.depends_on))]
        visiting.add(root.id)
        while stack:
            feature, deps = stack[-1]
            for dep_id in deps:
                dep = by_id.get(dep_id)
                if dep is None or dep_id in done or dep_id in visiting:
                    continue
                visiting.add(dep_id)
                stack.append((dep, iter(dep.depends_on)))
                break
            else:
                stack.pop()
                visiting.discard(feature.id)
                done.add(feature.id)
                ordered.append(feature)
    return ordered


def get_dependency_depth(features: list[Feature], feature_id: str) -> int:
    """Length of the longest dependsOn chain below feature_id.

    depth(x) = 1 + max(depth(dep)) over known deps, 0 with none. A dependency
    that is already on the current path contributes 0, which keeps cycles
    finite.
    """
    by_id = index_by_id(features)
    if feature_id not in by_id:
        return 0

    memo: dict[str, int] = {}
    on_path: set[str] = {feature_id}
    stack = [(feature_id, iter(by_id[feature_id].depends_on), 0)]

    while stack:
        current, deps, best = stack[-1]
        descended = False
        for dep_id in deps:
            if dep_id not in by_id:
                continue
            if dep_id in on_path:
                best = max(best, 1)
                continue
            if dep_id in memo:
                best = max(best, 1 + memo[dep_id])
                continue
            stack[-1] = (current, deps, best)
            on_path.add(dep_id)
            stack.append((dep_id, iter(by_id[dep_id].depends_on), 0))
            descended = True
            break
        if descended:
            continue

        stack.pop()
        on_path.discard(current)
        memo[current] = best
        if stack:
            parent, parent_deps, parent_best = stack[-1]
            stack[-1] = (parent, parent_deps, max(parent_best, 1 + best))

    return memo[feature_id]


def get_blocking_features(features: list[Feature], feature_id: str) -> list[Feature]:
    """Dependencies of feature_id that are not passing yet."""
    by_id = index_by_id(features)
    feature = by_id.get(feature_id)
    if feature is None:
        return []
    return [
        by_id[dep_id] for dep_id in feature.depends_on
        if dep_id in by_id and by_id[dep_id].status != PASSING
    ]


def get_ready_features(features: list[Feature]) -> list[Feature]:
    """Failing features whose dependencies are all passing (or unknown)."""
    return [
        f for f in features
        if f.status == FAILING and not get_blocking_features(features, f.id)
    ]


def find_dangling_dependencies(features: list[Feature]) -> dict[str, list[str]]:
    """Map feature ID -> dependsOn entries that name no existing feature."""
    known = {f.id for f in features}
    dangling = {}
    for feature in features:
        missing = [dep for dep in feature.depends_on if dep not in known]
        if missing:
            dangling[feature.id] = missing
    return dangling

"""Cycle detection and dependency depth over the internal module graph."""

from __future__ import annotations

import heapq
from typing import Dict, List, Sequence, Set, Tuple

from ..logging import get_logger
from ..models import Cycle, DependencyGraph, GraphAnalysis

logger = get_logger("graph")

_WHITE, _GRAY, _BLACK = 0, 1, 2


class CycleDepthAnalyzer:
    """Runs cycle detection and depth assignment on a frozen graph."""

    def analyze(self, graph: DependencyGraph) -> GraphAnalysis:
        walks, cycle_pairs = find_cycles(graph)
        depths = compute_depths(graph, walks, cycle_pairs)
        cycles = tuple(Cycle(nodes=tuple(graph.node_id(index) for index in walk)) for walk in walks)
        if cycles:
            logger.info("Detected %d import cycle(s)", len(cycles))
        logger.debug("Depth computed for %d nodes", len(depths))
        return GraphAnalysis(cycles=cycles, depths=depths)


def find_cycles(graph: DependencyGraph) -> Tuple[List[List[int]], Set[Tuple[int, int]]]:
    """Three-color DFS over internal edges.

    Roots are visited in index (path) order and successors in edge order.
    Returns the distinct cycle walks (first index repeated at the end) and
    the set of (source, target) pairs that lie on any back-edge walk.
    """

    count = len(graph.nodes)
    color = [_WHITE] * count
    walks: List[List[int]] = []
    seen: Set[Tuple[str, ...]] = set()
    pairs: Set[Tuple[int, int]] = set()

    for root in range(count):
        if color[root] != _WHITE:
            continue
        color[root] = _GRAY
        stack: List[Tuple[int, int]] = [(root, 0)]
        path: List[int] = [root]
        position: Dict[int, int] = {root: 0}

        while stack:
            node, cursor = stack[-1]
            successors = graph.successors[node]
            if cursor >= len(successors):
                color[node] = _BLACK
                stack.pop()
                path.pop()
                del position[node]
                continue
            stack[-1] = (node, cursor + 1)
            target = successors[cursor]
            if color[target] == _WHITE:
                color[target] = _GRAY
                position[target] = len(path)
                path.append(target)
                stack.append((target, 0))
            elif color[target] == _GRAY:
                walk = path[position[target] :] + [target]
                pairs.update(zip(walk, walk[1:]))
                key = _canonical(graph, walk[:-1])
                if key not in seen:
                    seen.add(key)
                    walks.append(walk)

    return walks, pairs


def _canonical(graph: DependencyGraph, members: Sequence[int]) -> Tuple[str, ...]:
    names = [graph.node_id(index) for index in members]
    variants = []
    for sequence in (names, names[::-1]):
        for offset in range(len(sequence)):
            variants.append(tuple(sequence[offset:] + sequence[:offset]))
    return min(variants)


def _clusters(walks: Sequence[Sequence[int]]) -> Dict[int, int]:
    """Map every cycle member to a cluster id; cycles sharing a node share a cluster."""
    parent: Dict[int, int] = {}

    def find(item: int) -> int:
        while parent[item] != item:
            parent[item] = parent[parent[item]]
            item = parent[item]
        return item

    for walk in walks:
        for member in walk:
            parent.setdefault(member, member)
        head = find(walk[0])
        for member in walk[1:]:
            other = find(member)
            if other != head:
                low, high = sorted((head, other))
                parent[high] = low
                head = low
    return {member: find(member) for member in parent}


def compute_depths(
    graph: DependencyGraph,
    walks: Sequence[Sequence[int]],
    cycle_pairs: Set[Tuple[int, int]],
) -> Dict[str, int]:
    """Longest-path depth over non-cycle edges, with cycle members clamped.

    A cycle member takes the minimum depth of its predecessors outside its
    cluster, or 0 when it has none. Nodes are processed in topological order
    of the acyclic edge set, lowest index first among ready nodes.
    """

    count = len(graph.nodes)
    cluster = _clusters(walks)
    dag_predecessors: List[List[int]] = [[] for _ in range(count)]
    dag_successors: List[List[int]] = [[] for _ in range(count)]
    indegree = [0] * count
    for edge in graph.internal_edges:
        source, target = edge.source, edge.target
        assert target is not None
        if (source, target) in cycle_pairs:
            continue
        dag_predecessors[target].append(source)
        dag_successors[source].append(target)
        indegree[target] += 1

    ready = [index for index in range(count) if indegree[index] == 0]
    heapq.heapify(ready)
    depth = [0] * count
    processed = 0
    while ready:
        node = heapq.heappop(ready)
        processed += 1
        if node in cluster:
            outside = [depth[pred] for pred in dag_predecessors[node] if cluster.get(pred) != cluster[node]]
            depth[node] = min(outside) if outside else 0
        else:
            depth[node] = max((depth[pred] + 1 for pred in dag_predecessors[node]), default=0)
        for successor in dag_successors[node]:
            indegree[successor] -= 1
            if indegree[successor] == 0:
                heapq.heappush(ready, successor)

    if processed != count:
        raise RuntimeError("non-cycle edges do not form a DAG")
    return {graph.node_id(index): depth[index] for index in range(count)}


__all__ = ["CycleDepthAnalyzer", "compute_depths", "find_cycles"]

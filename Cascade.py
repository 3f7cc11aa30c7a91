# Cascade.py
# Propagates an on/off toggle from one node to everything that depends on it.
#
# The traversal is planned first (breadth-first over a frozen copy of the
# edges) and applied afterwards, one registration call per node. A failed call
# aborts only the subtree behind that node.

import logging
from collections import deque
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Set

import Config
from Errors import CascadeBranchFailure
from Registration_Client import is_success
from Topology import TopologySynchronizer

logger = logging.getLogger(__name__)


class PlanStep(NamedTuple):
    node_id: str
    status: str
    parent: Optional[str]


class CascadeResult:

    def __init__(self):
        self.applied: List[str] = []
        self.unchanged: List[str] = []
        self.failed: List[str] = []
        self.skipped: List[str] = []

    @property
    def visited(self) -> List[str]:
        return self.applied + self.unchanged + self.failed + self.skipped

    def __repr__(self) -> str:
        return (f"CascadeResult(applied={self.applied}, unchanged={self.unchanged}, "
                f"failed={self.failed}, skipped={self.skipped})")


def reverse_edges(edges: Mapping[str, Sequence[str]]) -> Dict[str, List[str]]:
    """target id -> ids of the nodes with an edge into it, in node order."""
    dependents: Dict[str, List[str]] = {}
    for source, targets in edges.items():
        for target in targets:
            dependents.setdefault(target, []).append(source)
    return dependents


def plan_cascade(edges: Mapping[str, Sequence[str]], start_id: str, turn_on: bool) -> List[PlanStep]:
    status = "online" if turn_on else "offline"
    dependents = reverse_edges(edges)

    plan = []
    visited: Set[str] = {start_id}
    queue = deque([(start_id, None)])
    while queue:
        node_id, parent = queue.popleft()
        plan.append(PlanStep(node_id, status, parent))
        for dep in dependents.get(node_id, []):
            if dep not in visited:
                visited.add(dep)
                queue.append((dep, node_id))
    return plan


class CascadeEngine:

    def __init__(self, topology: TopologySynchronizer, client):
        self.topology = topology
        self.client = client

    async def toggle(self, node_id: str, turn_on: bool) -> CascadeResult:
        result = CascadeResult()
        if not turn_on and node_id in Config.PERMANENT_IDS:
            logger.info("Refusing to switch off permanent device %s", node_id)
            return result
        if node_id not in self.topology.nodes:
            logger.warning("Toggle for unknown node %s ignored", node_id)
            return result

        blocked: Set[str] = set()
        for step in plan_cascade(self.topology.edges(), node_id, turn_on):
            node = self.topology.nodes.get(step.node_id)
            if node is None or step.parent in blocked:
                blocked.add(step.node_id)
                result.skipped.append(step.node_id)
                continue

            # Already there: nothing below this node needs visiting either
            if node.status == step.status:
                blocked.add(step.node_id)
                result.unchanged.append(step.node_id)
                continue

            try:
                await self._request(step)
            except CascadeBranchFailure as e:
                logger.warning("Cascade branch aborted at %s", e)
                blocked.add(step.node_id)
                result.failed.append(step.node_id)
                continue

            node.status = step.status
            result.applied.append(step.node_id)

        logger.info("Cascade from %s -> %s: %r", node_id, "on" if turn_on else "off", result)
        return result

    async def _request(self, step: PlanStep) -> None:
        if step.status == "offline":
            if step.node_id in Config.PERMANENT_IDS:
                raise CascadeBranchFailure(step.node_id, "permanent device")
            status, body = await self.client.unregister(step.node_id)
        else:
            status, body = await self.client.reactivate(step.node_id)

        if not is_success(status):
            raise CascadeBranchFailure(step.node_id, body.get("error") or f"HTTP {status}")

# Topology.py
# Client-side graph that mirrors the registry and adds what the host never
# stores: canvas positions, quality scores and the edges between nodes.
#
# Edges always point from a dependent to the computer it hangs off:
#   sensor/camera/speaker -> least loaded computer (+ root when that isn't the root)
#   computer              -> root
#   root                  -> nothing

import math
import random
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, ValidationError as SchemaError

import Config
from Errors import ChannelError
from MSG import Reading, SnapshotMessage, validate_message

logger = logging.getLogger(__name__)

RETAIN = "retain"
EVICT = "evict"

# Display name + description for devices the host sends without one
DEVICE_TEMPLATES = {
    "temperature": ("Sensor T", "Sensor de temperatura ambiental"),
    "sound": ("Micrófono M1", "Sensor acústico de monitoreo"),
    "camera": ("Cam HD", "Cámara IP de vigilancia"),
    "speaker": ("Bocina IoT", "Dispositivo de salida de audio"),
    "computer": ("PC Control", "Unidad central de procesamiento"),
}


class Node(BaseModel):
    id: str
    type: str
    status: str = "online"
    x: float
    y: float
    connections: List[str] = []
    quality: int = 100
    name: str = ""
    details: str = ""
    reading: Optional[Reading] = None


def seed_nodes() -> Dict[str, Node]:
    """Nodes for the two permanent devices, present before any snapshot arrives."""
    return {
        Config.ROOT_ID: Node(
            id=Config.ROOT_ID, type="computer", x=500, y=250, connections=[],
            name="Servidor NodeX", details="Servidor IoT dedicado",
        ),
        Config.CONTROL_PC_ID: Node(
            id=Config.CONTROL_PC_ID, type="computer", x=300, y=250, connections=[Config.ROOT_ID],
            name="PC Control", details="Unidad central de control",
        ),
    }


def incoming_load(nodes: Mapping[str, Node], node_id: str) -> int:
    return sum(1 for n in nodes.values() if node_id in n.connections)


def assign_edges(nodes: Mapping[str, Node], device_type: str, root_id: str = Config.ROOT_ID) -> List[str]:
    """Outgoing edges for a new node of `device_type`, given the current graph.

    Pure: looks only at `nodes` and never mutates it. Ties between equally
    loaded computers go to the one that appears first.
    """
    if device_type == "computer":
        return [root_id]

    computers = [n for n in nodes.values() if n.type == "computer"]
    if not computers:
        return []

    target = min(computers, key=lambda pc: incoming_load(nodes, pc.id))
    edges = [target.id]
    if target.id != root_id:
        edges.append(root_id)
    return edges


def is_far_enough(positions: Sequence[Tuple[float, float]], x: float, y: float, min_distance: float) -> bool:
    return all(math.hypot(px - x, py - y) >= min_distance for px, py in positions)


def place_node(
    positions: Sequence[Tuple[float, float]],
    rng: random.Random,
    min_distance: float = Config.MIN_NODE_DISTANCE,
    attempts: int = Config.PLACEMENT_ATTEMPTS,
) -> Tuple[float, float]:
    """Best-effort random placement; returns the last sample if none is far enough."""
    x = y = 0.0
    for _ in range(max(1, attempts)):
        x = rng.uniform(Config.CANVAS_MIN_X, Config.CANVAS_MAX_X)
        y = rng.uniform(Config.CANVAS_MIN_Y, Config.CANVAS_MAX_Y)
        if is_far_enough(positions, x, y, min_distance):
            break
    return x, y


class TopologySynchronizer:
    """Reconciles every inbound snapshot against the local node set.

    Snapshots are total, so applying one is a full reconciliation rather than
    a patch. Applying the same snapshot twice leaves the nodes unchanged.
    """

    def __init__(self, policy: str = Config.STALE_NODE_POLICY, rng: Optional[random.Random] = None):
        if policy not in (RETAIN, EVICT):
            raise ValueError(f"Unknown stale node policy: {policy}")
        self.policy = policy
        self.rng = rng or random.Random()
        self.nodes: Dict[str, Node] = seed_nodes()

    def apply(self, message) -> List[str]:
        """Fold a snapshot (dict or SnapshotMessage) into the graph; returns created ids."""
        if not isinstance(message, SnapshotMessage):
            try:
                message = validate_message(message)
            except SchemaError as e:
                raise ChannelError(f"Invalid snapshot: {e.error_count()} error(s)") from e

        created = []
        seen: Set[str] = set()
        for device in message.devices:
            seen.add(device.id)
            node = self.nodes.get(device.id)
            if node is not None:
                node.status = device.status
                node.reading = device.data
                continue
            self.nodes[device.id] = self._create_node(device)
            created.append(device.id)

        if self.policy == EVICT:
            self._evict(seen)

        if created:
            logger.info("Added %d node(s): %s", len(created), ", ".join(created))
        return created

    def _create_node(self, device) -> Node:
        positions = [(n.x, n.y) for n in self.nodes.values()]
        x, y = place_node(positions, self.rng)
        name, details = DEVICE_TEMPLATES.get(device.type, (device.type, ""))
        return Node(
            id=device.id,
            type=device.type,
            status=device.status,
            x=x,
            y=y,
            connections=assign_edges(self.nodes, device.type),
            quality=self.rng.randint(60, 99),
            name=device.name or f"{name} {device.id}",
            details=device.details or details,
            reading=device.data,
        )

    def _evict(self, seen: Set[str]) -> None:
        stale = [nid for nid in self.nodes if nid not in seen and nid not in Config.PERMANENT_IDS]
        for nid in stale:
            del self.nodes[nid]
        if stale:
            for node in self.nodes.values():
                node.connections = [c for c in node.connections if c not in stale]
            logger.info("Evicted %d stale node(s)", len(stale))

    # ----------------------------
    # GRAPH VIEWS
    # ----------------------------
    def edges(self) -> Dict[str, Tuple[str, ...]]:
        """Immutable copy of the adjacency lists, keyed by node id."""
        return {nid: tuple(n.connections) for nid, n in self.nodes.items()}

    def dependents(self, node_id: str) -> List[str]:
        return [nid for nid, n in self.nodes.items() if node_id in n.connections]

"""Placements and the mesh nodes they turn into."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from ..board.abstraction import Rect


@dataclass
class Placement:
    """A placed free rectangle and the layers it is free on.

    Seeding creates placements; expansion grows ``rect`` in place.
    """
    id: int
    rect: Rect
    z: Tuple[int, ...]
    parent_id: int = -1  # Set on placements split off during expansion


@dataclass
class MeshNode:
    """One capacity mesh node handed to the router."""
    node_id: str
    center: Tuple[float, float]
    width: float
    height: float
    available_z: List[int] = field(default_factory=list)
    layer: str = ""

    @property
    def rect(self) -> Rect:
        cx, cy = self.center
        return Rect(cx - self.width / 2, cy - self.height / 2, self.width, self.height)

    @classmethod
    def from_rect(cls, node_id: str, rect: Rect, z: Sequence[int]) -> "MeshNode":
        available_z = sorted(set(z))
        return cls(
            node_id=node_id,
            center=rect.center,
            width=rect.width,
            height=rect.height,
            available_z=available_z,
            layer=layer_label(available_z),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capacityMeshNodeId": self.node_id,
            "center": {"x": self.center[0], "y": self.center[1]},
            "width": self.width,
            "height": self.height,
            "availableZ": list(self.available_z),
            "layer": self.layer,
        }


def layer_label(z: Sequence[int]) -> str:
    """Layer label for a z set, e.g. ``z0,1``."""
    return "z" + ",".join(str(v) for v in sorted(z))


def placements_to_mesh_nodes(placements: Sequence[Placement],
                             id_format: str = "cmn_{}") -> List[MeshNode]:
    """Freeze placements into mesh nodes, numbering ids with id_format."""
    return [
        MeshNode.from_rect(id_format.format(i), p.rect, p.z)
        for i, p in enumerate(placements)
    ]

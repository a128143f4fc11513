"""Layer naming and z-index resolution.

Copper layers are addressed by name in board descriptions ("top",
"inner1", "bottom") and by integer z-index inside the mesh. The layer map
fixes a canonical ordering (top, inner layers by number, bottom, then
anything else alphabetically) and resolves every name onto a legal index.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
import logging
import re

from ..board.abstraction import Board, Obstacle

logger = logging.getLogger(__name__)

_INNER_RE = re.compile(r"^inner(\d+)$", re.IGNORECASE)


class LayerConfigurationError(ValueError):
    """An obstacle references z-indices outside the board's layer range."""

    def __init__(self, invalid_z: Iterable[int], layer_count: int):
        self.invalid_z = sorted(set(invalid_z))
        self.layer_count = layer_count
        super().__init__(
            f"Obstacle uses z-layer indices {','.join(str(z) for z in self.invalid_z)} "
            f"outside 0-{layer_count - 1}"
        )


@dataclass
class LayerMap:
    """Ordered layer names and the name -> z-index lookup."""
    layer_names: List[str]
    z_index_by_name: Dict[str, int] = field(default_factory=dict)
    layer_count: int = 1

    def z_for_name(self, name: str) -> Optional[int]:
        return self.z_index_by_name.get(name.lower())

    def name_for_z(self, z: int) -> str:
        if 0 <= z < len(self.layer_names):
            return self.layer_names[z]
        return f"z{z}"

    @property
    def all_z(self) -> List[int]:
        return list(range(self.layer_count))

    def resolve_obstacle_z(self, obstacle: Obstacle) -> List[int]:
        """Sorted z-indices an obstacle occupies.

        Explicit ``z_layers`` win; otherwise layer names are looked up. An
        obstacle that declares neither sits on every layer. Names that do not
        resolve are dropped, which can leave an empty list.
        """
        if obstacle.z_layers:
            return sorted(set(obstacle.z_layers))
        if not obstacle.layers:
            return self.all_z
        resolved = set()
        for name in obstacle.layers:
            z = self.z_for_name(name)
            if z is not None:
                resolved.add(z)
        return sorted(resolved)


def layer_sort_key(name: str):
    """Sort key putting top first, inner layers by number, bottom last."""
    lower = name.lower()
    if lower == "top":
        return (-1_000_000, lower)
    if lower == "bottom":
        return (1_000_000, lower)
    match = _INNER_RE.match(lower)
    if match:
        return (int(match.group(1)), lower)
    return (100 + ord(lower[0]) if lower else 100, lower)


def canonicalize_layer_order(names: Iterable[str]) -> List[str]:
    return sorted(set(names), key=layer_sort_key)


def _default_layer_names(layer_count: int) -> List[str]:
    names = []
    for i in range(layer_count):
        if i == 0:
            names.append("top")
        elif i == layer_count - 1:
            names.append("bottom")
        else:
            names.append(f"inner{i}")
    return names


def _clamp_index(name_lower: str, layer_count: int) -> int:
    """Map an extra layer name onto a legal z-index."""
    if layer_count <= 1:
        return 0
    if name_lower == "top":
        return 0
    if name_lower == "bottom":
        return layer_count - 1
    match = _INNER_RE.match(name_lower)
    if match:
        if layer_count <= 2:
            return layer_count - 1
        return min(layer_count - 2, max(1, int(match.group(1))))
    return 0


def build_layer_map(board: Board) -> LayerMap:
    """Build the layer map for a board.

    Explicit ``layer_names`` / ``z_index_by_name`` on the board take
    precedence. Otherwise names default to top/innerN/bottom for the declared
    layer count, and names used by obstacles beyond that count are clamped
    onto existing layers.
    """
    used = canonicalize_layer_order(
        name for ob in board.obstacles for name in ob.layers
    )

    if board.layer_names:
        layer_names = list(board.layer_names)
        layer_count = max(1, len(layer_names), board.layer_count or 1)
        z_map = {name.lower(): i for i, name in enumerate(layer_names)}
    else:
        declared = max(1, board.layer_count or len(used) or 1)
        ordered: List[str] = []
        seen = set()
        for name in _default_layer_names(declared) + used:
            if name.lower() not in seen:
                seen.add(name.lower())
                ordered.append(name)
        layer_names = ordered[:declared]
        layer_count = max(1, len(layer_names), board.layer_count or 1)
        z_map = {name.lower(): i for i, name in enumerate(layer_names)}
        for name in ordered[declared:]:
            z_map[name.lower()] = _clamp_index(name.lower(), len(layer_names))
            logger.debug(f"Clamped layer '{name}' onto z{z_map[name.lower()]}")

    if board.z_index_by_name:
        for name, z in board.z_index_by_name.items():
            z_map[name.lower()] = int(z)

    return LayerMap(layer_names=layer_names, z_index_by_name=z_map, layer_count=layer_count)

"""Obstacle map builder for capacity mesh generation.

Pre-computes the per-layer obstacle index from a board before seeding
begins. The map is built once and only read by the solvers afterwards.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging

from ..board.abstraction import Board, BoardBounds, Obstacle, Rect
from ..board.shapes import get_shape_handler
from .geometry import compute_board_void_rects
from .layers import LayerConfigurationError, LayerMap, build_layer_map
from .spatial_index import IndexedRect, LayeredIndex, auto_calibrate_cell_size

logger = logging.getLogger(__name__)


@dataclass
class ObstacleMap:
    """Read-only obstacle index for every layer of a board."""
    bounds: BoardBounds
    layer_map: LayerMap
    index: LayeredIndex
    clearance: float = 0.0
    outline: Optional[List[Tuple[float, float]]] = None
    board_void_rects: List[Rect] = field(default_factory=list)
    # Resolved z-indices keyed by id() of the caller's obstacle
    obstacle_z: Dict[int, List[int]] = field(default_factory=dict)

    @property
    def layer_count(self) -> int:
        return self.layer_map.layer_count

    @property
    def layer_names(self) -> List[str]:
        return self.layer_map.layer_names

    def query(self, rect: Rect, z: int) -> List[IndexedRect]:
        """Obstacles and voids on layer z touching or overlapping rect."""
        return self.index.query(rect, z)

    def z_for(self, obstacle: Obstacle) -> List[int]:
        """Resolved z-indices for one of the board's obstacles."""
        return self.obstacle_z.get(id(obstacle), [])

    def get_stats(self) -> Dict:
        per_layer = {}
        for z in range(self.layer_count):
            items = self.index.items_on(z)
            per_layer[self.layer_map.name_for_z(z)] = {
                "obstacles": sum(1 for it in items if it.kind == "obstacle"),
                "voids": sum(1 for it in items if it.kind == "void"),
            }
        return {
            "layer_count": self.layer_count,
            "cell_size": self.index.cell_size,
            "total_rects": self.index.count(),
            "layers": per_layer,
        }


class ObstacleIndexBuilder:
    """Build the per-layer obstacle index for a board.

    - Obstacles are resolved to z-indices through the layer map
    - Every obstacle is padded by the clearance before insertion
    - Board void rectangles are inserted on every layer
    """

    def __init__(self, board: Board, clearance: Optional[float] = None):
        """
        Args:
            board: Board to index
            clearance: Margin added around every obstacle. Defaults to the
                board's obstacle_clearance, then 0.
        """
        self.board = board
        if clearance is None:
            clearance = board.obstacle_clearance
        self.clearance = clearance or 0.0

    def build(self) -> ObstacleMap:
        """Build complete obstacle index from board.

        Raises:
            LayerConfigurationError: An obstacle resolves to a z-index outside
                the board's layer range. Nothing is indexed in that case.
        """
        layer_map = build_layer_map(self.board)
        layer_count = layer_map.layer_count

        resolved = self._resolve_layers(layer_map)

        # Bounding rects for every supported obstacle
        entries: List[Tuple[Obstacle, Rect, List[int]]] = []
        skipped = 0
        for obstacle in self.board.obstacles:
            handler = get_shape_handler(obstacle.type)
            rect = handler.bounding_rect(obstacle, self.clearance) if handler else None
            if rect is None:
                logger.debug(f"Skipping obstacle of unsupported type '{obstacle.type}'")
                skipped += 1
                continue
            zs = resolved[id(obstacle)]
            if not zs:
                logger.warning(
                    f"Obstacle at {obstacle.center} has layers {obstacle.layers} "
                    "that match no board layer, skipping"
                )
                skipped += 1
                continue
            entries.append((obstacle, rect, zs))

        void_rects = self._board_void_rects()

        board_extent = max(self.board.bounds.width, self.board.bounds.height)
        cell_size = auto_calibrate_cell_size(
            [(rect.width, rect.height) for _, rect, _ in entries],
            board_extent=board_extent,
        )
        logger.debug(f"Calibrated spatial index cell size: {cell_size:.3f}mm")

        index = LayeredIndex(layer_count, cell_size=cell_size)
        for rect in void_rects:
            for z in range(layer_count):
                index.add(IndexedRect(rect=rect, z=z, kind="void"))

        for obstacle, rect, zs in entries:
            for z in zs:
                index.add(IndexedRect(rect=rect, z=z, kind="obstacle", source=obstacle))

        logger.info(
            f"Built obstacle map: {len(entries)} obstacles, {len(void_rects)} void rects, "
            f"{layer_count} layers, clearance {self.clearance}mm"
        )
        if skipped:
            logger.debug(f"Skipped {skipped} obstacles")

        return ObstacleMap(
            bounds=self.board.bounds,
            layer_map=layer_map,
            index=index,
            clearance=self.clearance,
            outline=list(self.board.outline) if self.board.has_outline else None,
            board_void_rects=void_rects,
            obstacle_z=resolved,
        )

    def _resolve_layers(self, layer_map: LayerMap) -> Dict[int, List[int]]:
        """Resolve and validate z-indices for every obstacle.

        All obstacles are checked before anything is inserted so a bad
        reference never leaves a half-built index behind.
        """
        resolved: Dict[int, List[int]] = {}
        invalid = set()
        for obstacle in self.board.obstacles:
            zs = layer_map.resolve_obstacle_z(obstacle)
            invalid.update(z for z in zs if z < 0 or z >= layer_map.layer_count)
            resolved[id(obstacle)] = zs
        if invalid:
            raise LayerConfigurationError(invalid, layer_map.layer_count)
        return resolved

    def _board_void_rects(self) -> List[Rect]:
        if not self.board.has_outline:
            return []
        if self.board.board_void_rects is not None:
            return list(self.board.board_void_rects)
        return compute_board_void_rects(self.board.bounds, self.board.outline)


def build_obstacle_map(board: Board, clearance: Optional[float] = None) -> ObstacleMap:
    """Convenience function to build obstacle map.

    Args:
        board: Board to index
        clearance: Obstacle clearance override

    Returns:
        ObstacleMap ready for seeding and expansion
    """
    return ObstacleIndexBuilder(board, clearance).build()

"""Expansion solver: grow placed seeds until they touch something.

Each step takes one placement and grows it greedily, side by side (right,
down, left, up), repeating until no side moves. Growth on a side is
resolved analytically: the search strip toward the bound is queried on
each of the placement's layers, and the nearest blocker face that overlaps
the placement's cross-axis span is the contact coordinate for that layer.
Growth also stops where the rectangle would pass ``max_aspect_ratio``.

A multi-layer placement grows by the smallest distance any of its layers
allows. When some layers could go at least ``min_split_length`` further, a
new placement on just those layers is split off to cover the extra strip;
it is appended to the work list and grows in its own step.

Placements are processed in order and only ever consume free space, so a
single pass over the work list reaches the fixed point.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging
import math

from ..board.abstraction import BoardBounds, Rect
from .config import ExpansionConfig
from .geometry import EPS, Direction, search_strip
from .nodes import MeshNode, Placement, placements_to_mesh_nodes
from .obstacle_map import ObstacleMap
from .spatial_index import IndexedRect, LayeredIndex
from .visualizer import SceneGraph, board_scene, placement_rects
from ..visualization_color_manager import get_color_manager

logger = logging.getLogger(__name__)

GROWTH_ORDER = (Direction.RIGHT, Direction.DOWN, Direction.LEFT, Direction.UP)


@dataclass
class ExpansionOutput:
    mesh_nodes: List[MeshNode] = field(default_factory=list)


def _grown(rect: Rect, direction: Direction, distance: float) -> Rect:
    """rect with the edge facing direction moved outward by distance."""
    if direction is Direction.RIGHT:
        return Rect(rect.x, rect.y, rect.width + distance, rect.height)
    if direction is Direction.DOWN:
        return Rect(rect.x, rect.y, rect.width, rect.height + distance)
    if direction is Direction.LEFT:
        return Rect(rect.x - distance, rect.y, rect.width + distance, rect.height)
    return Rect(rect.x, rect.y - distance, rect.width, rect.height + distance)


def _extension(rect: Rect, direction: Direction, start: float, length: float) -> Rect:
    """Strip of the given length beyond rect, starting start past its edge."""
    if direction is Direction.RIGHT:
        return Rect(rect.max_x + start, rect.y, length, rect.height)
    if direction is Direction.DOWN:
        return Rect(rect.x, rect.max_y + start, rect.width, length)
    if direction is Direction.LEFT:
        return Rect(rect.min_x - start - length, rect.y, length, rect.height)
    return Rect(rect.x, rect.min_y - start - length, rect.width, length)


def max_growth(rect: Rect, direction: Direction, bounds: BoardBounds,
               blockers: List[IndexedRect]) -> float:
    """Distance rect can grow toward direction before touching a blocker.

    Only blockers overlapping rect's cross-axis span (not merely touching it)
    and lying beyond the growing edge count. A blocker straddling the edge
    allows no growth.
    """
    if direction in (Direction.RIGHT, Direction.LEFT):
        lo, hi = rect.min_y, rect.max_y
    else:
        lo, hi = rect.min_x, rect.max_x

    if direction is Direction.RIGHT:
        edge = rect.max_x
        limit = bounds.max_x
    elif direction is Direction.DOWN:
        edge = rect.max_y
        limit = bounds.max_y
    elif direction is Direction.LEFT:
        edge = rect.min_x
        limit = bounds.min_x
    else:
        edge = rect.min_y
        limit = bounds.min_y

    for b in blockers:
        if direction in (Direction.RIGHT, Direction.LEFT):
            b_lo, b_hi = b.min_y, b.max_y
        else:
            b_lo, b_hi = b.min_x, b.max_x
        if not (b_lo < hi - EPS and b_hi > lo + EPS):
            continue

        if direction is Direction.RIGHT:
            if b.max_x > edge + EPS:
                limit = min(limit, max(edge, b.min_x))
        elif direction is Direction.DOWN:
            if b.max_y > edge + EPS:
                limit = min(limit, max(edge, b.min_y))
        elif direction is Direction.LEFT:
            if b.min_x < edge - EPS:
                limit = max(limit, min(edge, b.max_x))
        else:
            if b.min_y < edge - EPS:
                limit = max(limit, min(edge, b.max_y))

    return max(0.0, abs(limit - edge))


def aspect_growth_cap(rect: Rect, direction: Direction,
                      max_ratio: Optional[float]) -> float:
    """Largest growth toward direction that keeps rect within max_ratio."""
    if max_ratio is None:
        return math.inf
    if direction in (Direction.RIGHT, Direction.LEFT):
        return max(0.0, rect.height * max_ratio - rect.width)
    return max(0.0, rect.width * max_ratio - rect.height)


class ExpansionSolver:
    """Step-wise growth of seeding placements into mesh nodes.

    Usage:
        solver = ExpansionSolver(obstacle_map, seeding_output)
        while solver.step():
            pass
        nodes = solver.get_output().mesh_nodes
    """

    def __init__(
        self,
        obstacle_map: ObstacleMap,
        seeding_output,
        config: Optional[ExpansionConfig] = None,
        min_trace_width: float = 0.15,
    ):
        """
        Args:
            obstacle_map: Obstacle index the seeds were found in
            seeding_output: SeedingOutput with bounds and placed seeds
            config: Expansion options
            min_trace_width: Fallback for min_split_length
        """
        self.obstacle_map = obstacle_map
        self.config = config or ExpansionConfig()
        self.bounds: BoardBounds = seeding_output.bounds
        self.min_split_length = (self.config.min_split_length
                                 if self.config.min_split_length is not None
                                 else min_trace_width)

        # Copies, so the seeding output stays as seeding left it
        self.placements: List[Placement] = [
            Placement(id=i, rect=p.rect, z=tuple(p.z))
            for i, p in enumerate(seeding_output.placed)
        ]
        self.placed_index = LayeredIndex(obstacle_map.layer_count,
                                         cell_size=obstacle_map.index.cell_size)
        self._entries: Dict[int, List[IndexedRect]] = {}
        for placement in self.placements:
            self._index(placement)

        self.cursor = 0
        self.grown = 0
        self.splits = 0
        self.solved = not self.placements

    @property
    def progress(self) -> float:
        if self.solved:
            return 1.0
        return self.cursor / len(self.placements)

    def _index(self, placement: Placement):
        entries = []
        for z in placement.z:
            item = IndexedRect(rect=placement.rect, z=z, kind="placement", source=placement)
            self.placed_index.add(item)
            entries.append(item)
        self._entries[placement.id] = entries

    def _reindex(self, placement: Placement):
        for item in self._entries.pop(placement.id, []):
            self.placed_index.remove(item)
        self._index(placement)

    def solve(self) -> ExpansionOutput:
        while self.step():
            pass
        return self.get_output()

    def step(self) -> bool:
        """Grow one placement as far as it will go.

        Returns:
            True while there is work left
        """
        if self.solved:
            return False

        placement = self.placements[self.cursor]
        before = placement.rect
        self._grow(placement)
        if placement.rect != before:
            self.grown += 1
            logger.debug(f"Grew placement #{placement.id} from {before} to {placement.rect}")

        self.cursor += 1
        if self.cursor >= len(self.placements):
            self.solved = True
            logger.info(
                f"Expansion done: {len(self.placements)} nodes, "
                f"{self.grown} grown, {self.splits} layer splits"
            )
        return not self.solved

    def _grow(self, placement: Placement):
        improved = True
        while improved:
            improved = False
            for direction in GROWTH_ORDER:
                if self._grow_side(placement, direction):
                    improved = True

    def _reach_by_layer(self, placement: Placement,
                        direction: Direction) -> Dict[int, float]:
        strip = search_strip(placement.rect, self.bounds, direction)
        own = {id(item) for item in self._entries.get(placement.id, [])}
        reach = {}
        for z in placement.z:
            blockers = self.obstacle_map.query(strip, z)
            blockers.extend(
                item for item in self.placed_index.query(strip, z)
                if id(item) not in own
            )
            reach[z] = max_growth(placement.rect, direction, self.bounds, blockers)
        return reach

    def _grow_side(self, placement: Placement, direction: Direction) -> bool:
        reach = self._reach_by_layer(placement, direction)
        if not reach:
            return False
        cap = aspect_growth_cap(placement.rect, direction, self.config.max_aspect_ratio)
        reach = {z: min(r, cap) for z, r in reach.items()}
        common = min(reach.values())

        split_z: Tuple[int, ...] = ()
        if self.config.allow_layer_split and len(reach) > 1:
            split_z = tuple(z for z in placement.z
                            if reach[z] - common >= self.min_split_length - EPS)

        grew = common > EPS
        if grew:
            placement.rect = _grown(placement.rect, direction, common)
            self._reindex(placement)

        if split_z:
            length = min(reach[z] for z in split_z) - common
            if self.config.max_aspect_ratio is not None:
                cross = (placement.rect.height
                         if direction in (Direction.RIGHT, Direction.LEFT)
                         else placement.rect.width)
                length = min(length, cross * self.config.max_aspect_ratio)
            child = Placement(
                id=len(self.placements),
                rect=_extension(placement.rect, direction, 0.0, length),
                z=split_z,
                parent_id=placement.id,
            )
            self.placements.append(child)
            self._index(child)
            self.splits += 1
            logger.debug(
                f"Split placement #{child.id} off #{placement.id} "
                f"toward {direction.value} on z{list(split_z)}"
            )

        return grew

    def get_output(self) -> ExpansionOutput:
        return ExpansionOutput(mesh_nodes=placements_to_mesh_nodes(self.placements))

    @property
    def stats(self) -> Dict:
        return {
            "placements": len(self.placements),
            "processed": self.cursor,
            "grown": self.grown,
            "splits": self.splits,
        }

    def visualize(self) -> SceneGraph:
        colors = get_color_manager()
        scene = board_scene(
            self.obstacle_map,
            title=f"Expansion ({self.cursor}/{len(self.placements)})",
        )
        scene.rects.extend(placement_rects(self.placements))
        if not self.solved and self.cursor < len(self.placements):
            scene.add_rect(self.placements[self.cursor].rect,
                           stroke=colors.get_mesh_color("active"), label="next")
        return scene

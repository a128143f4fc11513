"""Seeding solver: discover free rectangles by repeated subtraction.

Seeding starts with the whole board on every layer and works through a
queue of candidate rectangles, one per step:

0. A candidate longer than ``max_aspect_ratio`` times its width is cut
   into equal pieces, which go back on the queue.
1. Layers on which the candidate touches no obstacle (and no earlier
   placement) are free; the candidate is placed on those layers.
2. On the remaining layers, the blocker that overlaps the candidate most is
   cut out. The leftover pieces (up to four inverse rectangles) go back on
   the queue for all blocked layers, and the cut-out footprint goes back on
   the queue for the blocked layers where nothing covers it.

Every child is strictly smaller than its parent in area or layer count, so
the queue drains. Children of one candidate never overlap each other on a
shared layer, which keeps placements disjoint per layer.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple
import logging

from ..board.abstraction import BoardBounds, Rect
from .config import SeedingConfig
from .geometry import (
    EPS,
    intersect_rect,
    is_self_rect,
    overlaps,
    point_in_polygon,
    split_to_aspect_ratio,
    subtract_rect,
)
from .nodes import Placement
from .obstacle_map import ObstacleMap
from .spatial_index import IndexedRect, LayeredIndex
from .visualizer import SceneGraph, ScenePoint, board_scene, placement_rects
from ..visualization_color_manager import get_color_manager

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    """A region still to be examined, with the layers it is examined on."""
    rect: Rect
    z: Tuple[int, ...]
    depth: int = 0


@dataclass
class SeedingOutput:
    """Everything expansion needs from seeding."""
    bounds: BoardBounds
    candidates_examined: int
    placed: List[Placement]
    pending: List[Candidate] = field(default_factory=list)
    layer_names: List[str] = field(default_factory=list)
    layer_count: int = 1
    rejected_self_rects: int = 0
    board_void_rects: List[Rect] = field(default_factory=list)


def _covers(outer: Rect, inner: Rect) -> bool:
    return (outer.min_x <= inner.min_x + EPS and outer.max_x >= inner.max_x - EPS and
            outer.min_y <= inner.min_y + EPS and outer.max_y >= inner.max_y - EPS)


def _overlap_area(a: Rect, b: Rect) -> float:
    inter = intersect_rect(a, b)
    return inter.area if inter else 0.0


class SeedingSolver:
    """Step-wise seeding of free rectangles.

    Usage:
        solver = SeedingSolver(obstacle_map, SeedingConfig(), min_trace_width=0.15)
        while solver.step():
            pass
        output = solver.get_output()
    """

    def __init__(
        self,
        obstacle_map: ObstacleMap,
        config: Optional[SeedingConfig] = None,
        min_trace_width: float = 0.15,
    ):
        self.obstacle_map = obstacle_map
        self.config = config or SeedingConfig()
        self.min_width = (self.config.min_width
                          if self.config.min_width is not None else min_trace_width)
        self.min_height = (self.config.min_height
                           if self.config.min_height is not None else min_trace_width)
        self.min_multi_width = (self.config.min_multi_width
                                if self.config.min_multi_width is not None else self.min_width)
        self.min_multi_height = (self.config.min_multi_height
                                 if self.config.min_multi_height is not None
                                 else self.min_height)
        self.outline = obstacle_map.outline

        all_z = tuple(range(obstacle_map.layer_count))
        self.queue: Deque[Candidate] = deque([
            Candidate(rect=obstacle_map.bounds.to_rect(), z=all_z)
        ])
        self.placed: List[Placement] = []
        self.placed_index = LayeredIndex(obstacle_map.layer_count,
                                         cell_size=obstacle_map.index.cell_size)

        self.candidates_examined = 0
        self.rejected_self_rects = 0
        self.rejected_small = 0
        self.rejected_outside = 0
        self.split_elongated = 0
        self.split_multi_layer = 0
        self.max_depth = 0
        self.budget_exhausted = False
        self.solved = False
        self.last_candidate: Optional[Candidate] = None

    @property
    def progress(self) -> float:
        if self.solved:
            return 1.0
        total = self.candidates_examined + len(self.queue)
        return self.candidates_examined / total if total else 0.0

    def solve(self) -> SeedingOutput:
        while self.step():
            pass
        return self.get_output()

    def step(self) -> bool:
        """Examine one candidate.

        Returns:
            True while there is work left
        """
        if self.solved:
            return False

        if not self.queue:
            self._finish()
            return False

        if self.candidates_examined >= self.config.max_candidates:
            self.budget_exhausted = True
            logger.warning(
                f"Seeding stopped after {self.candidates_examined} candidates, "
                f"{len(self.queue)} left unexamined"
            )
            self._finish()
            return False

        candidate = self.queue.popleft()
        self.candidates_examined += 1
        self.max_depth = max(self.max_depth, candidate.depth)
        self.last_candidate = candidate
        self._examine(candidate)

        if not self.queue:
            self._finish()
        return not self.solved

    def _finish(self):
        self.solved = True
        logger.info(
            f"Seeding done: {len(self.placed)} placements from "
            f"{self.candidates_examined} candidates (max depth {self.max_depth})"
        )
        logger.debug(
            f"Seeding rejects: {self.rejected_small} too small, "
            f"{self.rejected_self_rects} self rects, {self.rejected_outside} outside outline"
        )

    def _too_small(self, rect: Rect) -> bool:
        return rect.width < self.min_width - EPS or rect.height < self.min_height - EPS

    def _blockers(self, rect: Rect, z: int) -> List[IndexedRect]:
        hits = [it for it in self.obstacle_map.query(rect, z) if overlaps(it.rect, rect)]
        hits.extend(it for it in self.placed_index.query(rect, z) if overlaps(it.rect, rect))
        return hits

    def _examine(self, candidate: Candidate):
        rect = candidate.rect
        if self._too_small(rect):
            self.rejected_small += 1
            return

        pieces = split_to_aspect_ratio(rect, self.config.max_aspect_ratio)
        if len(pieces) > 1:
            self.split_elongated += 1
            for piece in pieces:
                self.queue.append(Candidate(rect=piece, z=candidate.z, depth=candidate.depth + 1))
            return

        blockers: Dict[int, List[IndexedRect]] = {}
        for z in candidate.z:
            hits = self._blockers(rect, z)
            if hits:
                blockers[z] = hits

        free = tuple(z for z in candidate.z if z not in blockers)
        if free:
            self._place(rect, free)
        if not blockers:
            return

        blocked = tuple(z for z in candidate.z if z in blockers)
        pivot = self._choose_pivot(rect, blockers)

        start_x, start_y = rect.center
        for piece in subtract_rect(rect, pivot.rect):
            if is_self_rect(piece, start_x, start_y, rect.width, rect.height):
                self.rejected_self_rects += 1
                continue
            if self._too_small(piece):
                self.rejected_small += 1
                continue
            self.queue.append(Candidate(rect=piece, z=blocked, depth=candidate.depth + 1))

        # The footprint under the pivot may still be free on other layers
        core = intersect_rect(rect, pivot.rect)
        if core is None:
            return
        core_z = tuple(
            z for z in blocked
            if not any(_covers(b.rect, core) for b in blockers[z])
        )
        if core_z and not self._too_small(core):
            self.queue.append(Candidate(rect=core, z=core_z, depth=candidate.depth + 1))

    def _choose_pivot(self, rect: Rect, blockers: Dict[int, List[IndexedRect]]) -> IndexedRect:
        """Blocker with the largest overlap; ties go to the top-left one."""
        best = None
        best_key = None
        for z in sorted(blockers):
            for item in blockers[z]:
                key = (-_overlap_area(rect, item.rect), item.rect.y, item.rect.x, z)
                if best_key is None or key < best_key:
                    best, best_key = item, key
        return best

    def _layer_groups(self, rect: Rect, z: Tuple[int, ...]) -> List[Tuple[int, ...]]:
        """Split free layers into the layer sets that are placed together."""
        span = self.config.max_multi_layer_span
        groups = [z[i:i + span] for i in range(0, len(z), span)] if span else [z]

        small = (rect.width < self.min_multi_width - EPS or
                 rect.height < self.min_multi_height - EPS)
        result = []
        for group in groups:
            if len(group) >= self.config.min_multi_layers and small:
                self.split_multi_layer += 1
                result.extend((layer,) for layer in group)
            else:
                result.append(group)
        return result

    def _place(self, rect: Rect, z: Tuple[int, ...]):
        if self.outline:
            cx, cy = rect.center
            if not point_in_polygon(cx, cy, self.outline):
                self.rejected_outside += 1
                return
        for group in self._layer_groups(rect, z):
            self._add_placement(rect, group)

    def _add_placement(self, rect: Rect, z: Tuple[int, ...]):
        placement = Placement(id=len(self.placed), rect=rect, z=z)
        self.placed.append(placement)
        for layer in z:
            self.placed_index.add(IndexedRect(rect=rect, z=layer, kind="placement",
                                              source=placement))
        logger.debug(f"Placed seed #{placement.id} {rect} on z{list(z)}")

    def get_output(self) -> SeedingOutput:
        return SeedingOutput(
            bounds=self.obstacle_map.bounds,
            candidates_examined=self.candidates_examined,
            placed=list(self.placed),
            pending=list(self.queue),
            layer_names=list(self.obstacle_map.layer_names),
            layer_count=self.obstacle_map.layer_count,
            rejected_self_rects=self.rejected_self_rects,
            board_void_rects=list(self.obstacle_map.board_void_rects),
        )

    @property
    def stats(self) -> Dict:
        return {
            "candidates_examined": self.candidates_examined,
            "queued": len(self.queue),
            "placed": len(self.placed),
            "rejected_small": self.rejected_small,
            "rejected_self_rects": self.rejected_self_rects,
            "rejected_outside": self.rejected_outside,
            "split_elongated": self.split_elongated,
            "split_multi_layer": self.split_multi_layer,
            "max_depth": self.max_depth,
            "budget_exhausted": self.budget_exhausted,
        }

    def visualize(self) -> SceneGraph:
        colors = get_color_manager()
        scene = board_scene(
            self.obstacle_map,
            title=f"Seeding ({self.candidates_examined} examined, {len(self.placed)} placed)",
        )
        scene.rects.extend(placement_rects(self.placed))
        for candidate in self.queue:
            scene.add_rect(candidate.rect, fill=colors.get_mesh_color("pending"),
                           stroke=colors.get_mesh_color("pending_stroke"),
                           label=f"pending z{list(candidate.z)}", dashed=True)
            cx, cy = candidate.rect.center
            scene.points.append(ScenePoint(
                cx, cy,
                color=colors.get_mesh_color("pending_stroke"),
                label=f"z:{','.join(map(str, candidate.z))}",
            ))
        if self.last_candidate is not None and not self.solved:
            scene.add_rect(self.last_candidate.rect, stroke=colors.get_mesh_color("active"),
                           label="current")
        return scene

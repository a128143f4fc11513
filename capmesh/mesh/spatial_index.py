"""Spatial hash index for rectangle overlap queries.

Rectangles are hashed into a uniform grid of cells; a query only looks at
the cells its rectangle covers. Both the obstacle map and the placement
bookkeeping of the solvers use one index per z-index.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import math

from ..board.abstraction import Rect


@dataclass(eq=False)
class IndexedRect:
    """A rectangle stored in a spatial index.

    Identity based equality: two entries with the same geometry are still
    distinct index members.
    """
    rect: Rect
    z: int
    kind: str = "obstacle"  # "obstacle", "void", "placement"
    source: Any = None

    @property
    def min_x(self) -> float:
        return self.rect.min_x

    @property
    def min_y(self) -> float:
        return self.rect.min_y

    @property
    def max_x(self) -> float:
        return self.rect.max_x

    @property
    def max_y(self) -> float:
        return self.rect.max_y


@dataclass
class SpatialHashIndex:
    """Grid-based spatial hash for rectangle queries.

    Cell size selection matters:
    - Too small: large rectangles touch many cells
    - Too large: many rectangles per cell, slow queries
    """
    cell_size: float = 1.0
    cells: Dict[Tuple[int, int], List[IndexedRect]] = field(default_factory=dict)
    items: Dict[int, IndexedRect] = field(default_factory=dict)
    _order: Dict[int, int] = field(default_factory=dict)
    _next_seq: int = 0

    def __len__(self) -> int:
        return len(self.items)

    def _get_cells_for_rect(
        self, min_x: float, min_y: float, max_x: float, max_y: float
    ) -> Set[Tuple[int, int]]:
        """Get all cells that a rectangle overlaps."""
        cells = set()
        start_x = int(math.floor(min_x / self.cell_size))
        end_x = int(math.floor(max_x / self.cell_size))
        start_y = int(math.floor(min_y / self.cell_size))
        end_y = int(math.floor(max_y / self.cell_size))

        for cx in range(start_x, end_x + 1):
            for cy in range(start_y, end_y + 1):
                cells.add((cx, cy))
        return cells

    def add(self, item: IndexedRect):
        """Add rectangle to index."""
        for cell in self._get_cells_for_rect(item.min_x, item.min_y, item.max_x, item.max_y):
            self.cells.setdefault(cell, []).append(item)
        self.items[id(item)] = item
        self._order[id(item)] = self._next_seq
        self._next_seq += 1

    def remove(self, item: IndexedRect):
        """Remove rectangle from index. Unknown items are ignored."""
        if self.items.pop(id(item), None) is None:
            return
        del self._order[id(item)]
        for cell in self._get_cells_for_rect(item.min_x, item.min_y, item.max_x, item.max_y):
            bucket = self.cells.get(cell)
            if bucket is None:
                continue
            bucket[:] = [other for other in bucket if other is not item]
            if not bucket:
                del self.cells[cell]

    def query_rect(
        self,
        min_x: float,
        min_y: float,
        max_x: float,
        max_y: float,
        exclude: Optional[IndexedRect] = None,
    ) -> List[IndexedRect]:
        """Rectangles intersecting the query (closed test, touching included).

        Results are in insertion order so callers see a deterministic list.
        """
        found: Dict[int, IndexedRect] = {}
        for cell in self._get_cells_for_rect(min_x, min_y, max_x, max_y):
            for item in self.cells.get(cell, ()):
                if item is exclude or id(item) in found:
                    continue
                if (item.min_x <= max_x and item.max_x >= min_x and
                        item.min_y <= max_y and item.max_y >= min_y):
                    found[id(item)] = item
        return sorted(found.values(), key=lambda it: self._order[id(it)])

    def query(self, rect: Rect, exclude: Optional[IndexedRect] = None) -> List[IndexedRect]:
        return self.query_rect(rect.min_x, rect.min_y, rect.max_x, rect.max_y, exclude)


class LayeredIndex:
    """One spatial hash index per z-index."""

    def __init__(self, layer_count: int, cell_size: float = 1.0):
        self.layer_count = layer_count
        self.cell_size = cell_size
        self.layers: List[SpatialHashIndex] = [
            SpatialHashIndex(cell_size=cell_size) for _ in range(layer_count)
        ]

    def add(self, item: IndexedRect):
        self.layers[item.z].add(item)

    def remove(self, item: IndexedRect):
        self.layers[item.z].remove(item)

    def query(self, rect: Rect, z: int,
              exclude: Optional[IndexedRect] = None) -> List[IndexedRect]:
        if not 0 <= z < self.layer_count:
            return []
        return self.layers[z].query(rect, exclude)

    def items_on(self, z: int) -> List[IndexedRect]:
        return list(self.layers[z].items.values())

    def __iter__(self) -> Iterable[IndexedRect]:
        for layer in self.layers:
            yield from layer.items.values()

    def count(self) -> int:
        return sum(len(layer) for layer in self.layers)


def auto_calibrate_cell_size(
    rect_sizes: List[Tuple[float, float]],
    board_extent: float = 0.0,
    default: float = 1.0,
    max_cells_per_side: int = 64,
) -> float:
    """
    Determine cell size from the sizes of the rectangles to index.

    Rule of thumb: cell_size = 2-3x median rectangle size. The board extent
    puts a floor under it so that board-sized rectangles (voids, the first
    seeding placements) never span more than ``max_cells_per_side`` cells
    per axis.

    Args:
        rect_sizes: List of (width, height) tuples
        board_extent: Larger of the board width and height
        default: Cell size when there is nothing to measure

    Returns:
        Cell size in mm
    """
    floor = board_extent / max_cells_per_side if board_extent > 0 else 0.0

    if not rect_sizes:
        return max(default, floor)

    max_dims = sorted(max(w, h) for w, h in rect_sizes)
    median_size = max_dims[len(max_dims) // 2]

    cell_size = median_size * 2.5
    cell_size = max(floor, cell_size, 1e-3)
    if board_extent > 0:
        cell_size = min(cell_size, board_extent)
    return cell_size

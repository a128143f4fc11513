"""Geometry primitives shared by the seeding and expansion solvers.

All comparisons between coordinates go through ``EPS`` so that rectangles
which merely touch are never treated as overlapping.
"""

from enum import Enum
import math
from typing import Dict, List, Optional, Sequence, Tuple

from ..board.abstraction import BoardBounds, Rect

EPS = 1e-9

Point = Tuple[float, float]


class Direction(Enum):
    """Growth direction. DOWN is toward max_y, UP toward min_y."""
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"
    UP = "up"


def overlaps(a: Rect, b: Rect) -> bool:
    """True when the interiors of a and b overlap (touching is not overlap)."""
    return (a.min_x < b.max_x - EPS and a.max_x > b.min_x + EPS and
            a.min_y < b.max_y - EPS and a.max_y > b.min_y + EPS)


def intersect_rect(a: Rect, b: Rect) -> Optional[Rect]:
    """Intersection of a and b, or None if their interiors do not overlap."""
    if not overlaps(a, b):
        return None
    return Rect.from_bounds(
        max(a.min_x, b.min_x), max(a.min_y, b.min_y),
        min(a.max_x, b.max_x), min(a.max_y, b.max_y),
    )


def subtract_rect(a: Rect, b: Rect) -> List[Rect]:
    """Return a minus b as up to four non-overlapping rectangles.

    The left and right strips span the full height of a; the pieces above
    and below b only cover the band between them.
    """
    if not overlaps(a, b):
        return [a]

    pieces = []
    if b.min_x > a.min_x + EPS:
        pieces.append(Rect.from_bounds(a.min_x, a.min_y, b.min_x, a.max_y))
    if b.max_x < a.max_x - EPS:
        pieces.append(Rect.from_bounds(b.max_x, a.min_y, a.max_x, a.max_y))

    band_min_x = max(a.min_x, b.min_x)
    band_max_x = min(a.max_x, b.max_x)
    if b.min_y > a.min_y + EPS:
        pieces.append(Rect.from_bounds(band_min_x, a.min_y, band_max_x, b.min_y))
    if b.max_y < a.max_y - EPS:
        pieces.append(Rect.from_bounds(band_min_x, b.max_y, band_max_x, a.max_y))
    return pieces


def _point_on_segment(x: float, y: float,
                      x1: float, y1: float, x2: float, y2: float) -> bool:
    if (x < min(x1, x2) - EPS or x > max(x1, x2) + EPS or
            y < min(y1, y2) - EPS or y > max(y1, y2) + EPS):
        return False
    cross = (x2 - x1) * (y - y1) - (y2 - y1) * (x - x1)
    length = max(abs(x2 - x1), abs(y2 - y1), 1.0)
    return abs(cross) <= EPS * length


def point_in_polygon(x: float, y: float, polygon: Sequence[Point]) -> bool:
    """Even-odd ray casting test toward +x.

    Points on an edge (within EPS) count as inside. Polygons with fewer than
    three vertices contain nothing.
    """
    n = len(polygon)
    if n < 3:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        if _point_on_segment(x, y, xi, yi, xj, yj):
            return True
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def search_strip_right(rect: Rect, bounds: BoardBounds) -> Rect:
    return Rect(rect.max_x, rect.y, bounds.max_x - rect.max_x, rect.height)


def search_strip_left(rect: Rect, bounds: BoardBounds) -> Rect:
    return Rect(bounds.min_x, rect.y, rect.min_x - bounds.min_x, rect.height)


def search_strip_down(rect: Rect, bounds: BoardBounds) -> Rect:
    return Rect(rect.x, rect.max_y, rect.width, bounds.max_y - rect.max_y)


def search_strip_up(rect: Rect, bounds: BoardBounds) -> Rect:
    return Rect(rect.x, bounds.min_y, rect.width, rect.min_y - bounds.min_y)


SEARCH_STRIPS = {
    Direction.RIGHT: search_strip_right,
    Direction.DOWN: search_strip_down,
    Direction.LEFT: search_strip_left,
    Direction.UP: search_strip_up,
}


def search_strip(rect: Rect, bounds: BoardBounds, direction: Direction) -> Rect:
    """Probe rectangle from one edge of rect out to the matching bounds edge.

    The strip keeps the near edge and cross-axis span of rect. Its width (or
    height) is zero when rect already touches that bound.
    """
    strip = SEARCH_STRIPS[direction](rect, bounds)
    if strip.width < 0 or strip.height < 0:
        # rect pokes past the bound; clamp to an empty strip at the edge
        return Rect(strip.x, strip.y, max(strip.width, 0.0), max(strip.height, 0.0))
    return strip


def is_self_rect(rect: Rect, start_x: float, start_y: float,
                 initial_w: float, initial_h: float) -> bool:
    """True when rect has the given center and size (within EPS).

    Used to spot pieces that are identical to the region they were cut from.
    """
    cx, cy = rect.center
    return (abs(cx - start_x) < EPS and abs(cy - start_y) < EPS and
            abs(rect.width - initial_w) < EPS and abs(rect.height - initial_h) < EPS)


def aspect_ratio(rect: Rect) -> float:
    """Longer side over shorter side; infinite for degenerate rects."""
    short = min(rect.width, rect.height)
    if short <= EPS:
        return math.inf
    return max(rect.width, rect.height) / short


def split_to_aspect_ratio(rect: Rect, max_ratio: Optional[float]) -> List[Rect]:
    """Cut rect into equal pieces along its long side so none exceeds max_ratio."""
    if max_ratio is None or aspect_ratio(rect) <= max_ratio + EPS:
        return [rect]
    short = min(rect.width, rect.height)
    if short <= EPS:
        return [rect]

    if rect.width >= rect.height:
        count = math.ceil(rect.width / (max_ratio * short) - EPS)
        step = rect.width / count
        edges = [rect.min_x + i * step for i in range(count)] + [rect.max_x]
        return [Rect(edges[i], rect.y, edges[i + 1] - edges[i], rect.height)
                for i in range(count)]

    count = math.ceil(rect.height / (max_ratio * short) - EPS)
    step = rect.height / count
    edges = [rect.min_y + i * step for i in range(count)] + [rect.max_y]
    return [Rect(rect.x, edges[i], rect.width, edges[i + 1] - edges[i])
            for i in range(count)]


def _simplify_polygon(polygon: Sequence[Point], step: float) -> List[Point]:
    """Snap vertices to a grid of the given step, dropping repeats."""
    snapped: List[Point] = []
    for x, y in polygon:
        p = (round(x / step) * step, round(y / step) * step)
        if not snapped or snapped[-1] != p:
            snapped.append(p)
    if len(snapped) > 1 and snapped[0] == snapped[-1]:
        snapped.pop()
    return snapped


def _unique_sorted(values: List[float]) -> List[float]:
    result: List[float] = []
    for v in sorted(values):
        if not result or v - result[-1] > EPS:
            result.append(v)
    return result


def compute_board_void_rects(bounds: BoardBounds,
                             outline: Optional[Sequence[Point]],
                             max_vertices: int = 100) -> List[Rect]:
    """Cover the part of bounds lying outside the outline with rectangles.

    The bounds are cut into a grid along every outline vertex coordinate and
    each cell is classified by its center. Outside cells are merged into
    horizontal runs, then runs with identical x extents are merged
    vertically. Outlines with more than ``max_vertices`` points are snapped
    to a coarse grid first.
    """
    if not outline or len(outline) < 3:
        return []

    polygon = list(outline)
    if len(polygon) > max_vertices:
        step = max(bounds.width, bounds.height) / max_vertices
        polygon = _simplify_polygon(polygon, step)
        if len(polygon) < 3:
            return []

    def clamp(v: float, lo: float, hi: float) -> float:
        return min(max(v, lo), hi)

    xs = _unique_sorted(
        [bounds.min_x, bounds.max_x] +
        [clamp(x, bounds.min_x, bounds.max_x) for x, _ in polygon]
    )
    ys = _unique_sorted(
        [bounds.min_y, bounds.max_y] +
        [clamp(y, bounds.min_y, bounds.max_y) for _, y in polygon]
    )

    # Horizontal runs of outside cells per row
    rows: List[List[Tuple[float, float]]] = []
    for j in range(len(ys) - 1):
        cy = (ys[j] + ys[j + 1]) / 2
        runs: List[Tuple[float, float]] = []
        run_start = None
        for i in range(len(xs) - 1):
            cx = (xs[i] + xs[i + 1]) / 2
            outside = not point_in_polygon(cx, cy, polygon)
            if outside and run_start is None:
                run_start = xs[i]
            elif not outside and run_start is not None:
                runs.append((run_start, xs[i]))
                run_start = None
        if run_start is not None:
            runs.append((run_start, xs[-1]))
        rows.append(runs)

    # Merge runs with the same x extent across consecutive rows
    voids: List[Rect] = []
    open_runs: Dict[Tuple[float, float], float] = {}
    for j, runs in enumerate(rows):
        current = set(runs)
        for run in list(open_runs):
            if run not in current:
                start_y = open_runs.pop(run)
                voids.append(Rect.from_bounds(run[0], start_y, run[1], ys[j]))
        for run in runs:
            if run not in open_runs:
                open_runs[run] = ys[j]
    for run, start_y in open_runs.items():
        voids.append(Rect.from_bounds(run[0], start_y, run[1], ys[-1]))

    voids.sort(key=lambda r: (r.y, r.x))
    return voids

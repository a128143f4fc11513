"""Obstacle shape handlers.

Each supported obstacle ``type`` maps to a handler that knows how to turn the
obstacle into a bounding rectangle and how to inflate it by a clearance. The
obstacle index looks handlers up in ``SHAPE_HANDLERS``; types without an
entry are not indexed.

Clearance is applied to the defining dimensions (half extents, radius, semi
axes) before the bounding rectangle is taken, so
``bounding_rect(ob, c) == bounding_rect(inflate(ob, c), 0)``.
"""

from dataclasses import replace
from typing import Dict, List, Optional

from .abstraction import Board, Obstacle, Rect


class ShapeHandler:
    """Bounding rectangle and clearance inflation for one obstacle type."""

    def bounding_rect(self, obstacle: Obstacle, clearance: float = 0.0) -> Optional[Rect]:
        raise NotImplementedError

    def inflate(self, obstacle: Obstacle, clearance: float) -> Obstacle:
        raise NotImplementedError


class RectShape(ShapeHandler):
    """Axis-aligned rectangular obstacle (pads, keepouts, vias as squares)."""

    def bounding_rect(self, obstacle: Obstacle, clearance: float = 0.0) -> Optional[Rect]:
        if obstacle.width is None or obstacle.height is None:
            return None
        half_w = obstacle.width / 2 + clearance
        half_h = obstacle.height / 2 + clearance
        cx, cy = obstacle.center
        return Rect(cx - half_w, cy - half_h, 2 * half_w, 2 * half_h)

    def inflate(self, obstacle: Obstacle, clearance: float) -> Obstacle:
        return replace(
            obstacle,
            width=obstacle.width + 2 * clearance,
            height=obstacle.height + 2 * clearance,
            layers=list(obstacle.layers),
            z_layers=list(obstacle.z_layers),
        )


class OvalShape(ShapeHandler):
    """Oval or circular obstacle, approximated by its bounding box.

    The semi axes come from ``rx``/``ry``, then ``radius``, then half of
    ``width``/``height``.
    """

    def _semi_axes(self, obstacle: Obstacle):
        if obstacle.rx is not None and obstacle.ry is not None:
            return obstacle.rx, obstacle.ry
        if obstacle.radius is not None:
            return obstacle.radius, obstacle.radius
        return obstacle.width / 2, obstacle.height / 2

    def bounding_rect(self, obstacle: Obstacle, clearance: float = 0.0) -> Optional[Rect]:
        rx, ry = self._semi_axes(obstacle)
        rx += clearance
        ry += clearance
        cx, cy = obstacle.center
        return Rect(cx - rx, cy - ry, 2 * rx, 2 * ry)

    def inflate(self, obstacle: Obstacle, clearance: float) -> Obstacle:
        return replace(
            obstacle,
            width=obstacle.width + 2 * clearance,
            height=obstacle.height + 2 * clearance,
            radius=obstacle.radius + clearance if obstacle.radius is not None else None,
            rx=obstacle.rx + clearance if obstacle.rx is not None else None,
            ry=obstacle.ry + clearance if obstacle.ry is not None else None,
            layers=list(obstacle.layers),
            z_layers=list(obstacle.z_layers),
        )


SHAPE_HANDLERS: Dict[str, ShapeHandler] = {
    "rect": RectShape(),
    "oval": OvalShape(),
}


def get_shape_handler(shape_type: str) -> Optional[ShapeHandler]:
    """Get the handler for an obstacle type (case-insensitive)."""
    return SHAPE_HANDLERS.get((shape_type or "").lower())


def inflate_obstacles(obstacles: List[Obstacle], clearance: float) -> List[Obstacle]:
    """Return copies of obstacles grown by clearance.

    Obstacles of unsupported types are copied through unchanged.
    """
    inflated = []
    for obstacle in obstacles:
        handler = get_shape_handler(obstacle.type)
        if handler is None:
            inflated.append(replace(obstacle))
        else:
            inflated.append(handler.inflate(obstacle, clearance))
    return inflated


def inflate_board(board: Board, clearance: float) -> Board:
    """Return a copy of the board with clearance baked into its obstacles."""
    return replace(
        board,
        obstacles=inflate_obstacles(board.obstacles, clearance),
        obstacle_clearance=0.0,
    )

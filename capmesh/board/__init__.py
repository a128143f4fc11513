"""Board description and obstacle shapes."""

from .abstraction import (
    Board,
    BoardBounds,
    BoardFormatError,
    Obstacle,
    Rect,
    load_board,
)
from .shapes import (
    ShapeHandler,
    RectShape,
    OvalShape,
    SHAPE_HANDLERS,
    get_shape_handler,
    inflate_obstacles,
    inflate_board,
)

__all__ = [
    # Core abstractions
    "Board",
    "BoardBounds",
    "BoardFormatError",
    "Obstacle",
    "Rect",
    "load_board",
    # Shapes
    "ShapeHandler",
    "RectShape",
    "OvalShape",
    "SHAPE_HANDLERS",
    "get_shape_handler",
    "inflate_obstacles",
    "inflate_board",
]

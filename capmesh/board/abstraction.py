"""
Board Abstraction Layer

Describes the board that a capacity mesh is built for: its bounding region,
the obstacles on each copper layer, and an optional outline polygon. Boards
are usually loaded from the JSON "simple route" description produced by the
autorouter front end, but can also be built directly in code.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import json
import logging

logger = logging.getLogger(__name__)


class BoardFormatError(ValueError):
    """Raised when a board description cannot be parsed."""


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in board coordinates (mm).

    ``y`` grows downwards, so ``min_y`` is the "up" edge and ``max_y`` the
    "down" edge.
    """
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_bounds(cls, min_x: float, min_y: float,
                    max_x: float, max_y: float) -> "Rect":
        return cls(min_x, min_y, max_x - min_x, max_y - min_y)

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        """Get center point of the rectangle."""
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def padded(self, margin: float) -> "Rect":
        """Return new rectangle expanded by margin on all sides."""
        if not margin or margin <= 0:
            return self
        return Rect(
            self.x - margin,
            self.y - margin,
            self.width + 2 * margin,
            self.height + 2 * margin,
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class BoardBounds:
    """Board bounding region."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def to_rect(self) -> Rect:
        return Rect.from_bounds(self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass
class Obstacle:
    """A keepout on one or more copper layers.

    ``type`` selects the shape handler ("rect" or "oval"); unknown types are
    ignored by the obstacle index. ``layers`` holds layer names ("top",
    "inner1", "bottom", ...) while ``z_layers`` holds explicit z-indices and
    takes precedence when present.
    """
    type: str
    center: Tuple[float, float]
    width: float
    height: float
    layers: List[str] = field(default_factory=list)
    z_layers: List[int] = field(default_factory=list)
    radius: Optional[float] = None  # Circular ovals
    rx: Optional[float] = None  # Oval semi-axes
    ry: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Obstacle":
        try:
            center = data["center"]
            if isinstance(center, dict):
                cx, cy = float(center["x"]), float(center["y"])
            else:
                cx, cy = float(center[0]), float(center[1])
            return cls(
                type=str(data.get("type", "rect")),
                center=(cx, cy),
                width=float(data.get("width", 0.0)),
                height=float(data.get("height", 0.0)),
                layers=list(data.get("layers") or []),
                z_layers=[int(z) for z in (data.get("zLayers") or [])],
                radius=_optional_float(data.get("radius")),
                rx=_optional_float(data.get("rx")),
                ry=_optional_float(data.get("ry")),
            )
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise BoardFormatError(f"Invalid obstacle {data!r}: {e}") from e


@dataclass
class Board:
    """Board description consumed by the capacity mesh pipeline."""
    bounds: BoardBounds
    obstacles: List[Obstacle] = field(default_factory=list)
    layer_count: int = 2
    min_trace_width: float = 0.15  # mm

    # Outline polygon [(x, y), ...]; None means the bounds are the board
    outline: Optional[List[Tuple[float, float]]] = None

    # Precomputed rectangles covering bounds area outside the outline
    board_void_rects: Optional[List[Rect]] = None

    # Explicit layer naming overrides
    layer_names: Optional[List[str]] = None
    z_index_by_name: Optional[Dict[str, int]] = None

    obstacle_clearance: Optional[float] = None

    @property
    def has_outline(self) -> bool:
        return bool(self.outline) and len(self.outline) > 2

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Board":
        """Build a board from a simple route JSON document.

        Accepts the document itself or one wrapped in a ``simple_route_json``
        / ``simpleRouteJson`` key.
        """
        for key in ("simple_route_json", "simpleRouteJson"):
            if isinstance(data.get(key), dict):
                data = data[key]
                break

        raw_bounds = data.get("bounds")
        if not isinstance(raw_bounds, dict):
            raise BoardFormatError("Board description has no bounds")
        try:
            bounds = BoardBounds(
                min_x=float(raw_bounds["minX"]),
                min_y=float(raw_bounds["minY"]),
                max_x=float(raw_bounds["maxX"]),
                max_y=float(raw_bounds["maxY"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise BoardFormatError(f"Invalid board bounds: {e}") from e

        if bounds.max_x <= bounds.min_x or bounds.max_y <= bounds.min_y:
            raise BoardFormatError(f"Board bounds are empty: {raw_bounds}")

        obstacles = [Obstacle.from_dict(o) for o in data.get("obstacles") or []]

        outline = None
        if data.get("outline"):
            try:
                outline = [_parse_point(p) for p in data["outline"]]
            except (KeyError, TypeError, ValueError, IndexError) as e:
                raise BoardFormatError(f"Invalid board outline: {e}") from e

        void_rects = None
        if data.get("boardVoidRects"):
            try:
                void_rects = [
                    Rect(float(r["x"]), float(r["y"]), float(r["width"]), float(r["height"]))
                    for r in data["boardVoidRects"]
                ]
            except (KeyError, TypeError, ValueError) as e:
                raise BoardFormatError(f"Invalid board void rect: {e}") from e

        try:
            layer_count = _strict_int(data.get("layerCount") or 2)
            min_trace_width = float(data.get("minTraceWidth") or 0.15)
            clearance = _optional_float(data.get("obstacleClearance"))
        except (TypeError, ValueError) as e:
            raise BoardFormatError(f"Invalid board option: {e}") from e
        if layer_count < 1:
            raise BoardFormatError(f"layerCount must be at least 1, got {layer_count}")

        layer_names = data.get("layerNames")
        if layer_names is not None and (
                not isinstance(layer_names, list) or
                not all(isinstance(name, str) for name in layer_names)):
            raise BoardFormatError(f"layerNames must be a list of strings: {layer_names!r}")

        z_index_by_name = data.get("zIndexByName")
        if z_index_by_name is not None:
            if not isinstance(z_index_by_name, dict):
                raise BoardFormatError(f"zIndexByName must be an object: {z_index_by_name!r}")
            try:
                z_index_by_name = {str(name): _strict_int(z)
                                   for name, z in z_index_by_name.items()}
            except (TypeError, ValueError) as e:
                raise BoardFormatError(f"Invalid zIndexByName entry: {e}") from e

        board = cls(
            bounds=bounds,
            obstacles=obstacles,
            layer_count=layer_count,
            min_trace_width=min_trace_width,
            outline=outline,
            board_void_rects=void_rects,
            layer_names=layer_names,
            z_index_by_name=z_index_by_name,
            obstacle_clearance=clearance,
        )
        logger.debug(
            f"Parsed board: {len(board.obstacles)} obstacles, "
            f"{board.layer_count} layers, outline={board.has_outline}"
        )
        return board


def load_board(path) -> Board:
    """Load a board from a simple route JSON file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise BoardFormatError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise BoardFormatError(f"{path} does not contain a board object")
    return Board.from_dict(data)


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _strict_int(value) -> int:
    """int() that refuses bools and fractional numbers."""
    if isinstance(value, bool):
        raise TypeError(f"expected an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"expected an integer, got {value!r}")
    return int(value)


def _parse_point(point) -> Tuple[float, float]:
    if isinstance(point, dict):
        return (float(point["x"]), float(point["y"]))
    return (float(point[0]), float(point[1]))

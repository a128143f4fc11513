"""Mesh visualization for debugging.

Every solver can describe its current state as a ``SceneGraph`` of
rectangles, points and lines. ``SceneRenderer`` turns a scene into SVG so
a run can be inspected before seeding, after seeding and after expansion.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
from xml.sax.saxutils import escape
import logging

from ..board.abstraction import BoardBounds, Rect
from ..visualization_color_manager import get_color_manager
from .nodes import MeshNode, Placement, layer_label

logger = logging.getLogger(__name__)


@dataclass
class SceneRect:
    """A rectangle in the scene, stored by center like mesh nodes."""
    center: Tuple[float, float]
    width: float
    height: float
    fill: str = "none"
    stroke: str = "#000000"
    label: str = ""
    layer: str = ""
    dashed: bool = False


@dataclass
class ScenePoint:
    x: float
    y: float
    color: str = "#000000"
    label: str = ""


@dataclass
class SceneLine:
    points: List[Tuple[float, float]]
    stroke: str = "#000000"
    width: float = 1.0
    closed: bool = False
    label: str = ""


@dataclass
class SceneGraph:
    """Renderable snapshot of solver state."""
    title: str = ""
    bounds: Optional[BoardBounds] = None
    rects: List[SceneRect] = field(default_factory=list)
    points: List[ScenePoint] = field(default_factory=list)
    lines: List[SceneLine] = field(default_factory=list)

    def add_rect(self, rect: Rect, fill: str = "none", stroke: str = "#000000",
                 label: str = "", layer: str = "", dashed: bool = False) -> SceneRect:
        item = SceneRect(center=rect.center, width=rect.width, height=rect.height,
                         fill=fill, stroke=stroke, label=label, layer=layer, dashed=dashed)
        self.rects.append(item)
        return item


def board_scene(obstacle_map, title: str = "") -> SceneGraph:
    """Scene with board bounds, outline, voids and obstacles."""
    colors = get_color_manager()
    scene = SceneGraph(title=title, bounds=obstacle_map.bounds)
    scene.add_rect(obstacle_map.bounds.to_rect(), stroke=colors.get_mesh_color("board_bounds"),
                   label="bounds")
    if obstacle_map.outline:
        scene.lines.append(SceneLine(
            points=list(obstacle_map.outline),
            stroke=colors.get_mesh_color("board_outline"),
            width=2.0,
            closed=True,
            label="outline",
        ))
    for rect in obstacle_map.board_void_rects:
        scene.add_rect(rect, fill=colors.get_mesh_color("void"),
                       stroke=colors.get_mesh_color("void_stroke"), label="void")

    # An obstacle on several layers appears once per layer in the index
    seen = set()
    for item in obstacle_map.index:
        if item.kind != "obstacle" or id(item.source) in seen:
            continue
        seen.add(id(item.source))
        zs = obstacle_map.z_for(item.source)
        scene.add_rect(item.rect, fill=colors.get_mesh_color("obstacle"),
                       stroke=colors.get_mesh_color("obstacle_stroke"),
                       label=f"obstacle {layer_label(zs)}", layer=layer_label(zs))
    return scene


def placement_rects(placements: Iterable[Placement]) -> List[SceneRect]:
    colors = get_color_manager()
    rects = []
    for p in placements:
        fill, stroke = colors.get_z_layer_colors(p.z)
        label = layer_label(p.z)
        text = f"#{p.id} {label}"
        if p.parent_id >= 0:
            text += f" split from #{p.parent_id}"
        rects.append(SceneRect(center=p.rect.center, width=p.rect.width,
                               height=p.rect.height, fill=fill, stroke=stroke,
                               label=text, layer=label))
    return rects


def mesh_node_rects(nodes: Iterable[MeshNode]) -> List[SceneRect]:
    colors = get_color_manager()
    rects = []
    for node in nodes:
        fill, stroke = colors.get_z_layer_colors(node.available_z)
        rects.append(SceneRect(center=node.center, width=node.width, height=node.height,
                               fill=fill, stroke=stroke,
                               label=f"{node.node_id} {node.layer}", layer=node.layer))
    return rects


class SceneRenderer:
    """Render scene graphs as SVG."""

    def __init__(self, bounds: BoardBounds, scale: Optional[float] = None,
                 margin: Optional[float] = None):
        """
        Args:
            bounds: Board bounds to frame
            scale: Rendering scale (pixels per mm)
            margin: Margin around board in mm
        """
        colors = get_color_manager()
        self.bounds = bounds
        self.scale = scale if scale is not None else colors.get_render_option("scale", 10.0)
        self.margin = margin if margin is not None else colors.get_render_option("margin", 2.0)
        self.fill_opacity = colors.get_render_option("fill_opacity", 0.6)

        self.svg_width = (bounds.width + 2 * self.margin) * self.scale
        self.svg_height = (bounds.height + 2 * self.margin) * self.scale

    def _to_svg_coords(self, x: float, y: float) -> Tuple[float, float]:
        """Convert board coordinates to SVG coordinates."""
        svg_x = (x - self.bounds.min_x + self.margin) * self.scale
        svg_y = (y - self.bounds.min_y + self.margin) * self.scale
        return (svg_x, svg_y)

    def _to_svg_size(self, size: float) -> float:
        return size * self.scale

    def render_svg(self, scene: SceneGraph) -> str:
        """Render a scene as SVG string."""
        colors = get_color_manager()
        lines = [
            f'<svg xmlns="http://www.w3.org/2000/svg" '
            f'width="{self.svg_width:.1f}" height="{self.svg_height:.1f}" '
            f'viewBox="0 0 {self.svg_width:.1f} {self.svg_height:.1f}">',
            f'<rect width="100%" height="100%" fill="{colors.get_mesh_color("background")}"/>',
        ]

        for rect in scene.rects:
            lines.append(self._render_rect(rect))
        for line in scene.lines:
            lines.append(self._render_line(line))
        for point in scene.points:
            lines.append(self._render_point(point))

        if scene.title:
            lines.append(
                f'<text x="10" y="20" font-family="monospace" font-size="14" '
                f'fill="{colors.get_mesh_color("label")}">{escape(scene.title)}</text>'
            )

        lines.append('</svg>')
        return '\n'.join(lines)

    def _render_rect(self, rect: SceneRect) -> str:
        cx, cy = rect.center
        x, y = self._to_svg_coords(cx - rect.width / 2, cy - rect.height / 2)
        w = self._to_svg_size(rect.width)
        h = self._to_svg_size(rect.height)
        dash = ' stroke-dasharray="4,2"' if rect.dashed else ''
        opacity = f' fill-opacity="{self.fill_opacity}"' if rect.fill != "none" else ''
        title = f'<title>{escape(rect.label)}</title>' if rect.label else ''
        return (
            f'<rect x="{x:.2f}" y="{y:.2f}" width="{w:.2f}" height="{h:.2f}" '
            f'fill="{rect.fill}"{opacity} stroke="{rect.stroke}" stroke-width="1"{dash}>'
            f'{title}</rect>'
        )

    def _render_line(self, line: SceneLine) -> str:
        if len(line.points) < 2:
            return ""
        coords = []
        for px, py in line.points:
            x, y = self._to_svg_coords(px, py)
            coords.append(f"{x:.2f},{y:.2f}")
        tag = "polygon" if line.closed else "polyline"
        return (
            f'<{tag} points="{" ".join(coords)}" fill="none" '
            f'stroke="{line.stroke}" stroke-width="{line.width}"/>'
        )

    def _render_point(self, point: ScenePoint) -> str:
        x, y = self._to_svg_coords(point.x, point.y)
        return f'<circle cx="{x:.2f}" cy="{y:.2f}" r="3" fill="{point.color}"/>'

    def export_svg(self, scene: SceneGraph, path) -> Path:
        """Write a scene to an SVG file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render_svg(scene))
        logger.debug(f"Exported scene to {path}")
        return path


def render_scene_svg(scene: SceneGraph, bounds: Optional[BoardBounds] = None) -> str:
    """Convenience function to render a scene framed by its own bounds."""
    bounds = bounds or scene.bounds
    if bounds is None:
        raise ValueError("Scene has no bounds to frame")
    return SceneRenderer(bounds).render_svg(scene)


def export_svg(scene: SceneGraph, path, bounds: Optional[BoardBounds] = None) -> Path:
    """Convenience function to write a scene to an SVG file."""
    bounds = bounds or scene.bounds
    if bounds is None:
        raise ValueError("Scene has no bounds to frame")
    return SceneRenderer(bounds).export_svg(scene, path)

"""
Tests for scene building, SVG rendering and visualization colors.
"""

from capmesh.board.abstraction import BoardBounds, Rect
from capmesh.mesh.nodes import MeshNode
from capmesh.mesh.obstacle_map import build_obstacle_map
from capmesh.mesh.visualizer import (
    SceneGraph,
    SceneRenderer,
    board_scene,
    export_svg,
    mesh_node_rects,
    render_scene_svg,
)
from capmesh.visualization_color_manager import get_color_manager


class TestColorManager:

    def test_singleton(self):
        assert get_color_manager() is get_color_manager()

    def test_z_colors_follow_lowest_layer(self):
        colors = get_color_manager()
        assert colors.get_z_layer_colors([0]) == ("#dbeafe", "#3b82f6")
        assert colors.get_z_layer_colors([3, 2]) == ("#d1fae5", "#10b981")

    def test_z_colors_cycle(self):
        colors = get_color_manager()
        assert colors.get_z_layer_colors([6]) == colors.get_z_layer_colors([0])

    def test_unknown_element(self):
        assert get_color_manager().get_mesh_color("nonexistent") == "#cccccc"


class TestScenes:

    def test_board_scene_with_outline(self, l_shaped_board):
        scene = board_scene(build_obstacle_map(l_shaped_board), title="L")
        labels = [r.label for r in scene.rects]
        assert labels == ["bounds", "void", "obstacle z0"]
        assert len(scene.lines) == 1
        assert scene.lines[0].closed

    def test_obstacle_on_all_layers_drawn_once(self, mixed_board):
        scene = board_scene(build_obstacle_map(mixed_board))
        obstacles = [r for r in scene.rects if r.label.startswith("obstacle")]
        assert len(obstacles) == 5
        assert "obstacle z0,1" in [r.label for r in obstacles]

    def test_mesh_node_rects(self):
        node = MeshNode.from_rect("cmn_0", Rect(0.0, 0.0, 2.0, 1.0), [1, 0])
        (rect,) = mesh_node_rects([node])
        assert rect.label == "cmn_0 z0,1"
        assert rect.center == (1.0, 0.5)


class TestSvgRendering:

    def test_coordinates_offset_by_margin(self):
        renderer = SceneRenderer(BoardBounds(10.0, 10.0, 20.0, 20.0), scale=2.0, margin=1.0)
        assert renderer._to_svg_coords(10.0, 10.0) == (2.0, 2.0)
        assert renderer.svg_width == 24.0

    def test_title_escaped(self):
        scene = SceneGraph(title="a < b", bounds=BoardBounds(0, 0, 1, 1))
        svg = render_scene_svg(scene)
        assert "a &lt; b" in svg

    def test_dashed_rect(self):
        scene = SceneGraph(bounds=BoardBounds(0, 0, 1, 1))
        scene.add_rect(Rect(0, 0, 1, 1), fill="#ffffff", dashed=True)
        assert 'stroke-dasharray="4,2"' in render_scene_svg(scene)

    def test_export(self, tmp_path, single_pad_board):
        scene = board_scene(build_obstacle_map(single_pad_board))
        path = export_svg(scene, tmp_path / "out" / "board.svg")
        assert path.exists()
        assert path.read_text().rstrip().endswith("</svg>")

"""
Tests for board loading, obstacle shapes and tuning options.

Tests cover:
- Parsing simple route JSON documents, wrapped and unwrapped
- Format errors for broken documents
- Rect/oval bounding rectangles and clearance inflation
- Loading seeding/expansion options from YAML, with type checks
"""

import json
import logging

import pytest

from capmesh.board.abstraction import (
    Board,
    BoardBounds,
    BoardFormatError,
    Obstacle,
    Rect,
    load_board,
)
from capmesh.board.shapes import get_shape_handler, inflate_obstacles
from capmesh.mesh.config import ExpansionConfig, MeshConfig, SeedingConfig, load_mesh_config


SIMPLE_ROUTE = {
    "bounds": {"minX": 0, "minY": 0, "maxX": 20, "maxY": 10},
    "layerCount": 2,
    "minTraceWidth": 0.2,
    "obstacles": [
        {"type": "rect", "center": {"x": 5, "y": 5}, "width": 2, "height": 1,
         "layers": ["top"]},
        {"type": "oval", "center": {"x": 12, "y": 3}, "width": 1, "height": 1,
         "radius": 0.5, "zLayers": [0, 1]},
    ],
    "outline": [{"x": 0, "y": 0}, {"x": 20, "y": 0}, {"x": 20, "y": 10}, {"x": 0, "y": 10}],
}


class TestBoardFromDict:
    """Tests for parsing board descriptions."""

    def test_parse(self):
        board = Board.from_dict(SIMPLE_ROUTE)
        assert board.bounds == BoardBounds(0.0, 0.0, 20.0, 10.0)
        assert board.layer_count == 2
        assert board.min_trace_width == 0.2
        assert len(board.obstacles) == 2
        assert board.obstacles[0].layers == ["top"]
        assert board.obstacles[1].z_layers == [0, 1]
        assert board.obstacles[1].radius == 0.5
        assert board.has_outline
        assert board.board_void_rects is None

    def test_wrapped_document(self):
        board = Board.from_dict({"simpleRouteJson": SIMPLE_ROUTE})
        assert len(board.obstacles) == 2

    def test_defaults(self):
        board = Board.from_dict({"bounds": {"minX": 0, "minY": 0, "maxX": 1, "maxY": 1}})
        assert board.layer_count == 2
        assert board.min_trace_width == 0.15
        assert board.obstacles == []
        assert not board.has_outline
        assert board.obstacle_clearance is None

    def test_void_rects_and_clearance(self):
        data = dict(SIMPLE_ROUTE)
        data["boardVoidRects"] = [{"x": 0, "y": 0, "width": 1, "height": 1}]
        data["obstacleClearance"] = 0.1
        board = Board.from_dict(data)
        assert board.board_void_rects == [Rect(0.0, 0.0, 1.0, 1.0)]
        assert board.obstacle_clearance == 0.1

    def test_missing_bounds(self):
        with pytest.raises(BoardFormatError):
            Board.from_dict({"obstacles": []})

    def test_empty_bounds(self):
        with pytest.raises(BoardFormatError):
            Board.from_dict({"bounds": {"minX": 5, "minY": 0, "maxX": 5, "maxY": 1}})

    def test_bad_obstacle(self):
        data = dict(SIMPLE_ROUTE)
        data["obstacles"] = [{"type": "rect", "width": 1, "height": 1}]
        with pytest.raises(BoardFormatError):
            Board.from_dict(data)

    @pytest.mark.parametrize("key,value", [
        ("layerCount", "two"),
        ("layerCount", 1.5),
        ("layerCount", -1),
        ("minTraceWidth", "thin"),
        ("obstacleClearance", [0.1]),
        ("layerNames", "top,bottom"),
        ("layerNames", ["top", 2]),
        ("zIndexByName", ["top"]),
        ("zIndexByName", {"top": "first"}),
    ])
    def test_bad_board_options(self, key, value):
        data = dict(SIMPLE_ROUTE)
        data[key] = value
        with pytest.raises(BoardFormatError):
            Board.from_dict(data)

    def test_layer_naming_overrides(self):
        data = dict(SIMPLE_ROUTE)
        data["layerNames"] = ["front", "back"]
        data["zIndexByName"] = {"front": 0, "back": 1.0}
        board = Board.from_dict(data)
        assert board.layer_names == ["front", "back"]
        assert board.z_index_by_name == {"front": 0, "back": 1}


class TestLoadBoard:

    def test_load_file(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text(json.dumps(SIMPLE_ROUTE))
        board = load_board(path)
        assert board.bounds.width == 20.0

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text("{not json")
        with pytest.raises(BoardFormatError):
            load_board(path)

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(BoardFormatError):
            load_board(path)


class TestShapes:
    """Tests for obstacle shape handlers."""

    def test_rect_bounding_rect(self):
        ob = Obstacle(type="rect", center=(5.0, 5.0), width=2.0, height=1.0)
        assert get_shape_handler("rect").bounding_rect(ob) == Rect(4.0, 4.5, 2.0, 1.0)

    def test_type_lookup_is_case_insensitive(self):
        assert get_shape_handler("RECT") is get_shape_handler("rect")
        assert get_shape_handler("polygon") is None

    def test_oval_semi_axes_preferred(self):
        ob = Obstacle(type="oval", center=(0.0, 0.0), width=4.0, height=4.0, rx=1.0, ry=0.5)
        assert get_shape_handler("oval").bounding_rect(ob) == Rect(-1.0, -0.5, 2.0, 1.0)

    def test_oval_falls_back_to_size(self):
        ob = Obstacle(type="oval", center=(0.0, 0.0), width=3.0, height=1.0)
        assert get_shape_handler("oval").bounding_rect(ob, 0.5) == Rect(-2.0, -1.0, 4.0, 2.0)

    def test_inflate_matches_clearance(self):
        obstacles = [
            Obstacle(type="rect", center=(1.0, 1.0), width=1.0, height=0.5),
            Obstacle(type="oval", center=(3.0, 3.0), width=1.0, height=1.0, radius=0.5),
        ]
        inflated = inflate_obstacles(obstacles, 0.25)
        for original, grown in zip(obstacles, inflated):
            handler = get_shape_handler(original.type)
            assert handler.bounding_rect(original, 0.25) == handler.bounding_rect(grown)
        assert obstacles[0].width == 1.0


class TestMeshConfig:
    """Tests for tuning options."""

    def test_defaults(self):
        config = MeshConfig()
        assert config.seeding.max_candidates == 20000
        assert config.seeding.min_width is None
        assert config.expansion.allow_layer_split
        assert config.clearance is None

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "tuning.yaml"
        path.write_text(
            "clearance: 0.1\n"
            "seeding:\n"
            "  min_width: 0.3\n"
            "  max_candidates: 500\n"
            "expansion:\n"
            "  allow_layer_split: false\n"
        )
        config = load_mesh_config(path)
        assert config.clearance == 0.1
        assert config.seeding.min_width == 0.3
        assert config.seeding.max_candidates == 500
        assert not config.expansion.allow_layer_split

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "tuning.yaml"
        path.write_text("")
        assert load_mesh_config(path) == MeshConfig()

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "tuning.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_mesh_config(path)

    def test_unknown_options_warned(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = SeedingConfig.from_dict({"max_candidates": 10, "bogus": 1})
        assert config.max_candidates == 10
        assert "bogus" in caplog.text

    def test_aspect_ratio_options(self, tmp_path):
        path = tmp_path / "tuning.yaml"
        path.write_text(
            "seeding:\n"
            "  max_aspect_ratio: 2\n"
            "  min_multi_width: 1.5\n"
            "  max_multi_layer_span: 2\n"
            "expansion:\n"
            "  max_aspect_ratio: null\n"
        )
        config = load_mesh_config(path)
        assert config.seeding.max_aspect_ratio == 2.0
        assert config.seeding.min_multi_width == 1.5
        assert config.seeding.max_multi_layer_span == 2
        assert config.expansion.max_aspect_ratio is None

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "tuning.yaml"
        path.write_text("seeding: [1,\n")
        with pytest.raises(ValueError, match="not valid YAML"):
            load_mesh_config(path)

    @pytest.mark.parametrize("text", [
        "seeding:\n  max_candidates: lots\n",
        "seeding:\n  max_candidates: 2.5\n",
        "seeding:\n  min_width: [1]\n",
        "seeding: 5\n",
        "expansion:\n  allow_layer_split: maybe\n",
        "clearance: wide\n",
    ])
    def test_wrong_option_types(self, tmp_path, text):
        path = tmp_path / "tuning.yaml"
        path.write_text(text)
        with pytest.raises(ValueError):
            load_mesh_config(path)

    def test_aspect_ratio_below_one_rejected(self):
        with pytest.raises(ValueError):
            SeedingConfig(max_aspect_ratio=0.5)
        with pytest.raises(ValueError):
            ExpansionConfig.from_dict({"max_aspect_ratio": 0})

"""
Tests for layer resolution, the spatial index and the obstacle map builder.

Tests cover:
- Canonical layer ordering and clamping of extra layer names
- z-index validation errors
- Clearance padding for rect and oval obstacles
- Board void insertion on every layer
- Skipping unsupported shapes
- Spatial hash queries and removal
"""

import pytest

from capmesh.board.abstraction import Board, BoardBounds, Obstacle, Rect
from capmesh.board.shapes import inflate_board
from capmesh.mesh.layers import (
    LayerConfigurationError,
    build_layer_map,
    canonicalize_layer_order,
)
from capmesh.mesh.obstacle_map import ObstacleIndexBuilder, build_obstacle_map
from capmesh.mesh.spatial_index import (
    IndexedRect,
    SpatialHashIndex,
    auto_calibrate_cell_size,
)


def _board(obstacles, layer_count=2, **kwargs) -> Board:
    return Board(bounds=BoardBounds(0.0, 0.0, 10.0, 10.0), obstacles=obstacles,
                 layer_count=layer_count, **kwargs)


class TestLayerMap:
    """Tests for layer naming."""

    def test_canonical_order(self):
        """Top comes first, inner layers by number, bottom last."""
        names = ["bottom", "inner2", "Top", "inner1"]
        assert canonicalize_layer_order(names) == ["Top", "inner1", "inner2", "bottom"]

    def test_default_names(self):
        layer_map = build_layer_map(_board([], layer_count=4))
        assert layer_map.layer_names == ["top", "inner1", "inner2", "bottom"]
        assert layer_map.layer_count == 4

    def test_extra_names_are_clamped(self):
        """Layer names beyond the declared count map onto legal indices."""
        obstacles = [
            Obstacle(type="rect", center=(1, 1), width=1, height=1, layers=["inner5"]),
            Obstacle(type="rect", center=(3, 3), width=1, height=1, layers=["silk"]),
        ]
        layer_map = build_layer_map(_board(obstacles, layer_count=4))
        assert layer_map.z_for_name("inner5") == 2
        assert layer_map.z_for_name("silk") == 0
        assert layer_map.layer_count == 4

    def test_names_are_case_insensitive(self):
        layer_map = build_layer_map(_board([], layer_count=2))
        assert layer_map.z_for_name("TOP") == 0
        assert layer_map.z_for_name("Bottom") == 1

    def test_explicit_layer_names(self):
        board = _board([], layer_count=2, layer_names=["F.Cu", "In1.Cu", "B.Cu"])
        layer_map = build_layer_map(board)
        assert layer_map.layer_count == 3
        assert layer_map.z_for_name("b.cu") == 2

    def test_obstacle_without_layers_is_on_every_layer(self):
        ob = Obstacle(type="rect", center=(1, 1), width=1, height=1)
        layer_map = build_layer_map(_board([ob], layer_count=3))
        assert layer_map.resolve_obstacle_z(ob) == [0, 1, 2]

    def test_explicit_z_layers_win(self):
        ob = Obstacle(type="rect", center=(1, 1), width=1, height=1,
                      layers=["top"], z_layers=[1, 1])
        layer_map = build_layer_map(_board([ob]))
        assert layer_map.resolve_obstacle_z(ob) == [1]


class TestLayerValidation:
    """Tests for z-index validation."""

    def test_out_of_range_z_raises(self):
        """An obstacle on a z-index past the layer count is a configuration error."""
        board = _board([
            Obstacle(type="rect", center=(1, 1), width=1, height=1, z_layers=[0]),
            Obstacle(type="rect", center=(5, 5), width=1, height=1, z_layers=[3, 5]),
        ])
        with pytest.raises(LayerConfigurationError) as exc_info:
            build_obstacle_map(board)
        assert exc_info.value.invalid_z == [3, 5]
        assert "3,5" in str(exc_info.value)
        assert "0-1" in str(exc_info.value)

    def test_negative_z_raises(self):
        board = _board([Obstacle(type="rect", center=(1, 1), width=1, height=1, z_layers=[-1])])
        with pytest.raises(ValueError):
            build_obstacle_map(board)

    def test_z_index_override_out_of_range(self):
        board = _board(
            [Obstacle(type="rect", center=(1, 1), width=1, height=1, layers=["top"])],
            z_index_by_name={"top": 7},
        )
        with pytest.raises(LayerConfigurationError):
            build_obstacle_map(board)

    def test_caller_obstacles_are_not_mutated(self):
        """Resolved z-indices live in the map, not on the obstacle."""
        ob = Obstacle(type="rect", center=(1, 1), width=1, height=1, layers=["bottom"])
        obstacle_map = build_obstacle_map(_board([ob]))
        assert ob.z_layers == []
        assert obstacle_map.z_for(ob) == [1]


class TestObstacleIndexBuilder:
    """Tests for building the per-layer index."""

    def test_obstacle_only_on_its_layers(self, single_pad_board):
        obstacle_map = build_obstacle_map(single_pad_board)
        window = Rect(4.5, 4.5, 1.0, 1.0)
        assert len(obstacle_map.query(window, 0)) == 1
        assert obstacle_map.query(window, 1) == []

    def test_clearance_pads_rect(self, single_pad_board):
        obstacle_map = build_obstacle_map(single_pad_board, clearance=0.5)
        (item,) = obstacle_map.query(Rect(4.5, 4.5, 1.0, 1.0), 0)
        assert item.rect == Rect(3.5, 3.5, 3.0, 3.0)

    def test_board_clearance_used_by_default(self, single_pad_board):
        single_pad_board.obstacle_clearance = 0.25
        obstacle_map = build_obstacle_map(single_pad_board)
        (item,) = obstacle_map.query(Rect(4.5, 4.5, 1.0, 1.0), 0)
        assert item.rect == Rect(3.75, 3.75, 2.5, 2.5)

    def test_clearance_pads_oval_radius(self):
        ob = Obstacle(type="oval", center=(5.0, 5.0), width=2.0, height=2.0, radius=1.0,
                      layers=["top"])
        obstacle_map = build_obstacle_map(_board([ob]), clearance=0.5)
        (item,) = obstacle_map.query(Rect(4.5, 4.5, 1.0, 1.0), 0)
        assert item.rect == Rect(3.5, 3.5, 3.0, 3.0)

    def test_clearance_matches_inflated_board(self, mixed_board):
        """Indexing with clearance equals indexing pre-inflated obstacles."""
        padded = build_obstacle_map(mixed_board, clearance=0.25)
        inflated = build_obstacle_map(inflate_board(mixed_board, 0.25), clearance=0.0)
        for z in range(2):
            a = sorted((it.rect.x, it.rect.y, it.rect.width, it.rect.height)
                       for it in padded.index.items_on(z))
            b = sorted((it.rect.x, it.rect.y, it.rect.width, it.rect.height)
                       for it in inflated.index.items_on(z))
            assert a == b

    def test_void_rects_on_every_layer(self, l_shaped_board):
        obstacle_map = build_obstacle_map(l_shaped_board)
        assert obstacle_map.board_void_rects == [Rect(5.0, 0.0, 5.0, 5.0)]
        for z in range(2):
            kinds = [it.kind for it in obstacle_map.query(Rect(7.0, 2.0, 1.0, 1.0), z)]
            assert kinds == ["void"]

    def test_explicit_void_rects_need_outline(self):
        """Void rects are ignored for boards without an outline."""
        board = _board([], board_void_rects=[Rect(0, 0, 1, 1)])
        obstacle_map = build_obstacle_map(board)
        assert obstacle_map.board_void_rects == []
        assert obstacle_map.index.count() == 0

    def test_unsupported_shape_skipped(self):
        board = _board([
            Obstacle(type="polygon", center=(5, 5), width=2, height=2),
            Obstacle(type="rect", center=(1, 1), width=1, height=1, layers=["top"]),
        ])
        obstacle_map = ObstacleIndexBuilder(board).build()
        assert obstacle_map.index.count() == 1

    def test_stats(self, mixed_board):
        stats = build_obstacle_map(mixed_board).get_stats()
        assert stats["layer_count"] == 2
        assert stats["layers"]["top"]["obstacles"] == 3
        assert stats["layers"]["bottom"]["obstacles"] == 4


class TestSpatialHashIndex:
    """Tests for the spatial hash."""

    def test_query_finds_touching(self):
        index = SpatialHashIndex(cell_size=1.0)
        item = IndexedRect(rect=Rect(0, 0, 2, 2), z=0)
        index.add(item)
        assert index.query(Rect(2, 0, 1, 1)) == [item]
        assert index.query(Rect(2.5, 0, 1, 1)) == []

    def test_remove(self):
        index = SpatialHashIndex(cell_size=1.0)
        a = IndexedRect(rect=Rect(0, 0, 2, 2), z=0)
        b = IndexedRect(rect=Rect(0, 0, 2, 2), z=0)
        index.add(a)
        index.add(b)
        index.remove(a)
        assert index.query(Rect(0, 0, 1, 1)) == [b]
        assert len(index) == 1

    def test_exclude_and_order(self):
        index = SpatialHashIndex(cell_size=0.5)
        items = [IndexedRect(rect=Rect(i, 0, 1, 1), z=0) for i in range(4)]
        for item in items:
            index.add(item)
        found = index.query(Rect(0, 0, 4, 1), exclude=items[1])
        assert found == [items[0], items[2], items[3]]

    def test_calibration_bounded_by_board(self):
        """Tiny obstacles on a big board still give a coarse enough grid."""
        cell = auto_calibrate_cell_size([(0.1, 0.1)] * 5, board_extent=640.0)
        assert cell == pytest.approx(10.0)

    def test_calibration_default(self):
        assert auto_calibrate_cell_size([], board_extent=0.0) == 1.0

"""
Shared test fixtures for capmesh tests.

Provides reusable boards and seeding outputs for the geometry, index,
solver and pipeline tests.
"""

import pytest

from capmesh.board.abstraction import Board, BoardBounds, Obstacle, Rect
from capmesh.mesh.nodes import Placement
from capmesh.mesh.seeding import SeedingOutput


@pytest.fixture
def empty_board() -> Board:
    """A 10x10mm two-layer board with nothing on it."""
    return Board(
        bounds=BoardBounds(0.0, 0.0, 10.0, 10.0),
        layer_count=2,
        min_trace_width=0.25,
    )


@pytest.fixture
def single_pad_board() -> Board:
    """A 10x10mm two-layer board with one pad on top in the middle."""
    return Board(
        bounds=BoardBounds(0.0, 0.0, 10.0, 10.0),
        obstacles=[
            Obstacle(type="rect", center=(5.0, 5.0), width=2.0, height=2.0, layers=["top"]),
        ],
        layer_count=2,
        min_trace_width=0.25,
    )


@pytest.fixture
def mixed_board() -> Board:
    """A 20x16mm two-layer board with pads, a via and a through-hole part."""
    return Board(
        bounds=BoardBounds(0.0, 0.0, 20.0, 16.0),
        obstacles=[
            Obstacle(type="rect", center=(4.0, 4.0), width=2.0, height=1.0, layers=["top"]),
            Obstacle(type="rect", center=(14.0, 4.0), width=1.0, height=3.0, layers=["bottom"]),
            Obstacle(type="oval", center=(10.0, 8.0), width=1.5, height=1.5, radius=0.75,
                     layers=["top", "bottom"]),
            Obstacle(type="rect", center=(6.0, 12.0), width=3.0, height=2.0),
            Obstacle(type="oval", center=(16.0, 12.0), width=2.0, height=1.0,
                     rx=1.0, ry=0.5, z_layers=[1]),
        ],
        layer_count=2,
        min_trace_width=0.25,
    )


@pytest.fixture
def l_shaped_board() -> Board:
    """A two-layer L-shaped board: the 10x10 bounds minus the top-right quadrant."""
    return Board(
        bounds=BoardBounds(0.0, 0.0, 10.0, 10.0),
        obstacles=[
            Obstacle(type="rect", center=(2.5, 7.5), width=1.0, height=1.0, layers=["top"]),
        ],
        layer_count=2,
        min_trace_width=0.25,
        outline=[(0.0, 0.0), (5.0, 0.0), (5.0, 5.0), (10.0, 5.0), (10.0, 10.0), (0.0, 10.0)],
    )


@pytest.fixture
def two_node_seeding_output() -> SeedingOutput:
    """Two seeds on opposite sides of an empty 12x4mm single-layer span."""
    return SeedingOutput(
        bounds=BoardBounds(0.0, 0.0, 12.0, 4.0),
        candidates_examined=2,
        placed=[
            Placement(id=0, rect=Rect(0.5, 0.5, 2.0, 3.0), z=(0,)),
            Placement(id=1, rect=Rect(9.5, 0.5, 2.0, 3.0), z=(0,)),
        ],
        layer_names=["top"],
        layer_count=1,
    )


@pytest.fixture
def two_node_board() -> Board:
    """The empty single-layer board the two-node seeds live on."""
    return Board(bounds=BoardBounds(0.0, 0.0, 12.0, 4.0), layer_count=1)

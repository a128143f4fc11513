"""
capmesh - Capacity mesh generation for PCB autorouting

Tiles the free area of a multi-layer board with non-overlapping rectangles
("mesh nodes") that a router can use as traversable capacity cells.
"""

__version__ = "0.1.0"

from .board.abstraction import Board, BoardBounds, Obstacle, Rect, load_board
from .mesh.pipeline import CapacityMeshPipeline, build_capacity_mesh
from .mesh.nodes import MeshNode

__all__ = [
    "Board",
    "BoardBounds",
    "Obstacle",
    "Rect",
    "load_board",
    "CapacityMeshPipeline",
    "build_capacity_mesh",
    "MeshNode",
]

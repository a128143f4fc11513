"""Capacity mesh generation.

- ObstacleIndexBuilder: per-layer obstacle index with clearance and voids
- SeedingSolver: free rectangles by repeated obstacle subtraction
- ExpansionSolver: grow seeds until they touch obstacles or each other
- CapacityMeshPipeline: step-wise seeding -> expansion state machine
- SceneRenderer: SVG snapshots of solver state for debugging
"""

from .geometry import (
    EPS,
    Direction,
    point_in_polygon,
    search_strip,
    search_strip_right,
    search_strip_left,
    search_strip_up,
    search_strip_down,
    is_self_rect,
    overlaps,
    subtract_rect,
    intersect_rect,
    compute_board_void_rects,
    aspect_ratio,
    split_to_aspect_ratio,
)
from .layers import LayerMap, LayerConfigurationError, build_layer_map
from .spatial_index import SpatialHashIndex, LayeredIndex, IndexedRect, auto_calibrate_cell_size
from .obstacle_map import ObstacleMap, ObstacleIndexBuilder, build_obstacle_map
from .config import SeedingConfig, ExpansionConfig, MeshConfig, load_mesh_config
from .nodes import MeshNode, Placement, layer_label, placements_to_mesh_nodes
from .seeding import SeedingSolver, SeedingOutput, Candidate
from .expansion import ExpansionSolver, ExpansionOutput, aspect_growth_cap, max_growth
from .pipeline import (
    CapacityMeshPipeline,
    PipelineInvariantError,
    PipelineStep,
    Phase,
    PIPELINE_STEPS,
    build_capacity_mesh,
)
from .visualizer import (
    SceneGraph,
    SceneRect,
    ScenePoint,
    SceneLine,
    SceneRenderer,
    render_scene_svg,
    export_svg,
)

__all__ = [
    # Geometry
    "EPS",
    "Direction",
    "point_in_polygon",
    "search_strip",
    "search_strip_right",
    "search_strip_left",
    "search_strip_up",
    "search_strip_down",
    "is_self_rect",
    "overlaps",
    "subtract_rect",
    "intersect_rect",
    "compute_board_void_rects",
    "aspect_ratio",
    "split_to_aspect_ratio",
    # Layers
    "LayerMap",
    "LayerConfigurationError",
    "build_layer_map",
    # Spatial indexing
    "SpatialHashIndex",
    "LayeredIndex",
    "IndexedRect",
    "auto_calibrate_cell_size",
    # Obstacle map
    "ObstacleMap",
    "ObstacleIndexBuilder",
    "build_obstacle_map",
    # Configuration
    "SeedingConfig",
    "ExpansionConfig",
    "MeshConfig",
    "load_mesh_config",
    # Solvers
    "MeshNode",
    "Placement",
    "layer_label",
    "placements_to_mesh_nodes",
    "SeedingSolver",
    "SeedingOutput",
    "Candidate",
    "ExpansionSolver",
    "ExpansionOutput",
    "max_growth",
    "aspect_growth_cap",
    "CapacityMeshPipeline",
    "PipelineInvariantError",
    "PipelineStep",
    "Phase",
    "PIPELINE_STEPS",
    "build_capacity_mesh",
    # Visualization
    "SceneGraph",
    "SceneRect",
    "ScenePoint",
    "SceneLine",
    "SceneRenderer",
    "render_scene_svg",
    "export_svg",
]

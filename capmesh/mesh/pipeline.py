"""Two-phase capacity mesh pipeline.

    SEEDING --(seeding solved)--> EXPANSION --(expansion solved)--> DONE

Each phase is described by a ``PipelineStep``: which context entries it
needs, how to build its solver from the context, and which entries its
finished solver contributes back. ``CapacityMeshPipeline.step()`` does one
bounded unit of work in the active phase, so callers can interleave
stepping with visualization or stop at any point.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from ..board.abstraction import Board
from .config import ExpansionConfig, MeshConfig, SeedingConfig
from .expansion import ExpansionSolver
from .nodes import MeshNode, placements_to_mesh_nodes
from .obstacle_map import ObstacleMap, build_obstacle_map
from .seeding import SeedingSolver
from .visualizer import SceneGraph, board_scene, mesh_node_rects

logger = logging.getLogger(__name__)


class PipelineInvariantError(RuntimeError):
    """A phase was entered without the output its predecessor must provide."""


class Phase(Enum):
    SEEDING = "seeding"
    EXPANSION = "expansion"
    DONE = "done"


@dataclass
class PipelineStep:
    """One phase of the pipeline.

    ``build(context)`` creates the phase solver; ``extract_output(solver)``
    returns the entries the finished solver adds to the context.
    """
    name: str
    phase: Phase
    requires: Tuple[str, ...]
    build: Callable[[Dict[str, Any]], Any]
    extract_output: Callable[[Any], Dict[str, Any]]


def _build_seeding(context: Dict[str, Any]) -> SeedingSolver:
    return SeedingSolver(
        context["obstacle_map"],
        context["seeding_config"],
        min_trace_width=context["min_trace_width"],
    )


def _build_expansion(context: Dict[str, Any]) -> ExpansionSolver:
    seeding_output = context["seeding_output"]
    if seeding_output.bounds is None or seeding_output.placed is None:
        raise PipelineInvariantError("Seeding output is missing bounds or placements")
    return ExpansionSolver(
        context["obstacle_map"],
        seeding_output,
        context["expansion_config"],
        min_trace_width=context["min_trace_width"],
    )


PIPELINE_STEPS: List[PipelineStep] = [
    PipelineStep(
        name="seeding",
        phase=Phase.SEEDING,
        requires=("obstacle_map", "seeding_config", "min_trace_width"),
        build=_build_seeding,
        extract_output=lambda solver: {"seeding_output": solver.get_output()},
    ),
    PipelineStep(
        name="expansion",
        phase=Phase.EXPANSION,
        requires=("obstacle_map", "seeding_output", "expansion_config", "min_trace_width"),
        build=_build_expansion,
        extract_output=lambda solver: {"expansion_output": solver.get_output()},
    ),
]


class CapacityMeshPipeline:
    """Build a capacity mesh for a board, one step at a time.

    Usage:
        pipeline = CapacityMeshPipeline(board)
        pipeline.solve()
        nodes = pipeline.get_output()

    The obstacle map is built in the constructor, so layer configuration
    errors surface immediately.
    """

    def __init__(
        self,
        board: Board,
        seeding_config: Optional[SeedingConfig] = None,
        expansion_config: Optional[ExpansionConfig] = None,
        clearance: Optional[float] = None,
        steps: Optional[List[PipelineStep]] = None,
    ):
        self.board = board
        self.obstacle_map: ObstacleMap = build_obstacle_map(board, clearance)
        self.steps = steps if steps is not None else PIPELINE_STEPS

        self.context: Dict[str, Any] = {
            "board": board,
            "obstacle_map": self.obstacle_map,
            "seeding_config": seeding_config or SeedingConfig(),
            "expansion_config": expansion_config or ExpansionConfig(),
            "min_trace_width": board.min_trace_width,
        }
        self.solvers: Dict[str, Any] = {}
        self.step_index = 0
        self.iterations = 0
        self.phase = self.steps[0].phase if self.steps else Phase.DONE

        # Phase dispatch: step function and completion predicate
        self._dispatch: Dict[Phase, Tuple[Callable[[], None], Callable[[], bool]]] = {
            Phase.SEEDING: (self._step_active, self._active_solved),
            Phase.EXPANSION: (self._step_active, self._active_solved),
            Phase.DONE: (lambda: None, lambda: True),
        }

    @classmethod
    def from_config(cls, board: Board, config: MeshConfig) -> "CapacityMeshPipeline":
        return cls(board, config.seeding, config.expansion, config.clearance)

    @property
    def solved(self) -> bool:
        return self.phase is Phase.DONE

    @property
    def active_step(self) -> Optional[PipelineStep]:
        if self.step_index < len(self.steps):
            return self.steps[self.step_index]
        return None

    @property
    def active_solver(self):
        step = self.active_step
        return self.solvers.get(step.name) if step else None

    @property
    def seeding_solver(self) -> Optional[SeedingSolver]:
        return self.solvers.get("seeding")

    @property
    def expansion_solver(self) -> Optional[ExpansionSolver]:
        return self.solvers.get("expansion")

    def _start_step(self, step: PipelineStep):
        missing = [key for key in step.requires if self.context.get(key) is None]
        if missing:
            raise PipelineInvariantError(
                f"Cannot start {step.name}: missing {', '.join(missing)}"
            )
        self.solvers[step.name] = step.build(self.context)
        logger.debug(f"Started pipeline step '{step.name}'")

    def _step_active(self):
        step = self.active_step
        if step.name not in self.solvers:
            self._start_step(step)
        solver = self.solvers[step.name]
        solver.step()

    def _active_solved(self) -> bool:
        solver = self.active_solver
        return solver is not None and solver.solved

    def _advance(self):
        step = self.active_step
        self.context.update(step.extract_output(self.solvers[step.name]))
        self.step_index += 1
        next_step = self.active_step
        self.phase = next_step.phase if next_step else Phase.DONE
        logger.info(f"Pipeline step '{step.name}' finished, now {self.phase.value}")

    def step(self) -> bool:
        """Do one unit of work in the active phase.

        Returns:
            True while there is work left
        """
        if self.phase is Phase.DONE:
            return False
        step_fn, is_done = self._dispatch[self.phase]
        step_fn()
        self.iterations += 1
        if is_done():
            self._advance()
        return self.phase is not Phase.DONE

    def solve(self, max_steps: Optional[int] = None) -> List[MeshNode]:
        """Step until done (or max_steps) and return the current output."""
        steps = 0
        while self.step():
            steps += 1
            if max_steps is not None and steps >= max_steps:
                logger.warning(f"Pipeline stopped after {steps} steps in {self.phase.value}")
                break
        return self.get_output()

    @property
    def progress(self) -> float:
        """Overall progress in [0, 1], each phase weighted equally."""
        if not self.steps or self.phase is Phase.DONE:
            return 1.0
        solver = self.active_solver
        within = solver.progress if solver is not None else 0.0
        return min(1.0, (self.step_index + within) / len(self.steps))

    def get_output(self) -> List[MeshNode]:
        """Mesh nodes for the furthest phase reached.

        Falls back to the seeding placements (ids ``grid-<n>``) when expansion
        has not finished, so an interrupted run still yields a mesh.
        """
        expansion_output = self.context.get("expansion_output")
        if expansion_output is not None:
            return expansion_output.mesh_nodes

        seeding_output = self.context.get("seeding_output")
        if seeding_output is not None:
            placed = seeding_output.placed
        elif self.seeding_solver is not None:
            placed = self.seeding_solver.placed
        else:
            placed = []
        return placements_to_mesh_nodes(placed, id_format="grid-{}")

    def initial_visualize(self) -> SceneGraph:
        """Board and obstacles before any work is done."""
        return board_scene(self.obstacle_map, title="Capacity mesh input")

    def visualize(self) -> SceneGraph:
        """Snapshot of the active phase."""
        if self.phase is Phase.DONE:
            return self.final_visualize()
        solver = self.active_solver
        if solver is None:
            return self.initial_visualize()
        return solver.visualize()

    def final_visualize(self) -> SceneGraph:
        """Output mesh nodes over the board."""
        nodes = self.get_output()
        scene = board_scene(self.obstacle_map, title=f"Capacity mesh ({len(nodes)} nodes)")
        scene.rects.extend(mesh_node_rects(nodes))
        return scene

    @property
    def stats(self) -> Dict:
        stats = {
            "phase": self.phase.value,
            "iterations": self.iterations,
            "obstacle_map": self.obstacle_map.get_stats(),
        }
        for name, solver in self.solvers.items():
            stats[name] = solver.stats
        return stats


def build_capacity_mesh(board: Board, **kwargs) -> List[MeshNode]:
    """Convenience function to run the whole pipeline.

    Args:
        board: Board to mesh
        **kwargs: Passed to CapacityMeshPipeline

    Returns:
        List of mesh nodes
    """
    pipeline = CapacityMeshPipeline(board, **kwargs)
    return pipeline.solve()

# runtime/fairing.py
"""Variational fairing of a vertex region.

The selected vertices are moved to minimise a discrete energy built from the
``d``-th power of a weighted Laplacian (``d = continuity + 1``) while every
other vertex stays where it is and acts as a boundary condition. One sparse
system is assembled, factored once and solved for x, y and z. Positions are
written only after all three solves succeed, so a failed call leaves the mesh
untouched.

Reference: Botsch & Sorkine (2008) 'On Linear Variational Surface
Deformation Methods'.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

import numpy as np

from core.exceptions import (
    FairingError,
    InvalidParameterError,
    SingularSystemError,
    SolveFailureError,
)
from geometry.entities import Mesh
from geometry.weights import BaseWeights, get_weight_provider
from parameters.global_parameters import GlobalParameters
from runtime.assembly import assemble_system
from runtime.linear_solver import BaseLinearSolver, get_linear_solver
from runtime.selection import build_vertex_id_map, select_free_vertices
from runtime.topology import collect_stencil

logger = logging.getLogger("mesh_fairing")

MIN_CONTINUITY = 0
MAX_CONTINUITY = 2
AXES = ("x", "y", "z")


class FairingState(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    ASSEMBLING = "assembling"
    FACTORING = "factoring"
    SOLVING = "solving"
    WRITING_BACK = "writing_back"
    DONE = "done"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    FairingState.IDLE: {FairingState.SELECTING},
    FairingState.SELECTING: {
        FairingState.ASSEMBLING,
        FairingState.DONE,
        FairingState.FAILED,
    },
    FairingState.ASSEMBLING: {FairingState.FACTORING, FairingState.FAILED},
    FairingState.FACTORING: {FairingState.SOLVING, FairingState.FAILED},
    FairingState.SOLVING: {FairingState.WRITING_BACK, FairingState.FAILED},
    FairingState.WRITING_BACK: {FairingState.DONE},
    FairingState.DONE: set(),
    FairingState.FAILED: set(),
}


@dataclass
class FairingReport:
    """What happened during one fairing call."""

    state: FairingState = FairingState.IDLE
    continuity: Optional[int] = None
    depth: Optional[int] = None
    requested: int = 0
    free: List[int] = field(default_factory=list)
    pruned: List[int] = field(default_factory=list)
    whole_mesh: bool = False
    stencil_size: int = 0
    nnz: int = 0
    pivot: Optional[float] = None
    residuals: Dict[str, float] = field(default_factory=dict)
    timings: Dict[str, float] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state is FairingState.DONE


def continuity_to_depth(continuity) -> int:
    """Map the continuity order (0, 1, 2) to the Laplacian power (1, 2, 3)."""
    if isinstance(continuity, bool) or not isinstance(continuity, (int, np.integer)):
        raise InvalidParameterError(
            f"Continuity must be an integer, got {continuity!r}.",
            parameter="continuity",
            value=continuity,
        )
    if not MIN_CONTINUITY <= int(continuity) <= MAX_CONTINUITY:
        raise InvalidParameterError(
            f"Continuity should be between {MIN_CONTINUITY} and {MAX_CONTINUITY} inclusively, got {continuity}.",
            parameter="continuity",
            value=continuity,
        )
    return int(continuity) + 1


class Fairer:
    """Fairs vertex regions of one mesh with injected weights and solver.

    Parameters
    ----------
    mesh : Mesh
        The mesh whose vertex positions are updated.
    weights : BaseWeights | None
        Weight provider bound to ``mesh``. Defaults to the provider named by
        the ``weighting`` parameter.
    solver : BaseLinearSolver | None
        Direct solver. Defaults to the one named by ``linear_solver``.
    parameters : GlobalParameters | None
        Configuration; defaults to ``mesh.global_parameters``.
    """

    def __init__(
        self,
        mesh: Mesh,
        weights: BaseWeights | None = None,
        solver: BaseLinearSolver | None = None,
        parameters: GlobalParameters | None = None,
    ) -> None:
        self.mesh = mesh
        self.parameters = parameters or mesh.global_parameters or GlobalParameters()
        self.weights = weights or get_weight_provider(
            self.parameters.get("weighting", "cotangent"), mesh
        )
        self.solver = solver or get_linear_solver(
            self.parameters.get("linear_solver", "sparse_lu"),
            pivot_tolerance=float(self.parameters.get("pivot_tolerance", 1e-14)),
        )
        self.state = FairingState.IDLE
        self.last_report: FairingReport | None = None

    def _transition(self, new_state: FairingState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid fairing state transition {self.state.value} -> {new_state.value}"
            )
        logger.debug("Fairing state: %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        if self.last_report is not None:
            self.last_report.state = new_state

    def run(self, vertices: Iterable[int], continuity: int) -> FairingReport:
        """Fair ``vertices`` and return the report.

        Any error, expected (``FairingError``) or not, moves the fairer to
        ``FAILED`` before it propagates.
        """
        self.state = FairingState.IDLE
        report = FairingReport(continuity=continuity)
        self.last_report = report
        try:
            self._run(vertices, continuity, report)
        except Exception as exc:
            report.error = str(exc) or type(exc).__name__
            self._transition(FairingState.FAILED)
            raise
        return report

    def _run(self, vertices, continuity, report: FairingReport) -> None:
        self._transition(FairingState.SELECTING)
        depth = continuity_to_depth(continuity)
        report.depth = depth

        timer = time.perf_counter()
        selection = select_free_vertices(
            self.mesh,
            vertices,
            policy=self.parameters.get("whole_mesh_policy", "decimate"),
            removal_percent=float(self.parameters.get("removal_percent", 10.0)),
        )
        report.requested = selection.requested
        report.whole_mesh = selection.whole_mesh
        report.pruned = list(selection.pruned)
        report.free = list(selection.free)
        if not selection.free:
            logger.info("No vertices to fair; mesh left unchanged.")
            self._transition(FairingState.DONE)
            return

        vertex_id_map = build_vertex_id_map(selection.free)
        n = len(vertex_id_map)

        self._transition(FairingState.ASSEMBLING)
        builder = assemble_system(
            self.mesh, self.weights, selection.free, vertex_id_map, depth
        )
        A = builder.to_csc()
        report.nnz = builder.nnz
        report.stencil_size = len(collect_stencil(self.mesh, selection.free, depth))
        report.timings["construction"] = time.perf_counter() - timer
        logger.debug("System construction: %.4fs", report.timings["construction"])

        self._transition(FairingState.FACTORING)
        timer = time.perf_counter()
        ok, pivot = self.solver.factor(A)
        report.pivot = pivot
        if not ok:
            raise SingularSystemError(
                f"Factorization of the {n} x {n} fairing system failed "
                f"(smallest pivot {pivot:.3e}).",
                pivot=pivot,
            )
        report.timings["factorization"] = time.perf_counter() - timer
        logger.debug("System factorization: %.4fs", report.timings["factorization"])

        self._transition(FairingState.SOLVING)
        timer = time.perf_counter()
        solution = np.empty((n, 3), dtype=float)
        for axis, name in enumerate(AXES):
            ok, x = self.solver.solve(builder.rhs[:, axis])
            if not ok or x is None:
                raise SolveFailureError(name)
            solution[:, axis] = x
        report.timings["solve"] = time.perf_counter() - timer
        logger.debug("System solve: %.4fs", report.timings["solve"])

        # Diagnostics only; large residuals do not fail the call.
        for axis, name in enumerate(AXES):
            b = builder.rhs[:, axis]
            r = A @ solution[:, axis] - b
            b_norm = float(np.linalg.norm(b))
            report.residuals[name] = (
                float(np.linalg.norm(r)) / b_norm if b_norm > 0 else float(np.linalg.norm(r))
            )
        logger.debug(
            "Relative residuals: x=%.3e y=%.3e z=%.3e",
            report.residuals["x"],
            report.residuals["y"],
            report.residuals["z"],
        )

        self._transition(FairingState.WRITING_BACK)
        for vid, row in vertex_id_map.items():
            self.mesh.set_position(vid, solution[row])

        self._transition(FairingState.DONE)
        logger.info(
            "Faired %d vertices with continuity %d (stencil %d vertices).",
            n,
            continuity,
            report.stencil_size,
        )

    def fair(self, vertices: Iterable[int], continuity: int) -> bool:
        """Fair ``vertices``; return False (mesh unchanged) on any failure."""
        try:
            self.run(vertices, continuity)
        except FairingError as exc:
            logger.warning("Fairing failed: %s", exc)
            return False
        except Exception:
            logger.exception("Fairing failed with an unexpected error")
            return False
        return True


def fair(
    mesh: Mesh,
    vertices: Iterable[int],
    continuity: int = 1,
    *,
    weights: BaseWeights | None = None,
    solver: BaseLinearSolver | None = None,
    parameters: GlobalParameters | None = None,
) -> bool:
    """Fair ``vertices`` of ``mesh`` with the given continuity order.

    Collaborators that are not given are built from ``parameters`` (or the
    mesh's own global parameters). Returns True on success; on failure the
    mesh is left unchanged and a warning is logged.
    """
    try:
        fairer = Fairer(mesh, weights=weights, solver=solver, parameters=parameters)
    except FairingError as exc:
        logger.warning("Fairing failed: %s", exc)
        return False
    except Exception:
        logger.exception("Could not set up fairing")
        return False
    return fairer.fair(vertices, continuity)


__all__ = [
    "FairingState",
    "FairingReport",
    "Fairer",
    "continuity_to_depth",
    "fair",
]

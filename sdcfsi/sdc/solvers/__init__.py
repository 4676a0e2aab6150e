"""SDC 서브솔버 구현."""

from .ode import ODESolver, CoupledODESolver
from .tube_wall import TubeWallSolver

__all__ = ["ODESolver", "CoupledODESolver", "TubeWallSolver"]

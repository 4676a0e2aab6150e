"""분할 FSI 커플링 코어.

두 가지 구성 요소로 이루어진다:
- RBF 보간 엔진: 비정합 인터페이스 점 구름 사이의 필드 전달
- SDC 스테이지 인터페이스: 물리 서브솔버가 SDC 시간 적분기에 참여하기 위한 계약

보간:
    from sdcfsi import RBFInterpolation, create_kernel

    engine = RBFInterpolation(polynomial="linear")
    engine.compute(create_kernel("gaussian", shape=1.0), source_points, target_points)
    target_values = engine.interpolate(source_values)

시간 적분:
    from sdcfsi import SDCIntegrator, TubeWallSolver

    wall = TubeWallSolver(n_segments=50, pulse_pressure=1333.2)
    SDCIntegrator(wall, n_nodes=3).run()
"""

from .config import FSIConfig
from .result import SDCStepResult, CouplingResult
from .rbf import RBFInterpolation, PointSet, create_kernel
from .sdc import SDCIntegrator, SDCSolverBase, SDCSolverInterface, VariableInfo
from .sdc.solvers import ODESolver, CoupledODESolver, TubeWallSolver
from .coupling import InterfaceManager, PartitionedSDCSolver
from .validation import (
    ConfigurationError,
    DimensionMismatchError,
    ImplicitSolveDivergenceError,
    SingularSystemError,
    StateSequenceError,
    UninitializedUseError,
)

__version__ = "0.1.0"

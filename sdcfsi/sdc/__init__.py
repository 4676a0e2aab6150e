"""SDC 시간 적분 모듈.

서브솔버 계약(SDCSolverInterface), 상태 기계 기반 구현(SDCSolverBase),
구적 노드, 단일 솔버 SDC 적분기를 제공한다.

    from sdcfsi.sdc import SDCIntegrator
    from sdcfsi.sdc.solvers import ODESolver

    solver = ODESolver(lambda t, q: -q, q0=[1.0], dt=0.1, end_time=1.0)
    integrator = SDCIntegrator(solver, n_nodes=3)
    results = integrator.run()
"""

from .interface import (
    SDCSolverInterface,
    CouplingInterface,
    VariableInfo,
    check_variables_info,
    enabled_mask,
)
from .stages import SDCState, StageHistory
from .base import SDCSolverBase
from .quadrature import gauss_lobatto_nodes, uniform_nodes, integration_matrix
from .integrator import SDCIntegrator

__all__ = [
    "SDCSolverInterface",
    "CouplingInterface",
    "VariableInfo",
    "check_variables_info",
    "enabled_mask",
    "SDCState",
    "StageHistory",
    "SDCSolverBase",
    "gauss_lobatto_nodes",
    "uniform_nodes",
    "integration_matrix",
    "SDCIntegrator",
]

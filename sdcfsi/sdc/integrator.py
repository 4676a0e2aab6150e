"""SDC 시간 적분 오케스트레이터.

SDCSolverInterface 하나를 스테이지 프로토콜로만 구동한다.

한 스텝 [t0, t0 + Δt], 노드 τ_0..τ_M, 스테이지 K = M:
    예측자 (암시적 Euler):
        Q_{m+1} = Q_m + Δτ_m·F(t_{m+1}, Q_{m+1})
    보정 스윕 k → k+1:
        Q_{m+1} = Q_m + [Δt·S_m·F^k − Δτ_m·F^k_{m+1}] + Δτ_m·F(t_{m+1}, Q_{m+1})
대괄호 항이 rhs로 전달된다 (Δt 배율 반영).

발산 시 Δt를 절반으로 줄이고 init_time_step()으로 qold에서 재시작한다.
"""

import logging
import time
from typing import List, Optional

import numpy as np

from ..result import SDCStepResult
from ..validation import ImplicitSolveDivergenceError, validate_positive
from .interface import SDCSolverInterface, check_variables_info, enabled_mask
from .quadrature import integration_matrix, make_nodes

logger = logging.getLogger(__name__)


class SDCIntegrator:
    """단일 서브솔버 SDC 적분기."""

    def __init__(
        self,
        solver: SDCSolverInterface,
        n_nodes: int = 3,
        node_type: str = "gauss-lobatto",
        max_sweeps: int = 8,
        tol: float = 1e-10,
        max_retries: int = 4,
        t0: float = 0.0,
    ):
        """초기화.

        Args:
            solver: 스테이지 인터페이스 구현체
            n_nodes: 구적 노드 수 (스테이지 K = n_nodes - 1)
            node_type: "gauss-lobatto" | "uniform"
            max_sweeps: 최대 보정 스윕 수
            tol: SDC 상대 잔차 허용치
            max_retries: 스텝당 최대 Δt 축소 재시도 수
            t0: 시작 시각
        """
        validate_positive(tol, "tol")
        self.solver = solver
        self.nodes = make_nodes(n_nodes, node_type)
        self.S = integration_matrix(self.nodes)
        self.n_stages = len(self.nodes) - 1
        self.max_sweeps = int(max_sweeps)
        self.tol = float(tol)
        self.max_retries = int(max_retries)
        self.t = float(t0)

        self.mask = enabled_mask(check_variables_info(solver))
        solver.set_number_of_implicit_stages(self.n_stages)

    @classmethod
    def from_config(cls, solver: SDCSolverInterface, config, t0: float = 0.0) -> "SDCIntegrator":
        """SDCConfig로부터 생성."""
        return cls(
            solver,
            n_nodes=config.n_nodes,
            node_type=config.node_type,
            max_sweeps=config.max_sweeps,
            tol=config.tol,
            max_retries=config.max_retries,
            t0=t0,
        )

    def _residual(self, Q: np.ndarray, F: np.ndarray, dt: float) -> float:
        """콜로케이션 잔차 max_m |Q_0 + Δt·Σ S F − Q_{m+1}| (활성 DOF, 상대)."""
        integral = dt * np.cumsum(self.S @ F, axis=0)
        res = Q[0] + integral - Q[1:]
        res = res[:, self.mask]
        if res.size == 0:
            return 0.0
        scale = float(np.max(np.abs(Q[:, self.mask])))
        err = float(np.max(np.abs(res)))
        return err / scale if scale > 1e-30 else err

    def _sweep(self, Q: np.ndarray, F: np.ndarray, t0: float, dt: float, corrector: bool):
        """스테이지 전체 1회 통과. Q, F를 제자리 갱신."""
        F_prev = F.copy()
        for m in range(self.n_stages):
            t_stage = t0 + dt * self.nodes[m + 1]
            dt_stage = dt * (self.nodes[m + 1] - self.nodes[m])
            if corrector:
                rhs = dt * (self.S[m] @ F_prev) - dt_stage * F_prev[m + 1]
            else:
                rhs = np.zeros_like(Q[m])

            self.solver.prepare_implicit_solve(corrector, m, m, t_stage, dt_stage, Q[m], rhs)
            result, f = self.solver.implicit_solve(corrector, m, m, t_stage, dt_stage, Q[m], rhs)
            self.solver.finalize_implicit_solve(m)
            Q[m + 1] = result
            F[m + 1] = f

    def _attempt(self, t0: float, dt: float):
        self.solver.init_time_step()
        q0, f0 = self.solver.get_solution()

        n = self.n_stages + 1
        Q = np.tile(q0, (n, 1))
        F = np.tile(f0, (n, 1))

        self._sweep(Q, F, t0, dt, corrector=False)
        residual = self._residual(Q, F, dt)
        sweeps = 0
        while residual >= self.tol and sweeps < self.max_sweeps:
            self._sweep(Q, F, t0, dt, corrector=True)
            sweeps += 1
            residual = self._residual(Q, F, dt)
            logger.debug(f"  스윕 {sweeps}: 잔차={residual:.3e}")
        return sweeps, residual

    def step(self, dt: Optional[float] = None) -> SDCStepResult:
        """한 스텝 진행 (발산 시 Δt 축소 재시도).

        Raises:
            ImplicitSolveDivergenceError: 재시도 한도 초과
        """
        if dt is None:
            dt = self.solver.get_time_step()
        validate_positive(dt, "dt")
        start = time.time()

        retries = 0
        while True:
            try:
                sweeps, residual = self._attempt(self.t, dt)
                break
            except ImplicitSolveDivergenceError as e:
                retries += 1
                if retries > self.max_retries:
                    logger.error(f"t={self.t:.6e}: {self.max_retries}회 재시도 후에도 발산")
                    raise
                dt *= 0.5
                logger.warning(
                    f"t={self.t:.6e} 스테이지 {e.stage} 발산 → dt={dt:.3e}로 재시도 ({retries}/{self.max_retries})"
                )

        self.solver.finalize_time_step()
        self.solver.next_time_step()
        self.t += dt

        converged = residual < self.tol
        if not converged:
            logger.warning(f"t={self.t:.6e}: {sweeps}회 스윕 후 잔차 {residual:.3e} ≥ {self.tol:.1e}")

        return SDCStepResult(
            t=self.t,
            dt=dt,
            sweeps=sweeps,
            residual=residual,
            converged=converged,
            retries=retries,
            elapsed_time=time.time() - start,
        )

    def run(self, end_time: Optional[float] = None) -> List[SDCStepResult]:
        """종료 시각까지 반복 진행.

        Args:
            end_time: 종료 시각 (None이면 solver.get_end_time())

        Returns:
            스텝별 결과 목록
        """
        if end_time is None:
            end_time = self.solver.get_end_time()
        dt_pref = self.solver.get_time_step()
        eps = 1e-12 * max(abs(end_time), 1.0)

        results = []
        start = time.time()
        while self.t < end_time - eps:
            results.append(self.step(min(dt_pref, end_time - self.t)))

        n_unconverged = sum(1 for r in results if not r.converged)
        logger.info(
            f"SDC 적분 완료: t={self.t:.6e}, {len(results)} 스텝, "
            f"미수렴 {n_unconverged}, {time.time() - start:.3f}초"
        )
        return results

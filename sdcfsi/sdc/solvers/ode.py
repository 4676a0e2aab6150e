"""일반 비선형 ODE 서브솔버 dq/dt = F(t, q).

스테이지 방정식 G(x) = x − qold − rhs − dt·F(t, x) = 0 을
Newton-Raphson으로 푼다. Jacobian은 해석적 함수가 주어지지 않으면
전방 유한차분으로 근사한다.
"""

import logging
from typing import Callable, List, Optional

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import spsolve
from scipy.linalg import solve as dense_solve, LinAlgError

from ...validation import ImplicitSolveDivergenceError, validate_positive
from ..base import SDCSolverBase
from ..interface import CouplingInterface, VariableInfo

logger = logging.getLogger(__name__)


class ODESolver(SDCSolverBase):
    """Newton 기반 암시적 스테이지 ODE 솔버."""

    def __init__(
        self,
        rhs: Callable[[float, np.ndarray], np.ndarray],
        q0: np.ndarray,
        dt: float,
        end_time: float,
        t0: float = 0.0,
        jacobian: Optional[Callable[[float, np.ndarray], np.ndarray]] = None,
        variables: Optional[List[VariableInfo]] = None,
        max_iterations: int = 20,
        tol: float = 1e-12,
        fd_step: float = 1e-7,
    ):
        """초기화.

        Args:
            rhs: F(t, q) → dq/dt
            q0: 초기 상태
            dt: 선호 시간 간격
            end_time: 선호 종료 시각
            t0: 초기 시각
            jacobian: ∂F/∂q(t, q) → (dof, dof) 밀집 또는 희소 (None이면 유한차분)
            variables: 필드 분해 (None이면 단일 필드 "q")
            max_iterations: Newton 최대 반복
            tol: 갱신량 상대 허용치
            fd_step: 유한차분 상대 섭동 크기
        """
        validate_positive(tol, "tol")
        validate_positive(fd_step, "fd_step")
        self.rhs = rhs
        self.jacobian = jacobian
        self.max_iterations = int(max_iterations)
        self.tol = float(tol)
        self.fd_step = float(fd_step)
        self._dof = int(np.asarray(q0).size)
        self._variables = variables or [VariableInfo("q", self._dof)]
        super().__init__(q0, dt, end_time, t0)

    def get_dof(self) -> int:
        return self._dof

    def get_variables_info(self) -> List[VariableInfo]:
        return list(self._variables)

    def evaluate(self, t: float, q: np.ndarray) -> np.ndarray:
        return np.asarray(self.rhs(t, q), dtype=np.float64).ravel()

    def _jacobian(self, t: float, x: np.ndarray, fx: np.ndarray):
        if self.jacobian is not None:
            return self.jacobian(t, x)
        J = np.empty((self._dof, self._dof))
        for j in range(self._dof):
            h = self.fd_step * max(1.0, abs(x[j]))
            xp = x.copy()
            xp[j] += h
            J[:, j] = (self.evaluate(t, xp) - fx) / h
        return J

    def solve_stage(self, t, dt, qold, rhs, guess):
        x = guess.copy()
        b = qold + rhs
        residual = np.inf
        for it in range(self.max_iterations):
            fx = self.evaluate(t, x)
            G = x - b - dt * fx
            residual = float(np.linalg.norm(G))
            if not np.isfinite(residual):
                raise ImplicitSolveDivergenceError(
                    f"Newton 반복 {it}에서 잔차가 NaN/Inf입니다.",
                    iterations=it,
                    residual=residual,
                    reason="nan_divergence",
                )

            J = self._jacobian(t, x, fx)
            try:
                if sparse.issparse(J):
                    A = (sparse.identity(self._dof, format="csc") - dt * J).tocsc()
                    dx = spsolve(A, -G)
                else:
                    dx = dense_solve(np.eye(self._dof) - dt * np.asarray(J), -G)
            except LinAlgError as e:
                raise ImplicitSolveDivergenceError(
                    f"Newton 선형 시스템이 특이합니다: {e}",
                    iterations=it,
                    residual=residual,
                    reason="singular_jacobian",
                ) from e

            x = x + dx
            step = float(np.linalg.norm(dx))
            if not np.isfinite(step):
                raise ImplicitSolveDivergenceError(
                    f"Newton 갱신량이 NaN/Inf입니다 (반복 {it}).",
                    iterations=it + 1,
                    residual=residual,
                    reason="nan_divergence",
                )
            logger.debug(f"    Newton {it + 1}: |G|={residual:.3e}, |dx|={step:.3e}")
            if step <= self.tol * (1.0 + float(np.linalg.norm(x))):
                return x, self.evaluate(t, x)

        raise ImplicitSolveDivergenceError(
            f"Newton이 {self.max_iterations}회 반복 내에 수렴하지 않았습니다 (|G|={residual:.3e}).",
            iterations=self.max_iterations,
            residual=residual,
            reason="max_iterations",
        )


class CoupledODESolver(ODESolver, CouplingInterface):
    """외부 인터페이스 하중을 받는 ODE: dq/dt = F(t, q, load).

    Args:
        rhs: F(t, q, load)
        output: q → 인터페이스 출력 (n_points,)
        points: 인터페이스 점 좌표 (n_points, dim)
    """

    def __init__(
        self,
        rhs: Callable[[float, np.ndarray, np.ndarray], np.ndarray],
        output: Callable[[np.ndarray], np.ndarray],
        points: np.ndarray,
        q0: np.ndarray,
        dt: float,
        end_time: float,
        **kwargs,
    ):
        self.coupled_rhs = rhs
        self.output = output
        pts = np.asarray(points, dtype=np.float64)
        self.points = pts.reshape(-1, 1) if pts.ndim == 1 else pts
        self.load = np.zeros(self.points.shape[0])
        super().__init__(self._rhs_with_load, q0, dt, end_time, **kwargs)

    def _rhs_with_load(self, t, q):
        return self.coupled_rhs(t, q, self.load)

    def interface_points(self) -> np.ndarray:
        return self.points

    def set_interface_load(self, load: np.ndarray):
        self.load = np.asarray(load, dtype=np.float64).ravel().copy()

    def get_interface_load(self) -> np.ndarray:
        return self.load.copy()

    def get_interface_output(self, q: Optional[np.ndarray] = None) -> np.ndarray:
        if q is None:
            q = self._q
        return np.asarray(self.output(q), dtype=np.float64).ravel()

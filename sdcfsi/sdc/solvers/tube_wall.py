"""1D 선형 탄성 튜브 벽 모델.

세그먼트 i의 반경 방향 변위 u_i, 속도 v_i:
    du/dt = v
    ρ h dv/dt = (p − p0) − k u + T ∂²u/∂x²
    k = E0·h / r0²  (탄성 기초),  T = G·h  (축 방향 장력)
양 끝 세그먼트 밖은 u = 0 (고정).

선형 시스템이므로 스테이지 방정식
    (I − dt·A) x = qold + rhs + dt·b(t)
를 희소 직접 솔버로 한 번에 푼다.
"""

import logging
from typing import List, Optional

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import spsolve

from ...validation import (
    DimensionMismatchError,
    ImplicitSolveDivergenceError,
    validate_positive,
)
from ..base import SDCSolverBase
from ..interface import CouplingInterface, VariableInfo

logger = logging.getLogger(__name__)


class TubeWallSolver(SDCSolverBase, CouplingInterface):
    """압력 하중을 받는 1D 탄성 튜브 벽 SDC 서브솔버."""

    def __init__(
        self,
        n_segments: int = 50,
        length: float = 0.05,
        r0: float = 3e-3,
        h: float = 3e-4,
        E0: float = 4e5,
        G: float = 4e4,
        rho: float = 1000.0,
        p0: float = 0.0,
        dt: float = 1e-4,
        end_time: float = 1e-2,
        pulse_pressure: float = 0.0,
        pulse_duration: float = 3e-3,
    ):
        """초기화.

        Args:
            n_segments: 축 방향 세그먼트 수
            length: 튜브 길이 [m]
            r0: 기준 반경 [m]
            h: 벽 두께 [m]
            E0: 영률 [Pa]
            G: 전단 계수 [Pa] (장력 T = G·h)
            rho: 벽 밀도 [kg/m³]
            p0: 기준 압력 [Pa]
            dt: 선호 시간 간격 [s]
            end_time: 선호 종료 시각 [s]
            pulse_pressure: 입구 압력 펄스 진폭 [Pa] (0이면 없음)
            pulse_duration: 펄스 지속 시간 [s]
        """
        for name, value in (("length", length), ("r0", r0), ("h", h), ("E0", E0), ("rho", rho)):
            validate_positive(value, name)
        validate_positive(pulse_duration, "pulse_duration")
        self.n_segments = int(n_segments)
        self.length = float(length)
        self.r0 = float(r0)
        self.h = float(h)
        self.E0 = float(E0)
        self.G = float(G)
        self.rho = float(rho)
        self.p0 = float(p0)
        self.pulse_pressure = float(pulse_pressure)
        self.pulse_duration = float(pulse_duration)

        self.dx = self.length / (self.n_segments + 1)
        self.x = self.dx * np.arange(1, self.n_segments + 1)
        self.stiffness = self.E0 * self.h / self.r0 ** 2
        self.tension = self.G * self.h
        self.load = np.zeros(self.n_segments)

        self.A = self._build_operator()
        self._identity = sparse.identity(2 * self.n_segments, format="csc")

        super().__init__(np.zeros(2 * self.n_segments), dt, end_time)
        logger.info(
            f"튜브 벽 모델: {self.n_segments} 세그먼트, k={self.stiffness:.3e} Pa/m, "
            f"T={self.tension:.3e} N/m"
        )

    @classmethod
    def from_config(cls, config) -> "TubeWallSolver":
        """TubeWallConfig로부터 생성."""
        return cls(**config.model_dump())

    def _build_operator(self) -> sparse.csc_matrix:
        """상태 [u; v]에 대한 선형 연산자 A."""
        n = self.n_segments
        D2 = sparse.diags(
            [np.ones(n - 1), -2.0 * np.ones(n), np.ones(n - 1)],
            [-1, 0, 1],
        ) / self.dx ** 2
        K = (-self.stiffness * sparse.identity(n) + self.tension * D2) / (self.rho * self.h)
        Z = sparse.csr_matrix((n, n))
        return sparse.bmat([[Z, sparse.identity(n)], [K, Z]], format="csc")

    def pulse(self, t: float) -> float:
        """입구 압력 펄스 p(t) = P·sin²(πt/τ), t < τ."""
        if self.pulse_pressure == 0.0 or not 0.0 <= t < self.pulse_duration:
            return 0.0
        return self.pulse_pressure * np.sin(np.pi * t / self.pulse_duration) ** 2

    def pressure(self, t: float) -> np.ndarray:
        """세그먼트별 압력 = 인터페이스 하중 + 입구 펄스 (첫 세그먼트)."""
        p = self.load.copy()
        p[0] += self.pulse(t)
        return p

    def _forcing(self, t: float) -> np.ndarray:
        b = np.zeros(2 * self.n_segments)
        b[self.n_segments:] = (self.pressure(t) - self.p0) / (self.rho * self.h)
        return b

    # ───────────────── SDC 훅 ─────────────────

    def get_dof(self) -> int:
        return 2 * self.n_segments

    def get_variables_info(self) -> List[VariableInfo]:
        return [
            VariableInfo("displacement", self.n_segments, enabled=True),
            VariableInfo("velocity", self.n_segments, enabled=False),
        ]

    def evaluate(self, t: float, q: np.ndarray) -> np.ndarray:
        return self.A @ q + self._forcing(t)

    def solve_stage(self, t, dt, qold, rhs, guess):
        b = qold + rhs + dt * self._forcing(t)
        x = spsolve((self._identity - dt * self.A).tocsc(), b)
        if not np.all(np.isfinite(x)):
            raise ImplicitSolveDivergenceError(
                f"튜브 벽 선형 풀이 결과에 NaN/Inf (t={t:.6e}, dt={dt:.3e})",
                iterations=1,
                reason="nan_divergence",
            )
        return x, self.evaluate(t, x)

    # ───────────────── 커플링 인터페이스 ─────────────────

    def interface_points(self) -> np.ndarray:
        return self.x.reshape(-1, 1)

    def set_interface_load(self, load: np.ndarray):
        load = np.asarray(load, dtype=np.float64).ravel()
        if load.shape[0] != self.n_segments:
            raise DimensionMismatchError(
                f"인터페이스 하중 길이({load.shape[0]})가 세그먼트 수({self.n_segments})와 다릅니다.",
                parameter="load",
                expected=self.n_segments,
                actual=load.shape[0],
            )
        self.load = load.copy()

    def get_interface_load(self) -> np.ndarray:
        return self.load.copy()

    def get_interface_output(self, q: Optional[np.ndarray] = None) -> np.ndarray:
        """반경 방향 변위 u."""
        if q is None:
            q = self._q
        return np.asarray(q[: self.n_segments]).copy()

    def displacement(self) -> np.ndarray:
        return self._q[: self.n_segments].copy()

    def velocity(self) -> np.ndarray:
        return self._q[self.n_segments:].copy()

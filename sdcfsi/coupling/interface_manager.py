"""두 도메인 인터페이스 사이의 필드 전달 관리자.

비정합 인터페이스 점 집합 A, B 사이에서 RBF 보간으로 필드를 전달하고
고정점 반복의 수렴 판정과 Aitken 완화 계수를 계산한다.

커플링 알고리즘 (Gauss-Seidel 교대법):
1. B 출력 → A 하중 (b_to_a)
2. A solve → A 출력 → B 하중 (a_to_b)
3. B solve → B 출력
4. B 출력 변화 < tol → 수렴, 아니면 Aitken 완화 후 1로
"""

import logging
from typing import Optional, Tuple

import numpy as np

from ..rbf.interpolation import RBFInterpolation
from ..rbf.kernels import RBFFunction
from ..rbf.point_set import PointSet

logger = logging.getLogger(__name__)


class InterfaceManager:
    """A ↔ B 인터페이스 필드 전달 관리자.

    전달 방향마다 하나의 보간 엔진을 가지며, 분해는 compute() 시점에
    한 번만 수행되고 스테이지/반복마다 재사용된다.

    Args:
        kernel: RBF 커널
        points_a: A 인터페이스 점 (n_a, dim) 또는 PointSet
        points_b: B 인터페이스 점 (n_b, dim) 또는 PointSet
        polynomial: 다항식 보강 ("none" | "constant" | "linear")
        backend: 행렬 조립 백엔드
    """

    def __init__(
        self,
        kernel: RBFFunction,
        points_a,
        points_b,
        polynomial: str = "linear",
        backend: str = "numpy",
        engine_a_to_b: Optional[RBFInterpolation] = None,
        engine_b_to_a: Optional[RBFInterpolation] = None,
    ):
        self.kernel = kernel
        self.engine_a_to_b = engine_a_to_b or RBFInterpolation(polynomial=polynomial, backend=backend)
        self.engine_b_to_a = engine_b_to_a or RBFInterpolation(polynomial=polynomial, backend=backend)

        self.update_geometry(points_a, points_b)

    @classmethod
    def from_config(cls, config, points_a, points_b) -> "InterfaceManager":
        """RBFConfig로부터 생성."""
        return cls(
            config.create_kernel(),
            points_a,
            points_b,
            engine_a_to_b=RBFInterpolation.from_config(config),
            engine_b_to_a=RBFInterpolation.from_config(config),
        )

    def update_geometry(self, points_a, points_b):
        """인터페이스 점 교체 (메쉬 이동 후). 두 엔진 모두 재분해."""
        self.points_a = points_a if isinstance(points_a, PointSet) else PointSet(points_a)
        self.points_b = points_b if isinstance(points_b, PointSet) else PointSet(points_b)
        self.engine_a_to_b.compute(self.kernel, self.points_a, self.points_b)
        self.engine_b_to_a.compute(self.kernel, self.points_b, self.points_a)
        logger.info(
            f"인터페이스 갱신: A={self.points_a.n_global}점, B={self.points_b.n_global}점"
        )

    def a_to_b(self, values: np.ndarray) -> np.ndarray:
        """A 필드 → B 필드."""
        return self.engine_a_to_b.interpolate(values)

    def b_to_a(self, values: np.ndarray) -> np.ndarray:
        """B 필드 → A 필드."""
        return self.engine_b_to_a.interpolate(values)

    @staticmethod
    def check_convergence(
        current: np.ndarray,
        previous: np.ndarray,
        tol: float = 1e-8,
    ) -> Tuple[bool, float]:
        """인터페이스 값 변화로 수렴 판정.

        Args:
            current: 이번 반복의 인터페이스 값
            previous: 이전(완화된) 인터페이스 값
            tol: 상대 허용 오차

        Returns:
            (converged, relative_change)
        """
        diff_norm = np.linalg.norm(np.asarray(current) - np.asarray(previous))

        # 기준값 (현재 값 크기)
        ref_norm = np.linalg.norm(current)
        if ref_norm < 1e-30:
            # 값이 거의 0이면 절대 기준 사용
            rel_change = diff_norm
        else:
            rel_change = diff_norm / ref_norm

        return bool(rel_change < tol), float(rel_change)

    @staticmethod
    def aitken(
        residual: np.ndarray,
        prev_residual: Optional[np.ndarray],
        omega: float,
        omega_max: float = 1.0,
    ) -> float:
        """Aitken Δ² 완화 계수 갱신.

        ω_{k+1} = −ω_k · r_k·(r_{k+1} − r_k) / |r_{k+1} − r_k|²
        """
        if prev_residual is None:
            return omega
        delta = residual - prev_residual
        denom = float(np.dot(delta.ravel(), delta.ravel()))
        if denom < 1e-300:
            return omega
        new_omega = -omega * float(np.dot(prev_residual.ravel(), delta.ravel())) / denom
        return float(np.clip(new_omega, -omega_max, omega_max))

"""RBF 커널 함수 (방사 기저 함수).

거리 r ≥ 0 → 실수 가중치의 순수 함수. 상태를 갖지 않으며
커널 계열 선택은 H의 조건수에만 영향을 주고 엔진 제어 흐름은 바꾸지 않는다.

지원 계열:
- 전역 지지: thin-plate spline, volume spline, Gaussian, (inverse) multiquadric
- 콤팩트 지지: Wendland C0/C2/C4/C6 (지지 반경 R 밖에서 0)

참고: Wendland (1995), Beckert & Wendland (2001)
"""

from abc import ABC, abstractmethod
from typing import Dict, Type

import numpy as np

from ..validation import ConfigurationError, validate_positive


class RBFFunction(ABC):
    """RBF 커널 공통 인터페이스.

    Attributes:
        name: 레지스트리 이름
        family_id: taichi 조립 백엔드의 정적 분기 코드
        compact: 콤팩트 지지 여부
    """

    name: str = "base"
    family_id: int = -1
    compact: bool = False

    @abstractmethod
    def __call__(self, r: np.ndarray) -> np.ndarray:
        """거리 배열 → 커널 값 배열 (같은 shape)."""

    @property
    def scale(self) -> float:
        """형상/지지 매개변수 (없으면 1.0)."""
        return 1.0

    @property
    def params(self) -> dict:
        return {}

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.params.items())
        return f"{type(self).__name__}({args})"


class ThinPlateSpline(RBFFunction):
    """Thin-plate spline: φ(r) = r² log r (φ(0) = 0).

    조건부 양정치 → 선형 다항식 보강과 함께 사용해야 정칙성이 보장된다.
    """

    name = "tps"
    family_id = 0

    def __call__(self, r):
        r = np.asarray(r, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            result = r * r * np.log(r)
        return np.where(r > 0.0, result, 0.0)


class VolumeSpline(RBFFunction):
    """Volume spline: φ(r) = r."""

    name = "volume"
    family_id = 1

    def __call__(self, r):
        return np.asarray(r, dtype=np.float64).copy()


class _ShapeKernel(RBFFunction):
    """형상 매개변수 s를 갖는 전역 지지 커널."""

    def __init__(self, shape: float = 1.0):
        validate_positive(shape, "shape", suggestion="평균 점 간격 수준의 값")
        self._shape = float(shape)

    @property
    def scale(self) -> float:
        return self._shape

    @property
    def params(self) -> dict:
        return {"shape": self._shape}


class Gaussian(_ShapeKernel):
    """Gaussian: φ(r) = exp(-(r/s)²). 양정치."""

    name = "gaussian"
    family_id = 2

    def __call__(self, r):
        x = np.asarray(r, dtype=np.float64) / self._shape
        return np.exp(-x * x)


class InverseMultiquadric(_ShapeKernel):
    """Inverse multiquadric: φ(r) = 1/√(1 + (r/s)²). 양정치."""

    name = "imq"
    family_id = 3

    def __call__(self, r):
        x = np.asarray(r, dtype=np.float64) / self._shape
        return 1.0 / np.sqrt(1.0 + x * x)


class Multiquadric(_ShapeKernel):
    """Multiquadric: φ(r) = √(1 + (r/s)²). 조건부 양정치."""

    name = "mq"
    family_id = 4

    def __call__(self, r):
        x = np.asarray(r, dtype=np.float64) / self._shape
        return np.sqrt(1.0 + x * x)


class _WendlandKernel(RBFFunction):
    """Wendland 콤팩트 지지 커널 공통부.

    ξ = r / R, ξ ≥ 1 에서 0. 하위 클래스는 [0, 1) 구간 다항식만 정의한다.
    """

    compact = True

    def __init__(self, radius: float = 1.0):
        validate_positive(radius, "radius", suggestion="인터페이스 점 간격의 3-5배")
        self._radius = float(radius)

    @property
    def scale(self) -> float:
        return self._radius

    @property
    def params(self) -> dict:
        return {"radius": self._radius}

    def __call__(self, r):
        xi = np.asarray(r, dtype=np.float64) / self._radius
        inside = xi < 1.0
        xi_in = np.where(inside, xi, 0.0)
        return np.where(inside, self._polynomial(xi_in), 0.0)

    @abstractmethod
    def _polynomial(self, xi: np.ndarray) -> np.ndarray:
        """0 ≤ ξ < 1 구간 값."""


class WendlandC0(_WendlandKernel):
    """Wendland C0: (1-ξ)²."""

    name = "wendland-c0"
    family_id = 5

    def _polynomial(self, xi):
        return (1.0 - xi) ** 2


class WendlandC2(_WendlandKernel):
    """Wendland C2: (1-ξ)⁴ (4ξ + 1)."""

    name = "wendland-c2"
    family_id = 6

    def _polynomial(self, xi):
        return (1.0 - xi) ** 4 * (4.0 * xi + 1.0)


class WendlandC4(_WendlandKernel):
    """Wendland C4: (1-ξ)⁶ (35ξ² + 18ξ + 3)."""

    name = "wendland-c4"
    family_id = 7

    def _polynomial(self, xi):
        return (1.0 - xi) ** 6 * (35.0 * xi ** 2 + 18.0 * xi + 3.0)


class WendlandC6(_WendlandKernel):
    """Wendland C6: (1-ξ)⁸ (32ξ³ + 25ξ² + 8ξ + 1)."""

    name = "wendland-c6"
    family_id = 8

    def _polynomial(self, xi):
        return (1.0 - xi) ** 8 * (32.0 * xi ** 3 + 25.0 * xi ** 2 + 8.0 * xi + 1.0)


# 이름 → 클래스
KERNELS: Dict[str, Type[RBFFunction]] = {
    cls.name: cls
    for cls in (
        ThinPlateSpline, VolumeSpline, Gaussian, InverseMultiquadric,
        Multiquadric, WendlandC0, WendlandC2, WendlandC4, WendlandC6,
    )
}


def create_kernel(name: str, **params) -> RBFFunction:
    """이름으로 커널 생성.

    Args:
        name: KERNELS 키 (예: "tps", "wendland-c2")
        **params: 형상(shape) 또는 지지 반경(radius)

    Raises:
        ConfigurationError: 알 수 없는 이름 또는 무효한 매개변수
    """
    key = name.lower()
    if key not in KERNELS:
        raise ConfigurationError(
            f"알 수 없는 커널: {name}",
            parameter="kernel",
            value=name,
            suggestion=f"사용 가능: {', '.join(KERNELS)}",
        )
    try:
        return KERNELS[key](**params)
    except TypeError as e:
        raise ConfigurationError(
            f"커널 '{key}'에 맞지 않는 매개변수: {params}",
            parameter="kernel_params",
            value=params,
        ) from e

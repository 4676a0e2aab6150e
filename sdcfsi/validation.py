"""커플링 코어 입력 검증 및 예외 정의.

RBF 보간 엔진과 SDC 스테이지 인터페이스가 공유하는 예외 계층과
호출 경계에서 사용하는 검증 함수를 모아둔다.

예외 분류:
- 구조/기하/차원 오류 (SingularSystem, DimensionMismatch, UninitializedUse,
  StateSequence, Configuration): 치명적, 즉시 전파
- 수렴 오류 (ImplicitSolveDivergence): 유일하게 재시도 가능한 오류
"""

import numpy as np
from typing import Optional, Sequence


# ───────────────── 커스텀 예외 ─────────────────


class ConfigurationError(ValueError):
    """설정/매개변수 검증 오류.

    Attributes:
        parameter: 문제가 된 매개변수 이름
        value: 전달된 값
        suggestion: 수정 제안
    """

    def __init__(
        self,
        message: str,
        parameter: str = "",
        value=None,
        suggestion: str = "",
    ):
        self.parameter = parameter
        self.value = value
        self.suggestion = suggestion
        full_msg = f"[설정 오류] {message}"
        if suggestion:
            full_msg += f" → 제안: {suggestion}"
        super().__init__(full_msg)


class SingularSystemError(RuntimeError):
    """커널 행렬 분해 실패 (수치적 특이).

    중복/근접 소스 점, 또는 지지 반경이 퇴화한 커널에서 발생한다.
    현재 기하에 대해 치명적이며, 호출자가 점 집합을 수정해야 한다.

    Attributes:
        size: 시스템 크기
        rcond: 추정 역조건수 (계산 불가 시 0.0)
        duplicates: 일치하는 소스 점 인덱스 쌍 목록
    """

    def __init__(
        self,
        message: str,
        size: int = 0,
        rcond: float = 0.0,
        duplicates: Optional[Sequence[tuple]] = None,
    ):
        self.size = size
        self.rcond = rcond
        self.duplicates = list(duplicates) if duplicates else []
        super().__init__(f"[특이 시스템] {message}")


class UninitializedUseError(RuntimeError):
    """compute() 성공 전에 interpolate()를 호출한 경우."""

    def __init__(self, message: str = "compute()가 성공하기 전에 interpolate()를 호출했습니다."):
        super().__init__(f"[미초기화 사용] {message}")


class DimensionMismatchError(ValueError):
    """필드 벡터 길이 또는 DOF 구성이 현재 점/상태 크기와 불일치.

    Attributes:
        parameter: 검사 대상 이름
        expected: 기대 크기
        actual: 실제 크기
    """

    def __init__(self, message: str, parameter: str = "", expected=None, actual=None):
        self.parameter = parameter
        self.expected = expected
        self.actual = actual
        super().__init__(f"[차원 불일치] {message}")


class ImplicitSolveDivergenceError(RuntimeError):
    """서브솔버 국소 암시적 풀이 발산 (재시도 가능).

    오케스트레이터는 시간 간격을 줄이고 qold에서 스텝을 재시작할 수 있다.

    Attributes:
        stage: 발산한 SDC 스테이지 인덱스
        iterations: 수행한 반복 횟수
        residual: 최종 잔차 노름
        reason: 발산 원인 설명
    """

    def __init__(
        self,
        message: str,
        stage: int = -1,
        iterations: int = 0,
        residual: float = 0.0,
        reason: str = "",
    ):
        self.stage = stage
        self.iterations = iterations
        self.residual = residual
        self.reason = reason
        super().__init__(f"[암시적 풀이 발산] {message}")


class StateSequenceError(RuntimeError):
    """SDC 스테이지 인터페이스 연산이 상태 기계 순서를 위반.

    Attributes:
        operation: 호출된 연산 이름
        state: 호출 시점 상태
        allowed: 허용되는 상태 목록
    """

    def __init__(self, operation: str, state, allowed: Sequence = (), detail: str = ""):
        self.operation = operation
        self.state = state
        self.allowed = tuple(allowed)
        allowed_names = ", ".join(getattr(s, "value", str(s)) for s in self.allowed)
        state_name = getattr(state, "value", str(state))
        msg = f"[상태 순서 위반] {operation}()는 상태 '{state_name}'에서 호출할 수 없습니다"
        if allowed_names:
            msg += f" (허용: {allowed_names})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


# ───────────────── 매개변수 검증 ─────────────────


def validate_positive(value: float, parameter: str, suggestion: str = ""):
    """양수 매개변수 검증.

    Raises:
        ConfigurationError: 0 이하 또는 유한하지 않은 값
    """
    if not np.isfinite(value) or value <= 0:
        raise ConfigurationError(
            f"{parameter}가 {value}입니다. 양수여야 합니다.",
            parameter=parameter,
            value=value,
            suggestion=suggestion,
        )


def validate_stage_count(n_stages: int):
    """SDC 스테이지 수 검증 (K ≥ 1)."""
    if int(n_stages) != n_stages or n_stages < 1:
        raise ConfigurationError(
            f"암시적 스테이지 수가 {n_stages}입니다. 1 이상의 정수여야 합니다.",
            parameter="n_stages",
            value=n_stages,
            suggestion="Gauss-Lobatto 3노드 → K=2",
        )


# ───────────────── 배열 검증 ─────────────────


def validate_points(points: np.ndarray, name: str = "points") -> np.ndarray:
    """좌표 배열 검증 및 (n, dim) float64 변환.

    1차원 입력은 (n, 1) 좌표로 해석한다.

    Raises:
        ConfigurationError: 차원 오류, NaN/Inf 포함
    """
    arr = np.asarray(points, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise ConfigurationError(
            f"{name}는 (n_points, dim) 배열이어야 합니다. 현재 shape={arr.shape}",
            parameter=name,
            value=arr.shape,
        )
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(
            f"{name}에 NaN/Inf 좌표가 포함되어 있습니다.",
            parameter=name,
            suggestion="메쉬 이동 결과를 확인하세요",
        )
    return arr


def validate_field(values: np.ndarray, n_points: int, name: str = "values") -> np.ndarray:
    """필드 벡터 검증 및 (n_points, n_components) 변환.

    Args:
        values: (n_points,) 또는 (n_points, n_components)
        n_points: 기대 점 개수

    Returns:
        (n_points, n_components) float64 배열

    Raises:
        DimensionMismatchError: 길이 불일치 또는 3차원 이상
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise DimensionMismatchError(
            f"{name}는 1차원 또는 2차원 배열이어야 합니다. 현재 ndim={arr.ndim}",
            parameter=name,
            expected=2,
            actual=arr.ndim,
        )
    if arr.shape[0] != n_points:
        raise DimensionMismatchError(
            f"{name} 길이({arr.shape[0]})가 점 개수({n_points})와 다릅니다.",
            parameter=name,
            expected=n_points,
            actual=arr.shape[0],
        )
    return arr


def validate_state_vector(q: np.ndarray, dof: int, name: str = "q") -> np.ndarray:
    """SDC 상태 벡터 길이 검증.

    Raises:
        DimensionMismatchError: 길이가 DOF와 다름
    """
    arr = np.asarray(q, dtype=np.float64).ravel()
    if arr.shape[0] != dof:
        raise DimensionMismatchError(
            f"{name} 길이({arr.shape[0]})가 DOF({dof})와 다릅니다.",
            parameter=name,
            expected=dof,
            actual=arr.shape[0],
        )
    return arr

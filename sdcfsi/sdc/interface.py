"""SDC 스테이지 인터페이스 (서브솔버 계약).

시간 적분 오케스트레이터는 이 인터페이스만 사용하며 구체 타입을 검사하지 않는다.
유체, 구조 등 어떤 물리 서브솔버든 이 연산 집합을 만족하면 교체 가능하다.

타임스텝 상태 기계:
    IDLE → TIME_STEP_INITIALIZED
         → {STAGE_PREPARED → STAGE_SOLVING → STAGE_FINALIZED}*
         → TIME_STEP_FINALIZED → IDLE

스테이지 암시적 방정식:
    result = qold + rhs + dt·F(t, result)
(rhs는 dt 배율이 이미 반영된 구적 보정항)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..validation import DimensionMismatchError


@dataclass(frozen=True)
class VariableInfo:
    """상태 벡터의 명명된 부분 필드.

    Args:
        name: 필드 이름
        dof: 자유도 수 (구조적으로 없는 필드는 0)
        enabled: False면 커플링 잔차에서 제외 (국소 적분은 계속)
    """
    name: str
    dof: int
    enabled: bool = True


class SDCSolverInterface(ABC):
    """SDC 서브솔버 계약."""

    @abstractmethod
    def get_dof(self) -> int:
        """로컬 상태 벡터 크기."""

    @abstractmethod
    def get_variables_info(self) -> List[VariableInfo]:
        """상태 벡터의 필드 분해 (순서 = 상태 벡터 내 배치 순서)."""

    @abstractmethod
    def set_number_of_implicit_stages(self, k: int):
        """스테이지 이력 용량 K 설정 (실행당 1회, init_time_step 이전)."""

    @abstractmethod
    def init_time_step(self):
        """새 타임스텝 시작: 스테이지 이력 초기화, qold 포착."""

    @abstractmethod
    def evaluate_function(self, k: int, q: np.ndarray, t: float) -> np.ndarray:
        """f = F(t, q). 결정적이며 영속 상태를 바꾸지 않는다."""

    @abstractmethod
    def prepare_implicit_solve(
        self,
        corrector: bool,
        k: int,
        kold: int,
        t: float,
        dt: float,
        qold: np.ndarray,
        rhs: np.ndarray,
    ):
        """스테이지 k 암시적 풀이 입력 준비 (확정 상태는 바꾸지 않음)."""

    @abstractmethod
    def implicit_solve(
        self,
        corrector: bool,
        k: int,
        kold: int,
        t: float,
        dt: float,
        qold: np.ndarray,
        rhs: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """스테이지 암시적 풀이 → (result, f).

        커플링 반복 중 여러 번 호출될 수 있다.

        Raises:
            ImplicitSolveDivergenceError: 국소 풀이 미수렴 (재시도 가능)
        """

    @abstractmethod
    def finalize_implicit_solve(self, k: int):
        """마지막 implicit_solve 결과를 스테이지 이력 k에 확정."""

    @abstractmethod
    def next_time_step(self):
        """다음 물리 타임스텝으로 이동."""

    @abstractmethod
    def finalize_time_step(self):
        """수락된 스텝 종료 상태를 다음 스텝의 qold로 확정."""

    @abstractmethod
    def get_solution(self) -> Tuple[np.ndarray, np.ndarray]:
        """(solution, f) 쌍 반환."""

    @abstractmethod
    def set_solution(self, solution: np.ndarray, f: np.ndarray):
        """(solution, f) 쌍 설정."""

    @abstractmethod
    def get_end_time(self) -> float:
        """선호 종료 시각."""

    @abstractmethod
    def get_time_step(self) -> float:
        """선호 시간 간격."""


class CouplingInterface(ABC):
    """분할 커플링에 참여하는 서브솔버의 인터페이스 데이터 교환.

    load는 상대 도메인에서 받아 F(t, q)에 들어가는 외부 입력,
    output은 상태 q로부터 상대 도메인에 전달하는 인터페이스 값이다.
    두 필드 모두 interface_points() 순서를 따른다.
    """

    @abstractmethod
    def interface_points(self) -> np.ndarray:
        """인터페이스 점 좌표 (n_points, dim)."""

    @abstractmethod
    def set_interface_load(self, load: np.ndarray):
        """외부 인터페이스 하중 설정."""

    @abstractmethod
    def get_interface_load(self) -> np.ndarray:
        """현재 인터페이스 하중."""

    @abstractmethod
    def get_interface_output(self, q: Optional[np.ndarray] = None) -> np.ndarray:
        """상태 q (None이면 현재 해)의 인터페이스 출력."""


def check_variables_info(solver: SDCSolverInterface) -> List[VariableInfo]:
    """get_variables_info()와 get_dof()의 일관성 검증.

    Raises:
        DimensionMismatchError: 필드 DOF 합 ≠ get_dof()
    """
    variables = solver.get_variables_info()
    total = sum(v.dof for v in variables)
    dof = solver.get_dof()
    if total != dof:
        raise DimensionMismatchError(
            f"필드 DOF 합({total})이 get_dof()({dof})와 다릅니다: "
            + ", ".join(f"{v.name}={v.dof}" for v in variables),
            parameter="variables_info",
            expected=dof,
            actual=total,
        )
    return variables


def enabled_mask(variables: List[VariableInfo]) -> np.ndarray:
    """활성 필드에 속한 DOF 위치의 bool 마스크."""
    return np.concatenate(
        [np.full(v.dof, v.enabled, dtype=bool) for v in variables]
        or [np.zeros(0, dtype=bool)]
    )

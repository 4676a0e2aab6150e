"""SDC 타임스텝 상태와 스테이지 이력 버퍼."""

from enum import Enum
from typing import Tuple

import numpy as np


class SDCState(Enum):
    """서브솔버 타임스텝 상태."""
    IDLE = "idle"
    TIME_STEP_INITIALIZED = "time_step_initialized"
    STAGE_PREPARED = "stage_prepared"
    STAGE_SOLVING = "stage_solving"
    STAGE_FINALIZED = "stage_finalized"
    TIME_STEP_FINALIZED = "time_step_finalized"


# 스텝 진행 중 상태 (init_time_step 재호출 시 재시작으로 처리)
IN_STEP_STATES = (
    SDCState.TIME_STEP_INITIALIZED,
    SDCState.STAGE_PREPARED,
    SDCState.STAGE_SOLVING,
    SDCState.STAGE_FINALIZED,
)


class StageHistory:
    """고정 용량 스테이지 이력 (uStages, rStages).

    set_number_of_implicit_stages 시점에 (K, dof) 배열을 한 번 할당하고
    타임스텝 루프에서는 인덱스로만 덮어쓴다.
    """

    def __init__(self, capacity: int = 0, dof: int = 0):
        self._u = np.zeros((0, 0))
        self._r = np.zeros((0, 0))
        self._t = np.zeros(0)
        self._filled = np.zeros(0, dtype=bool)
        self.resize(capacity, dof)

    def resize(self, capacity: int, dof: int):
        """용량/DOF 재할당. 기존 내용은 버린다."""
        self._u = np.zeros((capacity, dof), dtype=np.float64)
        self._r = np.zeros((capacity, dof), dtype=np.float64)
        self._t = np.zeros(capacity, dtype=np.float64)
        self._filled = np.zeros(capacity, dtype=bool)

    @property
    def capacity(self) -> int:
        return self._u.shape[0]

    @property
    def dof(self) -> int:
        return self._u.shape[1]

    @property
    def complete(self) -> bool:
        """모든 스테이지가 확정되었는지."""
        return self.capacity > 0 and bool(np.all(self._filled))

    def _check_index(self, k: int):
        if not 0 <= k < self.capacity:
            raise IndexError(f"스테이지 인덱스 {k}가 범위 [0, {self.capacity})를 벗어났습니다.")

    def store(self, k: int, u: np.ndarray, r: np.ndarray, t: float):
        """스테이지 k에 (해, 함수값, 시각) 기록."""
        self._check_index(k)
        self._u[k] = u
        self._r[k] = r
        self._t[k] = t
        self._filled[k] = True

    def filled(self, k: int) -> bool:
        self._check_index(k)
        return bool(self._filled[k])

    def _require(self, k: int):
        if not self.filled(k):
            raise KeyError(f"스테이지 {k}가 아직 확정되지 않았습니다.")

    def u(self, k: int) -> np.ndarray:
        self._require(k)
        return self._u[k].copy()

    def r(self, k: int) -> np.ndarray:
        self._require(k)
        return self._r[k].copy()

    def t(self, k: int) -> float:
        self._require(k)
        return float(self._t[k])

    def last(self) -> Tuple[np.ndarray, np.ndarray, float]:
        """마지막 스테이지 (스텝 종료 노드) 값."""
        k = self.capacity - 1
        return self.u(k), self.r(k), self.t(k)

    def clear(self):
        """확정 표시만 초기화 (버퍼는 재사용)."""
        self._filled[:] = False
        self._u[:] = 0.0
        self._r[:] = 0.0
        self._t[:] = 0.0

    def snapshot(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(U, R, filled) 복사본. 롤백 검증용."""
        return self._u.copy(), self._r.copy(), self._filled.copy()

    def __len__(self) -> int:
        return int(np.count_nonzero(self._filled))

    def __repr__(self) -> str:
        return f"StageHistory(capacity={self.capacity}, dof={self.dof}, filled={len(self)})"

"""SDC 서브솔버 공통 기반 클래스.

상태 기계, 고정 용량 스테이지 이력, 스텝 시작 상태(qold), 외부 공개
(solution, f) 쌍, 발산 시 롤백 정책을 구현한다.
구체 솔버는 evaluate()와 solve_stage()만 구현하면 된다.

롤백 규칙:
- implicit_solve 발산 시 보류 중 결과를 버리고 STAGE_PREPARED로 복귀한다.
  qold와 확정된 스테이지 이력은 변하지 않는다.
- 스텝 진행 중 init_time_step을 다시 호출하면 qold에서 스텝을 재시작한다.
"""

import logging
from abc import abstractmethod
from typing import Optional, Tuple

import numpy as np

from ..validation import (
    ImplicitSolveDivergenceError,
    StateSequenceError,
    validate_positive,
    validate_stage_count,
    validate_state_vector,
)
from .interface import SDCSolverInterface, check_variables_info
from .stages import IN_STEP_STATES, SDCState, StageHistory

logger = logging.getLogger(__name__)


class SDCSolverBase(SDCSolverInterface):
    """상태 기계를 갖춘 SDC 서브솔버 기반."""

    def __init__(
        self,
        q0: np.ndarray,
        dt: float,
        end_time: float,
        t0: float = 0.0,
    ):
        """초기화.

        Args:
            q0: 초기 상태 벡터 (get_dof() 길이)
            dt: 선호 시간 간격
            end_time: 선호 종료 시각
            t0: 초기 시각
        """
        validate_positive(dt, "dt")
        validate_positive(end_time - t0, "end_time - t0", "end_time은 t0보다 커야 합니다")
        self.dt = float(dt)
        self.end_time = float(end_time)
        self.t = float(t0)
        self.time_index = 0

        self._q = np.array(q0, dtype=np.float64).ravel()
        self._f: Optional[np.ndarray] = None
        self._qold = self._q.copy()
        self._fold: Optional[np.ndarray] = None

        self._state = SDCState.IDLE
        self._history = StageHistory()
        self._n_stages = 0
        self._prepared_k: Optional[int] = None
        self._pending: Optional[Tuple[int, np.ndarray, np.ndarray, float]] = None
        # 진행 중인 스테이지 호출 (corrector, k, kold)
        self._stage_call: Optional[Tuple[bool, int, int]] = None

    # ───────────────── 구체 솔버 훅 ─────────────────

    @abstractmethod
    def evaluate(self, t: float, q: np.ndarray) -> np.ndarray:
        """F(t, q). 영속 상태를 바꾸지 않아야 한다."""

    @abstractmethod
    def solve_stage(
        self,
        t: float,
        dt: float,
        qold: np.ndarray,
        rhs: np.ndarray,
        guess: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """result = qold + rhs + dt·F(t, result) 풀이 → (result, F(t, result)).

        Raises:
            ImplicitSolveDivergenceError: 국소 풀이 미수렴
        """

    # ───────────────── 조회 ─────────────────

    @property
    def state(self) -> SDCState:
        return self._state

    @property
    def history(self) -> StageHistory:
        return self._history

    @property
    def qold(self) -> np.ndarray:
        """현재 스텝 시작 상태 (복사본)."""
        return self._qold.copy()

    @property
    def n_stages(self) -> int:
        return self._n_stages

    def get_end_time(self) -> float:
        return self.end_time

    def get_time_step(self) -> float:
        return self.dt

    def _require_state(self, operation: str, *allowed: SDCState, detail: str = ""):
        if self._state not in allowed:
            logger.error(f"{operation}: 상태 순서 위반 (현재 {self._state.value})")
            raise StateSequenceError(operation, self._state, allowed, detail)

    def _current_f(self) -> np.ndarray:
        if self._f is None:
            self._f = self.evaluate(self.t, self._q.copy())
        return self._f

    # ───────────────── 스텝 수명 주기 ─────────────────

    def set_number_of_implicit_stages(self, k: int):
        validate_stage_count(k)
        self._require_state("set_number_of_implicit_stages", SDCState.IDLE)
        check_variables_info(self)
        self._n_stages = int(k)
        self._history.resize(self._n_stages, self.get_dof())
        logger.debug(f"스테이지 이력 할당: K={k}, dof={self.get_dof()}")

    def init_time_step(self):
        if self._n_stages == 0:
            raise StateSequenceError(
                "init_time_step", self._state,
                detail="set_number_of_implicit_stages()를 먼저 호출해야 합니다",
            )
        if self._state in IN_STEP_STATES:
            logger.warning(
                f"스텝 {self.time_index} 재시작 (상태 {self._state.value}), qold로 복원"
            )
            self._q = self._qold.copy()
            self._f = None if self._fold is None else self._fold.copy()
        else:
            self._require_state("init_time_step", SDCState.IDLE)
            self._qold = self._q.copy()
            self._fold = self._current_f().copy()

        self._history.clear()
        self._prepared_k = None
        self._pending = None
        self._state = SDCState.TIME_STEP_INITIALIZED

    def evaluate_function(self, k: int, q: np.ndarray, t: float) -> np.ndarray:
        q = validate_state_vector(q, self.get_dof())
        return np.asarray(self.evaluate(float(t), q.copy()), dtype=np.float64)

    def prepare_implicit_solve(self, corrector, k, kold, t, dt, qold, rhs):
        self._require_state(
            "prepare_implicit_solve",
            SDCState.TIME_STEP_INITIALIZED,
            SDCState.STAGE_FINALIZED,
            SDCState.STAGE_PREPARED,
        )
        self._check_stage_index(k)
        validate_state_vector(qold, self.get_dof(), "qold")
        validate_state_vector(rhs, self.get_dof(), "rhs")
        self._prepared_k = int(k)
        self._pending = None
        self._state = SDCState.STAGE_PREPARED

    def implicit_solve(self, corrector, k, kold, t, dt, qold, rhs):
        self._require_state("implicit_solve", SDCState.STAGE_PREPARED)
        if k != self._prepared_k:
            raise StateSequenceError(
                "implicit_solve", self._state,
                detail=f"준비된 스테이지는 {self._prepared_k}인데 {k}가 요청되었습니다",
            )
        dof = self.get_dof()
        qold = validate_state_vector(qold, dof, "qold")
        rhs = validate_state_vector(rhs, dof, "rhs")
        guess = self._initial_guess(corrector, k, qold)

        self._state = SDCState.STAGE_SOLVING
        self._stage_call = (bool(corrector), int(k), int(kold))
        try:
            result, f = self.solve_stage(float(t), float(dt), qold.copy(), rhs.copy(), guess)
            result = np.asarray(result, dtype=np.float64).ravel()
            f = np.asarray(f, dtype=np.float64).ravel()
            if not (np.all(np.isfinite(result)) and np.all(np.isfinite(f))):
                raise ImplicitSolveDivergenceError(
                    "스테이지 해에 NaN/Inf가 포함되었습니다.", reason="nan_divergence"
                )
        except ImplicitSolveDivergenceError as e:
            self._pending = None
            self._state = SDCState.STAGE_PREPARED
            e.stage = k
            logger.warning(f"스테이지 {k} 암시적 풀이 발산 (t={t:.6e}, dt={dt:.3e}): {e.reason}")
            raise

        self._pending = (int(k), result.copy(), f.copy(), float(t))
        self._q = result.copy()
        self._f = f.copy()
        self._state = SDCState.STAGE_PREPARED
        return result, f

    def finalize_implicit_solve(self, k: int):
        self._require_state("finalize_implicit_solve", SDCState.STAGE_PREPARED)
        if self._pending is None or self._pending[0] != k:
            raise StateSequenceError(
                "finalize_implicit_solve", self._state,
                detail=f"스테이지 {k}에 대한 성공한 implicit_solve 결과가 없습니다",
            )
        _, u, r, t = self._pending
        self._history.store(k, u, r, t)
        self._pending = None
        self._prepared_k = None
        self._state = SDCState.STAGE_FINALIZED

    def finalize_time_step(self):
        self._require_state("finalize_time_step", SDCState.STAGE_FINALIZED)
        if not self._history.complete:
            raise StateSequenceError(
                "finalize_time_step", self._state,
                detail=f"확정된 스테이지 {len(self._history)}/{self._n_stages}",
            )
        self._state = SDCState.TIME_STEP_FINALIZED
        u, r, t = self._history.last()
        self._q = u
        self._f = r
        self._qold = u.copy()
        self._fold = r.copy()
        self.t = t
        self._history.clear()
        self._state = SDCState.IDLE
        logger.debug(f"스텝 {self.time_index} 확정: t={self.t:.6e}")

    def next_time_step(self):
        self._require_state("next_time_step", SDCState.IDLE)
        self.time_index += 1

    def get_solution(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._q.copy(), self._current_f().copy()

    def set_solution(self, solution: np.ndarray, f: np.ndarray):
        dof = self.get_dof()
        self._q = validate_state_vector(solution, dof, "solution").copy()
        self._f = validate_state_vector(f, dof, "f").copy()
        if self._state == SDCState.IDLE:
            self._qold = self._q.copy()
            self._fold = self._f.copy()

    # ───────────────── 내부 ─────────────────

    def _check_stage_index(self, k: int):
        if not 0 <= k < self._n_stages:
            raise StateSequenceError(
                "prepare_implicit_solve", self._state,
                detail=f"스테이지 인덱스 {k}가 범위 [0, {self._n_stages})를 벗어났습니다",
            )

    def _initial_guess(self, corrector: bool, k: int, qold: np.ndarray) -> np.ndarray:
        """이전 스윕의 같은 스테이지 값, 없으면 qold."""
        if corrector and self._history.filled(k):
            return self._history.u(k)
        return qold.copy()

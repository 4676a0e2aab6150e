"""분할 커플링 SDC 솔버.

두 서브솔버(A, B)를 하나의 SDCSolverInterface로 묶는다. 상태 벡터는
[q_A; q_B]이고, 각 스테이지의 implicit_solve 안에서 Gauss-Seidel
고정점 반복 + Aitken 완화로 인터페이스 조건을 맞춘다.

    x = B 인터페이스 출력 추정
    반복:
        A.load = b_to_a(x);        A.implicit_solve
        B.load = a_to_b(A 출력);   B.implicit_solve
        r = B 출력 − x
        |r| < tol → 수렴
        x ← x + ω r  (ω: Aitken)

서브솔버는 반복마다 implicit_solve를 다시 호출하고, 수렴 후에만
finalize_implicit_solve로 확정한다.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..result import CouplingResult
from ..sdc.base import SDCSolverBase
from ..sdc.interface import CouplingInterface, VariableInfo, check_variables_info
from ..validation import ConfigurationError, ImplicitSolveDivergenceError, validate_positive
from .interface_manager import InterfaceManager

logger = logging.getLogger(__name__)


class PartitionedSDCSolver(SDCSolverBase):
    """두 커플링 서브솔버의 분할 SDC 합성 솔버.

    Args:
        solver_a: 첫 번째 서브솔버 (SDCSolverBase + CouplingInterface)
        solver_b: 두 번째 서브솔버
        manager: A ↔ B 인터페이스 필드 전달 관리자
        max_iterations: 스테이지당 최대 고정점 반복
        tol: 인터페이스 상대 잔차 허용치
        relaxation: 초기 완화 계수 ω0
        aitken: Aitken 동적 완화 사용 여부
        labels: 필드 이름 접두사
    """

    def __init__(
        self,
        solver_a: SDCSolverBase,
        solver_b: SDCSolverBase,
        manager: InterfaceManager,
        max_iterations: int = 50,
        tol: float = 1e-8,
        relaxation: float = 0.5,
        aitken: bool = True,
        labels: Sequence[str] = ("a", "b"),
    ):
        for name, s in (("solver_a", solver_a), ("solver_b", solver_b)):
            if not isinstance(s, CouplingInterface):
                raise ConfigurationError(
                    f"{name}가 CouplingInterface를 구현하지 않습니다: {type(s).__name__}",
                    parameter=name,
                )
            check_variables_info(s)
        validate_positive(tol, "tol")
        if not 0.0 < relaxation <= 1.0:
            raise ConfigurationError(
                f"완화 계수가 {relaxation}입니다.",
                parameter="relaxation",
                value=relaxation,
                suggestion="0 < ω ≤ 1",
            )

        self.solver_a = solver_a
        self.solver_b = solver_b
        self.manager = manager
        self.max_iterations = int(max_iterations)
        self.tol = float(tol)
        self.relaxation = float(relaxation)
        self.aitken = aitken
        self.labels = tuple(labels)
        self._n_a = solver_a.get_dof()
        self._n_b = solver_b.get_dof()
        self.last_coupling: Optional[CouplingResult] = None
        self.coupling_history: List[CouplingResult] = []

        q0 = np.concatenate([solver_a.get_solution()[0], solver_b.get_solution()[0]])
        super().__init__(
            q0,
            dt=min(solver_a.get_time_step(), solver_b.get_time_step()),
            end_time=min(solver_a.get_end_time(), solver_b.get_end_time()),
        )

    @classmethod
    def from_config(
        cls, solver_a, solver_b, config, labels: Sequence[str] = ("a", "b")
    ) -> "PartitionedSDCSolver":
        """FSIConfig(rbf, coupling)로부터 생성."""
        manager = InterfaceManager.from_config(
            config.rbf, solver_a.interface_points(), solver_b.interface_points()
        )
        c = config.coupling
        return cls(
            solver_a,
            solver_b,
            manager,
            max_iterations=c.max_iterations,
            tol=c.tol,
            relaxation=c.relaxation,
            aitken=c.aitken,
            labels=labels,
        )

    # ───────────────── 분할 ─────────────────

    def _split(self, v: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        v = np.asarray(v, dtype=np.float64).ravel()
        return v[: self._n_a], v[self._n_a:]

    def get_dof(self) -> int:
        return self._n_a + self._n_b

    def get_variables_info(self) -> List[VariableInfo]:
        info = []
        for label, s in zip(self.labels, (self.solver_a, self.solver_b)):
            for v in s.get_variables_info():
                info.append(VariableInfo(f"{label}.{v.name}", v.dof, v.enabled))
        return info

    def evaluate(self, t: float, q: np.ndarray) -> np.ndarray:
        """모놀리식 F(t, q): 인터페이스 하중을 q 자체로부터 계산."""
        qa, qb = self._split(q)
        saved_a = self.solver_a.get_interface_load()
        saved_b = self.solver_b.get_interface_load()
        try:
            self.solver_a.set_interface_load(
                self.manager.b_to_a(self.solver_b.get_interface_output(qb))
            )
            self.solver_b.set_interface_load(
                self.manager.a_to_b(self.solver_a.get_interface_output(qa))
            )
            fa = self.solver_a.evaluate_function(0, qa, t)
            fb = self.solver_b.evaluate_function(0, qb, t)
        finally:
            self.solver_a.set_interface_load(saved_a)
            self.solver_b.set_interface_load(saved_b)
        return np.concatenate([fa, fb])

    # ───────────────── 수명 주기 위임 ─────────────────

    def set_number_of_implicit_stages(self, k: int):
        super().set_number_of_implicit_stages(k)
        self.solver_a.set_number_of_implicit_stages(k)
        self.solver_b.set_number_of_implicit_stages(k)

    def init_time_step(self):
        super().init_time_step()
        self.solver_a.init_time_step()
        self.solver_b.init_time_step()
        self.coupling_history.clear()

    def prepare_implicit_solve(self, corrector, k, kold, t, dt, qold, rhs):
        super().prepare_implicit_solve(corrector, k, kold, t, dt, qold, rhs)
        qa, qb = self._split(qold)
        ra, rb = self._split(rhs)
        self.solver_a.prepare_implicit_solve(corrector, k, kold, t, dt, qa, ra)
        self.solver_b.prepare_implicit_solve(corrector, k, kold, t, dt, qb, rb)

    def finalize_implicit_solve(self, k: int):
        super().finalize_implicit_solve(k)
        self.solver_a.finalize_implicit_solve(k)
        self.solver_b.finalize_implicit_solve(k)

    def finalize_time_step(self):
        super().finalize_time_step()
        self.solver_a.finalize_time_step()
        self.solver_b.finalize_time_step()

    def next_time_step(self):
        super().next_time_step()
        self.solver_a.next_time_step()
        self.solver_b.next_time_step()

    def set_solution(self, solution: np.ndarray, f: np.ndarray):
        super().set_solution(solution, f)
        qa, qb = self._split(solution)
        fa, fb = self._split(f)
        self.solver_a.set_solution(qa, fa)
        self.solver_b.set_solution(qb, fb)

    # ───────────────── 스테이지 커플링 ─────────────────

    def solve_stage(self, t, dt, qold, rhs, guess):
        corrector, k, kold = self._stage_call
        qa_old, qb_old = self._split(qold)
        ra, rb = self._split(rhs)
        _, qb_guess = self._split(guess)

        a, b = self.solver_a, self.solver_b
        x = b.get_interface_output(qb_guess)
        omega = self.relaxation
        prev_residual = None
        rel_change = np.inf

        for it in range(1, self.max_iterations + 1):
            a.set_interface_load(self.manager.b_to_a(x))
            qa, fa = a.implicit_solve(corrector, k, kold, t, dt, qa_old, ra)
            b.set_interface_load(self.manager.a_to_b(a.get_interface_output(qa)))
            qb, fb = b.implicit_solve(corrector, k, kold, t, dt, qb_old, rb)

            x_tilde = b.get_interface_output(qb)
            residual = x_tilde - x
            converged, rel_change = self.manager.check_convergence(x_tilde, x, self.tol)
            if not np.isfinite(rel_change):
                raise ImplicitSolveDivergenceError(
                    f"스테이지 {k} 커플링 잔차가 NaN/Inf입니다.",
                    stage=k,
                    iterations=it,
                    residual=rel_change,
                    reason="coupling",
                )
            logger.debug(f"    커플링 {it}: |r|/|x|={rel_change:.3e}, ω={omega:.3f}")

            if converged:
                self._record(True, it, rel_change, omega)
                return np.concatenate([qa, qb]), np.concatenate([fa, fb])

            if self.aitken:
                omega = self.manager.aitken(residual, prev_residual, omega)
            prev_residual = residual.copy()
            x = x + omega * residual

        self._record(False, self.max_iterations, rel_change, omega)
        raise ImplicitSolveDivergenceError(
            f"스테이지 {k} 커플링이 {self.max_iterations}회 반복 내에 수렴하지 않았습니다 "
            f"(잔차 {rel_change:.3e}).",
            stage=k,
            iterations=self.max_iterations,
            residual=rel_change,
            reason="coupling",
        )

    def _record(self, converged: bool, iterations: int, residual: float, omega: float):
        self.last_coupling = CouplingResult(
            converged=converged,
            iterations=iterations,
            residual=float(residual),
            relaxation=float(omega),
        )
        self.coupling_history.append(self.last_coupling)

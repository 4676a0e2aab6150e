"""분산 RBF 보간 엔진.

비정합 점 구름 사이의 필드 전달 (변위, 트랙션):
    1. H[i, j] = φ(‖x_i − x_j‖)     소스-소스 커널 행렬
    2. Φ[i, j] = φ(‖y_i − x_j‖)     타겟-소스 평가 행렬
    3. H(보강 시스템)를 부분 피벗 LU 분해 후 캐시
    4. interpolate(v): H·c = v 풀이 → Φ·c

분해 비용(~n³)이 지배적이므로 같은 기하에 대해 여러 필드를 전달할 때
분해를 재사용한다. 기하가 바뀌면 compute()로 새 점 집합을 넘겨야 하며,
이전 분해는 재사용되지 않는다.

분산 방식 (SPMD):
    - H, Φ는 각 rank가 자기 로컬 점에 해당하는 행 블록만 조립
    - H 행 블록을 모아 모든 rank에서 동일하게 분해 (복제 분해)
    - Φ는 타겟 행 분산 상태로 유지, interpolate는 로컬 타겟 블록을 반환
compute()와 interpolate()는 집합 연산이다.
"""

import enum
import logging
import warnings
from typing import Optional, Union

import numpy as np
from scipy.linalg import LinAlgWarning, get_lapack_funcs, lu_factor, lu_solve
from scipy.spatial import cKDTree

from ..validation import (
    ConfigurationError,
    DimensionMismatchError,
    SingularSystemError,
    UninitializedUseError,
    validate_field,
)
from .assembly import BACKENDS, assemble
from .kernels import RBFFunction
from .point_set import PointSet, gather_rows
from .polynomial import linear_directions, n_poly_terms, polynomial_basis

logger = logging.getLogger(__name__)


class EngineState(enum.Enum):
    """보간 엔진 상태 태그."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    STALE = "stale"


class RBFInterpolation:
    """분산 RBF 보간 엔진.

    Args:
        polynomial: 다항식 보강 ("none" | "constant" | "linear")
        rcond_tol: 역조건수 하한 (미만이면 SingularSystemError)
        duplicate_tol: 중복 소스 점 판정 거리 (0이면 검사 생략)
        backend: 커널 행렬 조립 백엔드 ("numpy" | "taichi")
        kernel, source, target: 함께 주면 생성 직후 compute() 실행

    Example:
        engine = RBFInterpolation(kernel=create_kernel("tps"), source=X, target=Y)
        engine.interpolate(v)
    """

    def __init__(
        self,
        polynomial: str = "linear",
        rcond_tol: float = 1e-14,
        duplicate_tol: float = 1e-12,
        backend: str = "numpy",
        kernel: Optional[RBFFunction] = None,
        source: Optional[Union[PointSet, np.ndarray]] = None,
        target: Optional[Union[PointSet, np.ndarray]] = None,
    ):
        n_poly_terms(polynomial, 1)  # 차수 이름 검증
        if backend not in BACKENDS:
            raise ConfigurationError(
                f"알 수 없는 조립 백엔드: {backend}",
                parameter="backend",
                value=backend,
                suggestion="numpy / taichi 중 선택",
            )
        self.polynomial = polynomial
        self.rcond_tol = rcond_tol
        self.duplicate_tol = duplicate_tol
        self.backend = backend

        self._state = EngineState.UNINITIALIZED
        self._clear()

        geometry = (kernel, source, target)
        if any(g is not None for g in geometry):
            if any(g is None for g in geometry):
                raise ConfigurationError(
                    "kernel, source, target는 함께 지정해야 합니다.",
                    parameter="kernel/source/target",
                    suggestion="셋 다 생략하고 나중에 compute()를 호출하세요",
                )
            self.compute(kernel, source, target)

    @classmethod
    def from_config(cls, config) -> "RBFInterpolation":
        """RBFConfig로부터 엔진 생성."""
        return cls(
            polynomial=config.polynomial,
            rcond_tol=config.rcond_tol,
            duplicate_tol=config.duplicate_tol,
            backend=config.backend,
        )

    def _clear(self):
        """캐시된 기하/분해 상태 폐기."""
        self.kernel: Optional[RBFFunction] = None
        self.source: Optional[PointSet] = None
        self.target: Optional[PointSet] = None
        self._lu = None
        self._piv = None
        self._Phi = None
        self._P_target = None
        self._n_poly = 0
        self._directions = None
        self._rcond = 0.0

    # ── 상태 ──

    @property
    def state(self) -> EngineState:
        return self._state

    def initialized(self) -> bool:
        """compute()가 성공했고 이후 무효화되지 않았는지."""
        return self._state == EngineState.INITIALIZED

    def invalidate(self):
        """캐시 분해를 폐기하고 STALE 상태로 전환."""
        if self._state == EngineState.INITIALIZED:
            logger.debug("RBF 분해 무효화")
            self._state = EngineState.STALE
        self._clear()

    @property
    def polynomial_directions(self) -> Optional[np.ndarray]:
        """선형 보강에 사용된 좌표 방향 (선형 보강이 아니거나 미초기화면 None)."""
        return self._directions

    @property
    def condition_estimate(self) -> float:
        """보강 시스템 1-노름 조건수 추정값 (미초기화 시 inf)."""
        if not self.initialized() or self._rcond <= 0.0:
            return float("inf")
        return 1.0 / self._rcond

    # ── 연산 ──

    def compute(
        self,
        kernel: RBFFunction,
        source: Union[PointSet, np.ndarray],
        target: Union[PointSet, np.ndarray],
    ):
        """H, Φ 조립 및 H 분해 (집합 연산).

        실패 시 엔진은 미초기화(STALE) 상태로 남는다.

        Args:
            kernel: RBF 커널 (H와 Φ에 같은 인스턴스 사용)
            source: 소스 점 집합 (엔진이 소유)
            target: 타겟 점 집합 (엔진이 소유)

        Raises:
            ConfigurationError: 빈 소스 집합, 통신자 불일치
            DimensionMismatchError: 소스/타겟 공간 차원 불일치
            SingularSystemError: 분해 불가 (중복 점, 퇴화 커널)
        """
        self.invalidate()

        source = source if isinstance(source, PointSet) else PointSet(source)
        target = target if isinstance(target, PointSet) else PointSet(target, comm=source.comm)

        if source.comm is not target.comm:
            raise ConfigurationError(
                "소스와 타겟 점 집합은 같은 통신자를 사용해야 합니다.",
                parameter="comm",
            )
        if source.n_global == 0:
            raise ConfigurationError(
                "소스 점 집합이 비어 있습니다.",
                parameter="source",
                value=0,
            )
        if target.n_global > 0 and source.dim != target.dim:
            raise DimensionMismatchError(
                f"소스 차원({source.dim})과 타겟 차원({target.dim})이 다릅니다.",
                parameter="dim",
                expected=source.dim,
                actual=target.dim,
            )

        X = source.gather()
        n = X.shape[0]
        self._check_duplicates(X)

        # ── H 조립 (로컬 행 블록 → 전역) ──
        H_local = assemble(kernel, source.local, X, backend=self.backend)
        H = gather_rows(source.comm, H_local)

        # ── 다항식 보강 (퇴화 좌표 방향 제외) ──
        directions = linear_directions(X) if self.polynomial == "linear" else None
        P = polynomial_basis(X, self.polynomial, directions)
        n_poly = P.shape[1]
        if directions is not None and directions.size < source.dim:
            logger.info(
                f"소스 점이 {directions.size}차원 부분공간에 놓임: 선형 보강 방향 {directions.tolist()}만 사용"
            )
        A = np.zeros((n + n_poly, n + n_poly), dtype=np.float64)
        A[:n, :n] = H
        if n_poly > 0:
            A[:n, n:] = P
            A[n:, :n] = P.T

        lu, piv, rcond = self._factorize(A, kernel)

        # ── Φ 조립 (로컬 타겟 행) ──
        Y = target.local.reshape(target.n_local, source.dim)
        Phi = assemble(kernel, Y, X, backend=self.backend)
        P_target = polynomial_basis(Y, self.polynomial, directions)

        self.kernel = kernel
        self.source = source
        self.target = target
        self._lu, self._piv, self._rcond = lu, piv, rcond
        self._Phi = Phi
        self._P_target = P_target
        self._n_poly = n_poly
        self._directions = directions
        self._state = EngineState.INITIALIZED

        logger.info(
            f"RBF 분해 완료: 소스 {n}점, 타겟 {target.n_global}점, "
            f"커널={kernel.name}, 보강={self.polynomial}, rcond={rcond:.2e}"
        )

    def interpolate(self, values: np.ndarray) -> np.ndarray:
        """소스 필드 → 타겟 필드 (집합 연산).

        Args:
            values: 로컬 소스 필드 (n_local_source,) 또는 (n_local_source, n_comp)

        Returns:
            로컬 타겟 필드 (n_local_target,) 또는 (n_local_target, n_comp)

        Raises:
            UninitializedUseError: compute() 성공 전 호출
            DimensionMismatchError: 필드 길이 불일치
        """
        if not self.initialized():
            logger.error("미초기화 RBF 엔진에서 interpolate() 호출")
            raise UninitializedUseError()

        scalar = np.ndim(values) == 1
        local = validate_field(values, self.source.n_local, name="values")
        V = gather_rows(self.source.comm, local)

        n = V.shape[0]
        rhs = np.zeros((n + self._n_poly, V.shape[1]), dtype=np.float64)
        rhs[:n] = V
        coeffs = lu_solve((self._lu, self._piv), rhs, check_finite=False)

        result = self._Phi @ coeffs[:n]
        if self._n_poly > 0:
            result += self._P_target @ coeffs[n:]

        return result[:, 0] if scalar else result

    # ── 내부 ──

    def _check_duplicates(self, X: np.ndarray):
        """일치/근접 소스 점 검출 → SingularSystemError."""
        if self.duplicate_tol <= 0.0 or X.shape[0] < 2:
            return
        pairs = cKDTree(X).query_pairs(r=self.duplicate_tol, output_type="ndarray")
        if len(pairs) > 0:
            duplicates = [tuple(int(i) for i in p) for p in pairs[:10]]
            logger.error(f"중복 소스 점 {len(pairs)}쌍 검출: {duplicates}")
            raise SingularSystemError(
                f"소스 점 집합에 일치하는 점이 {len(pairs)}쌍 있습니다 "
                f"(허용 거리 {self.duplicate_tol:.1e}).",
                size=X.shape[0],
                rcond=0.0,
                duplicates=duplicates,
            )

    def _factorize(self, A: np.ndarray, kernel: RBFFunction):
        """부분 피벗 LU 분해 + 역조건수 추정."""
        size = A.shape[0]
        if not np.all(np.isfinite(A)):
            logger.error(f"커널 {kernel.name}이 NaN/Inf 값을 생성")
            raise SingularSystemError(
                f"커널 행렬에 NaN/Inf가 포함되어 있습니다 (커널={kernel.name}).",
                size=size,
            )

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", LinAlgWarning)
            lu, piv = lu_factor(A, check_finite=False)

        anorm = np.linalg.norm(A, 1)
        if anorm == 0.0 or np.any(np.diag(lu) == 0.0):
            rcond = 0.0
        else:
            gecon, = get_lapack_funcs(("gecon",), (lu,))
            rcond, _ = gecon(lu, anorm, norm="1")
            rcond = float(rcond) if np.isfinite(rcond) else 0.0

        if rcond < self.rcond_tol:
            logger.error(f"RBF 시스템 특이: rcond={rcond:.2e} < {self.rcond_tol:.1e}")
            raise SingularSystemError(
                f"커널 행렬이 수치적으로 특이합니다 (크기 {size}, rcond={rcond:.2e}, "
                f"커널={kernel.name}).",
                size=size,
                rcond=rcond,
            )
        return lu, piv, rcond

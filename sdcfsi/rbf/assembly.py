"""커널 행렬 조립.

M[i, j] = φ(‖rows_i − cols_j‖)

백엔드:
- "numpy":  scipy cdist + 벡터화 커널 평가 (기본)
- "taichi": 병렬 커널로 (i, j) 쌍을 직접 평가 (GPU/멀티코어)

두 백엔드는 같은 커널 계열 정의를 사용하므로 결과가 부동소수점 오차 내에서 일치한다.
"""

import logging

import numpy as np
from scipy.spatial.distance import cdist

from ..validation import ConfigurationError
from .kernels import RBFFunction

logger = logging.getLogger(__name__)

BACKENDS = ("numpy", "taichi")


def assemble(
    kernel: RBFFunction,
    rows: np.ndarray,
    cols: np.ndarray,
    backend: str = "numpy",
) -> np.ndarray:
    """커널 행렬 조립.

    Args:
        kernel: RBF 커널
        rows: 행 좌표 (m, dim)
        cols: 열 좌표 (n, dim)
        backend: "numpy" | "taichi"

    Returns:
        (m, n) float64 행렬
    """
    if backend == "numpy":
        return assemble_numpy(kernel, rows, cols)
    if backend == "taichi":
        return assemble_taichi(kernel, rows, cols)
    raise ConfigurationError(
        f"알 수 없는 조립 백엔드: {backend}",
        parameter="backend",
        value=backend,
        suggestion="numpy / taichi 중 선택",
    )


def assemble_numpy(kernel: RBFFunction, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
    """numpy 백엔드 조립."""
    if rows.shape[0] == 0 or cols.shape[0] == 0:
        return np.zeros((rows.shape[0], cols.shape[0]), dtype=np.float64)
    r = cdist(rows, cols)
    return np.asarray(kernel(r), dtype=np.float64)


def assemble_taichi(kernel: RBFFunction, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
    """taichi 백엔드 조립.

    taichi는 이 경로에서만 import된다 (선택 의존성).
    """
    from .. import runtime
    from ._taichi_kernels import fill_kernel_matrix

    runtime.ensure_initialized()

    out = np.zeros((rows.shape[0], cols.shape[0]), dtype=np.float64)
    if out.size == 0:
        return out

    fill_kernel_matrix(
        np.ascontiguousarray(rows, dtype=np.float64),
        np.ascontiguousarray(cols, dtype=np.float64),
        out,
        kernel.family_id,
        kernel.scale,
    )
    logger.debug(f"taichi 조립 완료: {out.shape}, 커널={kernel.name}")
    return out

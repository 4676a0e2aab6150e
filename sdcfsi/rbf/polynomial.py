"""RBF 시스템 다항식 보강 기저.

보강 시스템:
    [H   P] [c]   [v]
    [Pᵀ  0] [d] = [0]

- "none":     보강 없음 (순수 커널 보간, 상수 재현 보장 없음)
- "constant": [1]                (상수장 정확 재현)
- "linear":   [1, x, y, (z)]     (선형장 정확 재현)

소스 점이 평면(3D) 또는 직선(2D) 위에 놓이면 전체 선형 기저는 계수가
부족해 보강 시스템이 특이해진다. 이 경우 linear_directions()가 고른
독립 좌표 방향만 기저에 넣는다.
"""

from typing import Literal, Optional, Sequence

import numpy as np
from scipy.linalg import qr

from ..validation import ConfigurationError

PolynomialDegree = Literal["none", "constant", "linear"]

_DEGREES = ("none", "constant", "linear")


def n_poly_terms(degree: str, dim: int) -> int:
    """다항식 항 개수 (모든 좌표 방향 사용 시)."""
    _check_degree(degree)
    if degree == "none":
        return 0
    if degree == "constant":
        return 1
    return dim + 1


def linear_directions(X: np.ndarray, tol: float = 1e-10) -> np.ndarray:
    """선형 보강에 쓸 독립 좌표 방향 (열 인덱스, 오름차순).

    중심화한 좌표에 열 피벗 QR을 적용하고 |R_kk| > tol·|R_00|인 열만 남긴다.
    축에 평행한 평면뿐 아니라 기울어진 평면/직선 위의 점 집합도 처리한다.
    남은 방향들은 점 집합 위에서 전체 선형 함수 공간을 생성한다.

    Args:
        X: 전역 소스 좌표 (n_points, dim)
        tol: 상대 계수 판정 허용치

    Returns:
        정수 배열 (rank,), rank <= min(dim, n_points - 1)
    """
    n, dim = X.shape
    if n < 2 or dim == 0:
        return np.zeros(0, dtype=np.intp)
    Xc = X - X.mean(axis=0)
    R, piv = qr(Xc, mode="r", pivoting=True)
    diag = np.abs(np.diag(R))
    if diag.size == 0 or diag[0] == 0.0:
        return np.zeros(0, dtype=np.intp)
    rank = int(np.count_nonzero(diag > tol * diag[0]))
    return np.sort(piv[:rank]).astype(np.intp)


def polynomial_basis(
    X: np.ndarray,
    degree: str,
    directions: Optional[Sequence[int]] = None,
) -> np.ndarray:
    """점 좌표에서 다항식 기저 평가.

    Args:
        X: 좌표 (n_points, dim)
        degree: "none" | "constant" | "linear"
        directions: 선형 항에 쓸 좌표 열 (None이면 전부)

    Returns:
        P: (n_points, n_terms)
    """
    _check_degree(degree)
    n, dim = X.shape
    if degree == "none":
        return np.empty((n, 0), dtype=np.float64)
    if degree == "constant":
        return np.ones((n, 1), dtype=np.float64)
    cols = np.arange(dim) if directions is None else np.asarray(directions, dtype=np.intp)
    P = np.empty((n, 1 + cols.size), dtype=np.float64)
    P[:, 0] = 1.0
    P[:, 1:] = X[:, cols]
    return P


def _check_degree(degree: str):
    if degree not in _DEGREES:
        raise ConfigurationError(
            f"알 수 없는 다항식 보강 차수: {degree}",
            parameter="polynomial",
            value=degree,
            suggestion="none / constant / linear 중 선택",
        )

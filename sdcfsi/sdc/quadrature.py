"""SDC 구적 노드와 노드 간 적분 행렬.

[0, 1] 위의 노드 τ_0 < ... < τ_M (τ_0 = 0, τ_M = 1)에 대해
S[m, j] = ∫_{τ_m}^{τ_{m+1}} ℓ_j(s) ds  (ℓ_j: Lagrange 기저)
를 계산한다. 한 스텝 Δt에서의 구간 적분은 Δt·S @ F 이다.
"""

import numpy as np
from numpy.polynomial import Polynomial
from numpy.polynomial import legendre

from ..validation import ConfigurationError

NODE_TYPES = ("gauss-lobatto", "uniform")


def gauss_lobatto_nodes(n: int) -> np.ndarray:
    """[0, 1]의 Gauss-Lobatto 노드 n개 (양 끝 포함).

    내부 노드는 P'_{n-1}(x)의 근이다.
    """
    if n < 2:
        raise ConfigurationError(
            f"Gauss-Lobatto 노드 수가 {n}입니다. 2 이상이어야 합니다.",
            parameter="n_nodes",
            value=n,
        )
    coeffs = np.zeros(n)
    coeffs[-1] = 1.0
    interior = legendre.legroots(legendre.legder(coeffs)) if n > 2 else np.array([])
    x = np.concatenate([[-1.0], np.sort(np.real(interior)), [1.0]])
    return 0.5 * (x + 1.0)


def uniform_nodes(n: int) -> np.ndarray:
    """[0, 1]의 등간격 노드 n개."""
    if n < 2:
        raise ConfigurationError(
            f"등간격 노드 수가 {n}입니다. 2 이상이어야 합니다.",
            parameter="n_nodes",
            value=n,
        )
    return np.linspace(0.0, 1.0, n)


def make_nodes(n: int, node_type: str = "gauss-lobatto") -> np.ndarray:
    """노드 종류 이름으로 노드 생성."""
    if node_type == "gauss-lobatto":
        return gauss_lobatto_nodes(n)
    if node_type == "uniform":
        return uniform_nodes(n)
    raise ConfigurationError(
        f"알 수 없는 노드 종류: '{node_type}'",
        parameter="node_type",
        value=node_type,
        suggestion=f"사용 가능: {', '.join(NODE_TYPES)}",
    )


def _lagrange_basis(nodes: np.ndarray, j: int) -> Polynomial:
    p = Polynomial([1.0])
    for i, x in enumerate(nodes):
        if i != j:
            p = p * Polynomial([-x, 1.0]) / (nodes[j] - x)
    return p


def integration_matrix(nodes: np.ndarray) -> np.ndarray:
    """노드 간 적분 행렬 S, shape (M, M+1)."""
    nodes = np.asarray(nodes, dtype=np.float64)
    m = len(nodes)
    S = np.zeros((m - 1, m))
    for j in range(m):
        antideriv = _lagrange_basis(nodes, j).integ()
        values = antideriv(nodes)
        S[:, j] = np.diff(values)
    return S


def quadrature_weights(nodes: np.ndarray) -> np.ndarray:
    """[0, 1] 전체 구적 가중치 (S 행 합)."""
    return integration_matrix(nodes).sum(axis=0)

"""분산 점 집합.

각 프로세스는 전체 점 집합의 연속된 행 블록(로컬 점)만 보유한다.
전역 순서는 rank 순서대로 로컬 블록을 이어붙인 순서이며,
점의 식별자는 전역 위치 인덱스이다.

통신자는 mpi4py 호환 최소 인터페이스(Get_rank, Get_size, allgather)만 요구한다.
통신자가 None이면 단일 프로세스로 동작한다.

생성과 gather()는 집합 연산이다: 모든 rank가 같은 순서로 호출해야 한다.
"""

from typing import Any, List, Optional, Protocol, Sequence

import numpy as np

from ..validation import DimensionMismatchError, validate_points


class Communicator(Protocol):
    """mpi4py.MPI.Comm 호환 최소 인터페이스."""

    def Get_rank(self) -> int: ...

    def Get_size(self) -> int: ...

    def allgather(self, sendobj: Any) -> List[Any]: ...


def allgather(comm: Optional[Communicator], obj) -> list:
    """통신자가 없으면 [obj] 반환."""
    if comm is None:
        return [obj]
    return comm.allgather(obj)


def gather_rows(comm: Optional[Communicator], local: np.ndarray) -> np.ndarray:
    """로컬 행 블록을 rank 순서로 이어붙인 전역 배열 (집합 연산).

    Raises:
        DimensionMismatchError: rank 간 열 개수 불일치
    """
    blocks = allgather(comm, np.ascontiguousarray(local))
    n_cols = {b.shape[1:] for b in blocks if b.shape[0] > 0}
    if len(n_cols) > 1:
        raise DimensionMismatchError(
            f"rank 간 열 구성이 다릅니다: {sorted(n_cols)}",
            parameter="columns",
            expected=blocks[0].shape[1:],
            actual=sorted(n_cols),
        )
    non_empty = [b for b in blocks if b.shape[0] > 0]
    if not non_empty:
        return np.zeros((0,) + local.shape[1:], dtype=local.dtype)
    return np.concatenate(non_empty, axis=0)


class PointSet:
    """분산 좌표 집합 (불변).

    생성 시 좌표를 복사하고 읽기 전용으로 고정한다.
    메쉬 이동 시에는 새 PointSet을 만들어 compute()에 넘긴다.

    Args:
        points: 로컬 좌표 (n_local, dim)
        comm: mpi4py 호환 통신자 (None이면 직렬)
    """

    def __init__(self, points: np.ndarray, comm: Optional[Communicator] = None):
        local = validate_points(points, name="points").copy()
        self.comm = comm

        # rank별 (점 개수, 차원) 교환
        shapes = allgather(comm, local.shape)
        dims = {s[1] for s in shapes if s[0] > 0}
        if len(dims) > 1:
            raise DimensionMismatchError(
                f"rank 간 좌표 차원이 다릅니다: {sorted(dims)}",
                parameter="dim",
                expected=local.shape[1],
                actual=sorted(dims),
            )
        self._counts = tuple(int(s[0]) for s in shapes)
        self._dim = dims.pop() if dims else local.shape[1]

        # 빈 로컬 블록은 전역 차원에 맞춤
        if local.shape[0] == 0:
            local = local.reshape(0, self._dim)
        local.setflags(write=False)
        self._local = local

    # ── 속성 ──

    @property
    def local(self) -> np.ndarray:
        """로컬 좌표 (읽기 전용)."""
        return self._local

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def rank(self) -> int:
        return 0 if self.comm is None else self.comm.Get_rank()

    @property
    def size(self) -> int:
        return 1 if self.comm is None else self.comm.Get_size()

    @property
    def counts(self) -> Sequence[int]:
        """rank별 로컬 점 개수."""
        return self._counts

    @property
    def n_local(self) -> int:
        return self._local.shape[0]

    @property
    def n_global(self) -> int:
        return sum(self._counts)

    @property
    def offset(self) -> int:
        """이 rank 블록의 전역 시작 인덱스."""
        return sum(self._counts[: self.rank])

    def gather(self) -> np.ndarray:
        """전역 좌표 (n_global, dim). 집합 연산."""
        return gather_rows(self.comm, self._local)

    def __len__(self) -> int:
        return self.n_global

    def __repr__(self) -> str:
        return (
            f"PointSet(n_local={self.n_local}, n_global={self.n_global}, "
            f"dim={self.dim}, rank={self.rank}/{self.size})"
        )

"""커플링 코어 설정: Pydantic 모델 + TOML 로드."""

import tomllib
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from .rbf.kernels import RBFFunction, create_kernel

KernelName = Literal[
    "tps", "volume", "gaussian", "imq", "mq",
    "wendland-c0", "wendland-c2", "wendland-c4", "wendland-c6",
]


class RBFConfig(BaseModel):
    """RBF 보간 엔진 설정."""

    kernel: KernelName = "volume"
    radius: float = Field(1.0, gt=0.0)
    shape: float = Field(1.0, gt=0.0)
    polynomial: Literal["none", "constant", "linear"] = "linear"
    rcond_tol: float = Field(1e-14, ge=0.0)
    duplicate_tol: float = Field(1e-12, ge=0.0)
    backend: Literal["numpy", "taichi"] = "numpy"

    def create_kernel(self) -> RBFFunction:
        """설정된 커널 인스턴스 생성."""
        if self.kernel.startswith("wendland"):
            return create_kernel(self.kernel, radius=self.radius)
        if self.kernel in ("gaussian", "imq", "mq"):
            return create_kernel(self.kernel, shape=self.shape)
        return create_kernel(self.kernel)


class SDCConfig(BaseModel):
    """SDC 시간 적분 설정."""

    n_nodes: int = Field(3, ge=2)
    node_type: Literal["gauss-lobatto", "uniform"] = "gauss-lobatto"
    max_sweeps: int = Field(8, ge=1)
    tol: float = Field(1e-10, gt=0.0)
    max_retries: int = Field(4, ge=0)


class CouplingConfig(BaseModel):
    """분할 커플링 고정점 반복 설정."""

    max_iterations: int = Field(50, ge=1)
    tol: float = Field(1e-8, gt=0.0)
    relaxation: float = Field(0.5, gt=0.0, le=1.0)
    aitken: bool = True


class TubeWallConfig(BaseModel):
    """1D 탄성 튜브 벽 모델 설정."""

    n_segments: int = Field(50, ge=2)
    length: float = Field(0.05, gt=0.0)
    r0: float = Field(3e-3, gt=0.0)
    h: float = Field(3e-4, gt=0.0)
    E0: float = Field(4e5, gt=0.0)
    G: float = Field(4e4, ge=0.0)
    rho: float = Field(1000.0, gt=0.0)
    p0: float = 0.0
    dt: float = Field(1e-4, gt=0.0)
    end_time: float = Field(1e-2, gt=0.0)
    pulse_pressure: float = 1333.2
    pulse_duration: float = Field(3e-3, gt=0.0)


class FSIConfig(BaseModel):
    """최상위 설정."""

    rbf: RBFConfig = Field(default_factory=RBFConfig)
    sdc: SDCConfig = Field(default_factory=SDCConfig)
    coupling: CouplingConfig = Field(default_factory=CouplingConfig)
    tube: TubeWallConfig = Field(default_factory=TubeWallConfig)

    @classmethod
    def from_toml(cls, path: str | Path) -> "FSIConfig":
        """TOML 파일에서 설정 로드.

        Args:
            path: TOML 파일 경로

        Returns:
            FSIConfig 인스턴스
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"설정 파일을 찾을 수 없습니다: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls(**data)

    @classmethod
    def default(cls) -> "FSIConfig":
        """기본 설정 반환."""
        return cls()

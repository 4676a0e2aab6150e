"""커플링 코어 설정 테스트."""

import pytest
from pydantic import ValidationError

from sdcfsi.config import (
    CouplingConfig,
    FSIConfig,
    RBFConfig,
    SDCConfig,
    TubeWallConfig,
)
from sdcfsi.rbf.kernels import Gaussian, VolumeSpline, WendlandC4


class TestFSIConfig:
    """FSIConfig 테스트."""

    def test_default_config(self):
        """기본 설정 생성."""
        cfg = FSIConfig.default()
        assert cfg.rbf.kernel == "volume"
        assert cfg.rbf.polynomial == "linear"
        assert cfg.rbf.backend == "numpy"
        assert cfg.sdc.n_nodes == 3
        assert cfg.sdc.node_type == "gauss-lobatto"
        assert cfg.coupling.aitken is True
        assert cfg.tube.n_segments == 50

    def test_from_toml(self, tmp_path):
        """TOML 파일에서 로드."""
        path = tmp_path / "case.toml"
        path.write_text(
            '[rbf]\nkernel = "wendland-c2"\nradius = 0.01\n\n'
            "[sdc]\nn_nodes = 4\nmax_sweeps = 5\n\n"
            "[tube]\nn_segments = 12\nend_time = 1e-3\n",
            encoding="utf-8",
        )
        cfg = FSIConfig.from_toml(path)
        assert cfg.rbf.kernel == "wendland-c2"
        assert cfg.rbf.radius == 0.01
        assert cfg.sdc.n_nodes == 4
        assert cfg.sdc.max_sweeps == 5
        assert cfg.tube.n_segments == 12
        assert cfg.coupling.max_iterations == 50

    def test_from_toml_missing(self, tmp_path):
        """존재하지 않는 파일."""
        with pytest.raises(FileNotFoundError):
            FSIConfig.from_toml(tmp_path / "nope.toml")

    def test_invalid_value_in_toml(self, tmp_path):
        """잘못된 값 → ValidationError."""
        path = tmp_path / "bad.toml"
        path.write_text("[sdc]\nn_nodes = 1\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            FSIConfig.from_toml(path)


class TestSectionConfigs:
    """섹션별 설정 검증."""

    def test_rbf_unknown_kernel(self):
        """알 수 없는 커널 이름."""
        with pytest.raises(ValidationError):
            RBFConfig(kernel="cubic")

    def test_rbf_negative_radius(self):
        """음수 반경."""
        with pytest.raises(ValidationError):
            RBFConfig(radius=-0.1)

    def test_rbf_polynomial_choices(self):
        """보강 차수 선택지."""
        for degree in ("none", "constant", "linear"):
            assert RBFConfig(polynomial=degree).polynomial == degree
        with pytest.raises(ValidationError):
            RBFConfig(polynomial="quadratic")

    def test_create_kernel(self):
        """커널 인스턴스 생성."""
        assert isinstance(RBFConfig().create_kernel(), VolumeSpline)
        k = RBFConfig(kernel="wendland-c4", radius=0.2).create_kernel()
        assert isinstance(k, WendlandC4)
        assert k.scale == 0.2
        g = RBFConfig(kernel="gaussian", shape=0.5).create_kernel()
        assert isinstance(g, Gaussian)
        assert g.params == {"shape": 0.5}

    def test_sdc_node_type(self):
        """노드 종류."""
        assert SDCConfig(node_type="uniform").node_type == "uniform"
        with pytest.raises(ValidationError):
            SDCConfig(node_type="radau")

    def test_coupling_relaxation_bounds(self):
        """완화 계수 범위 (0, 1]."""
        assert CouplingConfig(relaxation=1.0).relaxation == 1.0
        with pytest.raises(ValidationError):
            CouplingConfig(relaxation=0.0)
        with pytest.raises(ValidationError):
            CouplingConfig(relaxation=1.2)

    def test_tube_defaults(self):
        """튜브 벽 기본값."""
        cfg = TubeWallConfig()
        assert cfg.r0 == 3e-3
        assert cfg.pulse_pressure == pytest.approx(1333.2)
        with pytest.raises(ValidationError):
            TubeWallConfig(n_segments=1)

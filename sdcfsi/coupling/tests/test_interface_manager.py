"""인터페이스 필드 전달 관리자 테스트."""

import numpy as np
import pytest

from sdcfsi.config import RBFConfig
from sdcfsi.coupling.interface_manager import InterfaceManager
from sdcfsi.rbf.kernels import Gaussian, VolumeSpline
from sdcfsi.rbf.point_set import PointSet


class TestTransfer:
    """A ↔ B 필드 전달."""

    def test_matching_points_identity(self):
        """같은 점 집합이면 항등 전달."""
        pts = np.linspace(0.0, 1.0, 6).reshape(-1, 1)
        manager = InterfaceManager(VolumeSpline(), pts, pts)
        v = np.array([0.0, 1.0, 4.0, 2.0, -1.0, 3.0])
        np.testing.assert_allclose(manager.a_to_b(v), v, atol=1e-12)
        np.testing.assert_allclose(manager.b_to_a(v), v, atol=1e-12)

    def test_nonmatching_linear_field(self):
        """비정합 점: 선형장 양방향 정확 전달."""
        rng = np.random.default_rng(0)
        pa = rng.random((30, 2))
        pb = rng.random((12, 2))
        f = lambda P: 1.0 + 2.0 * P[:, 0] - P[:, 1]
        manager = InterfaceManager(Gaussian(shape=0.3), pa, pb, polynomial="linear")
        np.testing.assert_allclose(manager.a_to_b(f(pa)), f(pb), atol=1e-9)
        np.testing.assert_allclose(manager.b_to_a(f(pb)), f(pa), atol=1e-9)

    def test_coarse_to_fine_1d(self):
        """1D 조밀도가 다른 인터페이스 (volume spline = 구간 선형)."""
        coarse = np.linspace(0.0, 1.0, 5)
        fine = np.linspace(0.0, 1.0, 17)
        manager = InterfaceManager(VolumeSpline(), coarse, fine)
        values = np.sin(coarse)
        np.testing.assert_allclose(manager.a_to_b(values), np.interp(fine, coarse, values), atol=1e-12)

    def test_update_geometry(self):
        """메쉬 이동 후 재분해."""
        pa = np.linspace(0.0, 1.0, 5).reshape(-1, 1)
        pb = np.linspace(0.0, 1.0, 9).reshape(-1, 1)
        manager = InterfaceManager(VolumeSpline(), pa, pb)
        manager.update_geometry(pa * 2.0, pb * 2.0)
        assert isinstance(manager.points_a, PointSet)
        np.testing.assert_allclose(manager.points_a.local, pa * 2.0)
        np.testing.assert_allclose(manager.a_to_b(3.0 * pa[:, 0]), 3.0 * pb[:, 0], atol=1e-12)

    def test_from_config(self):
        """RBFConfig로 커널/엔진 설정."""
        cfg = RBFConfig(kernel="wendland-c2", radius=0.5, polynomial="constant")
        pts = np.linspace(0.0, 1.0, 8).reshape(-1, 1)
        manager = InterfaceManager.from_config(cfg, pts, pts)
        assert manager.kernel.name == "wendland-c2"
        assert manager.engine_a_to_b.polynomial == "constant"
        assert manager.engine_a_to_b.initialized() and manager.engine_b_to_a.initialized()


class TestConvergence:
    """고정점 수렴 판정."""

    def test_relative_change(self):
        """상대 변화량."""
        converged, rel = InterfaceManager.check_convergence(np.array([3.0, 4.0]), np.array([3.0, 4.0 - 5e-9]), tol=1e-8)
        assert converged
        assert rel == pytest.approx(1e-9, rel=1e-3)

    def test_not_converged(self):
        """허용치 초과."""
        converged, rel = InterfaceManager.check_convergence(np.array([1.0]), np.array([0.5]), tol=1e-8)
        assert not converged
        assert rel == pytest.approx(0.5)

    def test_zero_reference_uses_absolute(self):
        """현재 값이 0이면 절대 기준."""
        converged, rel = InterfaceManager.check_convergence(np.zeros(3), np.full(3, 1e-12), tol=1e-8)
        assert converged
        assert rel == pytest.approx(np.sqrt(3) * 1e-12)


class TestAitken:
    """Aitken 완화 계수."""

    def test_first_iteration_keeps_omega(self):
        """이전 잔차 없음 → ω 유지."""
        assert InterfaceManager.aitken(np.ones(3), None, 0.4) == 0.4

    def test_update_formula(self):
        """ω = −ω·r_k·Δr/|Δr|²."""
        omega = InterfaceManager.aitken(np.array([1.0]), np.array([4.0]), 0.2)
        assert omega == pytest.approx(0.2 * 12.0 / 9.0)

    def test_clipped(self):
        """상한 클리핑."""
        assert InterfaceManager.aitken(np.array([1.0]), np.array([2.0]), 0.9) == pytest.approx(1.0)

    def test_stalled_residual(self):
        """잔차 변화 0 → ω 유지."""
        r = np.array([0.3, 0.1])
        assert InterfaceManager.aitken(r, r.copy(), 0.7) == 0.7

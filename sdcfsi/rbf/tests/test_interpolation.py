"""RBF 보간 엔진 테스트."""

import numpy as np
import pytest

from sdcfsi.config import RBFConfig
from sdcfsi.rbf.interpolation import EngineState, RBFInterpolation
from sdcfsi.rbf.kernels import Gaussian, InverseMultiquadric, VolumeSpline, WendlandC2, create_kernel
from sdcfsi.rbf.point_set import PointSet
from sdcfsi.validation import (
    ConfigurationError,
    DimensionMismatchError,
    SingularSystemError,
    UninitializedUseError,
)


def _scattered(n, dim=2, seed=0):
    return np.random.default_rng(seed).random((n, dim))


# ============================================================
#  기본 정확도
# ============================================================

class TestIdentityReproduction:
    """소스 = 타겟이면 입력 필드를 그대로 재현."""

    @pytest.mark.parametrize("polynomial", ["none", "constant", "linear"])
    def test_scalar_field(self, polynomial):
        """스칼라 필드 재현."""
        X = _scattered(30)
        v = np.sin(3.0 * X[:, 0]) + X[:, 1] ** 2
        engine = RBFInterpolation(polynomial=polynomial)
        engine.compute(Gaussian(shape=0.3), X, X)
        np.testing.assert_allclose(engine.interpolate(v), v, atol=1e-8)

    @pytest.mark.parametrize("name", ["tps", "volume", "imq", "wendland-c2", "wendland-c6"])
    def test_kernel_families(self, name):
        """여러 커널 계열 (선형 보강)."""
        X = _scattered(25, dim=3, seed=2)
        v = np.cos(X).sum(axis=1)
        params = {"radius": 0.8} if name.startswith("wendland") else {}
        if name == "imq":
            params = {"shape": 0.3}
        engine = RBFInterpolation(polynomial="linear")
        engine.compute(create_kernel(name, **params), X, X)
        np.testing.assert_allclose(engine.interpolate(v), v, atol=1e-8)

    def test_vector_field(self):
        """벡터 필드 (열 = 성분)."""
        X = _scattered(20, dim=3, seed=4)
        V = np.column_stack([X[:, 0], X[:, 1] * X[:, 2], np.ones(20)])
        engine = RBFInterpolation()
        engine.compute(InverseMultiquadric(shape=0.3), X, X)
        out = engine.interpolate(V)
        assert out.shape == (20, 3)
        np.testing.assert_allclose(out, V, atol=1e-8)


class TestPolynomialAugmentation:
    """다항식 보강 정밀도."""

    def test_end_to_end_constant_field(self):
        """A={(0,0),(1,0),(0,1)}, B={(0.5,0.5)}: 상수장 [1,1,1] → 1."""
        A = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        B = np.array([[0.5, 0.5]])
        engine = RBFInterpolation(polynomial="linear")
        engine.compute(Gaussian(shape=1.0), A, B)
        out = engine.interpolate(np.array([1.0, 1.0, 1.0]))
        assert out.shape == (1,)
        assert out[0] == pytest.approx(1.0, abs=1e-12)

    def test_linear_field_exact(self):
        """선형 보강은 선형장을 임의 타겟에서 정확히 재현."""
        X = _scattered(40, seed=5)
        Y = _scattered(15, seed=6)
        f = lambda P: 2.0 - 3.0 * P[:, 0] + 0.5 * P[:, 1]
        engine = RBFInterpolation(polynomial="linear")
        engine.compute(WendlandC2(radius=0.6), X, Y)
        np.testing.assert_allclose(engine.interpolate(f(X)), f(Y), atol=1e-9)

    def test_constant_field_exact(self):
        """상수 보강은 상수장을 정확히 재현."""
        X = _scattered(20, seed=7)
        Y = _scattered(8, seed=8)
        engine = RBFInterpolation(polynomial="constant")
        engine.compute(Gaussian(shape=0.3), X, Y)
        np.testing.assert_allclose(engine.interpolate(np.full(20, 4.2)), 4.2, atol=1e-9)

    def test_volume_spline_is_piecewise_linear_1d(self):
        """1D volume spline + 선형 보강 = 구간 선형 보간."""
        X = np.array([0.0, 0.3, 0.7, 1.0])
        Y = np.array([0.15, 0.5, 0.85])
        v = np.array([0.0, 1.0, -1.0, 2.0])
        engine = RBFInterpolation(polynomial="linear")
        engine.compute(VolumeSpline(), X, Y)
        np.testing.assert_allclose(engine.interpolate(v), np.interp(Y, X, v), atol=1e-12)


class TestDegenerateGeometry:
    """평면/직선 위 소스 점 집합 (기본 선형 보강)."""

    def test_coplanar_3d_identity(self):
        """z = 0 평면 위 20점: 분해 성공 + 입력 재현."""
        X = _scattered(20, dim=3, seed=11)
        X[:, 2] = 0.0
        v = np.sin(3.0 * X[:, 0]) + X[:, 1]
        engine = RBFInterpolation()
        engine.compute(VolumeSpline(), X, X)
        np.testing.assert_array_equal(engine.polynomial_directions, [0, 1])
        np.testing.assert_allclose(engine.interpolate(v), v, atol=1e-8)

    def test_coplanar_linear_field_exact(self):
        """평면 위 선형장은 같은 평면의 타겟에서 정확히 재현."""
        X = _scattered(25, dim=3, seed=12)
        Y = _scattered(7, dim=3, seed=13)
        X[:, 2] = 0.5
        Y[:, 2] = 0.5
        f = lambda P: 1.0 + 2.0 * P[:, 0] - P[:, 1]
        engine = RBFInterpolation()
        engine.compute(WendlandC2(radius=0.8), X, Y)
        np.testing.assert_allclose(engine.interpolate(f(X)), f(Y), atol=1e-9)

    def test_tube_centreline_2d(self):
        """관 중심선 (x, r0) 10점, Gaussian: 분해 성공."""
        x = np.linspace(0.0, 1.0, 10)
        X = np.column_stack([x, np.full(10, 3e-3)])
        v = np.cos(4.0 * x)
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.15), X, X)
        np.testing.assert_array_equal(engine.polynomial_directions, [0])
        np.testing.assert_allclose(engine.interpolate(v), v, atol=1e-8)

    def test_oblique_line_linear_field(self):
        """기울어진 직선 위 선형장 재현."""
        t = np.linspace(0.0, 1.0, 9)
        X = np.column_stack([t, 0.5 * t + 0.2])
        s = np.array([0.05, 0.45, 0.95])
        Y = np.column_stack([s, 0.5 * s + 0.2])
        engine = RBFInterpolation()
        engine.compute(VolumeSpline(), X, Y)
        assert engine.polynomial_directions.size == 1
        np.testing.assert_allclose(engine.interpolate(3.0 * X[:, 0] - 1.0), 3.0 * s - 1.0, atol=1e-9)

    def test_three_points_in_3d(self):
        """3D 소스 점 3개 (항상 한 평면 위) → 방향 2개로 축소."""
        X = _scattered(3, dim=3)
        v = np.array([1.0, -2.0, 0.5])
        engine = RBFInterpolation(polynomial="linear")
        engine.compute(Gaussian(shape=0.3), X, X)
        assert engine.polynomial_directions.size == 2
        np.testing.assert_allclose(engine.interpolate(v), v, atol=1e-8)

    def test_general_position_keeps_all_directions(self):
        """일반 위치 점 집합은 전체 선형 기저 사용."""
        X = _scattered(12, dim=3, seed=14)
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.4), X, X)
        np.testing.assert_array_equal(engine.polynomial_directions, [0, 1, 2])


class TestConstructorCompute:
    """생성자에서 바로 compute()."""

    def test_geometry_in_constructor(self):
        """kernel/source/target 지정 시 생성 직후 초기화."""
        X = _scattered(15, seed=15)
        Y = _scattered(4, seed=16)
        engine = RBFInterpolation(kernel=WendlandC2(radius=0.6), source=X, target=Y)
        assert engine.initialized()
        reference = RBFInterpolation()
        reference.compute(WendlandC2(radius=0.6), X, Y)
        v = np.exp(X[:, 0])
        np.testing.assert_allclose(engine.interpolate(v), reference.interpolate(v), atol=1e-14)

    def test_constructor_propagates_singular(self):
        """중복 점이면 생성자에서 SingularSystem."""
        X = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 0.0]])
        with pytest.raises(SingularSystemError):
            RBFInterpolation(kernel=Gaussian(shape=0.3), source=X, target=X)


# ============================================================
#  상태 및 오류
# ============================================================

class TestEngineState:
    """엔진 상태 태그."""

    def test_fresh_engine_uninitialized(self):
        """생성 직후 미초기화."""
        engine = RBFInterpolation()
        assert not engine.initialized()
        assert engine.state == EngineState.UNINITIALIZED
        assert engine.condition_estimate == float("inf")

    def test_compute_initializes(self):
        """compute 성공 → INITIALIZED."""
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.3), _scattered(10), _scattered(3, seed=1))
        assert engine.initialized()
        assert engine.state == EngineState.INITIALIZED
        assert np.isfinite(engine.condition_estimate)

    def test_initialized_is_pure(self):
        """initialized() 반복 호출은 상태를 바꾸지 않음."""
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.3), _scattered(10), _scattered(3, seed=1))
        assert engine.initialized() and engine.initialized()
        assert engine.state == EngineState.INITIALIZED

    def test_invalidate_marks_stale(self):
        """invalidate → STALE, 분해 재사용 불가."""
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.3), _scattered(10), _scattered(3, seed=1))
        engine.invalidate()
        assert engine.state == EngineState.STALE
        with pytest.raises(UninitializedUseError):
            engine.interpolate(np.zeros(10))

    def test_failed_recompute_discards_old_factorization(self):
        """새 기하 compute 실패 시 이전 분해를 재사용하지 않음."""
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.3), _scattered(10), _scattered(3, seed=1))
        bad = np.array([[0.0, 0.0], [0.0, 0.0], [1.0, 1.0]])
        with pytest.raises(SingularSystemError):
            engine.compute(Gaussian(shape=0.3), bad, bad)
        assert not engine.initialized()
        with pytest.raises(UninitializedUseError):
            engine.interpolate(np.zeros(10))

    def test_recompute_new_geometry(self):
        """메쉬 이동 후 새 점 집합으로 재계산."""
        X = _scattered(12)
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.3), X, X)
        X2 = X + 0.01
        engine.compute(Gaussian(shape=0.3), X2, X2)
        assert engine.source.n_global == 12
        np.testing.assert_allclose(engine.source.local, X2)

    def test_factorization_reused(self):
        """같은 기하에서 여러 필드 전달."""
        X = _scattered(15)
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.3), X, X)
        lu_before = engine._lu
        for seed in range(3):
            v = np.random.default_rng(seed).random(15)
            np.testing.assert_allclose(engine.interpolate(v), v, atol=1e-8)
        assert engine._lu is lu_before

    def test_interpolate_does_not_modify_input(self):
        """입력 필드는 읽기 전용으로 취급."""
        X = _scattered(10)
        v = np.arange(10.0)
        original = v.copy()
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.3), X, X)
        out = engine.interpolate(v)
        np.testing.assert_array_equal(v, original)
        out[:] = -1.0
        np.testing.assert_array_equal(v, original)


class TestErrors:
    """오류 분류."""

    def test_uninitialized_use(self):
        """compute 전 interpolate."""
        with pytest.raises(UninitializedUseError, match="미초기화"):
            RBFInterpolation().interpolate(np.ones(3))

    def test_dimension_mismatch(self):
        """필드 길이 ≠ 소스 점 수."""
        engine = RBFInterpolation()
        engine.compute(Gaussian(shape=0.3), _scattered(10), _scattered(4, seed=1))
        with pytest.raises(DimensionMismatchError) as exc:
            engine.interpolate(np.ones(9))
        assert exc.value.expected == 10
        assert exc.value.actual == 9

    def test_coincident_points_detected(self):
        """일치하는 소스 점 → SingularSystem (중복 쌍 보고)."""
        X = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        with pytest.raises(SingularSystemError) as exc:
            RBFInterpolation().compute(Gaussian(shape=0.3), X, X)
        assert (1, 2) in exc.value.duplicates

    def test_coincident_points_via_factorization(self):
        """중복 검사 없이도 분해 단계에서 특이 검출."""
        X = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        engine = RBFInterpolation(duplicate_tol=0.0)
        with pytest.raises(SingularSystemError):
            engine.compute(Gaussian(shape=0.3), X, X)
        assert not engine.initialized()

    def test_isolated_compact_support_without_polynomial(self):
        """지지 반경이 너무 작아도 대각은 1 → 정칙 (보강 없음)."""
        X = _scattered(6)
        engine = RBFInterpolation(polynomial="none")
        engine.compute(WendlandC2(radius=1e-6), X, X)
        v = np.arange(6.0)
        np.testing.assert_allclose(engine.interpolate(v), v)

    def test_empty_source(self):
        """빈 소스 집합."""
        with pytest.raises(ConfigurationError):
            RBFInterpolation().compute(Gaussian(shape=0.3), np.zeros((0, 2)), np.zeros((1, 2)))

    def test_incomplete_geometry_arguments(self):
        """생성자에 kernel/source/target 일부만 지정."""
        with pytest.raises(ConfigurationError):
            RBFInterpolation(kernel=Gaussian(shape=0.3), source=_scattered(5))

    def test_dimension_disagreement(self):
        """소스/타겟 공간 차원 불일치."""
        with pytest.raises(DimensionMismatchError):
            RBFInterpolation().compute(Gaussian(shape=0.3), _scattered(5, dim=2), _scattered(3, dim=3))

    def test_nan_points(self):
        """NaN 좌표."""
        X = _scattered(5)
        X[2, 0] = np.nan
        with pytest.raises(ConfigurationError):
            RBFInterpolation().compute(Gaussian(shape=0.3), X, X)

    def test_invalid_options(self):
        """잘못된 보강 차수/백엔드."""
        with pytest.raises(ConfigurationError):
            RBFInterpolation(polynomial="cubic")
        with pytest.raises(ConfigurationError):
            RBFInterpolation(backend="opencl")


class TestPointSet:
    """직렬 PointSet."""

    def test_points_are_read_only_copy(self):
        """생성 시 복사 후 읽기 전용."""
        X = _scattered(4)
        ps = PointSet(X)
        X[0, 0] = 99.0
        assert ps.local[0, 0] != 99.0
        with pytest.raises(ValueError):
            ps.local[0, 0] = 1.0

    def test_serial_properties(self):
        """직렬 속성."""
        ps = PointSet(_scattered(7, dim=3))
        assert (ps.rank, ps.size, ps.n_local, ps.n_global, ps.offset, ps.dim) == (0, 1, 7, 7, 0, 3)
        assert len(ps) == 7

    def test_one_dimensional_input(self):
        """1차원 입력 → (n, 1)."""
        assert PointSet(np.linspace(0, 1, 5)).local.shape == (5, 1)

    def test_empty_block_takes_given_dim(self):
        """빈 (0, dim) 입력은 차원 유지."""
        ps = PointSet(np.zeros((0, 3)))
        assert ps.local.shape == (0, 3)
        assert ps.dim == 3


class TestFromConfig:
    """RBFConfig 연동."""

    def test_engine_from_config(self):
        """설정값 전달."""
        cfg = RBFConfig(kernel="gaussian", shape=0.3, polynomial="constant", rcond_tol=1e-12)
        engine = RBFInterpolation.from_config(cfg)
        assert engine.polynomial == "constant"
        assert engine.rcond_tol == 1e-12
        X = _scattered(10)
        engine.compute(cfg.create_kernel(), X, X)
        np.testing.assert_allclose(engine.interpolate(X[:, 0]), X[:, 0], atol=1e-8)

"""RBF 보간 모듈.

비정합 점 구름 사이에서 스칼라/벡터 필드를 전달한다.

    from sdcfsi.rbf import RBFInterpolation, create_kernel

    engine = RBFInterpolation(polynomial="linear")
    engine.compute(create_kernel("wendland-c2", radius=0.5), fluid_points, solid_points)
    disp_solid = engine.interpolate(disp_fluid)
"""

from .kernels import (
    KERNELS,
    RBFFunction,
    ThinPlateSpline,
    VolumeSpline,
    Gaussian,
    InverseMultiquadric,
    Multiquadric,
    WendlandC0,
    WendlandC2,
    WendlandC4,
    WendlandC6,
    create_kernel,
)
from .polynomial import polynomial_basis, n_poly_terms, linear_directions
from .point_set import PointSet, Communicator
from .interpolation import RBFInterpolation, EngineState

__all__ = [
    "KERNELS",
    "RBFFunction",
    "ThinPlateSpline",
    "VolumeSpline",
    "Gaussian",
    "InverseMultiquadric",
    "Multiquadric",
    "WendlandC0",
    "WendlandC2",
    "WendlandC4",
    "WendlandC6",
    "create_kernel",
    "polynomial_basis",
    "n_poly_terms",
    "linear_directions",
    "PointSet",
    "Communicator",
    "RBFInterpolation",
    "EngineState",
]

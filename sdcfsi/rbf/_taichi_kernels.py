"""taichi 커널 행렬 조립 커널.

family 코드는 kernels.py의 family_id와 일치해야 한다.
family는 ti.template() 인자이므로 계열별로 별도 컴파일된다.
"""

import taichi as ti


@ti.func
def _rbf_value(family: ti.template(), r, s):
    val = 0.0
    if ti.static(family == 0):
        # thin-plate spline
        if r > 0.0:
            val = r * r * ti.log(r)
    if ti.static(family == 1):
        val = r
    if ti.static(family == 2):
        x = r / s
        val = ti.exp(-x * x)
    if ti.static(family == 3):
        x = r / s
        val = 1.0 / ti.sqrt(1.0 + x * x)
    if ti.static(family == 4):
        x = r / s
        val = ti.sqrt(1.0 + x * x)
    if ti.static(family == 5):
        xi = r / s
        if xi < 1.0:
            val = (1.0 - xi) ** 2
    if ti.static(family == 6):
        xi = r / s
        if xi < 1.0:
            val = (1.0 - xi) ** 4 * (4.0 * xi + 1.0)
    if ti.static(family == 7):
        xi = r / s
        if xi < 1.0:
            val = (1.0 - xi) ** 6 * (35.0 * xi * xi + 18.0 * xi + 3.0)
    if ti.static(family == 8):
        xi = r / s
        if xi < 1.0:
            val = (1.0 - xi) ** 8 * (32.0 * xi * xi * xi + 25.0 * xi * xi + 8.0 * xi + 1.0)
    return val


@ti.kernel
def fill_kernel_matrix(
    rows: ti.types.ndarray(dtype=ti.f64, ndim=2),
    cols: ti.types.ndarray(dtype=ti.f64, ndim=2),
    out: ti.types.ndarray(dtype=ti.f64, ndim=2),
    family: ti.template(),
    scale: ti.f64,
):
    """out[i, j] = φ(‖rows_i − cols_j‖)."""
    for i, j in ti.ndrange(out.shape[0], out.shape[1]):
        r2 = 0.0
        for d in range(rows.shape[1]):
            diff = rows[i, d] - cols[j, d]
            r2 += diff * diff
        out[i, j] = _rbf_value(family, ti.sqrt(r2), scale)

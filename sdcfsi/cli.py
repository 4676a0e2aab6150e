"""CLI 진입점: Typer 서브커맨드."""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import typer
from rich.console import Console
from pydantic import ValidationError
from rich.table import Table

from .config import FSIConfig
from .validation import (
    ConfigurationError,
    DimensionMismatchError,
    ImplicitSolveDivergenceError,
    SingularSystemError,
)

app = typer.Typer(
    name="sdcfsi",
    help="분할 FSI 커플링 코어 (RBF 보간 + SDC 시간 적분)",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="상세 로그 출력"),
):
    """분할 FSI 커플링 코어."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s %(levelname)s %(message)s",
    )


def _load_config(config_path: Optional[Path]) -> FSIConfig:
    if config_path is not None:
        return FSIConfig.from_toml(config_path)
    return FSIConfig.default()


def _load_array(path: Path, key: str = "points") -> np.ndarray:
    """.npy 또는 .npz(key 우선, 없으면 첫 배열) 로드."""
    if not path.exists():
        raise FileNotFoundError(f"파일을 찾을 수 없습니다: {path}")
    if path.suffix == ".npz":
        with np.load(path) as data:
            name = key if key in data.files else data.files[0]
            return data[name]
    return np.load(path)


@app.command()
def interpolate(
    source_path: Path = typer.Argument(..., help="소스 점 좌표 (.npz/.npy, (n, dim))"),
    target_path: Path = typer.Argument(..., help="타겟 점 좌표 (.npz/.npy, (m, dim))"),
    values_path: Path = typer.Argument(..., help="소스 필드 (.npy, (n,) 또는 (n, n_comp))"),
    output_path: Path = typer.Option("interpolated.npy", "-o", "--output", help="출력 .npy 경로"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="설정 파일 경로 (TOML)"),
):
    """소스 점 필드를 타겟 점으로 RBF 보간."""
    from .rbf.interpolation import RBFInterpolation

    try:
        cfg = _load_config(config_path)
        source = _load_array(source_path)
        target = _load_array(target_path)
        values = _load_array(values_path, key="values")

        engine = RBFInterpolation.from_config(cfg.rbf)
        engine.compute(cfg.rbf.create_kernel(), source, target)
        result = engine.interpolate(values)
    except (
        FileNotFoundError,
        ConfigurationError,
        DimensionMismatchError,
        SingularSystemError,
        ValidationError,
    ) as e:
        console.print(f"[red]실패[/]: {e}")
        raise typer.Exit(1)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    np.save(output_path, result)
    console.print(
        f"[green]완료[/]: {output_path} "
        f"(소스 {engine.source.n_global}점 → 타겟 {engine.target.n_global}점, "
        f"커널={cfg.rbf.kernel}, 보강={cfg.rbf.polynomial}, "
        f"조건수≈{engine.condition_estimate:.2e})"
    )


def _build_coupled_case(cfg: FSIConfig, wall):
    """튜브 벽 + 집중 압력 모델 분할 커플링 케이스.

    압력 모델은 벽보다 성긴 비정합 격자에서
        dp/dt = (κ·u − p) / τ,  κ = 0.5·k_wall,  τ = 10·dt
    로 변위에 반응한다.
    """
    from .coupling.partitioned import PartitionedSDCSolver
    from .sdc.solvers.ode import CoupledODESolver

    n_fluid = max(wall.n_segments // 2, 2)
    x_fluid = np.linspace(wall.x[0], wall.x[-1], n_fluid)
    kappa = 0.5 * wall.stiffness
    tau = 10.0 * cfg.tube.dt

    fluid = CoupledODESolver(
        rhs=lambda t, p, u: (kappa * u - p) / tau,
        output=lambda p: p,
        points=x_fluid.reshape(-1, 1),
        q0=np.zeros(n_fluid),
        dt=cfg.tube.dt,
        end_time=cfg.tube.end_time,
        jacobian=lambda t, p: -np.eye(n_fluid) / tau,
    )
    return PartitionedSDCSolver.from_config(fluid, wall, cfg, labels=("fluid", "wall"))


@app.command()
def simulate(
    config_path: Optional[Path] = typer.Option(None, "--config", help="설정 파일 경로 (TOML)"),
    coupled: bool = typer.Option(False, "--coupled/--wall-only", help="압력 모델과 분할 커플링"),
    output_path: Optional[Path] = typer.Option(None, "-o", "--output", help="최종 변위 .npy 저장 경로"),
):
    """압력 펄스를 받는 튜브 벽 모델 SDC 시뮬레이션."""
    from .sdc.integrator import SDCIntegrator
    from .sdc.solvers.tube_wall import TubeWallSolver

    try:
        cfg = _load_config(config_path)
        wall = TubeWallSolver.from_config(cfg.tube)
        solver = _build_coupled_case(cfg, wall) if coupled else wall
        integrator = SDCIntegrator.from_config(solver, cfg.sdc)
        console.print(f"\n[bold]시뮬레이션 시작[/]: 종료 시각 {solver.get_end_time():.3e} s\n")
        results = integrator.run()
    except (
        FileNotFoundError,
        ConfigurationError,
        DimensionMismatchError,
        SingularSystemError,
        ImplicitSolveDivergenceError,
        ValidationError,
    ) as e:
        console.print(f"[red]실패[/]: {e}")
        raise typer.Exit(1)

    u = wall.displacement()
    table = Table(title="SDC 시뮬레이션 요약")
    table.add_column("항목", style="cyan")
    table.add_column("값", justify="right")
    table.add_row("모드", "분할 커플링" if coupled else "벽 단독")
    table.add_row("스텝 수", str(len(results)))
    table.add_row("최종 시각 [s]", f"{integrator.t:.4e}")
    table.add_row("노드 수 / 스테이지 K", f"{len(integrator.nodes)} / {integrator.n_stages}")
    table.add_row("평균 스윕", f"{np.mean([r.sweeps for r in results]):.2f}" if results else "-")
    table.add_row("미수렴 스텝", str(sum(1 for r in results if not r.converged)))
    table.add_row("재시도", str(sum(r.retries for r in results)))
    table.add_row("최대 |변위| [m]", f"{np.max(np.abs(u)):.4e}")
    table.add_row("소요 시간 [s]", f"{sum(r.elapsed_time for r in results):.3f}")
    console.print(table)

    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        np.save(output_path, u)
        console.print(f"[green]저장[/]: {output_path}")


@app.command()
def kernels():
    """사용 가능한 RBF 커널 목록."""
    from .rbf.kernels import KERNELS

    table = Table(title="RBF 커널")
    table.add_column("이름", style="cyan")
    table.add_column("ID", justify="right")
    table.add_column("컴팩트 지지")
    table.add_column("매개변수")
    for name, cls in KERNELS.items():
        kernel = cls()
        params = ", ".join(f"{k}={v}" for k, v in kernel.params.items()) or "-"
        table.add_row(name, str(cls.family_id), "예" if cls.compact else "아니오", params)
    console.print(table)

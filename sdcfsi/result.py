"""시간 스텝/커플링 결과 데이터 클래스."""

from dataclasses import dataclass


@dataclass
class SDCStepResult:
    """SDC 1 타임스텝 결과.

    Args:
        t: 스텝 종료 시각
        dt: 실제 사용한 시간 간격 (재시도 시 축소된 값)
        sweeps: 수행한 보정 스윕 수 (예측자 제외)
        residual: 최종 SDC 상대 잔차
        converged: 잔차 허용치 도달 여부
        retries: 발산으로 인한 재시도 횟수
        elapsed_time: 소요 시간 [초]
    """
    t: float
    dt: float
    sweeps: int
    residual: float
    converged: bool
    retries: int
    elapsed_time: float


@dataclass
class CouplingResult:
    """스테이지 1회 분할 커플링 반복 결과.

    Args:
        converged: 수렴 여부
        iterations: 고정점 반복 수
        residual: 최종 인터페이스 상대 잔차
        relaxation: 마지막 완화 계수
    """
    converged: bool
    iterations: int
    residual: float
    relaxation: float

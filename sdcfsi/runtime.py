"""Taichi 런타임 관리 (커널 행렬 병렬 조립용).

taichi 조립 백엔드를 선택했을 때만 사용된다.
GPU 자동 감지(CUDA → Vulkan → CPU 폴백)와 프로세스당 1회 초기화를 보장한다.
커널 행렬은 분해 정밀도를 위해 기본 f64로 조립한다.
"""

import enum
import logging
import taichi as ti
from typing import Optional

logger = logging.getLogger(__name__)


class Backend(enum.Enum):
    """Taichi 백엔드 열거형."""
    CPU = "cpu"
    VULKAN = "vulkan"
    CUDA = "cuda"
    AUTO = "auto"


class Precision(enum.Enum):
    """커널 행렬 조립 정밀도."""
    F32 = "f32"
    F64 = "f64"


_initialized = False
_active_backend: Optional[Backend] = None
_active_precision: Optional[Precision] = None


def init(backend: Backend = Backend.AUTO, precision: Precision = Precision.F64) -> dict:
    """Taichi 런타임 초기화.

    중복 호출 시 기존 설정을 그대로 반환한다.

    Args:
        backend: 사용할 백엔드 (AUTO면 CUDA → Vulkan → CPU 순서로 시도)
        precision: 기본 부동소수점 정밀도

    Returns:
        {"backend", "precision", "already_initialized"} 딕셔너리
    """
    global _initialized, _active_backend, _active_precision

    if _initialized:
        return _info(already_initialized=True)

    default_fp = ti.f64 if precision == Precision.F64 else ti.f32
    _active_precision = precision

    candidates = [backend]
    if backend == Backend.AUTO:
        candidates = [Backend.CUDA, Backend.VULKAN]

    for candidate in candidates:
        try:
            ti.init(arch=_backend_to_arch(candidate), default_fp=default_fp)
        except Exception as e:
            logger.debug(f"{candidate.value} 백엔드 실패: {e}")
            continue
        _active_backend = candidate
        _initialized = True
        logger.info(f"Taichi 초기화: 백엔드={candidate.value}, 정밀도={precision.value}")
        return _info(already_initialized=False)

    ti.init(arch=ti.cpu, default_fp=default_fp)
    _active_backend = Backend.CPU
    _initialized = True
    logger.warning("요청한 Taichi 백엔드를 사용할 수 없어 CPU로 폴백")
    return _info(already_initialized=False)


def ensure_initialized() -> dict:
    """미초기화 상태면 기본 설정으로 초기화."""
    return init()


def get_backend() -> Optional[Backend]:
    """현재 활성 백엔드 반환."""
    return _active_backend


def get_precision() -> Optional[Precision]:
    """현재 활성 정밀도 반환."""
    return _active_precision


def is_initialized() -> bool:
    """초기화 여부 반환."""
    return _initialized


def reset():
    """테스트용: 전역 상태 리셋 (ti.init 자체는 되돌릴 수 없음)."""
    global _initialized, _active_backend, _active_precision
    _initialized = False
    _active_backend = None
    _active_precision = None


def _info(already_initialized: bool) -> dict:
    return {
        "backend": _active_backend.value,
        "precision": _active_precision.value,
        "already_initialized": already_initialized,
    }


def _backend_to_arch(backend: Backend):
    """Backend enum → Taichi arch 변환."""
    mapping = {
        Backend.CPU: ti.cpu,
        Backend.VULKAN: ti.vulkan,
        Backend.CUDA: ti.cuda,
    }
    return mapping[backend]

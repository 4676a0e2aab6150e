"""분할 커플링 모듈."""

from .interface_manager import InterfaceManager
from .partitioned import PartitionedSDCSolver

__all__ = ["InterfaceManager", "PartitionedSDCSolver"]

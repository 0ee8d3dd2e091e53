"""Service modules"""
from .assembler import SnapshotAssembler
from .batch_reader import BatchReader
from .block_time import BlockTimeModel
from .coordinator import MultiChainCoordinator
from .estimator import BlockEstimator
from .locator import BlockLocator
from .snapshot_service import SnapshotService

__all__ = [
    "BatchReader",
    "BlockEstimator",
    "BlockLocator",
    "BlockTimeModel",
    "MultiChainCoordinator",
    "SnapshotAssembler",
    "SnapshotService",
]

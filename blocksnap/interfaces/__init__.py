"""Protocol interfaces for blocksnap collaborators."""
from .registry import ReadRegistry
from .rpc import RpcClient

__all__ = ["ReadRegistry", "RpcClient"]

"""Historical block location and on-chain lending snapshots."""

__version__ = "0.1.0"

"""Morpho Blue lending protocol."""
from .registry import MORPHO_ADDRESSES, MorphoRegistry

__all__ = ["MORPHO_ADDRESSES", "MorphoRegistry"]

"""Incremental tailing: line reassembly and delta reads."""

from .reader import TailReader, TailState
from .splitter import LineSplitter

__all__ = ["LineSplitter", "TailReader", "TailState"]

from swipeleft.selection.buffer import SelectionBuffer
from swipeleft.selection.prefetch import Prefetcher

__all__ = ["Prefetcher", "SelectionBuffer"]

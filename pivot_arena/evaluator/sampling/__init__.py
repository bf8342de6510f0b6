from .random_source import Mulberry32, RandomSource, shuffle
from .snap_times import select_snap_times

__all__ = ["Mulberry32", "RandomSource", "shuffle", "select_snap_times"]

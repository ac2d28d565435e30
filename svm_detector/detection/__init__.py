from .detection import Detection
from .sliding_window import SlidingWindowEvaluator

__all__ = [
    'Detection',
    'SlidingWindowEvaluator',
]

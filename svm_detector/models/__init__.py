from .sparse import SparseVector, to_csr
from .svm import LinearClassifier, TrainedModel


__all__ = [
    'LinearClassifier',
    'TrainedModel',
    'SparseVector',
    'to_csr',
]

from .base import (
    DEFAULT_FEATURE_TYPE,
    FEATURE_EXTRACTOR_MAP,
    FeatureExtractor,
    get_default_parameters_for,
    register_feature_extractor,
)
from .hog import HOGFeatureExtractor

__all__ = [
    'DEFAULT_FEATURE_TYPE',
    'FEATURE_EXTRACTOR_MAP',
    'FeatureExtractor',
    'HOGFeatureExtractor',
    'get_default_parameters_for',
    'register_feature_extractor',
]

"""
工具模块

该模块包含配置、日志、异常类型与并发等辅助工具
"""

from .config import (
    DEFAULT_SAVE_PATHS,
    KERNEL_CHOICES,
    HOGConfig,
    SVMConfig,
    DetectorTrainConfig,
)
from .errors import (
    DetectorError,
    ConfigurationError,
    ValidationError,
    StateError,
    ModelError,
)
from .logger import Logger
from .parallel import map_ordered, resolve_n_jobs

__all__ = [
    'DEFAULT_SAVE_PATHS',
    'KERNEL_CHOICES',
    'HOGConfig',
    'SVMConfig',
    'DetectorTrainConfig',
    'DetectorError',
    'ConfigurationError',
    'ValidationError',
    'StateError',
    'ModelError',
    'Logger',
    'map_ordered',
    'resolve_n_jobs',
]

"""
检测器统一异常类型。

- ConfigurationError: 未知的特征类型或非法的特征参数
- ValidationError: 标签与特征数量不一致、特征形状不一致等输入错误
- StateError: 在没有模型（未训练也未加载）时调用依赖模型的操作
- ModelError: 求解器未能产出可用模型，或读取的数据无法还原为模型

文件读写失败直接使用内置的 OSError（即 IOError）向上抛出。
"""

__all__ = [
    "DetectorError",
    "ConfigurationError",
    "ValidationError",
    "StateError",
    "ModelError",
]


class DetectorError(Exception):
    """所有检测器异常的基类。"""


class ConfigurationError(DetectorError, ValueError):
    pass


class ValidationError(DetectorError, ValueError):
    pass


class StateError(DetectorError, RuntimeError):
    pass


class ModelError(DetectorError):
    pass

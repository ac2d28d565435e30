"""
特征提取器抽象接口。

FeatureExtractor 把单张图像、图像列表（数据库）或图像金字塔转换为描述子：
- extract(image) -> np.ndarray，形状固定的描述子
- extract_batch(images) -> list[np.ndarray]，顺序与输入一致，用于构建训练数据
- extract_pyramid(pyramid) -> list[np.ndarray]，金字塔每层一个描述子
- scale(batch) -> list[np.ndarray]，按通道标准化（参数随特征记录一起保存）

具体实现通过 ``register_feature_extractor`` 按特征类型名注册，
统一由 ``FeatureExtractor.create`` 构造，新增特征只需注册，不必修改调用方。
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

import cv2
import numpy as np
from sklearn.preprocessing import StandardScaler

from svm_detector.utils.errors import ConfigurationError, StateError, ValidationError
from svm_detector.utils.parallel import map_ordered


LOGGER = logging.getLogger('feature_extractor')

DEFAULT_FEATURE_TYPE = 'hog'

# 特征类型名 -> 实现类
FEATURE_EXTRACTOR_MAP = {}


def register_feature_extractor(feature_type):
    """类装饰器：以 ``feature_type`` 为键注册特征提取器实现。"""

    def decorator(cls):
        if feature_type in FEATURE_EXTRACTOR_MAP:
            raise ConfigurationError('Feature type already registered: {}'.format(feature_type))
        cls.feature_type = feature_type
        FEATURE_EXTRACTOR_MAP[feature_type] = cls
        return cls

    return decorator


def _lookup_extractor_class(feature_type):
    cls = FEATURE_EXTRACTOR_MAP.get(feature_type)
    if cls is None:
        raise ConfigurationError(
            'Unknown feature type: {} (available: {})'.format(feature_type, sorted(FEATURE_EXTRACTOR_MAP))
        )
    return cls


def get_default_parameters_for(feature_type):
    """返回指定特征类型的默认参数字典。"""
    return _lookup_extractor_class(feature_type).get_default_parameters()


def _channel_values(descriptor):
    """把描述子展开为 (n_positions, n_channels)；二维描述子视为单通道。"""
    descriptor = np.asarray(descriptor, dtype=np.float64)
    if descriptor.ndim > 3:
        raise ValidationError('Descriptor must have at most 3 dimensions, got shape {}'.format(descriptor.shape))
    channels = descriptor.shape[2] if descriptor.ndim == 3 else 1
    return descriptor.reshape(-1, channels)


class FeatureExtractor(ABC):
    """特征提取器基类。

    参数:
        params: dict 或 None，特征参数；未给出的键使用默认值，未知的键抛出 ConfigurationError

    子类需要实现 ``extract`` 与 ``scale_factor``，并可覆盖
    ``get_default_parameters`` 与 ``render``。
    """

    feature_type = None

    def __init__(self, params=None):
        self._params = self.normalize_parameters(params)
        self._scaler = None

    @classmethod
    def get_default_parameters(cls):
        return {}

    @classmethod
    def normalize_parameters(cls, params):
        """校验并合并默认参数。

        异常:
            ConfigurationError: 参数不是字典，或包含未知的键
        """
        defaults = cls.get_default_parameters()
        if params is None:
            return dict(defaults)
        if not isinstance(params, dict):
            raise ConfigurationError('Feature parameters must be a dict, got {}'.format(type(params).__name__))

        normalized = dict(defaults)
        for key, value in params.items():
            if key not in defaults:
                raise ConfigurationError('Unknown parameter for {}: {}'.format(cls.feature_type, key))
            normalized[key] = value
        return normalized

    def get_feature_type(self):
        return self.feature_type

    def get_parameters(self):
        return dict(self._params)

    @abstractmethod
    def extract(self, image):
        """提取单张图像的描述子。"""

    @abstractmethod
    def scale_factor(self):
        """输出网格分辨率与输入图像分辨率之比（用于把检测结果映射回像素坐标）。"""

    def extract_from_path(self, image_path):
        image_path = Path(image_path)
        image_bgr = cv2.imread(str(image_path), cv2.IMREAD_COLOR)
        if image_bgr is None:
            raise FileNotFoundError(f"Failed to read image: {image_path}")
        return self.extract(image_bgr)

    def _extract_item(self, item):
        if isinstance(item, (str, os.PathLike)):
            return self.extract_from_path(item)
        return self.extract(item)

    def extract_batch(self, images, n_jobs=None, verbose=False):
        """批量提取描述子（图像数组或图像路径均可）。

        参数:
            images: 可迭代对象，元素为图像数组或图像路径
            n_jobs: int 或 None，线程池并发数（None 表示自动选择，1 表示禁用并发）
            verbose: bool，是否显示进度条

        返回:
            list: 与输入顺序一致的描述子列表
        """
        images = list(images)
        if verbose:
            LOGGER.info('🔍 开始批量特征提取: %d 张图像 | 特征类型 %s', len(images), self.feature_type)
        features = map_ordered(self._extract_item, images, n_jobs=n_jobs, desc='提取特征', verbose=verbose)
        if verbose:
            LOGGER.info('✅ 特征提取完成: %d 个描述子', len(features))
        return features

    def extract_pyramid(self, pyramid, n_jobs=None, scaled=False):
        """对图像金字塔的每一层提取描述子，顺序与金字塔一致。

        scaled 为 True 时，每层描述子图再用已拟合的标准化参数处理。
        """
        levels = map_ordered(self.extract, pyramid, n_jobs=n_jobs)
        if scaled:
            levels = [self.scale_descriptor(level) for level in levels]
        return levels

    @property
    def is_scaler_fitted(self):
        return self._scaler is not None

    def fit_scaler(self, batch):
        """在一批描述子上按通道拟合 StandardScaler。

        每个通道（描述子最后一维）一个均值与标准差，所有 cell 位置共享，
        因此标准化后的描述子图仍可直接做逐通道互相关。

        异常:
            ValidationError: batch 为空或各描述子通道数不一致
        """
        values = [_channel_values(descriptor) for descriptor in batch]
        if not values:
            raise ValidationError('Cannot fit a scaler on an empty descriptor batch')
        channels = {v.shape[1] for v in values}
        if len(channels) != 1:
            raise ValidationError('Descriptors have different channel counts: {}'.format(sorted(channels)))
        self._scaler = StandardScaler(with_mean=True, with_std=True).fit(np.concatenate(values))
        LOGGER.info('🧪 拟合 StandardScaler: %d 个描述子 | %d 个通道', len(values), channels.pop())
        return self

    def scale(self, batch, refit=False):
        """按通道标准化一批描述子。

        尚未拟合（或 refit=True）时先在这批描述子上拟合，否则直接使用已有参数。

        返回:
            list: 与输入顺序、形状一致的 float32 描述子
        """
        descriptors = list(batch)
        if refit or self._scaler is None:
            self.fit_scaler(descriptors)
        return [self.scale_descriptor(descriptor) for descriptor in descriptors]

    def scale_descriptor(self, descriptor):
        """用已拟合的参数标准化单个描述子或整张描述子图。

        异常:
            StateError: 尚未拟合标准化参数
            ValidationError: 通道数与拟合时不一致
        """
        if self._scaler is None:
            raise StateError('Scaler is not fitted. Call fit_scaler() or scale() on a training batch first.')
        descriptor = np.asarray(descriptor)
        values = _channel_values(descriptor)
        if values.shape[1] != self._scaler.n_features_in_:
            raise ValidationError(
                'Descriptor has {} channels, scaler was fitted on {}'.format(values.shape[1], self._scaler.n_features_in_)
            )
        return self._scaler.transform(values).reshape(descriptor.shape).astype(np.float32)

    def get_scaling(self):
        """已拟合的标准化参数 ``{'mean': [...], 'scale': [...]}``，未拟合时为 None。"""
        if self._scaler is None:
            return None
        return {
            'mean': [float(v) for v in self._scaler.mean_],
            'scale': [float(v) for v in self._scaler.scale_],
        }

    def set_scaling(self, scaling):
        """从 ``get_scaling`` 的结果恢复标准化参数（None 表示清除）。

        异常:
            ConfigurationError: 参数缺失、长度不一致或标准差非正
        """
        if scaling is None:
            self._scaler = None
            return
        try:
            mean = np.asarray(scaling['mean'], dtype=np.float64)
            scale = np.asarray(scaling['scale'], dtype=np.float64)
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError('Malformed scaling record: {!r}'.format(scaling)) from exc
        if mean.ndim != 1 or mean.size == 0 or mean.shape != scale.shape or not np.all(scale > 0):
            raise ConfigurationError('Malformed scaling record: {!r}'.format(scaling))
        scaler = StandardScaler(with_mean=True, with_std=True)
        scaler.mean_ = mean
        scaler.scale_ = scale
        scaler.var_ = scale ** 2
        scaler.n_features_in_ = int(mean.size)
        scaler.n_samples_seen_ = 0
        self._scaler = scaler

    def render(self, descriptor):
        """把描述子渲染为可视化图像。"""
        raise NotImplementedError('{} does not support rendering'.format(type(self).__name__))

    def render_pos_neg_components(self, template):
        """分别渲染模板的正分量与负分量。

        返回:
            tuple: ``(positive_image, negative_image)``
        """
        template = np.asarray(template, dtype=np.float32)
        positive = self.render(np.maximum(template, 0.0))
        negative = self.render(np.maximum(-template, 0.0))
        return positive, negative

    def to_dict(self):
        record = {
            'feature_type': self.get_feature_type(),
            'params': self.get_parameters(),
        }
        scaling = self.get_scaling()
        if scaling is not None:
            record['scaling'] = scaling
        return record

    def save(self, stream):
        """把特征类型与参数以 JSON 写入文本流。"""
        json.dump(self.to_dict(), stream, ensure_ascii=False, indent=2)

    def save_to_file(self, path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open('w', encoding='utf-8') as handle:
            self.save(handle)

    @staticmethod
    def create(feature_type=None, params=None):
        """按特征类型名构造特征提取器。

        参数:
            feature_type: str 或 None；为 None 时读取 ``params['feature_type']``，默认为 'hog'
            params: dict 或 None，特征参数

        异常:
            ConfigurationError: 未知的特征类型或非法参数
        """
        if params is not None and not isinstance(params, dict):
            raise ConfigurationError('Feature parameters must be a dict, got {}'.format(type(params).__name__))
        params = dict(params or {})
        tagged = params.pop('feature_type', None)
        if feature_type is None:
            feature_type = tagged or DEFAULT_FEATURE_TYPE
        elif tagged is not None and tagged != feature_type:
            raise ConfigurationError(
                'Conflicting feature types: {} vs {}'.format(feature_type, tagged)
            )
        cls = _lookup_extractor_class(feature_type)
        return cls(params)

    @staticmethod
    def from_dict(record):
        if not isinstance(record, dict) or 'feature_type' not in record:
            raise ConfigurationError('Feature record must be a dict with a "feature_type" key')
        extractor = FeatureExtractor.create(record['feature_type'], record.get('params') or {})
        extractor.set_scaling(record.get('scaling'))
        return extractor

    @staticmethod
    def load(stream):
        """从文本流读取特征类型与参数，并重建对应的特征提取器。"""
        try:
            record = json.load(stream)
        except json.JSONDecodeError as exc:
            raise ConfigurationError('Failed to decode feature record: {}'.format(exc)) from exc
        return FeatureExtractor.from_dict(record)

    @staticmethod
    def load_from_file(path):
        with Path(path).open('r', encoding='utf-8') as handle:
            return FeatureExtractor.load(handle)

    def __repr__(self):
        params = ', '.join('{}={!r}'.format(k, v) for k, v in sorted(self.get_parameters().items()))
        return '{}({})'.format(type(self).__name__, params)

import logging
from pathlib import Path

import joblib
import numpy as np

from svm_detector.utils.errors import ValidationError


LOGGER = logging.getLogger('feature_extractor')

DEFAULT_SPLITS = ('train', 'val', 'test')

IMAGE_PATTERNS = ('*.jpg', '*.jpeg', '*.png', '*.bmp', '*.pgm', '*.ppm')

NEGATIVE_LABEL = -1
POSITIVE_LABEL = 1


def collect_image_paths_and_labels(dataset_dir, split='train', positive_dirname='positive',
                                   negative_dirname='negative'):
    """收集数据集分割中的正/负样本窗口图像路径与标签。

    参数:
        dataset_dir: 数据集根目录
        split: 分割名称 (train/val/test)
        positive_dirname: 正样本子目录名
        negative_dirname: 负样本子目录名

    返回:
        tuple: ``(paths, labels)`` 列表，负样本标签为 -1，正样本标签为 +1

    异常:
        FileNotFoundError: 当分割目录不存在时抛出
    """
    split_dir = Path(dataset_dir) / split
    if not split_dir.exists():
        raise FileNotFoundError('数据集分割目录不存在: {}'.format(split_dir))

    paths = []
    labels = []
    class_map = ((negative_dirname, NEGATIVE_LABEL), (positive_dirname, POSITIVE_LABEL))

    for class_name, label in class_map:
        class_dir = split_dir / class_name
        if not class_dir.exists():
            continue
        found = set()
        for pattern in IMAGE_PATTERNS:
            found.update(class_dir.glob(pattern))
        for image_path in sorted(found):
            paths.append(str(image_path))
            labels.append(label)

    return paths, labels


def save_features_to_file(descriptors, labels, feature_info, save_path):
    """保存描述子列表、标签与元数据。

    参数:
        descriptors: list，描述子（形状一致）
        labels: list 或 None，对应标签
        feature_info: dict，额外记录的特征信息（特征类型与参数等）
        save_path: joblib 文件保存路径
    """
    save_path = Path(save_path)
    save_path.parent.mkdir(parents=True, exist_ok=True)
    features = np.stack([np.asarray(d, dtype=np.float32) for d in descriptors]) if descriptors else np.zeros((0,))
    payload = {
        'features': features,
        'labels': None if labels is None else np.asarray(labels),
        'feature_info': feature_info,
        'descriptor_shape': tuple(features.shape[1:]),
        'n_samples': int(features.shape[0]) if features.ndim > 1 else 0,
    }
    joblib.dump(payload, save_path)
    LOGGER.info('💾 特征已保存: %s', save_path)


def load_features(features_path):
    """读取 ``save_features_to_file`` 写出的特征文件。

    返回:
        tuple: ``(descriptors, labels, feature_info)``

    异常:
        FileNotFoundError: 特征文件不存在
        ValidationError: 文件格式不符或特征与标签数量不匹配
    """
    features_path = Path(features_path)
    if not features_path.exists():
        raise FileNotFoundError('特征文件不存在: {}'.format(features_path))
    data = joblib.load(features_path)
    if not isinstance(data, dict) or 'features' not in data:
        raise ValidationError('无法解析特征文件格式: {}'.format(features_path))
    features = np.asarray(data['features'])
    labels = data.get('labels')
    if labels is not None and len(labels) != len(features):
        raise ValidationError('特征和标签数量不匹配: X={}, y={}'.format(len(features), len(labels)))
    descriptors = [features[i] for i in range(len(features))] if features.ndim > 1 else []
    return descriptors, labels, data.get('feature_info') or {}


def extract_split_features(extractor, dataset_dir, split, positive_dirname='positive',
                           negative_dirname='negative', n_jobs=None, cache_dir=None):
    """提取一个数据集分割的描述子；给出 cache_dir 时优先读取/写入缓存。

    缓存只在特征类型与参数完全一致时复用。

    返回:
        tuple: ``(descriptors, labels)``；分割不存在或为空时返回 ``(None, None)``
    """
    cache_path = None
    if cache_dir is not None:
        cache_path = Path(cache_dir) / '{}_features.joblib'.format(split)
        if cache_path.exists():
            descriptors, labels, info = load_features(cache_path)
            if info.get('extractor') == extractor.to_dict():
                LOGGER.info('📥 使用缓存特征: %s (%d 个样本)', cache_path, len(descriptors))
                return descriptors, None if labels is None else list(labels)
            LOGGER.info('⚠️ 缓存特征配置不一致，重新提取: %s', cache_path)

    try:
        image_paths, labels = collect_image_paths_and_labels(
            dataset_dir, split, positive_dirname=positive_dirname, negative_dirname=negative_dirname
        )
    except FileNotFoundError as exc:
        LOGGER.warning('跳过 %s: %s', split, exc)
        return None, None
    if not image_paths:
        LOGGER.warning('%s 分割没有图像，跳过', split)
        return None, None

    descriptors = extractor.extract_batch(image_paths, n_jobs=n_jobs, verbose=True)
    if cache_path is not None:
        save_features_to_file(descriptors, labels, {'extractor': extractor.to_dict(), 'split': split}, cache_path)
    return descriptors, labels

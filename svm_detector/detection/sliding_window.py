"""
滑动窗口（卷积式）评估。

对与权重模板同形状的裁剪描述子，线性 SVM 的得分为 ``dot(descriptor, weights) - bias``。
对覆盖整幅图像的稠密描述子图，把点积拆成逐通道的二维互相关：
每个通道用对应的权重切片作为核与描述子图做互相关，逐点求和后统一减去偏置，
即可一次得到所有窗口位置的得分，相邻窗口之间的重叠计算被复用。

边界处理：只输出完整落在描述子图内的窗口，响应图形状为 ``(H - h + 1, W - w + 1)``，
``response[y, x]`` 对应左上角 cell 为 ``(y, x)`` 的窗口；描述子图在任一空间轴上小于模板时返回空响应图。
"""

import logging

import cv2
import numpy as np

from svm_detector.utils.errors import ValidationError
from svm_detector.utils.parallel import map_ordered


LOGGER = logging.getLogger('sliding_window')


def _as_channels_last(array, name):
    array = np.asarray(array, dtype=np.float64)
    if array.ndim == 2:
        return array[:, :, np.newaxis]
    if array.ndim != 3:
        raise ValidationError('{} must be 2D or 3D, got shape {}'.format(name, array.shape))
    return array


class SlidingWindowEvaluator:
    """在稠密描述子图（及描述子金字塔）上评估线性 SVM。

    评估器本身不保存任何跨调用状态，每次调用相互独立。

    参数:
        n_jobs: 金字塔逐层评估时的线程数（默认: 1，即顺序执行）
    """

    def __init__(self, n_jobs=1):
        self.n_jobs = n_jobs

    @staticmethod
    def response_shape(map_shape, template_shape):
        """完整窗口的数量（行、列），不足时为 0。"""
        return (
            max(0, map_shape[0] - template_shape[0] + 1),
            max(0, map_shape[1] - template_shape[1] + 1),
        )

    @staticmethod
    def correlate(descriptor_map, weights, bias):
        """逐通道互相关并求和，再减去偏置。

        参数:
            descriptor_map: 形状为 (H, W, C) 或 (H, W) 的描述子图
            weights: 形状为 (h, w, C) 或 (h, w) 的权重模板
            bias: 偏置项（从每个位置的得分中减去）

        返回:
            np.ndarray: 形状为 (H - h + 1, W - w + 1) 的响应图

        异常:
            ValidationError: 维度或通道数不一致
        """
        feature_map = _as_channels_last(descriptor_map, 'descriptor_map')
        template = _as_channels_last(weights, 'weights')
        if feature_map.shape[2] != template.shape[2]:
            raise ValidationError(
                'Descriptor map has {} channels but the weight template has {}'.format(
                    feature_map.shape[2], template.shape[2]
                )
            )

        out_rows, out_cols = SlidingWindowEvaluator.response_shape(feature_map.shape, template.shape)
        if out_rows == 0 or out_cols == 0:
            LOGGER.debug('描述子图 %s 小于模板 %s，返回空响应图', feature_map.shape, template.shape)
            return np.zeros((out_rows, out_cols), dtype=np.float64)

        response = np.zeros(feature_map.shape[:2], dtype=np.float64)
        for channel in range(feature_map.shape[2]):
            # anchor=(0, 0)：dst(y, x) = sum(kernel(i, j) * src(y + i, x + j))
            response += cv2.filter2D(
                np.ascontiguousarray(feature_map[:, :, channel]),
                cv2.CV_64F,
                np.ascontiguousarray(template[:, :, channel]),
                anchor=(0, 0),
                borderType=cv2.BORDER_CONSTANT,
            )
        return response[:out_rows, :out_cols] - float(bias)

    def evaluate(self, descriptor_map, classifier):
        """用分类器的权重模板与偏置评估整个描述子图。

        异常:
            StateError: 分类器没有模型
            ModelError: 分类器不是线性核
            ValidationError: 描述子图与模板维度不一致
        """
        weights = classifier.get_weights()
        bias = classifier.get_bias_term()
        return self.correlate(descriptor_map, weights, bias)

    def evaluate_pyramid(self, pyramid, classifier):
        """对描述子金字塔逐层评估，返回与金字塔顺序一致的响应图列表。"""
        weights = classifier.get_weights()
        bias = classifier.get_bias_term()
        responses = map_ordered(
            lambda level: self.correlate(level, weights, bias),
            pyramid,
            n_jobs=self.n_jobs,
        )
        LOGGER.debug('金字塔评估完成: %d 层', len(responses))
        return responses

"""
HOG（Histogram of Oriented Gradients）特征提取。

每个互不重叠的 ``cell_size x cell_size`` 像素 cell 统计一个按梯度幅值加权的方向直方图，
所有 cell 按行优先排列、通道在最后，得到形状为
``(height // cell_size, width // cell_size, n_angular_bins)`` 的描述子。

边界处理：图像尺寸不能被 cell_size 整除时，末尾不足一个 cell 的行/列直接丢弃（不做填充）。
"""

import numpy as np
import cv2
from skimage import draw

from svm_detector.features.base import FeatureExtractor, register_feature_extractor
from svm_detector.utils.errors import ConfigurationError, ValidationError


def _as_positive_int(value, name):
    # 参数可能来自字符串形式的配置，例如 {"cell_size": "6"}
    text = value.strip() if isinstance(value, str) else None
    try:
        number = int(text if text is not None else value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError('{} must be an integer, got {!r}'.format(name, value)) from exc
    if number < 1 or (text is None and number != value):
        raise ConfigurationError('{} must be a positive integer, got {!r}'.format(name, value))
    return number


def _as_bool(value, name):
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.lower() in ('true', 'false', '1', '0'):
        return value.lower() in ('true', '1')
    raise ConfigurationError('{} must be a boolean, got {!r}'.format(name, value))


def to_grayscale(image):
    """把 BGR/BGRA/灰度图像转换为 float32 灰度图。"""
    image = np.asarray(image)
    if image.ndim == 3:
        channels = image.shape[2]
        if channels == 1:
            image = image[:, :, 0]
        elif channels == 3:
            image = cv2.cvtColor(image.astype(np.float32), cv2.COLOR_BGR2GRAY)
        elif channels == 4:
            image = cv2.cvtColor(image.astype(np.float32), cv2.COLOR_BGRA2GRAY)
        else:
            raise ValidationError('Unsupported number of image channels: {}'.format(channels))
    elif image.ndim != 2:
        raise ValidationError('Image must be 2D or 3D, got shape {}'.format(image.shape))
    return np.ascontiguousarray(image, dtype=np.float32)


@register_feature_extractor('hog')
class HOGFeatureExtractor(FeatureExtractor):
    """HOG 特征提取器。

    参数（params 字典的键，数值也可以是 "6"、"true" 这样的字符串）:
        n_angular_bins: 方向 bin 数量（默认: 18）
        unsigned_gradients: 为 True 时只考虑 180° 以内的方向（默认: True）
        cell_size: cell 边长，单位为像素（默认: 6）

    示例:
        >>> extractor = HOGFeatureExtractor({'cell_size': 8})
        >>> descriptor = extractor.extract(image_bgr)
        >>> descriptor.shape
        (image_h // 8, image_w // 8, 18)
    """

    @classmethod
    def get_default_parameters(cls):
        return {
            'n_angular_bins': 18,
            'unsigned_gradients': True,
            'cell_size': 6,
        }

    def __init__(self, params=None):
        super().__init__(params)
        self._n_angular_bins = _as_positive_int(self._params['n_angular_bins'], 'n_angular_bins')
        self._unsigned_gradients = _as_bool(self._params['unsigned_gradients'], 'unsigned_gradients')
        self._cell_size = _as_positive_int(self._params['cell_size'], 'cell_size')
        self._params = {
            'n_angular_bins': self._n_angular_bins,
            'unsigned_gradients': self._unsigned_gradients,
            'cell_size': self._cell_size,
        }

    @property
    def n_angular_bins(self):
        return self._n_angular_bins

    @property
    def cell_size(self):
        return self._cell_size

    @property
    def orientation_span(self):
        return 180.0 if self._unsigned_gradients else 360.0

    def scale_factor(self):
        return 1.0 / float(self._cell_size)

    def descriptor_shape(self, image_shape):
        """给定图像尺寸 (h, w, ...) 时描述子的形状。"""
        return (image_shape[0] // self._cell_size, image_shape[1] // self._cell_size, self._n_angular_bins)

    def extract(self, image):
        gray = to_grayscale(image)
        cell = self._cell_size
        n_bins = self._n_angular_bins
        n_rows, n_cols = gray.shape[0] // cell, gray.shape[1] // cell
        if n_rows == 0 or n_cols == 0:
            raise ValidationError(
                'Image of shape {} is smaller than one {}x{} cell'.format(gray.shape, cell, cell)
            )

        # [-1, 0, 1] 中心差分，不做高斯平滑
        dx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=1)
        dy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=1)
        magnitude, angle = cv2.cartToPolar(dx, dy, angleInDegrees=True)  # 角度范围为 [0, 360)
        if self._unsigned_gradients:
            angle = angle % 180.0

        bin_width = self.orientation_span / n_bins
        bin_indices = np.floor(angle / bin_width).astype(np.int64)
        bin_indices = np.clip(bin_indices, 0, n_bins - 1)

        height, width = n_rows * cell, n_cols * cell
        magnitude = magnitude[:height, :width]
        bin_indices = bin_indices[:height, :width]

        cell_index = (np.arange(height) // cell)[:, None] * n_cols + (np.arange(width) // cell)[None, :]
        flat_index = cell_index * n_bins + bin_indices
        hist = np.bincount(
            flat_index.ravel(),
            weights=magnitude.ravel().astype(np.float64),
            minlength=n_rows * n_cols * n_bins,
        )
        return hist.reshape(n_rows, n_cols, n_bins).astype(np.float32)

    def render(self, descriptor, glyph_size=None):
        """把描述子渲染成“刺猬图”：每个 cell 中每个 bin 画一条垂直于梯度方向的线段。

        参数:
            descriptor: 形状为 (rows, cols, n_angular_bins) 的描述子（非负）
            glyph_size: 每个 cell 渲染的像素边长（默认: max(cell_size, 9)）

        返回:
            np.ndarray: float32 灰度图，取值范围 [0, 1]
        """
        descriptor = np.asarray(descriptor, dtype=np.float32)
        if descriptor.ndim != 3 or descriptor.shape[2] != self._n_angular_bins:
            raise ValidationError(
                'Expected descriptor of shape (rows, cols, {}), got {}'.format(self._n_angular_bins, descriptor.shape)
            )
        rows, cols, n_bins = descriptor.shape
        glyph = int(glyph_size or max(self._cell_size, 9))
        canvas = np.zeros((rows * glyph, cols * glyph), dtype=np.float32)
        peak = float(descriptor.max()) if descriptor.size else 0.0
        if peak <= 0:
            return canvas

        radius = (glyph - 1) / 2.0
        bin_width = self.orientation_span / n_bins
        for b in range(n_bins):
            theta = np.deg2rad((b + 0.5) * bin_width)
            # 梯度方向为 (row, col) = (sin, cos)，边缘方向与之垂直
            d_row = radius * np.cos(theta)
            d_col = -radius * np.sin(theta)
            for r in range(rows):
                for c in range(cols):
                    strength = descriptor[r, c, b] / peak
                    if strength <= 0:
                        continue
                    center_row = r * glyph + radius
                    center_col = c * glyph + radius
                    rr, cc, val = draw.line_aa(
                        int(round(center_row - d_row)), int(round(center_col - d_col)),
                        int(round(center_row + d_row)), int(round(center_col + d_col)),
                    )
                    canvas[rr, cc] = np.maximum(canvas[rr, cc], val * strength)
        return canvas

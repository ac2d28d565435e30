"""
HOG 检测器 - 线性 SVM 分类器

该模块实现了基于 scikit-learn（libsvm SMO 求解器）的二分类支持向量机，
负责模型的训练、预测、权重/偏置重建以及序列化。

主要功能:
    - train: 描述子在求解器边界转换为稀疏 CSR 矩阵后训练 C-SVC
    - predict / predict_batch: 返回原始决策值 ``sum(coef * K(sv, x)) - bias``（不做阈值化）
    - get_weights / get_bias_term: 线性核下重建与描述子同形状的权重模板
    - save / load: 以 joblib 格式读写完整的模型记录
"""
import os
from pathlib import Path

import joblib
import numpy as np
from scipy import sparse
from sklearn.metrics.pairwise import pairwise_kernels
from sklearn.svm import SVC

from svm_detector.models.sparse import SparseVector, to_csr
from svm_detector.utils.config import KERNEL_CHOICES, SVMConfig
from svm_detector.utils.errors import ConfigurationError, ModelError, StateError, ValidationError
from svm_detector.utils.logger import Logger
from svm_detector.utils.ml_training import compute_classification_metrics


MODEL_FORMAT_VERSION = 1

_PAYLOAD_KEYS = (
    'format_version',
    'kernel',
    'support_vectors',
    'dual_coef',
    'rho',
    'classes',
    'descriptor_shape',
    'metadata',
)


class TrainedModel:
    """已求解的 SVM 模型记录（只读）。

    决策函数为 ``dual_coef · K(support_vectors, x) - rho``；
    线性核下可重建原始空间的权重 ``w = sum(dual_coef[s] * support_vectors[s])``。

    参数:
        kernel: dict，包含 kernel/gamma/degree/coef0
        support_vectors: CSR 矩阵，形状为 (n_support, dim)
        dual_coef: 一维数组，长度为 n_support
        rho: 偏置项（决策值中被减去的常数）
        classes: 两个类别标签，决策值为正对应 classes[1]
        descriptor_shape: 训练描述子的形状
        metadata: dict，求解相关的附加信息（C、样本数等）
    """

    def __init__(self, kernel, support_vectors, dual_coef, rho, classes, descriptor_shape, metadata=None):
        self.kernel = dict(kernel)
        self.support_vectors = sparse.csr_matrix(support_vectors, dtype=np.float64)
        self.dual_coef = np.asarray(dual_coef, dtype=np.float64).ravel()
        self.rho = float(rho)
        self.classes = np.asarray(classes)
        self.descriptor_shape = tuple(int(v) for v in descriptor_shape)
        self.metadata = dict(metadata or {})

    @property
    def n_support(self):
        return int(self.support_vectors.shape[0])

    @property
    def dim(self):
        return int(self.support_vectors.shape[1])

    @property
    def is_linear(self):
        return self.kernel['kernel'] == 'linear'

    def decision_values(self, X):
        K = pairwise_kernels(
            self.support_vectors,
            X,
            metric=self.kernel['kernel'],
            filter_params=True,
            gamma=self.kernel.get('gamma'),
            degree=self.kernel.get('degree'),
            coef0=self.kernel.get('coef0'),
        )
        return self.dual_coef @ np.asarray(K) - self.rho

    def weights(self):
        if not self.is_linear:
            raise ModelError(
                'Weight template is only defined for a linear kernel, model uses {}'.format(self.kernel['kernel'])
            )
        w = self.support_vectors.T @ self.dual_coef
        return np.asarray(w, dtype=np.float64).reshape(self.descriptor_shape)

    @classmethod
    def from_estimator(cls, estimator, descriptor_shape, kernel, metadata=None):
        dual_coef = estimator.dual_coef_
        if sparse.issparse(dual_coef):
            dual_coef = dual_coef.toarray()
        dual_coef = np.asarray(dual_coef, dtype=np.float64)
        if dual_coef.ndim != 2 or dual_coef.shape[0] != 1:
            raise ModelError('Expected a binary SVM, got dual coefficients of shape {}'.format(dual_coef.shape))
        support_vectors = sparse.csr_matrix(estimator.support_vectors_, dtype=np.float64)
        if support_vectors.shape[0] == 0:
            raise ModelError('SVM solver returned no support vectors')
        metadata = dict(metadata or {})
        metadata['n_support_per_class'] = [int(v) for v in estimator.n_support_]
        return cls(
            kernel=kernel,
            support_vectors=support_vectors,
            dual_coef=dual_coef[0],
            # sklearn 的 decision_function = dual_coef_ · K + intercept_
            rho=-float(estimator.intercept_[0]),
            classes=estimator.classes_,
            descriptor_shape=descriptor_shape,
            metadata=metadata,
        )

    def to_payload(self):
        return {
            'format_version': MODEL_FORMAT_VERSION,
            'kernel': dict(self.kernel),
            'support_vectors': self.support_vectors,
            'dual_coef': self.dual_coef,
            'rho': self.rho,
            'classes': self.classes,
            'descriptor_shape': list(self.descriptor_shape),
            'metadata': dict(self.metadata),
        }

    @classmethod
    def from_payload(cls, payload):
        """从反序列化得到的字典重建模型。

        异常:
            ModelError: 记录缺少字段、版本不符或各字段之间不一致
        """
        if not isinstance(payload, dict):
            raise ModelError('SVM model record must be a dict, got {}'.format(type(payload).__name__))
        missing = [key for key in _PAYLOAD_KEYS if key not in payload]
        if missing:
            raise ModelError('SVM model record is missing fields: {}'.format(missing))
        if payload['format_version'] != MODEL_FORMAT_VERSION:
            raise ModelError('Unsupported SVM model format version: {}'.format(payload['format_version']))
        kernel = payload['kernel']
        if not isinstance(kernel, dict) or kernel.get('kernel') not in KERNEL_CHOICES:
            raise ModelError('Invalid kernel descriptor: {!r}'.format(kernel))
        try:
            model = cls(
                kernel=kernel,
                support_vectors=payload['support_vectors'],
                dual_coef=payload['dual_coef'],
                rho=payload['rho'],
                classes=payload['classes'],
                descriptor_shape=payload['descriptor_shape'],
                metadata=payload['metadata'],
            )
        except (TypeError, ValueError) as exc:
            raise ModelError('Malformed SVM model record: {}'.format(exc)) from exc
        if model.dual_coef.size != model.n_support or model.n_support == 0:
            raise ModelError('Support vector count does not match dual coefficient count')
        if int(np.prod(model.descriptor_shape)) != model.dim:
            raise ModelError(
                'Descriptor shape {} does not match support vector dimension {}'.format(model.descriptor_shape, model.dim)
            )
        if not np.isfinite(model.rho):
            raise ModelError('SVM bias term is not finite')
        return model


class LinearClassifier:
    """二分类 SVM（默认线性核）。

    持有唯一的 TrainedModel：由 train/load 创建，重新训练或重新加载前先释放旧模型。
    训练与加载会修改模型，不能与同一实例上的其他 train/load 并发调用；
    训练完成后的预测与权重/偏置查询是只读操作。

    参数:
        params: SVMConfig，train 未显式给出求解器参数时使用（默认: 线性核，C=0.01）
    """

    def __init__(self, params=None):
        self.params = params or SVMConfig()
        self.logger = None
        self._model = None
        self._problem = None

    @classmethod
    def from_file(cls, path, params=None):
        classifier = cls(params)
        classifier.load(path)
        return classifier

    def _get_logger(self):
        """获取logger，如果不存在则创建一个默认的"""
        if self.logger is None:
            self.logger = Logger(name="svm_classifier")
        return self.logger

    @property
    def model(self):
        return self._model

    @property
    def is_trained(self):
        return self._model is not None

    @property
    def descriptor_shape(self):
        return None if self._model is None else self._model.descriptor_shape

    def release(self):
        """释放当前模型与训练缓冲区。"""
        self._model = None
        self._problem = None

    def _require_model(self, action):
        if self._model is None:
            raise StateError(
                'Cannot {}: there is no SVM model. Either load one from file or train one first.'.format(action)
            )
        return self._model

    @staticmethod
    def _as_descriptor_list(batch):
        return [np.asarray(descriptor, dtype=np.float64) for descriptor in batch]

    @staticmethod
    def _check_uniform_shape(descriptors):
        shape = descriptors[0].shape
        for idx, descriptor in enumerate(descriptors):
            if descriptor.shape != shape:
                raise ValidationError(
                    'Descriptor {} has shape {}, expected {}'.format(idx, descriptor.shape, shape)
                )
        return shape

    @staticmethod
    def _check_model_shape(descriptor, model):
        if descriptor.shape != model.descriptor_shape:
            raise ValidationError(
                'Descriptor shape {} does not match model shape {}'.format(descriptor.shape, model.descriptor_shape)
            )

    @staticmethod
    def _build_problem(labels, descriptors):
        """构建求解器输入：每个描述子一个稀疏行，标签为目标向量。"""
        try:
            y = np.asarray(labels, dtype=np.float64).ravel()
        except (TypeError, ValueError) as exc:
            raise ValidationError('Labels must be numeric: {}'.format(exc)) from exc
        vectors = [SparseVector.from_descriptor(descriptor) for descriptor in descriptors]
        X = to_csr(vectors, dim=descriptors[0].size)
        return X, y

    @staticmethod
    def _resolve_gamma(params, X):
        gamma = params.gamma
        n_features = X.shape[1]
        if gamma == 'scale':
            mean = X.mean()
            variance = X.multiply(X).mean() - mean ** 2
            return 1.0 / (n_features * variance) if variance > 0 else 1.0
        if gamma == 'auto':
            return 1.0 / n_features
        try:
            return float(gamma)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError('Invalid gamma value: {!r}'.format(gamma)) from exc

    @staticmethod
    def _build_model(params, gamma):
        """构建SVM分类器

        返回:
            SVC分类器对象
        """
        return SVC(
            kernel=params.kernel,
            C=params.C,
            gamma=gamma,
            degree=params.degree,
            coef0=params.coef0,
            tol=params.tol,
            cache_size=params.cache_size,
            shrinking=params.shrinking,
            max_iter=params.max_iter,
            class_weight=params.class_weight,
        )

    def train(self, labels, batch, params=None):
        """训练 SVM 模型

        参数:
            labels: 标签序列，长度与 batch 相同（通常为 -1/+1）
            batch: 描述子序列，所有描述子形状一致
            params: SVMConfig（可选，默认使用构造时的配置）

        返回:
            self

        异常:
            ValidationError: 标签与描述子数量不一致、描述子形状不一致或类别数超过 2
            ModelError: 求解器未能产出模型（例如只有一个类别）
        """
        params = params or self.params
        logger = self._get_logger()
        descriptors = self._as_descriptor_list(batch)
        if len(labels) != len(descriptors):
            raise ValidationError(
                'Label count ({}) differs from descriptor count ({})'.format(len(labels), len(descriptors))
            )
        if not descriptors:
            raise ValidationError('Cannot train on an empty descriptor batch')
        shape = self._check_uniform_shape(descriptors)
        if params.kernel not in KERNEL_CHOICES:
            raise ConfigurationError('Unsupported kernel: {}'.format(params.kernel))

        self.release()
        self._problem = self._build_problem(labels, descriptors)
        X, y = self._problem
        classes = np.unique(y)
        if classes.size > 2:
            self.release()
            raise ValidationError('Only binary labels are supported, got classes {}'.format(classes.tolist()))
        logger.info('🔧 求解问题构建完成: {} 个样本 | {} 维 | nnz={}'.format(X.shape[0], X.shape[1], X.nnz))

        gamma = self._resolve_gamma(params, X)
        kernel = {
            'kernel': params.kernel,
            'gamma': gamma,
            'degree': params.degree,
            'coef0': params.coef0,
        }
        metadata = {'C': params.C, 'n_samples': int(X.shape[0])}
        estimator = self._build_model(params, gamma)
        try:
            estimator.fit(X, y)
            model = TrainedModel.from_estimator(estimator, shape, kernel, metadata)
        except ValueError as exc:
            raise ModelError('SVM solver failed to produce a model: {}'.format(exc)) from exc
        finally:
            self._problem = None

        self._model = model
        logger.info('✅ 训练完成: {} 个支持向量 | bias={:.6f}'.format(model.n_support, model.rho))
        return self

    def predict(self, descriptor):
        """返回单个描述子的原始决策值（未阈值化）。"""
        model = self._require_model('predict')
        descriptor = np.asarray(descriptor, dtype=np.float64)
        self._check_model_shape(descriptor, model)
        X = to_csr([SparseVector.from_descriptor(descriptor)], dim=model.dim)
        return float(model.decision_values(X)[0])

    def predict_batch(self, batch):
        """返回与 batch 一一对应的决策值数组。"""
        model = self._require_model('predict')
        descriptors = self._as_descriptor_list(batch)
        for descriptor in descriptors:
            self._check_model_shape(descriptor, model)
        if not descriptors:
            return np.zeros(0, dtype=np.float64)
        X = to_csr([SparseVector.from_descriptor(d) for d in descriptors], dim=model.dim)
        return model.decision_values(X)

    def get_bias_term(self):
        return self._require_model('get the SVM bias term').rho

    def get_weights(self):
        """重建线性核下的权重模板，形状与训练描述子相同。"""
        return self._require_model('get the SVM weights').weights()

    def render_weights(self, feature_extractor):
        """渲染权重模板的正/负分量（偏置均匀分摊到模板的每个元素上）。

        返回:
            tuple: ``(positive_image, negative_image)``
        """
        weights = self.get_weights()
        template = weights - self.get_bias_term() / weights.size
        return feature_extractor.render_pos_neg_components(template)

    def evaluate(self, labels, batch, name):
        """在给定数据集上评估模型性能

        参数:
            labels: 真实标签
            batch: 描述子序列
            name: 数据集名称（用于打印信息）

        返回:
            dict: 主要分类指标（accuracy/precision/recall/f1，及 auc 等）
        """
        model = self._require_model('evaluate')
        scores = self.predict_batch(batch)
        negative_label, positive_label = model.classes[0], model.classes[-1]
        y_pred = np.where(scores >= 0, positive_label, negative_label)
        metrics_dict = compute_classification_metrics(
            np.asarray(labels), y_pred, y_proba=scores, positive_label=positive_label, zero_division=0
        )
        msg = "{} | acc={:.4f}, prec={:.4f}, rec={:.4f}, f1={:.4f}".format(
            name, metrics_dict['accuracy'], metrics_dict['precision'], metrics_dict['recall'], metrics_dict['f1']
        )
        self._get_logger().info(msg)
        return metrics_dict

    def save(self, target):
        """保存模型到文件路径或二进制流

        异常:
            StateError: 尚无模型
            OSError: 文件无法打开或写入
        """
        model = self._require_model('save')
        payload = model.to_payload()
        if isinstance(target, (str, os.PathLike)):
            target = Path(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            joblib.dump(payload, str(target))
            self._get_logger().info('💾 模型已保存至: {}'.format(target))
        else:
            joblib.dump(payload, target)

    def load(self, source):
        """从文件路径或二进制流加载模型（旧模型先被释放）。

        注意: joblib 基于 pickle，只应加载可信来源的模型文件。

        异常:
            OSError: 文件无法打开或读取
            ModelError: 内容无法解码为 SVM 模型
        """
        self.release()
        if isinstance(source, (str, os.PathLike)):
            source = str(source)
        try:
            payload = joblib.load(source)
        except OSError:
            raise
        except Exception as exc:
            raise ModelError('Failed to decode SVM model: {}'.format(exc)) from exc
        self._model = TrainedModel.from_payload(payload)
        return self

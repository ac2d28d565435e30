"""检测器训练与评估的可视化工具。

所有函数都把图像写入 ``save_path``（未给出时使用默认文件名）并返回实际路径。
"""

from pathlib import Path

import numpy as np
import matplotlib
from sklearn import metrics

matplotlib.use('Agg')
import matplotlib.pyplot as plt


def _prepare_output_path(save_path, default_name):
    """解析输出路径并创建父目录。

    参数:
        save_path: str、Path 或 None（None 时使用 default_name）
        default_name: 默认文件名（例如 "roc_curve.png"）
    """
    output_path = Path(save_path if save_path is not None else default_name)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path


def _save_figure(fig, save_path, default_name):
    output_path = _prepare_output_path(save_path, default_name)
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


def plot_confusion_matrix(confusion_matrix, class_names=None, normalize=False, title=None, save_path=None):
    """绘制混淆矩阵。

    参数:
        confusion_matrix: 形状为 (n_classes, n_classes) 的计数矩阵
        class_names: 类别名称，例如 ["negative", "positive"]
        normalize: 为 True 时按真实类别（行）归一化
        title: 图标题
        save_path: 图像保存路径
    """
    counts = np.asarray(confusion_matrix)
    if counts.ndim != 2 or counts.shape[0] != counts.shape[1]:
        raise ValueError("confusion_matrix must be a square matrix")

    values = counts
    if normalize:
        totals = counts.sum(axis=1, keepdims=True).astype(float)
        values = np.divide(counts, totals, out=np.zeros(counts.shape, dtype=float), where=totals > 0)

    fig, ax = plt.subplots(figsize=(5, 4))
    display = metrics.ConfusionMatrixDisplay(confusion_matrix=values, display_labels=class_names)
    display.plot(ax=ax, cmap='Blues', values_format=".2f" if normalize else "d", colorbar=True)
    ax.set_title(title or "Confusion matrix")
    return _save_figure(fig, save_path, "confusion_matrix.png")


def plot_roc_curve(y_true, y_scores, pos_label=1, title=None, save_path=None):
    """以 SVM 决策值为得分绘制 ROC 曲线。"""
    fig, ax = plt.subplots(figsize=(5, 4))
    metrics.RocCurveDisplay.from_predictions(y_true, y_scores, pos_label=pos_label, ax=ax, name="SVM")
    ax.plot([0, 1], [0, 1], linestyle=':', color='gray')
    ax.set_title(title or "ROC")
    ax.grid(ls=':', alpha=0.4)
    return _save_figure(fig, save_path, "roc_curve.png")


def plot_score_distribution(y_true, y_scores, pos_label=1, title=None, save_path=None):
    """按类别绘制排序后的决策值，理想情况下正样本得分 > 0，负样本得分 < 0。"""
    y_true = np.asarray(y_true)
    y_scores = np.asarray(y_scores, dtype=float)

    fig, ax = plt.subplots(figsize=(6, 4))
    for mask, color, name in ((y_true == pos_label, "#54a24b", "positive"),
                              (y_true != pos_label, "#e45756", "negative")):
        ax.plot(np.sort(y_scores[mask]), color=color, marker='.', label=name)
    ax.axhline(0.0, linestyle=':', color='gray')
    ax.set_xlabel("Sample (sorted by score)")
    ax.set_ylabel("SVM score")
    ax.set_title(title or "Score distribution")
    ax.legend()
    return _save_figure(fig, save_path, "score_distribution.png")


def plot_weight_template(positive_image, negative_image, title=None, save_path=None):
    """并排绘制权重模板的正分量与负分量（HOG 刺猬图）。"""
    fig, axes = plt.subplots(1, 2, figsize=(8, 4))
    for ax, image, name in zip(axes, (positive_image, negative_image), ("positive", "negative")):
        ax.imshow(image, cmap='gray', interpolation='nearest')
        ax.set_title(name)
        ax.axis('off')
    if title:
        fig.suptitle(title)
    return _save_figure(fig, save_path, "weight_template.png")


def plot_response_map(response, title=None, save_path=None):
    """绘制单层滑动窗口响应图。"""
    response = np.asarray(response, dtype=float)
    if response.ndim != 2 or response.size == 0:
        raise ValueError("response must be a non-empty 2D array")
    fig, ax = plt.subplots(figsize=(5, 4))
    image = ax.imshow(response, cmap='jet', interpolation='nearest')
    fig.colorbar(image, ax=ax, fraction=0.046, pad=0.04)
    ax.set_title(title or "Response map")
    return _save_figure(fig, save_path, "response_map.png")

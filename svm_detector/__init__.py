"""HOG 特征 + 线性 SVM 的滑动窗口目标检测器。"""

__version__ = "0.1.0"

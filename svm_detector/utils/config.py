"""
统一配置模块

集中管理特征、SVM 求解器与训练流程的配置，供各处导入使用。
"""

# 统一的模型默认保存路径
DEFAULT_SAVE_PATHS = {
    "svm": "runs/hog_svm/model.joblib",
    "feature": "runs/hog_svm/feature.json",
}

# 支持的核函数（仅 linear 可用于滑动窗口卷积评估）
KERNEL_CHOICES = ["linear", "rbf", "poly", "sigmoid"]


class HOGConfig:
    """HOG 特征参数。

    参数:
        n_angular_bins: 方向直方图的 bin 数量（默认: 18）
        unsigned_gradients: 为 True 时方向按 180° 取模（190° 与 10° 视为相同）
        cell_size: 每个 cell 的边长（像素，默认: 6）
    """

    def __init__(self, n_angular_bins=18, unsigned_gradients=True, cell_size=6):
        self.n_angular_bins = n_angular_bins
        self.unsigned_gradients = unsigned_gradients
        self.cell_size = cell_size

    def to_dict(self):
        return {
            "n_angular_bins": self.n_angular_bins,
            "unsigned_gradients": self.unsigned_gradients,
            "cell_size": self.cell_size,
        }


class SVMConfig:
    """SVM 求解器参数（对应 libsvm 的 C-SVC 参数）。"""

    def __init__(
        self,
        kernel="linear",
        C=0.01,
        gamma="scale",
        degree=3,
        coef0=0.0,
        tol=1e-3,
        cache_size=100,
        shrinking=True,
        max_iter=-1,
        class_weight=None,
    ):
        self.kernel = kernel
        self.C = C
        self.gamma = gamma
        self.degree = degree
        self.coef0 = coef0
        self.tol = tol
        self.cache_size = cache_size
        self.shrinking = shrinking
        self.max_iter = max_iter
        self.class_weight = class_weight

    def to_dict(self):
        return {
            "kernel": self.kernel,
            "C": self.C,
            "gamma": self.gamma,
            "degree": self.degree,
            "coef0": self.coef0,
            "tol": self.tol,
            "cache_size": self.cache_size,
            "shrinking": self.shrinking,
            "max_iter": self.max_iter,
            "class_weight": self.class_weight,
        }


class DetectorTrainConfig:
    """训练流程配置。

    数据集目录结构:
        data_dir/{train,val,test}/{positive,negative}/*.png
    """

    def __init__(
        self,
        data_dir="dataset",
        train_dirname="train",
        val_dirname="val",
        test_dirname="test",
        positive_dirname="positive",
        negative_dirname="negative",
        n_jobs=4,
        seed=42,
    ):
        self.data_dir = data_dir
        self.train_dirname = train_dirname
        self.val_dirname = val_dirname
        self.test_dirname = test_dirname
        self.positive_dirname = positive_dirname
        self.negative_dirname = negative_dirname
        self.n_jobs = n_jobs
        self.seed = seed

    def to_dict(self):
        return {
            "data_dir": self.data_dir,
            "train_dirname": self.train_dirname,
            "val_dirname": self.val_dirname,
            "test_dirname": self.test_dirname,
            "positive_dirname": self.positive_dirname,
            "negative_dirname": self.negative_dirname,
            "n_jobs": self.n_jobs,
            "seed": self.seed,
        }


__all__ = [
    "DEFAULT_SAVE_PATHS",
    "KERNEL_CHOICES",
    "HOGConfig",
    "SVMConfig",
    "DetectorTrainConfig",
]

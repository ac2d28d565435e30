"""
检测器统一日志工具。

库模块直接使用 ``logging.getLogger(name)``；训练脚本与分类器通过 ``Logger``
获得控制台输出，并可为每次训练运行追加一个日志文件。
"""

import logging
from pathlib import Path

__all__ = ["Logger", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level):
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


class Logger:
    """
    ``logging.Logger`` 的轻量封装：

    - 同名 logger 只安装一次控制台输出
    - 给出 log_dir 时追加文件输出（同一文件不会重复追加）
    - debug/info/warning/error/exception/log 直接转发给底层 logger
    """

    def __init__(self, name="svm_detector", log_dir=None, filename="train.log", level="INFO"):
        self.level = _resolve_level(level)
        self._logger = logging.getLogger(name)
        self._formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        if not any(type(h) is logging.StreamHandler for h in self._logger.handlers):
            self._add_handler(logging.StreamHandler())
        if log_dir:
            self.attach_file(Path(log_dir) / filename)
        self._logger.setLevel(self.level)
        self._logger.propagate = False

    def _add_handler(self, handler):
        handler.setLevel(self.level)
        handler.setFormatter(self._formatter)
        self._logger.addHandler(handler)
        return handler

    def attach_file(self, path):
        """追加一个文件输出，返回日志文件的绝对路径。"""
        path = Path(path).resolve()
        for handler in self._logger.handlers:
            if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == path:
                return path
        path.parent.mkdir(parents=True, exist_ok=True)
        self._add_handler(logging.FileHandler(path, encoding="utf-8"))
        return path

    def __getattr__(self, item):
        if item.startswith("_"):
            raise AttributeError(item)
        return getattr(self._logger, item)

    @property
    def raw(self):
        return self._logger

    def block(self, title, lines=None, level=logging.INFO):
        """输出标题及其下方缩进的若干行。"""
        self._logger.log(level, title)
        for line in lines or ():
            self._logger.log(level, "  %s", line)

    def dict(self, title, data, level=logging.INFO, indent="  "):
        """按键对齐输出字典，嵌套字典逐级缩进。"""
        self._logger.log(level, title)
        self._log_mapping(data, level, indent, depth=1)

    def _log_mapping(self, data, level, indent, depth):
        if not data:
            return
        width = max(len(str(key)) for key in data)
        for key, value in data.items():
            prefix = indent * depth + str(key).ljust(width)
            if isinstance(value, dict):
                self._logger.log(level, "%s :", prefix)
                self._log_mapping(value, level, indent, depth + 1)
            else:
                self._logger.log(level, "%s : %s", prefix, value)

    @staticmethod
    def format_duration(seconds):
        """把秒数格式化为 ``1h 02m 03s`` / ``2m 05s`` / ``4.2s``。"""
        seconds = max(float(seconds), 0.0)
        if seconds < 60:
            return "{:.1f}s".format(seconds)
        minutes, secs = divmod(int(round(seconds)), 60)
        hours, minutes = divmod(minutes, 60)
        if hours:
            return "{}h {:02d}m {:02d}s".format(hours, minutes, secs)
        return "{}m {:02d}s".format(minutes, secs)

    @staticmethod
    def maybe_print(verbose, logger, message):
        if verbose:
            (logger or Logger()).info(message)

    def summary(self, save_path, elapsed_seconds):
        self.info("✅ 完成 | 用时 %s | 模型: %s", self.format_duration(elapsed_seconds), save_path)

    def log_model_summary(self, classifier):
        """记录已训练分类器的核函数、支持向量数量与偏置。

        参数:
            classifier: 已训练或已加载的 LinearClassifier
        """
        model = classifier.model
        if model is None:
            self.warning("⚠️ 分类器尚未训练")
            return
        self.dict("📐 模型概要:", {
            "kernel": model.kernel,
            "descriptor_shape": model.descriptor_shape,
            "n_support": model.n_support,
            "bias": "{:.6f}".format(model.rho),
        })

"""模型与检测结果的文件读写工具。"""

import json
from contextlib import contextmanager
from pathlib import Path

from svm_detector.detection.detection import Detection
from svm_detector.models.svm import LinearClassifier
from svm_detector.utils.errors import ValidationError


def save_classifier(path, classifier):
    """把分类器模型保存到文件，返回写入的绝对路径。"""
    path = Path(path).expanduser()
    classifier.save(path)
    return str(path.resolve())


def load_classifier(path, params=None):
    """从文件加载分类器模型。"""
    return LinearClassifier.from_file(Path(path).expanduser(), params=params)


@contextmanager
def _open_text(target, mode):
    if hasattr(target, 'write') or hasattr(target, 'read'):
        yield target
        return
    path = Path(target).expanduser()
    if 'w' in mode:
        path.parent.mkdir(parents=True, exist_ok=True)
    with path.open(mode, encoding='utf-8') as handle:
        yield handle


def save_detections(target, detections):
    """按顺序写出检测结果，每行一个 JSON 记录。

    参数:
        target: 输出文件路径（str 或 Path）或可写文本流
        detections: Detection 序列

    返回:
        int: 写出的检测数量
    """
    count = 0
    with _open_text(target, 'w') as handle:
        for detection in detections:
            handle.write(json.dumps(Detection(*detection).to_dict(), ensure_ascii=False))
            handle.write('\n')
            count += 1
    return count


def load_detections(source):
    """读取 ``save_detections`` 写出的检测结果，顺序保持不变。

    异常:
        ValidationError: 某一行不是合法的检测记录
    """
    detections = []
    with _open_text(source, 'r') as handle:
        for line_no, line in enumerate(handle, 1):
            line = line.strip()
            if not line:
                continue
            try:
                detections.append(Detection.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                raise ValidationError('Malformed detection record on line {}: {}'.format(line_no, exc)) from exc
    return detections

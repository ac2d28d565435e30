"""Shared pytest fixtures for svm_detector tests."""

from pathlib import Path

import cv2
import numpy as np
import pytest

from svm_detector.models import LinearClassifier
from svm_detector.utils.config import SVMConfig

TEMPLATE_SHAPE = (3, 4, 5)


@pytest.fixture()
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture()
def separable_batch() -> tuple[list[int], list[np.ndarray]]:
    """Four 2x2 descriptors separated along the first dimension."""
    descriptors = [
        np.array([[-3.0, 0.1], [0.2, -0.1]]),
        np.array([[-2.0, -0.2], [0.0, 0.1]]),
        np.array([[2.0, 0.1], [-0.1, 0.2]]),
        np.array([[3.0, -0.1], [0.1, 0.0]]),
    ]
    labels = [-1, -1, 1, 1]
    return labels, descriptors


@pytest.fixture()
def trained_classifier(separable_batch) -> LinearClassifier:
    labels, descriptors = separable_batch
    return LinearClassifier(SVMConfig(C=10.0)).train(labels, descriptors)


@pytest.fixture()
def template_batch(rng) -> tuple[list[int], list[np.ndarray]]:
    """Thirty (3, 4, 5) descriptors drawn around +1 (positive) and -1 (negative)."""
    positives = [rng.normal(1.0, 0.5, TEMPLATE_SHAPE) for _ in range(15)]
    negatives = [rng.normal(-1.0, 0.5, TEMPLATE_SHAPE) for _ in range(15)]
    return [1] * 15 + [-1] * 15, positives + negatives


@pytest.fixture()
def template_classifier(template_batch) -> LinearClassifier:
    labels, descriptors = template_batch
    return LinearClassifier(SVMConfig(C=1.0)).train(labels, descriptors)


def _stripes(size: int, vertical: bool, period: int = 6) -> np.ndarray:
    image = np.zeros((size, size), dtype=np.uint8)
    for start in range(0, size, period):
        if vertical:
            image[:, start:start + period // 2] = 255
        else:
            image[start:start + period // 2, :] = 255
    return image


@pytest.fixture()
def window_dataset_dir(tmp_path: Path) -> Path:
    """Window crops: vertical stripes are positives, horizontal stripes negatives.

    Structure: {train,val,test}/{positive,negative}/*.png, 24x24 grayscale.
    """
    root = tmp_path / "dataset"
    counts = {"train": 6, "val": 3, "test": 3}
    for split, count in counts.items():
        for class_name, vertical in (("positive", True), ("negative", False)):
            class_dir = root / split / class_name
            class_dir.mkdir(parents=True)
            for i in range(count):
                image = _stripes(24, vertical, period=4 + 2 * (i % 3))
                cv2.imwrite(str(class_dir / "win_{:02d}.png".format(i)), image)
    return root

import numpy as np
import pytest

from tools.visualization import (
    plot_confusion_matrix,
    plot_response_map,
    plot_roc_curve,
    plot_score_distribution,
    plot_weight_template,
)


def test_plots_are_written(tmp_path, rng):
    y_true = np.array([-1, -1, -1, 1, 1, 1])
    scores = np.array([-1.5, -0.2, 0.3, 0.1, 0.9, 2.0])

    outputs = [
        plot_confusion_matrix(np.array([[2, 1], [0, 3]]), class_names=['negative', 'positive'],
                              save_path=tmp_path / 'cm.png'),
        plot_confusion_matrix(np.array([[2, 1], [0, 3]]), normalize=True, save_path=tmp_path / 'cm_norm.png'),
        plot_roc_curve(y_true, scores, save_path=tmp_path / 'roc.png'),
        plot_score_distribution(y_true, scores, save_path=tmp_path / 'scores.png'),
        plot_weight_template(rng.random((18, 27)), rng.random((18, 27)), title='weights',
                             save_path=tmp_path / 'figs' / 'weights.png'),
        plot_response_map(rng.normal(size=(8, 9)), save_path=tmp_path / 'response.png'),
    ]
    for path in outputs:
        assert path.exists()


def test_invalid_inputs():
    with pytest.raises(ValueError):
        plot_confusion_matrix(np.zeros((2, 3)))
    with pytest.raises(ValueError):
        plot_response_map(np.zeros((0, 4)))

import json

import numpy as np
import pytest

import train_svm
from svm_detector.data.feature_extraction import (
    collect_image_paths_and_labels,
    extract_split_features,
    load_features,
    save_features_to_file,
)
from svm_detector.features import FeatureExtractor, HOGFeatureExtractor
from svm_detector.models import LinearClassifier
from svm_detector.utils.ml_training import compute_classification_metrics


class TestMetrics:
    def test_perfect_scores(self):
        y_true = [-1, -1, 1, 1]
        result = compute_classification_metrics(y_true, [-1, -1, 1, 1], y_proba=[-2.0, -1.0, 1.0, 2.0])
        assert result['accuracy'] == 1.0
        assert result['f1'] == 1.0
        assert result['auc'] == 1.0
        assert result['n_samples'] == 4
        assert set(result['pr_curve']) == {'precision', 'recall', 'thresholds'}

    def test_without_scores(self):
        result = compute_classification_metrics([-1, 1, 1, -1], [-1, 1, -1, -1])
        assert result['accuracy'] == pytest.approx(0.75)
        assert result['precision'] == pytest.approx(1.0)
        assert result['recall'] == pytest.approx(0.5)
        assert 'auc' not in result

    def test_single_class_skips_curves(self):
        result = compute_classification_metrics([1, 1], [1, -1], y_proba=[0.5, -0.5], zero_division=0)
        assert 'auc' not in result


class TestDatasetCollection:
    def test_negatives_then_positives(self, window_dataset_dir):
        paths, labels = collect_image_paths_and_labels(window_dataset_dir, 'train')
        assert len(paths) == len(labels) == 12
        assert labels == [-1] * 6 + [1] * 6
        assert all('negative' in p for p in paths[:6])
        assert paths[:6] == sorted(paths[:6])

    def test_missing_split(self, window_dataset_dir):
        with pytest.raises(FileNotFoundError):
            collect_image_paths_and_labels(window_dataset_dir, 'holdout')

    def test_extract_split_skips_missing(self, window_dataset_dir):
        assert extract_split_features(HOGFeatureExtractor(), window_dataset_dir, 'holdout') == (None, None)

    def test_feature_file_round_trip(self, tmp_path, rng):
        descriptors = [rng.random((2, 3, 4)).astype(np.float32) for _ in range(3)]
        path = tmp_path / 'cache' / 'train_features.joblib'
        save_features_to_file(descriptors, [1, -1, 1], {'split': 'train'}, path)
        loaded, labels, info = load_features(path)
        assert info == {'split': 'train'}
        assert list(labels) == [1, -1, 1]
        for original, restored in zip(descriptors, loaded):
            np.testing.assert_array_equal(original, restored)

    def test_cache_reused_only_for_same_extractor(self, window_dataset_dir, tmp_path):
        cache_dir = tmp_path / 'cache'
        extractor = HOGFeatureExtractor({'cell_size': 6})
        first, labels = extract_split_features(extractor, window_dataset_dir, 'val', cache_dir=cache_dir)
        assert (cache_dir / 'val_features.joblib').exists()
        cached, cached_labels = extract_split_features(extractor, window_dataset_dir, 'val', cache_dir=cache_dir)
        assert cached_labels == labels
        for a, b in zip(first, cached):
            np.testing.assert_array_equal(a, b)

        other = HOGFeatureExtractor({'cell_size': 4})
        refreshed, _ = extract_split_features(other, window_dataset_dir, 'val', cache_dir=cache_dir)
        assert refreshed[0].shape == (6, 6, 18)


class TestTrainingRun:
    def test_main_trains_and_saves(self, window_dataset_dir, tmp_path):
        save_path = tmp_path / 'run' / 'model.joblib'
        classifier, results = train_svm.main([
            '--data-dir', str(window_dataset_dir),
            '--hog-bins', '9',
            '--svm-c', '1.0',
            '--n-jobs', '2',
            '--save-path', str(save_path),
        ])

        assert classifier.descriptor_shape == (4, 4, 9)
        assert results['train']['accuracy'] == pytest.approx(1.0)
        assert results['test']['accuracy'] == pytest.approx(1.0)

        run_dir = save_path.parent
        assert save_path.exists()
        assert (run_dir / 'figures' / 'weights.png').exists()
        assert (run_dir / 'figures' / 'val_confusion.png').exists()

        extractor = FeatureExtractor.load_from_file(run_dir / 'feature.json')
        assert extractor.get_parameters()['n_angular_bins'] == 9

        record = json.loads((run_dir / 'training_results.json').read_text(encoding='utf-8'))
        assert record['model_info']['kernel'] == 'linear'
        assert record['config']['svm']['C'] == 1.0

        reloaded = LinearClassifier.from_file(save_path)
        np.testing.assert_array_equal(reloaded.get_weights(), classifier.get_weights())

    def test_default_save_path_has_timestamp(self):
        path = train_svm._default_save_path('20240101-000000')
        assert path.replace('\\', '/') == 'runs/hog_svm_20240101-000000/model.joblib'

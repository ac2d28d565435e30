import numpy as np
import pytest

from svm_detector.detection import SlidingWindowEvaluator
from svm_detector.models import LinearClassifier
from svm_detector.utils.config import SVMConfig
from svm_detector.utils.errors import ModelError, StateError, ValidationError


class TestCorrelate:
    def test_constant_map(self):
        response = SlidingWindowEvaluator.correlate(np.ones((4, 5, 2)), np.ones((2, 2, 2)), bias=1.0)
        assert response.shape == (3, 4)
        np.testing.assert_allclose(response, np.full((3, 4), 7.0))

    def test_top_left_anchor(self):
        feature_map = np.zeros((5, 5))
        feature_map[2, 3] = 1.0
        weights = np.array([[1.0, 2.0], [3.0, 4.0]])
        response = SlidingWindowEvaluator.correlate(feature_map, weights, bias=0.0)
        expected = np.zeros((4, 4))
        # 窗口左上角 (y, x) 覆盖 (2, 3) 时，命中的权重为 weights[2 - y, 3 - x]
        expected[2, 3] = 1.0
        expected[2, 2] = 2.0
        expected[1, 3] = 3.0
        expected[1, 2] = 4.0
        np.testing.assert_allclose(response, expected, atol=1e-12)

    def test_channel_mismatch(self):
        with pytest.raises(ValidationError):
            SlidingWindowEvaluator.correlate(np.ones((5, 5, 3)), np.ones((2, 2, 4)), bias=0.0)

    def test_rank_mismatch(self):
        with pytest.raises(ValidationError):
            SlidingWindowEvaluator.correlate(np.ones((5, 5, 3, 1)), np.ones((2, 2, 3)), bias=0.0)

    @pytest.mark.parametrize('map_shape, expected', [
        ((2, 8, 5), (0, 5)),
        ((6, 3, 5), (3, 0)),
        ((2, 3, 5), (0, 0)),
    ])
    def test_map_smaller_than_template(self, map_shape, expected):
        response = SlidingWindowEvaluator.correlate(np.ones(map_shape), np.ones((3, 4, 5)), bias=0.5)
        assert response.shape == expected
        assert response.size == 0


class TestEvaluate:
    def test_dense_matches_cropped_predictions(self, template_classifier, rng):
        descriptor_map = rng.normal(size=(10, 12, 5))
        response = SlidingWindowEvaluator().evaluate(descriptor_map, template_classifier)
        assert response.shape == (8, 9)
        for y in range(response.shape[0]):
            for x in range(response.shape[1]):
                expected = template_classifier.predict(descriptor_map[y:y + 3, x:x + 4])
                assert np.isclose(response[y, x], expected, rtol=1e-6, atol=1e-6)

    @pytest.mark.parametrize('template_shape, map_shape', [
        ((16, 8, 18), (24, 20, 18)),
        ((12, 12, 3), (20, 18, 3)),
        ((20, 20, 2), (26, 23, 2)),
    ])
    def test_large_templates_match_cropped_predictions(self, rng, template_shape, map_shape):
        positives = [rng.normal(0.5, 1.0, template_shape) for _ in range(6)]
        negatives = [rng.normal(-0.5, 1.0, template_shape) for _ in range(6)]
        classifier = LinearClassifier(SVMConfig(C=1.0)).train([1] * 6 + [-1] * 6, positives + negatives)

        descriptor_map = rng.normal(size=map_shape)
        response = SlidingWindowEvaluator().evaluate(descriptor_map, classifier)
        rows, cols = template_shape[:2]
        assert response.shape == (map_shape[0] - rows + 1, map_shape[1] - cols + 1)
        for y in range(response.shape[0]):
            for x in range(response.shape[1]):
                expected = classifier.predict(descriptor_map[y:y + rows, x:x + cols])
                assert np.isclose(response[y, x], expected, rtol=1e-6, atol=1e-6)

    def test_map_equal_to_template(self, template_classifier, rng):
        descriptor_map = rng.normal(size=(3, 4, 5))
        response = SlidingWindowEvaluator().evaluate(descriptor_map, template_classifier)
        assert response.shape == (1, 1)
        assert response[0, 0] == pytest.approx(template_classifier.predict(descriptor_map), abs=1e-6)

    def test_two_dimensional_descriptors(self, trained_classifier, rng):
        descriptor_map = rng.normal(size=(5, 6))
        response = SlidingWindowEvaluator().evaluate(descriptor_map, trained_classifier)
        assert response.shape == (4, 5)
        for y in range(4):
            for x in range(5):
                expected = trained_classifier.predict(descriptor_map[y:y + 2, x:x + 2])
                assert np.isclose(response[y, x], expected, rtol=1e-6, atol=1e-6)

    def test_untrained_classifier(self):
        with pytest.raises(StateError):
            SlidingWindowEvaluator().evaluate(np.ones((5, 5, 2)), LinearClassifier())

    def test_nonlinear_classifier(self, template_batch):
        labels, descriptors = template_batch
        classifier = LinearClassifier(SVMConfig(kernel='rbf')).train(labels, descriptors)
        with pytest.raises(ModelError):
            SlidingWindowEvaluator().evaluate(np.ones((6, 6, 5)), classifier)


class TestEvaluatePyramid:
    @pytest.mark.parametrize('n_jobs', [1, 2])
    def test_levels_in_order(self, template_classifier, rng, n_jobs):
        pyramid = [rng.normal(size=shape) for shape in [(12, 16, 5), (8, 10, 5), (4, 5, 5), (2, 3, 5)]]
        evaluator = SlidingWindowEvaluator(n_jobs=n_jobs)
        responses = evaluator.evaluate_pyramid(pyramid, template_classifier)
        assert [r.shape for r in responses] == [(10, 13), (6, 7), (2, 2), (0, 0)]
        for level, response in zip(pyramid, responses):
            np.testing.assert_allclose(response, evaluator.evaluate(level, template_classifier))

import numpy as np
import pytest

from svm_detector.models import SparseVector, to_csr
from svm_detector.utils.errors import ValidationError


class TestSparseVector:
    def test_from_descriptor_skips_zeros(self):
        descriptor = np.array([[0.0, 1.5], [0.0, -2.0]])
        vector = SparseVector.from_descriptor(descriptor)
        assert vector.dim == 4
        assert len(vector) == 2
        assert list(vector.items()) == [(1, 1.5), (3, -2.0)]
        assert vector[0] == 0.0
        assert vector[3] == -2.0
        np.testing.assert_array_equal(vector.to_dense(descriptor.shape), descriptor)

    def test_indices_are_sorted(self):
        vector = SparseVector([4, 0, 2], [3.0, 1.0, 2.0], dim=5)
        assert vector.indices.tolist() == [0, 2, 4]
        assert vector.values.tolist() == [1.0, 2.0, 3.0]

    def test_out_of_range(self):
        with pytest.raises(ValidationError):
            SparseVector([5], [1.0], dim=5)
        vector = SparseVector([1], [1.0], dim=3)
        with pytest.raises(IndexError):
            vector[3]

    def test_mismatched_lengths(self):
        with pytest.raises(ValidationError):
            SparseVector([0, 1], [1.0], dim=3)


class TestToCsr:
    def test_stacks_rows(self):
        descriptors = [np.array([1.0, 0.0, 2.0]), np.zeros(3), np.array([0.0, -1.0, 0.0])]
        matrix = to_csr([SparseVector.from_descriptor(d) for d in descriptors])
        assert matrix.shape == (3, 3)
        assert matrix.nnz == 3
        np.testing.assert_array_equal(matrix.toarray(), np.stack(descriptors))

    def test_dimension_mismatch(self):
        vectors = [SparseVector.from_descriptor(np.ones(3)), SparseVector.from_descriptor(np.ones(4))]
        with pytest.raises(ValidationError):
            to_csr(vectors)

    def test_empty_batch(self):
        assert to_csr([], dim=6).shape == (0, 6)
        with pytest.raises(ValidationError):
            to_csr([])

"""
求解器边界上的稀疏向量表示。

描述子在交给 SVM 求解器之前被展平并转换为显式的 “维度索引 -> 数值” 映射，
一批稀疏向量再拼成一个 ``scipy.sparse.csr_matrix``。零值维度不存储。
"""

import numpy as np
from scipy import sparse

from svm_detector.utils.errors import ValidationError


class SparseVector:
    """单个描述子的稀疏表示。

    属性:
        indices: 非零维度的索引（升序，int32）
        values: 对应的数值（float64）
        dim: 展平后的总维度
    """

    __slots__ = ('indices', 'values', 'dim')

    def __init__(self, indices, values, dim):
        indices = np.asarray(indices, dtype=np.int32)
        values = np.asarray(values, dtype=np.float64)
        if indices.shape != values.shape or indices.ndim != 1:
            raise ValidationError('indices and values must be 1D arrays of equal length')
        if indices.size and (indices.min() < 0 or indices.max() >= dim):
            raise ValidationError('Sparse index out of range for dimension {}'.format(dim))
        order = np.argsort(indices, kind='stable')
        self.indices = indices[order]
        self.values = values[order]
        self.dim = int(dim)

    @classmethod
    def from_descriptor(cls, descriptor):
        flat = np.asarray(descriptor, dtype=np.float64).ravel()
        indices = np.flatnonzero(flat)
        return cls(indices, flat[indices], flat.size)

    def __len__(self):
        return int(self.indices.size)

    def __getitem__(self, index):
        if index < 0 or index >= self.dim:
            raise IndexError('Sparse index {} out of range for dimension {}'.format(index, self.dim))
        pos = np.searchsorted(self.indices, index)
        if pos < self.indices.size and self.indices[pos] == index:
            return float(self.values[pos])
        return 0.0

    def items(self):
        return zip(self.indices.tolist(), self.values.tolist())

    def to_dense(self, shape=None):
        dense = np.zeros(self.dim, dtype=np.float64)
        dense[self.indices] = self.values
        if shape is not None:
            dense = dense.reshape(shape)
        return dense

    def __repr__(self):
        return 'SparseVector(nnz={}, dim={})'.format(len(self), self.dim)


def to_csr(vectors, dim=None):
    """把稀疏向量列表拼成 CSR 矩阵（每行一个向量）。

    参数:
        vectors: SparseVector 列表
        dim: 列数；为 None 时取第一个向量的维度

    异常:
        ValidationError: 向量维度不一致
    """
    vectors = list(vectors)
    if dim is None:
        if not vectors:
            raise ValidationError('Cannot infer dimension of an empty sparse batch')
        dim = vectors[0].dim
    for vector in vectors:
        if vector.dim != dim:
            raise ValidationError('Sparse vector dimension {} does not match {}'.format(vector.dim, dim))

    indptr = np.zeros(len(vectors) + 1, dtype=np.int64)
    indptr[1:] = np.cumsum([len(v) for v in vectors])
    if vectors:
        indices = np.concatenate([v.indices for v in vectors])
        data = np.concatenate([v.values for v in vectors])
    else:
        indices = np.zeros(0, dtype=np.int32)
        data = np.zeros(0, dtype=np.float64)
    return sparse.csr_matrix((data, indices, indptr), shape=(len(vectors), dim))

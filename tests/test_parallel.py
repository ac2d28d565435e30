import pytest

from svm_detector.utils.parallel import map_ordered, resolve_n_jobs


def test_resolve_n_jobs():
    assert resolve_n_jobs(1) == 1
    assert resolve_n_jobs(0) == 1
    assert 1 <= resolve_n_jobs(None) <= 4


@pytest.mark.parametrize('n_jobs', [1, 4])
def test_results_keep_input_order(n_jobs):
    assert map_ordered(lambda v: v * v, range(10), n_jobs=n_jobs, verbose=True, desc='squares') == [
        v * v for v in range(10)
    ]


@pytest.mark.parametrize('n_jobs', [1, 3])
def test_errors_propagate(n_jobs):
    def fail_on_three(value):
        if value == 3:
            raise ValueError('bad item')
        return value

    with pytest.raises(ValueError, match='bad item'):
        map_ordered(fail_on_three, range(6), n_jobs=n_jobs)

"""按输入顺序执行的线程池映射工具（批量特征提取与金字塔评估共用）。"""

import os
from concurrent.futures import ThreadPoolExecutor

from tqdm import tqdm


def resolve_n_jobs(n_jobs):
    """解析并发线程数。

    参数:
        n_jobs: int 或 None（None 表示自动选择，1 表示禁用并发）

    返回:
        int: 实际使用的线程数（至少为 1）
    """
    if n_jobs is None:
        cpu_count = os.cpu_count() or 1
        return max(1, min(4, cpu_count))
    return max(1, int(n_jobs))


def map_ordered(func, items, n_jobs=1, desc=None, verbose=False):
    """对 items 逐个调用 func，结果顺序与输入一致。

    任一元素抛出的异常会直接传递给调用方，不做跳过。
    """
    items = list(items)
    n_jobs = resolve_n_jobs(n_jobs)
    results = []
    progress = None
    if verbose:
        progress = tqdm(total=len(items), desc=desc, leave=False)

    try:
        if n_jobs > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=n_jobs) as executor:
                futures = [executor.submit(func, item) for item in items]
                for future in futures:
                    results.append(future.result())
                    if progress is not None:
                        progress.update(1)
        else:
            for item in items:
                results.append(func(item))
                if progress is not None:
                    progress.update(1)
    finally:
        if progress is not None:
            progress.close()

    return results

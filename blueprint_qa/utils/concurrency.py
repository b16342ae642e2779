import os
from typing import Optional

from blueprint_qa.configs.constants import (
    DEFAULT_CPU_COUNT,
    MAX_PREFERRED_CONCURRENCY,
    MIN_PREFERRED_CONCURRENCY,
)


def compute_analysis_concurrency(
    page_count: int, cpu_count: Optional[int] = None, max_concurrency: Optional[int] = None
) -> int:
    """Number of pages analyzed at once: half the cores clamped to [2, 4], never more than the page count."""
    if max_concurrency is not None:
        preferred = max_concurrency
    else:
        cores = cpu_count if cpu_count is not None else (os.cpu_count() or DEFAULT_CPU_COUNT)
        preferred = max(MIN_PREFERRED_CONCURRENCY, min(MAX_PREFERRED_CONCURRENCY, cores // 2))
    return max(1, min(preferred, page_count))

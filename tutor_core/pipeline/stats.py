import threading
from collections import Counter
from typing import Dict

from tutor_core.domain.models import OUTCOME_BY_TIER, ResolutionOutcome

# 编排器自身异常、只能回复致歉文本时的计数键，与本地兜底层分开统计
ERROR_OUTCOME = "error"


class TierStats:
    """按结果类型累计回复次数，用于观察降级频率。多线程安全。"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter = Counter()

    def record(self, outcome: ResolutionOutcome) -> None:
        with self._lock:
            self._counts[outcome.kind] += 1

    def record_error(self) -> None:
        with self._lock:
            self._counts[ERROR_OUTCOME] += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            kinds = list(OUTCOME_BY_TIER.values()) + [ERROR_OUTCOME]
            return {kind: self._counts.get(kind, 0) for kind in kinds}

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

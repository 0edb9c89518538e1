"""回复编排：凭证查询 → personalized → generic → 本地兜底。"""

from tutor_core.pipeline.orchestrator import ResponseOrchestrator
from tutor_core.pipeline.stats import TierStats
from tutor_core.pipeline.trace import ResolutionTrace

__all__ = ["ResponseOrchestrator", "ResolutionTrace", "TierStats"]

"""本地回复生成器（不依赖外部服务）。"""

from tutor_core.responders.heuristic import HeuristicResponder, KeywordRule

__all__ = ["HeuristicResponder", "KeywordRule"]

"""本地兜底回复生成器。

回复链路的最后一层：不依赖任何外部服务，对任意输入都返回非空文本。
先按顺序匹配关键词规则（第一条命中即返回），都不命中时从固定回复池中随机取一条。
规则顺序是对外约定的一部分，调整顺序会改变同时包含多个关键词的消息的回复。
"""

import random
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class KeywordRule:
    """一条关键词规则：消息（小写后）包含任一关键词即命中。"""

    keywords: Tuple[str, ...]
    response: str

    def matches(self, lowered: str) -> bool:
        return any(k in lowered for k in self.keywords)


DEFAULT_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        keywords=("bach",),
        response=(
            "For Bach's counterpoint, I recommend practicing each voice separately before combining them. "
            "Pay attention to the independence of each line while maintaining a cohesive whole."
        ),
    ),
    KeywordRule(
        keywords=("chopin",),
        response=(
            "Chopin's music requires a delicate touch and expressive rubato. "
            "Practice with a flexible wrist and focus on creating a singing tone for the melodies."
        ),
    ),
    KeywordRule(
        keywords=("beginner", "start"),
        response=(
            "For beginners, I recommend starting with pieces like Bach's Minuet in G, Clementi's Sonatinas, "
            "or Schumann's 'The Merry Farmer'. These pieces will help develop fundamental techniques "
            "while being musically rewarding."
        ),
    ),
    KeywordRule(
        keywords=("technique", "finger"),
        response=(
            "To improve finger technique, practice Hanon exercises, scales, and arpeggios daily. "
            "Start slowly with a metronome and gradually increase the tempo as you gain confidence and accuracy."
        ),
    ),
)

DEFAULT_POOL: Tuple[str, ...] = (
    "Based on your practice history, I recommend focusing on improving your finger technique. "
    "Try practicing scales slowly with a metronome, gradually increasing the tempo as you become more comfortable.",
    "For Bach's pieces, pay special attention to articulation and ornaments. "
    "Try practicing each hand separately before combining them.",
    "To improve your sight-reading skills, I recommend spending 10-15 minutes each day reading through new pieces "
    "at a comfortable tempo. Don't worry about mistakes - the goal is to keep going and train your eyes to look ahead.",
    "For your current repertoire, I suggest dividing each piece into smaller sections and practicing them "
    "intensively. Focus on one section per day, and review previously mastered sections regularly.",
    "Based on your progress, you might be ready to tackle more challenging pieces. Consider adding some Chopin "
    "or Debussy to your repertoire to develop different aspects of your technique.",
    "When practicing the Moonlight Sonata, focus on maintaining an even tempo and bringing out the melody in the "
    "top voice while keeping the triplet accompaniment soft and flowing.",
    "For Chopin's Nocturnes, work on your pedaling technique. "
    "The pedal should create a smooth, connected sound without blurring harmonies.",
    "I recommend practicing with a metronome to develop a solid sense of rhythm, "
    "especially for pieces with complex rhythmic patterns.",
)


class HeuristicResponder:
    """关键词 + 随机池的本地回复器。

    - rules: 有序规则，自上而下匹配。
    - pool: 无规则命中时的候选回复，不能为空。
    - rng: 可注入的 random.Random，便于测试时固定随机结果。
    """

    def __init__(
        self,
        rules: Sequence[KeywordRule] = DEFAULT_RULES,
        pool: Sequence[str] = DEFAULT_POOL,
        rng: Optional[random.Random] = None,
    ):
        pool = tuple(p for p in pool if p and p.strip())
        if not pool:
            raise ValueError("HeuristicResponder needs a non-empty response pool")
        self._rules = tuple(rules)
        self._pool = pool
        self._rng = rng or random.Random()

    def match(self, text: Optional[str]) -> Optional[KeywordRule]:
        """返回第一条命中的规则，没有命中时返回 None。"""

        lowered = (text or "").lower()
        for rule in self._rules:
            if rule.matches(lowered):
                return rule
        return None

    def respond(self, text: Optional[str]) -> str:
        rule = self.match(text)
        if rule is not None:
            return rule.response
        return self._rng.choice(self._pool)

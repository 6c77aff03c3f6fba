"""Deterministic content scoring for reports and chat messages.

One algorithm serves every channel: a baseline, weighted keyword lexicons,
length and shape signals, a clamp to ``[0, 1]`` and a mapping from the clamped
score to a recommendation. Channels differ only in the injected
:class:`ScoringPolicy`. Nothing here performs I/O, and the same input always
yields the same result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from civic_guard.core.settings import Settings, settings
from civic_guard.services.errors import ScoringFailure

RECOMMEND_APPROVE = "approve"
RECOMMEND_REVIEW = "review"
RECOMMEND_REJECT = "reject"

ACTION_ALLOW = "allow"
ACTION_HIDE = "hide"
ACTION_BLOCK = "block"

_REPEAT_RUN = re.compile(r"(.)\1{4,}", re.DOTALL)


@dataclass(frozen=True)
class Lexicon:
    """Weighted list of lower-case terms; each distinct hit adds ``weight``."""

    name: str
    terms: tuple[str, ...]
    weight: float

    def matches(self, lowered: str) -> tuple[str, ...]:
        return tuple(term for term in self.terms if term in lowered)


@dataclass(frozen=True)
class Thresholds:
    """Map a clamped score onto a recommendation.

    ``high`` is checked in order (``score >= bound``); ``low`` applies when
    ``score <= bound``; anything else gets ``default``.
    """

    high: tuple[tuple[float, str], ...]
    default: str
    low: tuple[float, str] | None = None

    def recommend(self, score: float) -> str:
        for bound, label in self.high:
            if score >= bound:
                return label
        if self.low is not None and score <= self.low[0]:
            return self.low[1]
        return self.default


@dataclass(frozen=True)
class ScoringPolicy:
    """Channel-specific configuration of the scoring algorithm."""

    channel: str
    baseline: float
    lexicons: tuple[Lexicon, ...]
    thresholds: Thresholds
    detail_min_length: int | None = None
    detail_bonus: float = 0.0
    short_max_length: int | None = None
    short_penalty: float = 0.0
    priority_categories: frozenset[str] = field(default_factory=frozenset)
    category_bonus: float = 0.0
    caps_ratio: float | None = None
    caps_min_length: int = 10
    caps_penalty: float = 0.0
    repeat_penalty: float | None = None


@dataclass(frozen=True)
class ScoringResult:
    """Outcome of one scoring attempt."""

    score: float
    recommendation: str
    reasons: tuple[str, ...]


EMERGENCY_TERMS = (
    "urgente", "emergência", "emergencia", "socorro", "perigo", "risco",
    "evacuação", "evacuacao", "ferido", "morto", "fogo", "incêndio",
    "enchente", "alagamento", "deslizamento", "destruição",
)
SUSPICIOUS_TERMS = (
    "fake", "mentira", "brincadeira", "teste", "falso",
    "spam", "propaganda", "venda", "compra", "dinheiro",
)
OFFENSIVE_TERMS = (
    "idiota", "burro", "imbecil", "estúpido", "lixo", "merda", "matar", "violência",
)
SPAM_TERMS = (
    "clique aqui", "compre agora", "promoção", "desconto",
    "ganhe dinheiro", "trabalhe em casa", "renda extra",
)
HATE_TERMS = (
    "ódio", "racista", "homofóbico", "machista", "xenófobo", "preconceito", "discriminação",
)
HIGH_PRIORITY_CATEGORIES = frozenset({
    "flood", "landslide", "fire", "accident", "structural_risk",
    "enchente", "deslizamento", "incendio", "acidente", "risco_estrutural",
})


def build_report_policy(config: Settings = settings) -> ScoringPolicy:
    """Return the incident report policy using the configured thresholds."""
    return ScoringPolicy(
        channel="report",
        baseline=0.5,
        lexicons=(
            Lexicon("emergency", EMERGENCY_TERMS, 0.15),
            Lexicon("suspicious", SUSPICIOUS_TERMS, -0.2),
        ),
        thresholds=Thresholds(
            high=((config.report_approve_threshold, RECOMMEND_APPROVE),),
            default=RECOMMEND_REVIEW,
            low=(config.report_reject_threshold, RECOMMEND_REJECT),
        ),
        detail_min_length=40,
        detail_bonus=0.1,
        short_max_length=20,
        short_penalty=-0.3,
        priority_categories=HIGH_PRIORITY_CATEGORIES,
        category_bonus=0.2,
    )


def build_chat_policy(config: Settings = settings) -> ScoringPolicy:
    """Return the chat message policy using the configured thresholds."""
    return ScoringPolicy(
        channel="chat",
        baseline=0.0,
        lexicons=(
            Lexicon("offensive", OFFENSIVE_TERMS, 0.3),
            Lexicon("spam", SPAM_TERMS, 0.4),
            Lexicon("hate_speech", HATE_TERMS, 0.5),
        ),
        thresholds=Thresholds(
            high=(
                (config.chat_block_threshold, ACTION_BLOCK),
                (config.chat_hide_threshold, ACTION_HIDE),
            ),
            default=ACTION_ALLOW,
        ),
        caps_ratio=0.7,
        caps_min_length=10,
        caps_penalty=0.2,
        repeat_penalty=0.3,
    )


class ContentScorer:
    """Score free text against a :class:`ScoringPolicy`."""

    def __init__(self, policy: ScoringPolicy) -> None:
        self.policy = policy

    def score(self, content: str, category: str = "") -> ScoringResult:
        """Return the clamped score, recommendation and fired signals.

        Never raises for string input; malformed text still receives a score.

        Raises:
            ScoringFailure: If the policy itself cannot be evaluated.
        """
        try:
            return self._score(content, category)
        except (TypeError, ValueError, re.error) as exc:
            raise ScoringFailure(
                f"{self.policy.channel} policy could not score content: {exc}"
            ) from exc

    def _score(self, content: str, category: str) -> ScoringResult:
        policy = self.policy
        text = content if isinstance(content, str) else str(content or "")
        lowered = text.lower()
        length = len(text)
        score = policy.baseline
        reasons: list[str] = []

        for lexicon in policy.lexicons:
            hits = lexicon.matches(lowered)
            if hits:
                score += len(hits) * lexicon.weight
                reasons.append(f"{lexicon.name} terms: {len(hits)} ({', '.join(hits)})")

        if policy.short_max_length is not None and length < policy.short_max_length:
            score += policy.short_penalty
            reasons.append(f"content too short ({length} chars)")
        elif policy.detail_min_length is not None and length >= policy.detail_min_length:
            score += policy.detail_bonus
            reasons.append(f"detailed content ({length} chars)")

        normalized_category = (category or "").strip().lower()
        if normalized_category in policy.priority_categories:
            score += policy.category_bonus
            reasons.append(f"high priority category: {normalized_category}")

        if policy.caps_ratio is not None and length > policy.caps_min_length:
            letters = [char for char in text if char.isalpha()]
            if letters:
                upper_ratio = sum(1 for char in letters if char.isupper()) / len(letters)
                if upper_ratio > policy.caps_ratio:
                    score += policy.caps_penalty
                    reasons.append("excessive capitalization")

        if policy.repeat_penalty is not None and _REPEAT_RUN.search(text):
            score += policy.repeat_penalty
            reasons.append("repeated character run")

        clamped = round(min(1.0, max(0.0, score)), 4)
        return ScoringResult(
            score=clamped,
            recommendation=policy.thresholds.recommend(clamped),
            reasons=tuple(reasons),
        )


def report_scorer(config: Settings = settings) -> ContentScorer:
    """Return a scorer for incident reports (named and anonymous)."""
    return ContentScorer(build_report_policy(config))


def chat_scorer(config: Settings = settings) -> ContentScorer:
    """Return a scorer for chat messages."""
    return ContentScorer(build_chat_policy(config))

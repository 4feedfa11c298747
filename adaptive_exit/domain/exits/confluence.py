"""
Domain service: Confluence scoring, clustering and target assignment.

Turns the raw candidate levels of one position into a ranked T1-T4
target ladder and a stop-loss.

Scoring weights:
    - Delta-adjusted pivot: 2
    - Two or more pivot timeframes in one cluster: +1
    - Swing high / low: 1
    - Round figure: 1

Clustering is a single greedy pass over price-sorted candidates: a
candidate joins the current cluster when it lies within the tolerance of
the previous member.

No framework imports. No IO. No side effects.
"""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from adaptive_exit.domain.exits.entities import (
    PIVOT_TAGS,
    SWING_TAGS,
    CandidateLevel,
    LevelCluster,
    LevelSide,
    Side,
    SourceTag,
    StaticTargets,
    TargetLadder,
)
from adaptive_exit.domain.exits.level_collector import round_figure_step, round_to_tick

logger = logging.getLogger(__name__)

PIVOT_WEIGHT = 2
SWING_WEIGHT = 1
ROUND_WEIGHT = 1
MULTI_TIMEFRAME_BONUS = 1

# Minimum cluster score for T1, T2, T3, T4
TARGET_MIN_SCORES = (2, 2, 1, 0)
STOP_MIN_SCORE = 2


def _tag_key(level: CandidateLevel) -> tuple[str, ...]:
    return tuple(sorted(tag.value for tag in level.source_tags))


def score_candidate(level: CandidateLevel) -> int:
    """Return the evidence weight a candidate contributes to its cluster."""
    score = 0
    if level.source_tags & PIVOT_TAGS:
        score += PIVOT_WEIGHT
    if level.source_tags & SWING_TAGS:
        score += SWING_WEIGHT
    if SourceTag.ROUND_FIGURE in level.source_tags:
        score += ROUND_WEIGHT
    return score


class ConfluenceScorer:
    """Scores and clusters candidate levels and assigns the target ladder.

    Deterministic: identical inputs always produce an identical ladder.
    """

    def __init__(
        self,
        cluster_tolerance_pct: float = 0.02,
        round_tolerance_pct: float = 0.01,
        entry_buffer_pct: float = 0.005,
    ) -> None:
        """Initialize thresholds.

        Args:
            cluster_tolerance_pct: Max relative gap between neighbours of one cluster.
            round_tolerance_pct: Max distance for a cluster to count as a round figure.
            entry_buffer_pct: Clusters this close to entry belong to neither side.
        """
        self._cluster_tolerance = Decimal(str(cluster_tolerance_pct))
        self._round_tolerance = Decimal(str(round_tolerance_pct))
        self._entry_buffer = Decimal(str(entry_buffer_pct))

    def score_candidates(self, candidates: list[CandidateLevel]) -> list[CandidateLevel]:
        """Return the candidates with their evidence weights filled in."""
        return [
            CandidateLevel(
                price=c.price,
                score=score_candidate(c),
                source_tags=c.source_tags,
                side=c.side,
            )
            for c in candidates
        ]

    def cluster(
        self, candidates: list[CandidateLevel], entry_price: Decimal
    ) -> list[LevelCluster]:
        """Merge scored candidates by proximity.

        Args:
            candidates: Scored candidate levels.
            entry_price: Option entry price used to classify each cluster's side.

        Returns:
            Clusters in ascending price order.
        """
        if not candidates:
            return []

        ordered = sorted(candidates, key=lambda c: (c.price, _tag_key(c)))
        groups: list[list[CandidateLevel]] = [[ordered[0]]]
        for level in ordered[1:]:
            previous = groups[-1][-1]
            if (level.price - previous.price) / previous.price <= self._cluster_tolerance:
                groups[-1].append(level)
            else:
                groups.append([level])

        return [self._build_cluster(group, entry_price) for group in groups]

    def _build_cluster(
        self, members: list[CandidateLevel], entry_price: Decimal
    ) -> LevelCluster:
        tags: set[SourceTag] = set()
        for member in members:
            tags.update(member.source_tags)

        score = sum(member.score for member in members)
        if len(tags & PIVOT_TAGS) >= 2:
            score += MULTI_TIMEFRAME_BONUS

        mean = sum((m.price for m in members), Decimal("0")) / len(members)
        round_members = [m.price for m in members if SourceTag.ROUND_FIGURE in m.source_tags]
        if round_members:
            price = min(round_members, key=lambda p: (abs(p - mean), p))
        else:
            price = round_to_tick(mean)
            nearest_round = self._nearest_round_figure(price)
            if nearest_round > 0 and abs(price - nearest_round) / price <= self._round_tolerance:
                price = nearest_round
                score += ROUND_WEIGHT
                tags.add(SourceTag.ROUND_FIGURE)

        return LevelCluster(
            price=price,
            score=score,
            source_tags=frozenset(tags),
            side=self._cluster_side(price, entry_price),
            member_prices=tuple(m.price for m in members),
        )

    @staticmethod
    def _nearest_round_figure(price: Decimal) -> Decimal:
        step = round_figure_step(price)
        return (price / step).to_integral_value(rounding=ROUND_HALF_UP) * step

    def _cluster_side(self, price: Decimal, entry_price: Decimal) -> Optional[LevelSide]:
        if price > entry_price * (1 + self._entry_buffer):
            return LevelSide.ABOVE
        if price < entry_price * (1 - self._entry_buffer):
            return LevelSide.BELOW
        return None

    def build_ladder(
        self,
        candidates: list[CandidateLevel],
        entry_price: Decimal,
        side: Side,
        static_targets: StaticTargets,
        computed_at: Optional[datetime] = None,
    ) -> TargetLadder:
        """Score, cluster and rank candidates into a target ladder.

        Falls back to the signal's static ladder when no pivot candidate
        exists, since round figures alone carry no confidence.

        Args:
            candidates: Unscored candidates from the level collector.
            entry_price: Option entry price.
            side: Position side; LONG targets lie above entry, SHORT below.
            static_targets: The upstream signal's original levels.
            computed_at: Timestamp stamped on the ladder.

        Returns:
            The target ladder. Slots without a qualifying cluster are None.
        """
        computed_at = computed_at or datetime.now(timezone.utc)
        entry_price = Decimal(str(entry_price))

        if not any(c.source_tags & PIVOT_TAGS for c in candidates):
            logger.warning(
                "No pivot candidates at entry=%s; using static signal targets", entry_price
            )
            return TargetLadder.from_static(static_targets, computed_at)

        scored = self.score_candidates(candidates)
        clusters = self.cluster(scored, entry_price)

        profit_side = LevelSide.ABOVE if side is Side.LONG else LevelSide.BELOW
        stop_side = LevelSide.BELOW if side is Side.LONG else LevelSide.ABOVE

        def by_distance(cluster: LevelCluster) -> tuple[Decimal, int]:
            return abs(cluster.price - entry_price), -cluster.score

        profit = sorted((c for c in clusters if c.side is profit_side), key=by_distance)
        stop = sorted((c for c in clusters if c.side is stop_side), key=by_distance)

        targets: list[Optional[Decimal]] = []
        cursor = 0
        for min_score in TARGET_MIN_SCORES:
            found = next(
                (i for i in range(cursor, len(profit)) if profit[i].score >= min_score),
                None,
            )
            if found is None:
                targets.append(None)
            else:
                targets.append(profit[found].price)
                cursor = found + 1

        if targets[3] is None:
            targets[3] = self._farthest_pivot_beyond(
                scored, entry_price, profit_side, [t for t in targets if t is not None]
            )

        stop_loss = next((c.price for c in stop if c.score >= STOP_MIN_SCORE), None)
        if stop_loss is None:
            stop_loss = static_targets.stop_loss
            logger.info(
                "No stop-side cluster scored >= %d; using signal stop-loss %s",
                STOP_MIN_SCORE,
                stop_loss,
            )

        logger.info(
            "Confluence ladder at entry=%s side=%s: T1=%s T2=%s T3=%s T4=%s SL=%s "
            "(candidates=%d clusters=%d)",
            entry_price,
            side.value,
            *targets,
            stop_loss,
            len(candidates),
            len(clusters),
        )

        return TargetLadder(
            t1=targets[0],
            t2=targets[1],
            t3=targets[2],
            t4=targets[3],
            stop_loss=stop_loss,
            computed_at=computed_at,
            confluence=True,
        )

    def _farthest_pivot_beyond(
        self,
        scored: list[CandidateLevel],
        entry_price: Decimal,
        profit_side: LevelSide,
        assigned: list[Decimal],
    ) -> Optional[Decimal]:
        floor = max((abs(p - entry_price) for p in assigned), default=Decimal("0"))
        pivots = [
            c.price
            for c in scored
            if c.source_tags & PIVOT_TAGS
            and c.side is profit_side
            and self._cluster_side(c.price, entry_price) is profit_side
            and abs(c.price - entry_price) > floor
        ]
        if not pivots:
            return None
        return max(pivots, key=lambda p: (abs(p - entry_price), p))

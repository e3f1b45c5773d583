"""Odds movement tracking.

Polls The Odds API for featured markets (and a small set of NBA player
props), compares each outcome with its stored snapshot and records
significant moves in line_movements.

Sharp moves are given an authenticity read (real / fake / uncertain) from
the shape of the whole poll: did the other side move too, did other books
follow, how close to tip-off, was it price only. Movements are then
consolidated to one primary record per event / market / bookmaker.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.config import get_settings
from linewatch.models.domain import LineMovement, OddsSnapshot
from linewatch.models.upsert import upsert_rows
from linewatch.services.odds_api import OddsAPIClient, OddsAPIError, OddsEvent

logger = structlog.get_logger(__name__)

DEFAULT_SPORT_KEYS = {
    "NBA": "basketball_nba",
    "NFL": "americanfootball_nfl",
    "NCAAF": "americanfootball_ncaaf",
    "NCAAB": "basketball_ncaab",
    "NHL": "icehockey_nhl",
    "MLB": "baseball_mlb",
}

MARKET_LABELS = {
    "player_points": "PTS",
    "player_rebounds": "REB",
    "player_assists": "AST",
    "player_threes": "3PM",
    "player_points_rebounds_assists": "PRA",
    "spreads": "Spread",
    "h2h": "ML",
    "totals": "Total",
}

REAL_KEY_SIGNALS = (
    "MULTI_BOOK_CONSENSUS",
    "SINGLE_SIDE_MOVEMENT",
    "LATE_MONEY_SWEET_SPOT",
    "LINE_AND_JUICE_CONFIRMED",
    "STEAM_MOVE_CONFIRMED",
)
FAKE_KEY_SIGNALS = (
    "BOTH_SIDES_MOVED",
    "EARLY_MORNING_MOVE",
    "SINGLE_BOOK_DIVERGENCE",
    "HEAVY_FAVORITE_SHORTENING",
    "PRICE_ONLY_MOVE_TRAP",
)


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def hours_until(commence_time: datetime | None, now: datetime) -> float:
    """Hours from now to tip-off; 24 when the start time is unknown."""
    if commence_time is None:
        return 24.0
    return (commence_time - now).total_seconds() / 3600


def is_significant_move(
    price_change: float,
    point_change: float | None,
    is_player_prop: bool = False,
) -> bool:
    """|price| >= 3 (>= 2 for props) or |point| >= 0.5."""
    price_threshold = 2 if is_player_prop else 3
    if abs(price_change) >= price_threshold:
        return True
    return point_change is not None and abs(point_change) >= 0.5


def sharp_indicator(
    price_change: float,
    point_change: float | None,
    market_key: str | None = None,
    is_player_prop: bool = False,
) -> str | None:
    """Human-readable sharp indicator, or None when the move is not sharp."""
    size = abs(price_change)
    no_point_move = point_change is None or abs(point_change) < 0.5
    label = MARKET_LABELS.get(market_key or "", market_key or "")

    if size >= 10:
        if is_player_prop:
            return f"STEAM MOVE - {label} prop shifted {size:g} pts"
        return "STEAM MOVE - Major price shift detected"
    if size >= 7 and no_point_move:
        if is_player_prop:
            return f"SHARP ACTION - {label} moved without line change"
        return "SHARP ACTION - Price moved without spread change"
    if size >= 5:
        if is_player_prop:
            return f"POSSIBLE SHARP - {label} line movement"
        return "POSSIBLE SHARP - Significant line movement"
    return None


def prop_outcome_name(player_name: str, side: str, point: float | None) -> str:
    """Outcome key for a prop, e.g. 'Jayson Tatum Over 27.5'."""
    point_text = f"{point:g}" if point else ""
    return f"{player_name} {side} {point_text}".strip()


@dataclass
class DetectedMovement:
    """A significant move found while comparing a poll with snapshots."""

    event_id: str
    sport: str
    event_name: str
    bookmaker: str
    market_type: str
    outcome_name: str
    old_price: int
    new_price: int
    price_change: int
    old_point: float | None
    new_point: float | None
    point_change: float | None
    hours_to_game: float
    commence_time: datetime | None = None
    opening_price: int | None = None
    opening_point: float | None = None
    player_name: str | None = None
    is_sharp_action: bool = False
    sharp_indicator: str | None = None

    movement_authenticity: str | None = None
    authenticity_confidence: float | None = None
    recommendation: str | None = None
    recommendation_reason: str | None = None
    opposite_side_moved: bool = False
    books_consensus: int | None = None
    final_pick: str | None = None
    related_movements: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_player_prop(self) -> bool:
        return self.player_name is not None

    def to_row(self) -> dict[str, Any]:
        """Column dictionary for line_movements (tracker defaults applied)."""
        return {
            "event_id": self.event_id,
            "sport": self.sport,
            "event_name": self.event_name,
            "commence_time": self.commence_time,
            "bookmaker": self.bookmaker,
            "market_type": self.market_type,
            "outcome_name": self.outcome_name,
            "player_name": self.player_name,
            "is_player_prop": self.is_player_prop,
            "old_price": self.old_price,
            "new_price": self.new_price,
            "price_change": self.price_change,
            "old_point": self.old_point,
            "new_point": self.new_point,
            "point_change": self.point_change,
            "opening_price": self.opening_price,
            "opening_point": self.opening_point,
            "hours_to_game": round(self.hours_to_game, 2),
            "books_consensus": self.books_consensus or 1,
            "opposite_side_moved": self.opposite_side_moved,
            "is_sharp_action": self.is_sharp_action,
            "sharp_indicator": self.sharp_indicator,
            "movement_authenticity": self.movement_authenticity or "uncertain",
            "authenticity_confidence": (
                self.authenticity_confidence
                if self.authenticity_confidence is not None
                else 0.5
            ),
            "recommendation": self.recommendation or "caution",
            "recommendation_reason": self.recommendation_reason,
            "final_pick": self.final_pick,
            "is_primary_movement": True,
            "related_movements": self.related_movements or None,
        }


def detect_movement(
    event: OddsEvent,
    sport: str,
    bookmaker: str,
    market_key: str,
    outcome_name: str,
    price: int,
    point: float | None,
    snapshot: OddsSnapshot | None,
    now: datetime,
    player_name: str | None = None,
) -> DetectedMovement | None:
    """
    Compare a fresh price with its stored snapshot.

    Returns:
        DetectedMovement if the change is significant, otherwise None
    """
    if snapshot is None:
        return None

    price_change = price - snapshot.price
    point_change = (
        point - snapshot.point if point is not None and snapshot.point is not None else None
    )
    is_prop = player_name is not None
    if not is_significant_move(price_change, point_change, is_prop):
        return None

    indicator = sharp_indicator(price_change, point_change, market_key, is_prop)
    return DetectedMovement(
        event_id=event.id,
        sport=sport,
        event_name=event.description,
        bookmaker=bookmaker,
        market_type=market_key,
        outcome_name=outcome_name,
        old_price=snapshot.price,
        new_price=price,
        price_change=price_change,
        old_point=snapshot.point,
        new_point=point,
        point_change=point_change,
        hours_to_game=hours_until(event.commence_time, now),
        commence_time=event.commence_time,
        opening_price=snapshot.opening_price if snapshot.opening_price is not None else snapshot.price,
        opening_point=snapshot.opening_point if snapshot.opening_point is not None else snapshot.point,
        player_name=player_name,
        is_sharp_action=indicator is not None,
        sharp_indicator=indicator,
    )


@dataclass
class AuthenticityAnalysis:
    authenticity: str
    confidence: float
    recommendation: str
    reason: str
    signals: list[str]
    opposite_side_moved: bool
    books_consensus: int


def _signal_text(signals: list[str]) -> str:
    return ", ".join(signals).replace("_", " ")


def analyze_authenticity(
    movement: DetectedMovement,
    all_movements: list[DetectedMovement],
) -> AuthenticityAnalysis:
    """
    Decide whether a sharp move looks like real professional money.

    Real and fake points are accumulated from independent checks; a side
    needs a two point lead to win, otherwise the move is uncertain.
    """
    signals: list[str] = []
    real = 0
    fake = 0
    price = abs(movement.price_change)
    point = abs(movement.point_change) if movement.point_change else 0.0
    hours = movement.hours_to_game

    opposite_moved = any(
        m.event_id == movement.event_id
        and m.market_type == movement.market_type
        and m.outcome_name != movement.outcome_name
        and m.bookmaker == movement.bookmaker
        and abs(m.price_change) >= 5
        for m in all_movements
    )
    if opposite_moved:
        fake += 3
        signals.append("BOTH_SIDES_MOVED")
    else:
        real += 2
        signals.append("SINGLE_SIDE_MOVEMENT")

    same_direction_books = {
        m.bookmaker
        for m in all_movements
        if m.event_id == movement.event_id
        and m.market_type == movement.market_type
        and m.outcome_name == movement.outcome_name
        and m.bookmaker != movement.bookmaker
        and _sign(m.price_change) == _sign(movement.price_change)
    }
    books_consensus = len(same_direction_books) + 1
    if books_consensus >= 2:
        real += 3
        signals.append("MULTI_BOOK_CONSENSUS")
    else:
        fake += 1
        signals.append("SINGLE_BOOK_DIVERGENCE")

    if price >= 8 and point < 0.5:
        fake += 3
        signals.append("PRICE_ONLY_MOVE_TRAP")

    if point >= 0.5 and price >= 5:
        if opposite_moved:
            fake += 2
            signals.append("MARKET_ADJUSTMENT")
        else:
            real += 3
            signals.append("LINE_AND_JUICE_CONFIRMED")

    if 1 <= hours <= 3:
        real += 3
        signals.append("LATE_MONEY_SWEET_SPOT")
    elif hours < 1:
        real += 1
        signals.append("VERY_LATE_MONEY")
    elif hours >= 8:
        fake += 2
        signals.append("EARLY_MORNING_MOVE")
    elif hours >= 4:
        signals.append("MODERATE_TIMING")

    if price >= 15:
        if books_consensus >= 2:
            real += 2
            signals.append("STEAM_MOVE_CONFIRMED")
        else:
            fake += 2
            signals.append("STEAM_MOVE_NO_CONSENSUS")

    if movement.player_name:
        real += 1
        signals.append("PLAYER_PROP")

    if movement.new_price < -200 and movement.price_change < -5:
        fake += 2
        signals.append("HEAVY_FAVORITE_SHORTENING")

    confidence = round(real / max(real + fake, 1), 2)

    if real >= fake + 2:
        authenticity, recommendation = "real", "pick"
        key = [s for s in signals if s in REAL_KEY_SIGNALS]
        reason = f"Strong professional action. {_signal_text(key)}"
    elif fake >= real + 2:
        authenticity, recommendation = "fake", "fade"
        key = [s for s in signals if s in FAKE_KEY_SIGNALS]
        reason = f"Likely market adjustment or trap. {_signal_text(key)}"
    else:
        authenticity, recommendation = "uncertain", "caution"
        reason = f"Mixed signals - proceed with caution. {_signal_text(signals[:2])}"

    return AuthenticityAnalysis(
        authenticity=authenticity,
        confidence=confidence,
        recommendation=recommendation,
        reason=reason,
        signals=signals,
        opposite_side_moved=opposite_moved,
        books_consensus=books_consensus,
    )


def apply_authenticity(movements: list[DetectedMovement]) -> list[DetectedMovement]:
    """Attach an authenticity analysis to every sharp movement."""
    analyzed = []
    for m in movements:
        if not m.is_sharp_action:
            analyzed.append(m)
            continue
        a = analyze_authenticity(m, movements)
        analyzed.append(
            replace(
                m,
                movement_authenticity=a.authenticity,
                authenticity_confidence=a.confidence,
                recommendation=a.recommendation,
                recommendation_reason=a.reason,
                opposite_side_moved=a.opposite_side_moved,
                books_consensus=a.books_consensus,
            )
        )
    return analyzed


def consolidate_movements(movements: list[DetectedMovement]) -> list[DetectedMovement]:
    """
    Reduce movements to one primary record per event / market / bookmaker.

    The largest absolute price change is primary. When it looks fake the
    pick flips to the other side of the market.
    """
    groups: dict[tuple[str, str, str], list[DetectedMovement]] = {}
    for m in movements:
        groups.setdefault((m.event_id, m.market_type, m.bookmaker), []).append(m)

    consolidated: list[DetectedMovement] = []
    for group in groups.values():
        if len(group) == 1:
            m = group[0]
            reason = m.recommendation_reason
            if m.movement_authenticity == "fake":
                reason = f"FADE {m.outcome_name} - {reason or 'Market adjustment detected'}"
            consolidated.append(
                replace(m, final_pick=m.outcome_name, recommendation_reason=reason)
            )
            continue

        ordered = sorted(group, key=lambda x: abs(x.price_change), reverse=True)
        primary, secondary = ordered[0], ordered[1]
        reason = primary.recommendation_reason or ""

        if primary.movement_authenticity == "real":
            final_pick = primary.outcome_name
            reason = f"BET {final_pick} - {reason}"
        elif primary.movement_authenticity == "fake":
            final_pick = secondary.outcome_name or f"Opposite of {primary.outcome_name}"
            reason = f"FADE {primary.outcome_name}, BET {final_pick} - {reason}"
        else:
            final_pick = primary.outcome_name
            reason = f"Consider {final_pick} - {reason}"

        related = [
            {
                "outcome_name": m.outcome_name,
                "old_price": m.old_price,
                "new_price": m.new_price,
                "price_change": m.price_change,
            }
            for m in ordered[1:]
        ]
        consolidated.append(
            replace(
                primary,
                final_pick=final_pick,
                recommendation_reason=reason,
                related_movements=related,
            )
        )
    return consolidated


class OddsMovementService:
    """
    Track odds movements for a set of sports.

    One poll = fetch, compare with snapshots, upsert snapshots, analyse,
    consolidate and upsert movements, then prune stale snapshots.
    """

    def __init__(
        self,
        client: OddsAPIClient,
        session: AsyncSession,
        config: dict[str, Any] | None = None,
    ):
        """
        Initialize the service.

        Args:
            client: Odds API client
            session: Database session
            config: odds_tracking section of defaults.yaml
        """
        self.client = client
        self.session = session
        self.settings = get_settings()
        if config is None:
            config = self.settings.load_defaults_config().get("odds_tracking", {})
        self.config = config
        self.sport_keys = config.get("sport_keys") or DEFAULT_SPORT_KEYS
        self.markets = config.get("markets") or ["spreads", "h2h", "totals"]
        self.props_config = config.get("props") or {}
        self.retention_hours = config.get("snapshot_retention_hours", 24)

    async def track(
        self,
        sports: list[str] | None = None,
        include_player_props: bool = True,
    ) -> dict[str, Any]:
        """
        Run one tracking poll.

        Args:
            sports: Sport codes (NBA, NFL, ...); defaults to settings
            include_player_props: Also poll NBA player props

        Returns:
            Dict of counts
        """
        sports = sports or self.settings.tracked_sports
        now = datetime.now(timezone.utc)
        stats = {
            "sports": 0,
            "events": 0,
            "snapshots": 0,
            "movements_detected": 0,
            "movements_saved": 0,
            "sharp_movements": 0,
            "prop_movements": 0,
            "snapshots_pruned": 0,
            "errors": 0,
        }
        movements: list[DetectedMovement] = []

        for sport in sports:
            sport_key = self.sport_keys.get(sport)
            if not sport_key:
                logger.warning("unknown_sport_skipped", sport=sport)
                continue

            try:
                events = await self.client.get_odds(sport_key, self.markets)
            except OddsAPIError as e:
                logger.error(
                    "odds_fetch_failed",
                    sport=sport,
                    error=str(e),
                    error_type=e.error_type.value,
                )
                stats["errors"] += 1
                continue

            stats["sports"] += 1
            stats["events"] += len(events)

            snapshots = await self._load_snapshots([e.id for e in events])
            rows: list[dict[str, Any]] = []
            for event in events:
                self._process_event(
                    event, sport, self.settings.tracked_bookmakers, None,
                    snapshots, rows, movements, now,
                )
            stats["snapshots"] += await self._save_snapshots(rows)

            if include_player_props and sport == self.props_config.get("sport", "NBA"):
                prop_snapshots = await self._track_player_props(
                    sport, sport_key, events, movements, now, stats
                )
                stats["snapshots"] += prop_snapshots

        analyzed = apply_authenticity(movements)
        primary = consolidate_movements(analyzed)
        stats["movements_detected"] = len(movements)
        stats["sharp_movements"] = sum(1 for m in primary if m.is_sharp_action)
        stats["prop_movements"] = sum(1 for m in primary if m.is_player_prop)
        stats["movements_saved"] = await self._save_movements(primary)
        stats["snapshots_pruned"] = await self.cleanup_snapshots(now)
        await self.session.commit()

        logger.info(
            "odds_tracking_complete",
            requests_remaining=self.client.requests_remaining,
            **stats,
        )
        return stats

    async def _track_player_props(
        self,
        sport: str,
        sport_key: str,
        events: list[OddsEvent],
        movements: list[DetectedMovement],
        now: datetime,
        stats: dict[str, Any],
    ) -> int:
        """Poll prop markets for the next few games starting within the window."""
        window = timedelta(hours=self.props_config.get("window_hours", 6))
        max_events = self.props_config.get("max_events", 2)
        markets = self.props_config.get("markets") or ["player_points", "player_assists"]
        bookmakers = self.props_config.get("bookmakers") or ["fanduel", "draftkings"]

        upcoming = [
            e for e in events
            if e.commence_time and now < e.commence_time < now + window
        ][:max_events]

        saved = 0
        for event in upcoming:
            try:
                prop_event = await self.client.get_event_odds(sport_key, event.id, markets)
            except OddsAPIError as e:
                logger.error("prop_fetch_failed", event_id=event.id, error=str(e))
                stats["errors"] += 1
                continue

            if not prop_event.bookmakers:
                logger.info("no_props_available", event_id=event.id)
                continue

            snapshots = await self._load_snapshots([event.id])
            rows: list[dict[str, Any]] = []
            self._process_event(
                prop_event, sport, bookmakers, set(markets), snapshots, rows, movements, now,
                players=True, fallback_event=event,
            )
            saved += await self._save_snapshots(rows)
            logger.info("props_processed", event_id=event.id, outcomes=len(rows))
        return saved

    def _process_event(
        self,
        event: OddsEvent,
        sport: str,
        bookmakers: list[str],
        markets: set[str] | None,
        snapshots: dict[tuple[str, str, str, str], OddsSnapshot],
        rows: list[dict[str, Any]],
        movements: list[DetectedMovement],
        now: datetime,
        players: bool = False,
        fallback_event: OddsEvent | None = None,
    ) -> None:
        """Build snapshot rows and detect movements for one event (no I/O)."""
        if fallback_event is not None:
            event = replace(
                event,
                commence_time=event.commence_time or fallback_event.commence_time,
                home_team=event.home_team or fallback_event.home_team,
                away_team=event.away_team or fallback_event.away_team,
            )

        for bookmaker in event.bookmakers:
            if bookmaker.key not in bookmakers:
                continue
            for market in bookmaker.markets:
                if markets is not None and market.key not in markets:
                    continue
                for outcome in market.outcomes:
                    player_name = None
                    outcome_name = outcome.name
                    if players:
                        player_name = outcome.description or "Unknown Player"
                        outcome_name = prop_outcome_name(player_name, outcome.name, outcome.point)

                    key = (event.id, bookmaker.key, market.key, outcome_name)
                    existing = snapshots.get(key)
                    rows.append(
                        self._snapshot_row(
                            event, sport, bookmaker.key, market.key, outcome_name,
                            outcome.price, outcome.point, player_name, existing, now,
                        )
                    )

                    movement = detect_movement(
                        event, sport, bookmaker.key, market.key, outcome_name,
                        outcome.price, outcome.point, existing, now, player_name,
                    )
                    if movement:
                        movements.append(movement)

    @staticmethod
    def _snapshot_row(
        event: OddsEvent,
        sport: str,
        bookmaker: str,
        market_key: str,
        outcome_name: str,
        price: int,
        point: float | None,
        player_name: str | None,
        existing: OddsSnapshot | None,
        now: datetime,
    ) -> dict[str, Any]:
        if existing is not None and existing.opening_price is not None:
            opening_price, opening_point = existing.opening_price, existing.opening_point
        else:
            opening_price, opening_point = price, point
        return {
            "event_id": event.id,
            "sport": sport,
            "event_name": event.description,
            "commence_time": event.commence_time,
            "bookmaker": bookmaker,
            "market_type": market_key,
            "outcome_name": outcome_name,
            "player_name": player_name,
            "is_player_prop": player_name is not None,
            "price": price,
            "point": point,
            "previous_price": existing.price if existing is not None else None,
            "opening_price": opening_price,
            "opening_point": opening_point,
            "captured_at": now,
        }

    async def _load_snapshots(
        self, event_ids: list[str]
    ) -> dict[tuple[str, str, str, str], OddsSnapshot]:
        """Current snapshots for the given events keyed by outcome."""
        if not event_ids:
            return {}
        # Snapshots are written with core upserts, so refresh identity-mapped rows
        result = await self.session.execute(
            select(OddsSnapshot)
            .where(OddsSnapshot.event_id.in_(event_ids))
            .execution_options(populate_existing=True)
        )
        return {
            (s.event_id, s.bookmaker, s.market_type, s.outcome_name): s
            for s in result.scalars().all()
        }

    async def _save_snapshots(self, rows: list[dict[str, Any]]) -> int:
        saved = 0
        for i in range(0, len(rows), 100):
            chunk = rows[i : i + 100]
            try:
                saved += await upsert_rows(
                    self.session,
                    OddsSnapshot,
                    chunk,
                    conflict_keys=["event_id", "bookmaker", "market_type", "outcome_name"],
                )
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                logger.error("snapshot_upsert_failed", error=str(e), rows=len(chunk))
        return saved

    async def _save_movements(self, movements: list[DetectedMovement]) -> int:
        if not movements:
            return 0
        try:
            saved = await upsert_rows(
                self.session,
                LineMovement,
                [m.to_row() for m in movements],
                conflict_keys=[
                    "event_id",
                    "bookmaker",
                    "market_type",
                    "outcome_name",
                    "old_price",
                    "new_price",
                ],
            )
            await self.session.commit()
            return saved
        except Exception as e:
            await self.session.rollback()
            logger.error("movement_upsert_failed", error=str(e), rows=len(movements))
            return 0

    async def cleanup_snapshots(self, now: datetime | None = None) -> int:
        """Delete snapshots not refreshed within the retention window."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(hours=self.retention_hours)
        result = await self.session.execute(
            delete(OddsSnapshot).where(OddsSnapshot.captured_at < cutoff)
        )
        return result.rowcount or 0


async def get_recent_movements(
    session: AsyncSession,
    limit: int = 50,
    sharp_only: bool = False,
) -> list[LineMovement]:
    """Latest movements, newest first."""
    query = select(LineMovement).order_by(LineMovement.detected_at.desc(), LineMovement.id.desc())
    if sharp_only:
        query = query.where(LineMovement.is_sharp_action.is_(True))
    result = await session.execute(query.limit(limit))
    return list(result.scalars().all())

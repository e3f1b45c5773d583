"""Median matchup pick generation for upcoming NBA props."""

from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.config import get_settings
from linewatch.models.domain import MedianEdgePick, NbaDefenseCode, NbaPlayerGameLog, UnifiedProp
from linewatch.models.upsert import upsert_rows
from linewatch.services.profiling.season_stats import season_for
from linewatch.services.scoring.median_matchup import (
    STAT_TYPES,
    DefenseCodes,
    GameLine,
    MedianEngineConfig,
    MedianMatchupEngine,
    MedianPick,
    normalize_prop_type,
    valid_line,
)

logger = structlog.get_logger(__name__)

ENGINE_NAME = "NBA_MEDIAN_MATCHUP_V2"
ENGINE_VERSION = "2.0.0"
ENGINE_FEATURES = [
    "Defense code multipliers (0-100 -> -8% to +8%)",
    "Hit rate validation (60%+ for LEAN, 70%+ for STRONG)",
    "Per-stat thresholds",
    "Volatility dampening",
    "Confidence tiers (A/B/C/D)",
]


def engine_info() -> dict[str, Any]:
    return {
        "engine": ENGINE_NAME,
        "version": ENGINE_VERSION,
        "supports": list(STAT_TYPES),
        "features": ENGINE_FEATURES,
    }


def opponent_for(prop: UnifiedProp, team: str | None) -> str | None:
    """The other side of the prop's game, given the player's team."""
    if not team:
        return None
    if team == prop.home_team:
        return prop.away_team
    if team == prop.away_team:
        return prop.home_team
    return None


def summarize(results: list[MedianPick]) -> dict[str, Any]:
    """Counts reported by an analysis run."""
    actionable = [r for r in results if r.actionable]
    return {
        "engine": ENGINE_NAME,
        "analyzed": len(results),
        "actionable_picks": len(actionable),
        "strong_picks": sum(1 for r in actionable if r.bet_label == "STRONG"),
        "lean_picks": sum(1 for r in actionable if r.bet_label == "LEAN"),
        "tier_breakdown": {t: sum(1 for r in actionable if r.tier == t) for t in ("A", "B", "C")},
        "picks": [r.to_dict() for r in actionable],
    }


def pick_row(
    pick: MedianPick,
    game_date: date,
    team: str | None,
    sportsbook: str | None,
) -> dict[str, Any]:
    return {
        "player_name": pick.player_name,
        "stat_type": pick.stat_type,
        "game_date": game_date,
        "event_id": pick.event_id,
        "team": team,
        "opponent": pick.opponent,
        "sportsbook": sportsbook,
        "line": pick.line,
        "median10": pick.median10,
        "median5": pick.median5,
        "adjusted_median": pick.adjusted_median,
        "edge": pick.edge,
        "hit_rate_over": pick.hit_rate_over,
        "hit_rate_under": pick.hit_rate_under,
        "volatility": pick.volatility,
        "defense_code": pick.defense_code,
        "defense_multiplier": pick.defense_multiplier,
        "direction": pick.direction,
        "bet_label": pick.bet_label,
        "tier": pick.tier,
        "confidence_flag": pick.confidence_flag,
        "reason": pick.reason,
    }


class MedianPickService:
    """Evaluate active props against game logs and store actionable picks."""

    def __init__(self, session: AsyncSession, engine: MedianMatchupEngine | None = None):
        self.session = session
        if engine is None:
            section = get_settings().load_defaults_config().get("median_matchup")
            engine = MedianMatchupEngine(MedianEngineConfig.from_mapping(section))
        self.engine = engine

    async def _defense_codes(self, season: str) -> dict[str, DefenseCodes]:
        result = await self.session.execute(
            select(NbaDefenseCode).where(NbaDefenseCode.season == season)
        )
        return {
            row.team_name.lower(): DefenseCodes(row.vs_points, row.vs_rebounds, row.vs_assists)
            for row in result.scalars().all()
        }

    async def _logs_by_player(self) -> dict[str, list[NbaPlayerGameLog]]:
        result = await self.session.execute(
            select(NbaPlayerGameLog).order_by(NbaPlayerGameLog.game_date.desc())
        )
        by_player: dict[str, list[NbaPlayerGameLog]] = defaultdict(list)
        for log in result.scalars().all():
            by_player[log.player_name.strip().lower()].append(log)
        return by_player

    async def analyze_auto(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Evaluate every active upcoming NBA prop.

        Actionable picks are upserted keyed by player, stat and date.

        Returns:
            Summary dict (counts, tier breakdown and actionable picks)
        """
        now = now or datetime.now(timezone.utc)
        today = now.date()

        props = (
            await self.session.execute(
                select(UnifiedProp).where(
                    UnifiedProp.sport == "NBA",
                    UnifiedProp.is_active.is_(True),
                    UnifiedProp.commence_time >= now,
                )
            )
        ).scalars().all()
        defense = await self._defense_codes(season_for(today))
        logs = await self._logs_by_player()
        logger.info(
            "median_inputs_loaded",
            props=len(props),
            defense_codes=len(defense),
            players_with_logs=len(logs),
        )

        results: list[MedianPick] = []
        rows: list[dict[str, Any]] = []
        for prop in props:
            player = (prop.player_name or "").strip()
            stat_type = normalize_prop_type(prop.prop_type)
            line = valid_line(prop.line)
            if not player or not stat_type or line is None:
                continue

            player_logs = logs.get(player.lower(), [])
            team = player_logs[0].team if player_logs else None
            opponent = opponent_for(prop, team)
            pick = self.engine.evaluate(
                player_name=player,
                stat_type=stat_type,
                line=line,
                logs=[GameLine(g.minutes, g.points, g.rebounds, g.assists) for g in player_logs],
                defense=defense.get((opponent or "").lower()),
                event_id=prop.event_id,
                opponent=opponent,
            )
            results.append(pick)
            if pick.actionable:
                rows.append(pick_row(pick, today, team, prop.bookmaker))

        if rows:
            try:
                await upsert_rows(
                    self.session,
                    MedianEdgePick,
                    rows,
                    conflict_keys=["player_name", "stat_type", "game_date"],
                )
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                logger.error("median_pick_upsert_failed", error=str(e), rows=len(rows))

        summary = summarize(results)
        logger.info(
            "median_analysis_complete",
            analyzed=summary["analyzed"],
            actionable=summary["actionable_picks"],
            strong=summary["strong_picks"],
        )
        return summary

    async def get_picks(self, game_date: date | None = None) -> list[dict[str, Any]]:
        """Stored picks for a date (default today), best edge first."""
        game_date = game_date or datetime.now(timezone.utc).date()
        result = await self.session.execute(
            select(MedianEdgePick)
            .where(MedianEdgePick.game_date == game_date)
            .order_by(MedianEdgePick.edge.desc())
        )
        return [
            {
                "id": p.id,
                "player_name": p.player_name,
                "stat_type": p.stat_type,
                "game_date": p.game_date.isoformat(),
                "event_id": p.event_id,
                "team": p.team,
                "opponent": p.opponent,
                "sportsbook": p.sportsbook,
                "line": p.line,
                "median10": p.median10,
                "median5": p.median5,
                "adjusted_median": p.adjusted_median,
                "edge": p.edge,
                "hit_rate_over": p.hit_rate_over,
                "hit_rate_under": p.hit_rate_under,
                "volatility": p.volatility,
                "defense_code": p.defense_code,
                "defense_multiplier": p.defense_multiplier,
                "direction": p.direction,
                "bet_label": p.bet_label,
                "tier": p.tier,
                "confidence_flag": p.confidence_flag,
                "reason": p.reason,
            }
            for p in result.scalars().all()
        ]

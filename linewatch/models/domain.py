"""Domain models for LineWatch.

Tables are flat records keyed by natural identifiers. Every writer resolves
conflicts on the unique constraints declared here (see models.upsert), so a
job can be re-run safely with the same upstream data.
"""

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from linewatch.models.base import Base, JSONType, TimestampMixin


class OddsSnapshot(Base):
    """
    Latest observed price for one outcome at one bookmaker.

    The opening price/point are written once and preserved on every later
    upsert; previous_price holds the value seen on the prior poll.
    """

    __tablename__ = "odds_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sport: Mapped[str] = mapped_column(String(20), nullable=False)
    event_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    commence_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    bookmaker: Mapped[str] = mapped_column(String(50), nullable=False)
    market_type: Mapped[str] = mapped_column(String(50), nullable=False)
    outcome_name: Mapped[str] = mapped_column(String(200), nullable=False)
    player_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_player_prop: Mapped[bool] = mapped_column(Boolean, default=False)

    price: Mapped[int] = mapped_column(Integer, nullable=False)
    point: Mapped[float | None] = mapped_column(Float, nullable=True)
    previous_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opening_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opening_point: Mapped[float | None] = mapped_column(Float, nullable=True)
    captured_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "bookmaker",
            "market_type",
            "outcome_name",
            name="uq_odds_snapshot_outcome",
        ),
        Index("idx_odds_snapshots_captured", "captured_at"),
    )

    def __repr__(self) -> str:
        return f"<OddsSnapshot {self.event_id} {self.bookmaker} {self.outcome_name} {self.price}>"


class LineMovement(Base):
    """
    A significant price/point change between two polls.

    Authenticity columns are written by the movement tracker; the sharp_*
    columns are written by the sharp engine (analyze / batch_reanalyze).
    Verification columns are filled once the game is graded.
    """

    __tablename__ = "line_movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sport: Mapped[str] = mapped_column(String(20), nullable=False)
    event_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    commence_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    bookmaker: Mapped[str] = mapped_column(String(50), nullable=False)
    market_type: Mapped[str] = mapped_column(String(50), nullable=False)
    outcome_name: Mapped[str] = mapped_column(String(200), nullable=False)
    player_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_player_prop: Mapped[bool] = mapped_column(Boolean, default=False)

    # Movement
    old_price: Mapped[int] = mapped_column(Integer, nullable=False)
    new_price: Mapped[int] = mapped_column(Integer, nullable=False)
    price_change: Mapped[int] = mapped_column(Integer, nullable=False)
    old_point: Mapped[float | None] = mapped_column(Float, nullable=True)
    new_point: Mapped[float | None] = mapped_column(Float, nullable=True)
    point_change: Mapped[float | None] = mapped_column(Float, nullable=True)
    opening_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opening_point: Mapped[float | None] = mapped_column(Float, nullable=True)
    hours_to_game: Mapped[float | None] = mapped_column(Float, nullable=True)
    books_consensus: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opposite_side_moved: Mapped[bool] = mapped_column(Boolean, default=False)

    # Movement tracker authenticity analysis
    is_sharp_action: Mapped[bool] = mapped_column(Boolean, default=False)
    sharp_indicator: Mapped[str | None] = mapped_column(String(100), nullable=True)
    movement_authenticity: Mapped[str | None] = mapped_column(
        String(20), nullable=True, doc="'real', 'fake', 'uncertain'"
    )
    authenticity_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    recommendation: Mapped[str | None] = mapped_column(
        String(20), nullable=True, doc="'pick', 'fade', 'caution'"
    )
    recommendation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_pick: Mapped[str | None] = mapped_column(String(300), nullable=True)
    is_primary_movement: Mapped[bool] = mapped_column(Boolean, default=True)
    related_movements: Mapped[list[Any] | None] = mapped_column(JSONType, nullable=True)
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Sharp engine output
    sharp_pressure: Mapped[float | None] = mapped_column(Float, nullable=True)
    trap_pressure: Mapped[float | None] = mapped_column(Float, nullable=True)
    sharp_edge_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    sharp_probability: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sharp_label: Mapped[str | None] = mapped_column(String(20), nullable=True)
    sharp_signals: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    trap_signals: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    engine_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    analyzed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Grading
    outcome_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    outcome_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "bookmaker",
            "market_type",
            "outcome_name",
            "old_price",
            "new_price",
            name="uq_line_movement",
        ),
        Index("idx_line_movements_detected", "detected_at"),
        Index("idx_line_movements_sport", "sport", "detected_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LineMovement {self.outcome_name} {self.old_price}->{self.new_price} "
            f"({self.recommendation})>"
        )


class SharpEngineSetting(Base):
    """Global override for a sharp engine weight."""

    __tablename__ = "sharp_engine_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    config_key: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    config_value: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SharpEngineSetting {self.config_key}={self.config_value}>"


class SharpEngineSportSetting(Base):
    """Per-sport override layered over the global sharp engine weights."""

    __tablename__ = "sharp_engine_sport_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sport: Mapped[str] = mapped_column(String(20), nullable=False)
    config_key: Mapped[str] = mapped_column(String(50), nullable=False)
    config_value: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("sport", "config_key", name="uq_sharp_sport_config"),
    )


class MarketSignalWeight(Base):
    """Override for a market signal component weight."""

    __tablename__ = "market_signal_weights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    weight_key: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    weight_value: Mapped[float] = mapped_column(Float, nullable=False)


class MarketSignal(Base, TimestampMixin):
    """Market signal composite score for one outcome."""

    __tablename__ = "market_signals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sport: Mapped[str | None] = mapped_column(String(20), nullable=True)
    market_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    outcome_name: Mapped[str] = mapped_column(String(200), nullable=False)
    player_name: Mapped[str] = mapped_column(
        String(100), nullable=False, default="", server_default=""
    )

    market_score: Mapped[int] = mapped_column(Integer, nullable=False)
    signal_label: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'sharp_aligned', 'neutral', 'trap_risk'"
    )
    line_move_score: Mapped[float] = mapped_column(Float, nullable=False)
    juice_move_score: Mapped[float] = mapped_column(Float, nullable=False)
    timing_score: Mapped[float] = mapped_column(Float, nullable=False)
    consensus_score: Mapped[float] = mapped_column(Float, nullable=False)
    public_fade_score: Mapped[float] = mapped_column(Float, nullable=False)
    rationale: Mapped[str | None] = mapped_column(Text, nullable=True)
    inputs: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    scored_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "event_id", "outcome_name", "player_name", name="uq_market_signal"
        ),
        Index("idx_market_signals_scored", "scored_at"),
    )


class UnifiedProp(Base, TimestampMixin):
    """Current player prop line from one bookmaker."""

    __tablename__ = "unified_props"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sport: Mapped[str] = mapped_column(String(20), nullable=False)
    commence_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    home_team: Mapped[str | None] = mapped_column(String(100), nullable=True)
    away_team: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bookmaker: Mapped[str] = mapped_column(String(50), nullable=False)
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    prop_type: Mapped[str] = mapped_column(String(50), nullable=False)
    line: Mapped[float] = mapped_column(Float, nullable=False)
    over_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    under_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        UniqueConstraint(
            "event_id", "bookmaker", "player_name", "prop_type", name="uq_unified_prop"
        ),
        Index("idx_unified_props_active", "sport", "is_active"),
    )


class NbaPlayerGameLog(Base):
    """One player's box score line for one game."""

    __tablename__ = "nba_player_game_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    team: Mapped[str | None] = mapped_column(String(100), nullable=True)
    opponent: Mapped[str | None] = mapped_column(String(100), nullable=True)
    game_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_home: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    espn_game_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    minutes: Mapped[float] = mapped_column(Float, default=0)
    points: Mapped[int] = mapped_column(Integer, default=0)
    rebounds: Mapped[int] = mapped_column(Integer, default=0)
    assists: Mapped[int] = mapped_column(Integer, default=0)
    steals: Mapped[int] = mapped_column(Integer, default=0)
    blocks: Mapped[int] = mapped_column(Integer, default=0)
    turnovers: Mapped[int] = mapped_column(Integer, default=0)
    threes_made: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("player_name", "game_date", name="uq_game_log_player_date"),
        Index("idx_game_logs_player", "player_name", "game_date"),
    )

    def __repr__(self) -> str:
        return f"<NbaPlayerGameLog {self.player_name} {self.game_date}>"


class NbaDefenseCode(Base, TimestampMixin):
    """
    Team defence codes per stat on a 0-100 scale.

    Higher = tougher defence against that stat.
    """

    __tablename__ = "nba_defense_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_name: Mapped[str] = mapped_column(String(100), nullable=False)
    season: Mapped[str] = mapped_column(String(10), nullable=False)
    vs_points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vs_rebounds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vs_assists: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("team_name", "season", name="uq_defense_code_team_season"),
    )


class PlayerSeasonStats(Base, TimestampMixin):
    """Season and recent-form averages derived from game logs."""

    __tablename__ = "player_season_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    sport: Mapped[str] = mapped_column(String(20), nullable=False)
    season: Mapped[str] = mapped_column(String(10), nullable=False)
    team: Mapped[str | None] = mapped_column(String(100), nullable=True)
    games_played: Mapped[int] = mapped_column(Integer, default=0)

    avg_minutes: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_rebounds: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_assists: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_steals: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_blocks: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_turnovers: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_threes: Mapped[float | None] = mapped_column(Float, nullable=True)

    home_avg_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    away_avg_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    last10_avg_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    last10_avg_rebounds: Mapped[float | None] = mapped_column(Float, nullable=True)
    last10_avg_assists: Mapped[float | None] = mapped_column(Float, nullable=True)
    last5_avg_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    last5_avg_rebounds: Mapped[float | None] = mapped_column(Float, nullable=True)
    last5_avg_assists: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "player_name", "sport", "season", name="uq_season_stats_player"
        ),
    )


class PlayerArchetype(Base, TimestampMixin):
    """Rule-based player archetype; manual overrides are never rewritten."""

    __tablename__ = "player_archetypes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    archetype: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    manual_override: Mapped[bool] = mapped_column(Boolean, default=False)
    source_stats: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    def __repr__(self) -> str:
        return f"<PlayerArchetype {self.player_name}={self.archetype}>"


class MedianEdgePick(Base, TimestampMixin):
    """Actionable output of the median matchup engine."""

    __tablename__ = "median_edge_picks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    stat_type: Mapped[str] = mapped_column(String(20), nullable=False)
    game_date: Mapped[date] = mapped_column(Date, nullable=False)
    event_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    team: Mapped[str | None] = mapped_column(String(100), nullable=True)
    opponent: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sportsbook: Mapped[str | None] = mapped_column(String(50), nullable=True)

    line: Mapped[float] = mapped_column(Float, nullable=False)
    median10: Mapped[float] = mapped_column(Float, nullable=False)
    median5: Mapped[float] = mapped_column(Float, nullable=False)
    adjusted_median: Mapped[float] = mapped_column(Float, nullable=False)
    edge: Mapped[float] = mapped_column(Float, nullable=False)
    hit_rate_over: Mapped[float] = mapped_column(Float, nullable=False)
    hit_rate_under: Mapped[float] = mapped_column(Float, nullable=False)
    volatility: Mapped[float] = mapped_column(Float, nullable=False)
    defense_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    defense_multiplier: Mapped[float] = mapped_column(Float, default=0)

    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    bet_label: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'STRONG', 'LEAN'"
    )
    tier: Mapped[str] = mapped_column(String(1), nullable=False)
    confidence_flag: Mapped[str] = mapped_column(String(10), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "player_name", "stat_type", "game_date", name="uq_median_edge_pick"
        ),
        Index("idx_median_edge_picks_date", "game_date", "tier"),
    )


class SharpSignalAccuracy(Base):
    """Calibration result for one sharp/trap signal, overall or per sport."""

    __tablename__ = "sharp_signal_accuracy"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    signal_name: Mapped[str] = mapped_column(String(50), nullable=False)
    sport: Mapped[str] = mapped_column(String(20), nullable=False, default="ALL")
    signal_type: Mapped[str] = mapped_column(
        String(10), nullable=False, doc="'sharp' or 'trap'"
    )
    total: Mapped[int] = mapped_column(Integer, default=0)
    correct: Mapped[int] = mapped_column(Integer, default=0)
    accuracy: Mapped[float] = mapped_column(Float, default=0)
    avg_ses: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    suggested_weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    calibrated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("signal_name", "sport", name="uq_signal_accuracy"),
    )


class JobRun(Base):
    """
    Task execution audit log.

    Every scheduled or manually triggered handler run is logged here.
    """

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'running', 'success', 'failed'"
    )
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    def __repr__(self) -> str:
        return f"<JobRun {self.job_name} status={self.status}>"

"""Initial schema for LineWatch.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the tables used by the analytics handlers:
- odds_snapshots / line_movements for the odds movement tracker
- sharp_engine_config / sharp_engine_sport_config for engine overrides
- market_signal_weights / market_signals for the market signal scorer
- unified_props and the NBA stat tables for median matchup analysis
- sharp_signal_accuracy for calibration output
- job_runs for task audit logging

Every writer upserts on the unique constraints declared here.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Latest price per outcome per bookmaker
    op.create_table(
        "odds_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.String(length=100), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("event_name", sa.String(length=300), nullable=True),
        sa.Column("commence_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bookmaker", sa.String(length=50), nullable=False),
        sa.Column("market_type", sa.String(length=50), nullable=False),
        sa.Column("outcome_name", sa.String(length=200), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=True),
        sa.Column("is_player_prop", sa.Boolean(), nullable=True, default=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("point", sa.Float(), nullable=True),
        sa.Column("previous_price", sa.Integer(), nullable=True),
        sa.Column("opening_price", sa.Integer(), nullable=True),
        sa.Column("opening_point", sa.Float(), nullable=True),
        sa.Column(
            "captured_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "event_id",
            "bookmaker",
            "market_type",
            "outcome_name",
            name="uq_odds_snapshot_outcome",
        ),
    )
    op.create_index("idx_odds_snapshots_captured", "odds_snapshots", ["captured_at"])

    # Detected movements with authenticity and sharp engine output
    op.create_table(
        "line_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.String(length=100), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("event_name", sa.String(length=300), nullable=True),
        sa.Column("commence_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bookmaker", sa.String(length=50), nullable=False),
        sa.Column("market_type", sa.String(length=50), nullable=False),
        sa.Column("outcome_name", sa.String(length=200), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=True),
        sa.Column("is_player_prop", sa.Boolean(), nullable=True, default=False),
        sa.Column("old_price", sa.Integer(), nullable=False),
        sa.Column("new_price", sa.Integer(), nullable=False),
        sa.Column("price_change", sa.Integer(), nullable=False),
        sa.Column("old_point", sa.Float(), nullable=True),
        sa.Column("new_point", sa.Float(), nullable=True),
        sa.Column("point_change", sa.Float(), nullable=True),
        sa.Column("opening_price", sa.Integer(), nullable=True),
        sa.Column("opening_point", sa.Float(), nullable=True),
        sa.Column("hours_to_game", sa.Float(), nullable=True),
        sa.Column("books_consensus", sa.Integer(), nullable=True),
        sa.Column("opposite_side_moved", sa.Boolean(), nullable=True, default=False),
        sa.Column("is_sharp_action", sa.Boolean(), nullable=True, default=False),
        sa.Column("sharp_indicator", sa.String(length=100), nullable=True),
        sa.Column(
            "movement_authenticity",
            sa.String(length=20),
            nullable=True,
            comment="'real', 'fake', 'uncertain'",
        ),
        sa.Column("authenticity_confidence", sa.Float(), nullable=True),
        sa.Column(
            "recommendation",
            sa.String(length=20),
            nullable=True,
            comment="'pick', 'fade', 'caution'",
        ),
        sa.Column("recommendation_reason", sa.Text(), nullable=True),
        sa.Column("final_pick", sa.String(length=300), nullable=True),
        sa.Column("is_primary_movement", sa.Boolean(), nullable=True, default=True),
        sa.Column("related_movements", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "detected_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("sharp_pressure", sa.Float(), nullable=True),
        sa.Column("trap_pressure", sa.Float(), nullable=True),
        sa.Column("sharp_edge_score", sa.Float(), nullable=True),
        sa.Column("sharp_probability", sa.Integer(), nullable=True),
        sa.Column("sharp_label", sa.String(length=20), nullable=True),
        sa.Column("sharp_signals", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("trap_signals", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("engine_version", sa.String(length=50), nullable=True),
        sa.Column("analyzed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("outcome_verified", sa.Boolean(), nullable=True, default=False),
        sa.Column("outcome_correct", sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "event_id",
            "bookmaker",
            "market_type",
            "outcome_name",
            "old_price",
            "new_price",
            name="uq_line_movement",
        ),
    )
    op.create_index("idx_line_movements_detected", "line_movements", ["detected_at"])
    op.create_index("idx_line_movements_sport", "line_movements", ["sport", "detected_at"])

    # Sharp engine overrides
    op.create_table(
        "sharp_engine_config",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("config_key", sa.String(length=50), nullable=False),
        sa.Column("config_value", sa.Float(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("config_key"),
    )
    op.create_table(
        "sharp_engine_sport_config",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("config_key", sa.String(length=50), nullable=False),
        sa.Column("config_value", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sport", "config_key", name="uq_sharp_sport_config"),
    )

    # Market signal scorer
    op.create_table(
        "market_signal_weights",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("weight_key", sa.String(length=50), nullable=False),
        sa.Column("weight_value", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("weight_key"),
    )
    op.create_table(
        "market_signals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.String(length=100), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=True),
        sa.Column("market_type", sa.String(length=50), nullable=True),
        sa.Column("outcome_name", sa.String(length=200), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("market_score", sa.Integer(), nullable=False),
        sa.Column(
            "signal_label",
            sa.String(length=20),
            nullable=False,
            comment="'sharp_aligned', 'neutral', 'trap_risk'",
        ),
        sa.Column("line_move_score", sa.Float(), nullable=False),
        sa.Column("juice_move_score", sa.Float(), nullable=False),
        sa.Column("timing_score", sa.Float(), nullable=False),
        sa.Column("consensus_score", sa.Float(), nullable=False),
        sa.Column("public_fade_score", sa.Float(), nullable=False),
        sa.Column("rationale", sa.Text(), nullable=True),
        sa.Column("inputs", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "scored_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "event_id", "outcome_name", "player_name", name="uq_market_signal"
        ),
    )
    op.create_index("idx_market_signals_scored", "market_signals", ["scored_at"])

    # Player prop lines
    op.create_table(
        "unified_props",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.String(length=100), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("commence_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("home_team", sa.String(length=100), nullable=True),
        sa.Column("away_team", sa.String(length=100), nullable=True),
        sa.Column("bookmaker", sa.String(length=50), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=False),
        sa.Column("prop_type", sa.String(length=50), nullable=False),
        sa.Column("line", sa.Float(), nullable=False),
        sa.Column("over_price", sa.Integer(), nullable=True),
        sa.Column("under_price", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True, default=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "event_id", "bookmaker", "player_name", "prop_type", name="uq_unified_prop"
        ),
    )
    op.create_index("idx_unified_props_active", "unified_props", ["sport", "is_active"])

    # NBA box score lines
    op.create_table(
        "nba_player_game_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=False),
        sa.Column("team", sa.String(length=100), nullable=True),
        sa.Column("opponent", sa.String(length=100), nullable=True),
        sa.Column("game_date", sa.Date(), nullable=False),
        sa.Column("is_home", sa.Boolean(), nullable=True),
        sa.Column("espn_game_id", sa.String(length=50), nullable=True),
        sa.Column("minutes", sa.Float(), nullable=True, default=0),
        sa.Column("points", sa.Integer(), nullable=True, default=0),
        sa.Column("rebounds", sa.Integer(), nullable=True, default=0),
        sa.Column("assists", sa.Integer(), nullable=True, default=0),
        sa.Column("steals", sa.Integer(), nullable=True, default=0),
        sa.Column("blocks", sa.Integer(), nullable=True, default=0),
        sa.Column("turnovers", sa.Integer(), nullable=True, default=0),
        sa.Column("threes_made", sa.Integer(), nullable=True, default=0),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_name", "game_date", name="uq_game_log_player_date"),
    )
    op.create_index(
        "idx_game_logs_player", "nba_player_game_logs", ["player_name", "game_date"]
    )

    op.create_table(
        "nba_defense_codes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_name", sa.String(length=100), nullable=False),
        sa.Column("season", sa.String(length=10), nullable=False),
        sa.Column("vs_points", sa.Integer(), nullable=True),
        sa.Column("vs_rebounds", sa.Integer(), nullable=True),
        sa.Column("vs_assists", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("team_name", "season", name="uq_defense_code_team_season"),
    )

    op.create_table(
        "player_season_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("season", sa.String(length=10), nullable=False),
        sa.Column("team", sa.String(length=100), nullable=True),
        sa.Column("games_played", sa.Integer(), nullable=True, default=0),
        sa.Column("avg_minutes", sa.Float(), nullable=True),
        sa.Column("avg_points", sa.Float(), nullable=True),
        sa.Column("avg_rebounds", sa.Float(), nullable=True),
        sa.Column("avg_assists", sa.Float(), nullable=True),
        sa.Column("avg_steals", sa.Float(), nullable=True),
        sa.Column("avg_blocks", sa.Float(), nullable=True),
        sa.Column("avg_turnovers", sa.Float(), nullable=True),
        sa.Column("avg_threes", sa.Float(), nullable=True),
        sa.Column("home_avg_points", sa.Float(), nullable=True),
        sa.Column("away_avg_points", sa.Float(), nullable=True),
        sa.Column("last10_avg_points", sa.Float(), nullable=True),
        sa.Column("last10_avg_rebounds", sa.Float(), nullable=True),
        sa.Column("last10_avg_assists", sa.Float(), nullable=True),
        sa.Column("last5_avg_points", sa.Float(), nullable=True),
        sa.Column("last5_avg_rebounds", sa.Float(), nullable=True),
        sa.Column("last5_avg_assists", sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "player_name", "sport", "season", name="uq_season_stats_player"
        ),
    )

    op.create_table(
        "player_archetypes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=False),
        sa.Column("archetype", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("manual_override", sa.Boolean(), nullable=True, default=False),
        sa.Column("source_stats", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_name"),
    )

    # Median matchup output
    op.create_table(
        "median_edge_picks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=False),
        sa.Column("stat_type", sa.String(length=20), nullable=False),
        sa.Column("game_date", sa.Date(), nullable=False),
        sa.Column("event_id", sa.String(length=100), nullable=True),
        sa.Column("team", sa.String(length=100), nullable=True),
        sa.Column("opponent", sa.String(length=100), nullable=True),
        sa.Column("sportsbook", sa.String(length=50), nullable=True),
        sa.Column("line", sa.Float(), nullable=False),
        sa.Column("median10", sa.Float(), nullable=False),
        sa.Column("median5", sa.Float(), nullable=False),
        sa.Column("adjusted_median", sa.Float(), nullable=False),
        sa.Column("edge", sa.Float(), nullable=False),
        sa.Column("hit_rate_over", sa.Float(), nullable=False),
        sa.Column("hit_rate_under", sa.Float(), nullable=False),
        sa.Column("volatility", sa.Float(), nullable=False),
        sa.Column("defense_code", sa.Integer(), nullable=True),
        sa.Column("defense_multiplier", sa.Float(), nullable=True, default=0),
        sa.Column("direction", sa.String(length=10), nullable=False),
        sa.Column("bet_label", sa.String(length=20), nullable=False, comment="'STRONG', 'LEAN'"),
        sa.Column("tier", sa.String(length=1), nullable=False),
        sa.Column("confidence_flag", sa.String(length=10), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "player_name", "stat_type", "game_date", name="uq_median_edge_pick"
        ),
    )
    op.create_index("idx_median_edge_picks_date", "median_edge_picks", ["game_date", "tier"])

    # Calibration output
    op.create_table(
        "sharp_signal_accuracy",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("signal_name", sa.String(length=50), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False, server_default="ALL"),
        sa.Column("signal_type", sa.String(length=10), nullable=False, comment="'sharp' or 'trap'"),
        sa.Column("total", sa.Integer(), nullable=True, default=0),
        sa.Column("correct", sa.Integer(), nullable=True, default=0),
        sa.Column("accuracy", sa.Float(), nullable=True, default=0),
        sa.Column("avg_ses", sa.Float(), nullable=True),
        sa.Column("current_weight", sa.Float(), nullable=True),
        sa.Column("suggested_weight", sa.Float(), nullable=True),
        sa.Column(
            "calibrated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("signal_name", "sport", name="uq_signal_accuracy"),
    )

    # Task audit log
    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.String(length=20),
            nullable=False,
            comment="'running', 'success', 'failed'",
        ),
        sa.Column("records_processed", sa.Integer(), nullable=True, default=0),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("job_runs")
    op.drop_table("sharp_signal_accuracy")
    op.drop_index("idx_median_edge_picks_date", table_name="median_edge_picks")
    op.drop_table("median_edge_picks")
    op.drop_table("player_archetypes")
    op.drop_table("player_season_stats")
    op.drop_table("nba_defense_codes")
    op.drop_index("idx_game_logs_player", table_name="nba_player_game_logs")
    op.drop_table("nba_player_game_logs")
    op.drop_index("idx_unified_props_active", table_name="unified_props")
    op.drop_table("unified_props")
    op.drop_index("idx_market_signals_scored", table_name="market_signals")
    op.drop_table("market_signals")
    op.drop_table("market_signal_weights")
    op.drop_table("sharp_engine_sport_config")
    op.drop_table("sharp_engine_config")
    op.drop_index("idx_line_movements_sport", table_name="line_movements")
    op.drop_index("idx_line_movements_detected", table_name="line_movements")
    op.drop_table("line_movements")
    op.drop_index("idx_odds_snapshots_captured", table_name="odds_snapshots")
    op.drop_table("odds_snapshots")

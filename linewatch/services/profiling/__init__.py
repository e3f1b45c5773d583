"""Player profiling module for LineWatch."""

from linewatch.services.profiling.season_stats import SeasonStatsService, aggregate_player, season_for

__all__ = ["SeasonStatsService", "aggregate_player", "season_for"]

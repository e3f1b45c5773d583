"""Celery tasks for LineWatch.

This module configures Celery and registers all periodic tasks.
"""

from celery import Celery
from celery.schedules import crontab

from linewatch.config import get_settings
from linewatch.config.logging import configure_logging

settings = get_settings()
configure_logging(settings.log_level, json_logs=not settings.debug)

# Create Celery application
celery_app = Celery(
    "linewatch",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "linewatch.tasks.odds",
        "linewatch.tasks.stats",
        "linewatch.tasks.analysis",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task behavior
    task_track_started=True,
    task_time_limit=600,  # 10 minute hard limit
    task_soft_time_limit=540,  # 9 minute soft limit
    # Result expiration
    result_expires=3600,  # 1 hour
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # Odds movement tracking - every 10 minutes (API quota bound)
    "track-odds": {
        "task": "linewatch.tasks.odds.track_odds_movements",
        "schedule": 600.0,  # 10 minutes
        "options": {"expires": 570},
    },
    # Player props - every 30 minutes
    "refresh-props": {
        "task": "linewatch.tasks.odds.refresh_player_props",
        "schedule": 1800.0,  # 30 minutes
        "options": {"expires": 1740},
    },
    # Game logs - daily at 09:00 UTC, after late west coast games finish
    "fetch-game-logs": {
        "task": "linewatch.tasks.stats.fetch_nba_game_logs",
        "schedule": crontab(hour=9, minute=0),
        "options": {"expires": 3540},
    },
    # Season averages - daily at 09:30 UTC
    "compute-season-stats": {
        "task": "linewatch.tasks.stats.compute_season_stats",
        "schedule": crontab(hour=9, minute=30),
        "options": {"expires": 3540},
    },
    # Archetypes - daily at 10:00 UTC
    "classify-archetypes": {
        "task": "linewatch.tasks.analysis.classify_archetypes",
        "schedule": crontab(hour=10, minute=0),
        "options": {"expires": 3540},
    },
    # Median matchup picks - every hour at :15
    "analyze-median-matchups": {
        "task": "linewatch.tasks.analysis.analyze_median_matchups",
        "schedule": crontab(minute=15),
        "options": {"expires": 3540},
    },
    # Sharp re-scoring - every 30 minutes
    "reanalyze-sharp": {
        "task": "linewatch.tasks.analysis.reanalyze_sharp_movements",
        "schedule": 1800.0,  # 30 minutes
        "options": {"expires": 1740},
    },
    # Signal calibration - weekly, Monday 06:00 UTC
    "calibrate-sharp-signals": {
        "task": "linewatch.tasks.analysis.calibrate_sharp_signals",
        "schedule": crontab(hour=6, minute=0, day_of_week=1),
        "options": {"expires": 3540},
    },
}

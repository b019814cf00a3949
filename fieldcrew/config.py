import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL")

# Business timezone fallback when a business row has none configured
DEFAULT_BUSINESS_TIMEZONE = os.getenv("DEFAULT_BUSINESS_TIMEZONE", "UTC")

# Slot search
SCHEDULING_TICK_MINUTES = int(os.getenv("SCHEDULING_TICK_MINUTES", "30"))
SCHEDULING_SEARCH_DAYS = int(os.getenv("SCHEDULING_SEARCH_DAYS", "14"))
SCHEDULING_SUGGESTION_DAYS = int(os.getenv("SCHEDULING_SUGGESTION_DAYS", "7"))
# Upper bound on threads used to fan out per-worker lookups
SCHEDULING_MAX_PARALLELISM = int(os.getenv("SCHEDULING_MAX_PARALLELISM", "8"))
# Longest booking the store query has to look behind for when fetching overlaps
SCHEDULING_MAX_BOOKING_MINUTES = int(os.getenv("SCHEDULING_MAX_BOOKING_MINUTES", "1440"))
DEFAULT_JOB_DURATION_MINUTES = int(os.getenv("DEFAULT_JOB_DURATION_MINUTES", "60"))

# Response size caps
RESCHEDULE_TIME_ALTERNATIVES_LIMIT = int(os.getenv("RESCHEDULE_TIME_ALTERNATIVES_LIMIT", "8"))
RESCHEDULE_COMBINATIONS_LIMIT = int(os.getenv("RESCHEDULE_COMBINATIONS_LIMIT", "5"))
WORKER_SLOT_PREVIEW_LIMIT = int(os.getenv("WORKER_SLOT_PREVIEW_LIMIT", "5"))

# Canonical per-day times probed for time alternatives, "HH:MM=label" pairs
RESCHEDULE_CANONICAL_TIMES = os.getenv(
    "RESCHEDULE_CANONICAL_TIMES", "09:00=morning,13:00=afternoon,16:00=evening"
)

# Day analysis scans hourly slots from DAY_ANALYSIS_START_HOUR to DAY_ANALYSIS_END_HOUR inclusive
DAY_ANALYSIS_START_HOUR = int(os.getenv("DAY_ANALYSIS_START_HOUR", "8"))
DAY_ANALYSIS_END_HOUR = int(os.getenv("DAY_ANALYSIS_END_HOUR", "17"))
DAY_ANALYSIS_BEST_TIME_RATIO = float(os.getenv("DAY_ANALYSIS_BEST_TIME_RATIO", "0.7"))
DAY_ANALYSIS_FULL_DAY_RATIO = float(os.getenv("DAY_ANALYSIS_FULL_DAY_RATIO", "0.8"))

# Batch (all workers) grid: hourly slots for BATCH_GRID_DAYS days
BATCH_GRID_START_HOUR = int(os.getenv("BATCH_GRID_START_HOUR", "9"))
BATCH_GRID_END_HOUR = int(os.getenv("BATCH_GRID_END_HOUR", "19"))
BATCH_GRID_DAYS = int(os.getenv("BATCH_GRID_DAYS", "7"))

# Ranking weights - business judgment calls, override per deployment
RANK_AVAILABILITY_WEIGHT = float(os.getenv("RANK_AVAILABILITY_WEIGHT", "50"))
RANK_OPTIMAL_WEIGHT = float(os.getenv("RANK_OPTIMAL_WEIGHT", "30"))
RANK_CONFLICT_PENALTY = float(os.getenv("RANK_CONFLICT_PENALTY", "20"))
RANK_MORNING_BONUS = float(os.getenv("RANK_MORNING_BONUS", "20"))
RANK_AFTERNOON_BONUS = float(os.getenv("RANK_AFTERNOON_BONUS", "10"))
RANK_OTHER_BONUS = float(os.getenv("RANK_OTHER_BONUS", "0"))
RANK_COMBINATION_TIME_WEIGHT = float(os.getenv("RANK_COMBINATION_TIME_WEIGHT", "0.6"))
RANK_COMBINATION_EFFICIENCY_WEIGHT = float(os.getenv("RANK_COMBINATION_EFFICIENCY_WEIGHT", "0.4"))
RANK_OPTIMAL_WORKER_BONUS = float(os.getenv("RANK_OPTIMAL_WORKER_BONUS", "10"))

# Efficiency tiers (utilization percentage upper bounds)
EFFICIENCY_OPTIMAL_MAX = float(os.getenv("EFFICIENCY_OPTIMAL_MAX", "60"))
EFFICIENCY_GOOD_MAX = float(os.getenv("EFFICIENCY_GOOD_MAX", "80"))
EFFICIENCY_BUSY_MAX = float(os.getenv("EFFICIENCY_BUSY_MAX", "95"))

"""
Productivity score and insight generation.
"""

from typing import List, Optional

from .models import AnalyticsSnapshot, Insight, InsightType

MAX_INSIGHTS = 4


def productivity_score(
    total_focus_minutes: int,
    completed_sessions: int,
    streak_days: int,
    period_days: int
) -> int:
    """
    Combine focus time, session count and streak into a 0-100 score.

    Each part is capped on its own: 40 points for a daily average of two
    hours, 30 for fifteen sessions, 30 for a ten day streak.
    """
    days = max(1, period_days)
    daily_average = max(0, total_focus_minutes) / days

    time_score = min(40, int(daily_average / 3))
    session_score = min(30, max(0, completed_sessions) * 2)
    streak_score = min(30, max(0, streak_days) * 3)

    return time_score + session_score + streak_score


def _productivity_insight(snapshot: AnalyticsSnapshot) -> Optional[Insight]:
    score = snapshot.productivity_score
    if score >= 80:
        return Insight("Outstanding productivity! You're in the top 10% of users",
                       InsightType.POSITIVE, "productivity")
    if score >= 60:
        return Insight("Great job! Your productivity is above average",
                       InsightType.POSITIVE, "productivity")
    if score >= 40:
        return Insight("You're building good habits. Keep pushing!",
                       InsightType.NEUTRAL, "productivity")
    return Insight("Start with just one focus session today to build momentum",
                   InsightType.SUGGESTION, "productivity")


def _streak_insight(snapshot: AnalyticsSnapshot) -> Optional[Insight]:
    streak = snapshot.current_streak_days
    if streak >= 7:
        return Insight(f"{streak}-day streak! You're on fire!",
                       InsightType.POSITIVE, "streak")
    if streak >= 3:
        return Insight(f"Keep it up! {7 - streak} more days to a week streak",
                       InsightType.NEUTRAL, "streak")
    if streak == 0:
        return Insight("Start a new streak today with a focus session",
                       InsightType.SUGGESTION, "streak")
    return None


def _session_length_insight(snapshot: AnalyticsSnapshot) -> Optional[Insight]:
    average = snapshot.average_session_minutes
    if average <= 0:
        return None
    if average >= 25:
        return Insight("Perfect session length! You're mastering the Pomodoro technique",
                       InsightType.POSITIVE, "session_length")
    if average < 20:
        return Insight("Try extending sessions to 25 minutes for optimal focus",
                       InsightType.SUGGESTION, "session_length")
    return None


def _best_day_insight(snapshot: AnalyticsSnapshot) -> Optional[Insight]:
    best = snapshot.best_day
    if best is None or best.minutes <= 0:
        return None
    return Insight(f"Your best day was {best.day_name} with {best.minutes} minutes",
                   InsightType.NEUTRAL, "best_day")


# Evaluated in priority order, at most one message each
INSIGHT_RULES = (
    _productivity_insight,
    _streak_insight,
    _session_length_insight,
    _best_day_insight,
)


def generate_insights(snapshot: AnalyticsSnapshot) -> List[Insight]:
    """Deterministic, ordered insights for a snapshot."""
    insights = []
    for rule in INSIGHT_RULES:
        insight = rule(snapshot)
        if insight is not None:
            insights.append(insight)
    return insights[:MAX_INSIGHTS]

from focusflow.models import AnalyticsSnapshot, BestDay, InsightType
from focusflow.scoring import generate_insights, productivity_score


def test_score_example() -> None:
    # daily average 90 minutes, 20 sessions, 15 day streak
    assert productivity_score(90, 20, 15, 1) == 90


def test_score_terms_are_capped() -> None:
    assert productivity_score(10_000, 100, 100, 1) == 100
    assert productivity_score(0, 0, 0, 7) == 0


def test_score_guards_zero_length_range() -> None:
    assert productivity_score(30, 1, 1, 0) == 10 + 2 + 3


def test_insights_follow_priority_order() -> None:
    snapshot = AnalyticsSnapshot(
        productivity_score=85,
        current_streak_days=8,
        average_session_minutes=25.0,
        best_day=BestDay("2024-03-01", "Friday", 120),
    )

    insights = generate_insights(snapshot)

    assert [i.category for i in insights] == ["productivity", "streak", "session_length", "best_day"]
    assert insights[1].message == "8-day streak! You're on fire!"
    assert insights[3].message == "Your best day was Friday with 120 minutes"
    assert insights[0].kind is InsightType.POSITIVE


def test_insights_skip_categories_without_a_band() -> None:
    snapshot = AnalyticsSnapshot(productivity_score=45, current_streak_days=2, average_session_minutes=22.0)

    insights = generate_insights(snapshot)

    assert [i.category for i in insights] == ["productivity"]
    assert insights[0].kind is InsightType.NEUTRAL


def test_empty_snapshot_insights() -> None:
    insights = generate_insights(AnalyticsSnapshot())

    assert [i.kind for i in insights] == [InsightType.SUGGESTION, InsightType.SUGGESTION]


def test_insights_are_deterministic() -> None:
    snapshot = AnalyticsSnapshot(productivity_score=65, current_streak_days=4, average_session_minutes=15.0)

    first = generate_insights(snapshot)

    assert first == generate_insights(snapshot)
    assert first[1].message == "Keep it up! 3 more days to a week streak"
    assert len(first) <= 4

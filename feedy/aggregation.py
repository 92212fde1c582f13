"""
In-memory filtering and reduction of feedback lists.

Neither store can combine rating, date and owner predicates server-side, so every
backend fetches a bounded window and hands it to these functions. They are pure:
no I/O, no caching, the dashboard re-fetches and re-reduces on every refresh.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from .schemas import FeedbackEntry, FeedbackFilters, SurveyForm, TrendPoint

RATING_BUCKETS = (1, 2, 3, 4, 5)


def matches_filters(
    entry: FeedbackEntry, filters: FeedbackFilters, include_unowned: bool = False
) -> bool:
    if filters.min_rating is not None and entry.rating < filters.min_rating:
        return False
    if filters.max_rating is not None and entry.rating > filters.max_rating:
        return False
    if filters.start_date is not None and entry.created_at < filters.start_date:
        return False
    if filters.end_date is not None and entry.created_at > filters.end_date:
        return False
    if filters.owner_id is not None and entry.owner_id != filters.owner_id:
        if not (include_unowned and entry.owner_id is None):
            return False
    return True


def filter_feedback(
    entries: Iterable[FeedbackEntry],
    filters: Optional[FeedbackFilters] = None,
    include_unowned: bool = False,
) -> List[FeedbackEntry]:
    if filters is None:
        return list(entries)
    return [e for e in entries if matches_filters(e, filters, include_unowned)]


def newest_first(entries: Iterable[FeedbackEntry]) -> List[FeedbackEntry]:
    return sorted(entries, key=lambda e: e.created_at, reverse=True)


def rating_distribution(entries: Iterable[FeedbackEntry]) -> Dict[int, int]:
    """Count per rating 1..5. Every bucket is present; other ratings are not counted."""
    distribution = {rating: 0 for rating in RATING_BUCKETS}
    for entry in entries:
        if entry.rating in distribution:
            distribution[entry.rating] += 1
    return distribution


def trends_by_date(entries: Iterable[FeedbackEntry]) -> List[TrendPoint]:
    grouped: Dict[str, List[int]] = OrderedDict()
    for entry in entries:
        # Date part of the ISO timestamp, no timezone conversion
        date_key = entry.created_at.isoformat()[:10]
        grouped.setdefault(date_key, []).append(entry.rating)

    return [
        TrendPoint(date=date_key, count=len(ratings), avg_rating=sum(ratings) / len(ratings))
        for date_key, ratings in sorted(grouped.items())
    ]


def average_rating(entries: Iterable[FeedbackEntry]) -> float:
    ratings = [entry.rating for entry in entries]
    if not ratings:
        return 0.0
    return sum(ratings) / len(ratings)


def question_title_map(surveys: Iterable[SurveyForm]) -> Dict[str, str]:
    titles: Dict[str, str] = {}
    for survey in surveys:
        for question in survey.questions:
            titles[question.id] = question.title
    return titles

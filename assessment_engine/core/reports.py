"""
Session report builder.

Combines the session state controller, module scheduler and statistics
aggregator into a single summary of how a session went. Raw scores come
from an external answer scorer and are stored on the attempt; this module
only turns them into scaled scores, grades and cohort percentiles.

Partial credit is given to ``completed`` and ``auto_completed`` attempts.
``expired`` attempts (time ran out with nothing answered) never receive a
score, and are counted as dropouts in completion figures.
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, TypedDict

from libs.domain_types import AttemptStatus

from assessment_engine.core.entities import Attempt, ScoreRecord, Session, TestInfo
from assessment_engine.core.module_scheduler import ordered_sequence
from assessment_engine.core.session_state import effective_status, session_progress
from assessment_engine.core.statistics import (
    attendance_rate,
    calculate_grade,
    completion_rate,
    distribution_stats,
    diversity_index,
    is_passed,
    scaled_score,
    series_trend,
    weighted_average,
)

logger = logging.getLogger(__name__)

COMPLETED_STATUSES = frozenset({AttemptStatus.COMPLETED, AttemptStatus.AUTO_COMPLETED})


class ModuleSummary(TypedDict):
    """
    Per-module breakdown inside a session summary.

    Fields:
        test_id: Test bound to the module
        sequence: Position in the session's schedule
        name: Test name (empty if the test definition is unknown)
        category: Test category
        weight: Module weight used for the composite score
        is_required: Whether the module must be finished
        attempts: Attempts created for this module
        completed: completed + auto_completed attempts
        expired: Attempts that ran out of time with no answers
        completion_rate: completed / attempts, 0-100
        scores: Distribution summary of scaled scores
    """

    test_id: int
    sequence: int
    name: str
    category: str
    weight: float
    is_required: bool
    attempts: int
    completed: int
    expired: int
    completion_rate: float
    scores: Dict[str, float]


class SessionSummary(TypedDict):
    """
    Result structure for ``summarize_session``.

    Fields:
        session_id: Session primary key
        session_code: Join code
        status: Effective status at the time the summary was built
        progress_percentage: Share of the session window elapsed
        registered_participants: Roster size, None when not supplied
        participants: Participants with at least one started attempt
        attendance_rate: participants / registered, None without a roster size
        total_attempts: All attempt records in the session
        completed_attempts: completed + auto_completed
        expired_attempts: Time ran out with no answers (dropouts)
        in_progress_attempts: Still open
        completion_rate: completed_attempts / total_attempts, 0-100
        modules: Per-module breakdown in schedule order
        scores: Distribution summary of every scaled score in the session
        weighted_average: Composite of module mean scores by module weight
        category_diversity: Normalised entropy of attempted test categories
        score_trend: Direction of module mean scores along the schedule
    """

    session_id: Optional[int]
    session_code: str
    status: str
    progress_percentage: float
    registered_participants: Optional[int]
    participants: int
    attendance_rate: Optional[float]
    total_attempts: int
    completed_attempts: int
    expired_attempts: int
    in_progress_attempts: int
    completion_rate: float
    modules: List[ModuleSummary]
    scores: Dict[str, float]
    weighted_average: Optional[float]
    category_diversity: float
    score_trend: str


def _is_scorable(attempt: Attempt) -> bool:
    return attempt.status in COMPLETED_STATUSES and attempt.raw_score is not None


def build_score_records(
    attempts: Sequence[Attempt],
    tests: Mapping[int, TestInfo],
    passing_score: Optional[float] = None,
) -> List[ScoreRecord]:
    """
    Derive a ScoreRecord for every attempt.

    Args:
        attempts: Attempts in any order
        tests: Test definitions keyed by id
        passing_score: Fallback pass mark for tests that do not define one

    Returns:
        One record per attempt, in input order. Unscored attempts carry None
        in every score field; percentiles are ranks within the same test.
    """
    scaled_by_attempt: Dict[int, float] = {}
    cohorts: Dict[int, List[float]] = defaultdict(list)

    for index, attempt in enumerate(attempts):
        test = tests.get(attempt.test_id)
        if test is None or not _is_scorable(attempt):
            continue
        value = scaled_score(attempt.raw_score, test.total_questions)
        scaled_by_attempt[index] = value
        cohorts[attempt.test_id].append(value)

    distributions = {
        test_id: distribution_stats(values) for test_id, values in cohorts.items()
    }

    records: List[ScoreRecord] = []
    for index, attempt in enumerate(attempts):
        value = scaled_by_attempt.get(index)
        if value is None:
            records.append(
                ScoreRecord(
                    attempt_id=attempt.id,
                    participant_id=attempt.participant_id,
                    test_id=attempt.test_id,
                    status=attempt.status,
                    scaled_score=None,
                    percentile=None,
                    grade=None,
                    passed=None,
                )
            )
            continue

        test = tests[attempt.test_id]
        pass_mark = (
            test.passing_score if test.passing_score is not None else passing_score
        )
        records.append(
            ScoreRecord(
                attempt_id=attempt.id,
                participant_id=attempt.participant_id,
                test_id=attempt.test_id,
                status=attempt.status,
                scaled_score=value,
                percentile=distributions[attempt.test_id].percentile_rank(value),
                grade=calculate_grade(value, pass_mark),
                passed=is_passed(value, pass_mark),
            )
        )

    return records


def summarize_session(
    session: Session,
    attempts: Sequence[Attempt],
    tests: Mapping[int, TestInfo],
    now: datetime,
    registered_count: Optional[int] = None,
    passing_score: Optional[float] = None,
) -> SessionSummary:
    """
    Build a summary of a session's outcomes.

    Args:
        session: Session with its modules
        attempts: Every attempt recorded for the session
        tests: Test definitions keyed by id
        now: Time the summary is built at (drives the effective status)
        registered_count: Roster size, for the attendance rate
        passing_score: Fallback pass mark

    Returns:
        SessionSummary
    """
    records = build_score_records(attempts, tests, passing_score)
    status_counts = Counter(AttemptStatus(a.status) for a in attempts)
    completed = sum(status_counts[s] for s in COMPLETED_STATUSES)

    started_participants = {
        a.participant_id for a in attempts if a.status != AttemptStatus.NOT_STARTED
    }

    module_summaries: List[ModuleSummary] = []
    module_means: List[float] = []
    weighted_pairs = []
    category_counts: Dict[str, int] = {}

    for module in ordered_sequence(session.modules):
        test = tests.get(module.test_id)
        category = test.category if test else ""
        category_counts.setdefault(category, 0)

        module_attempts = [a for a in attempts if a.test_id == module.test_id]
        module_completed = sum(1 for a in module_attempts if a.status in COMPLETED_STATUSES)
        module_expired = sum(
            1 for a in module_attempts if a.status == AttemptStatus.EXPIRED
        )
        category_counts[category] += sum(
            1 for a in module_attempts if a.status != AttemptStatus.NOT_STARTED
        )

        module_scores = [
            r.scaled_score
            for r in records
            if r.test_id == module.test_id and r.scaled_score is not None
        ]
        stats = distribution_stats(module_scores)
        if stats.count:
            module_means.append(stats.mean)
            weighted_pairs.append((stats.mean, module.weight))

        module_summaries.append(
            ModuleSummary(
                test_id=module.test_id,
                sequence=module.sequence,
                name=test.name if test else "",
                category=category,
                weight=module.weight,
                is_required=module.is_required,
                attempts=len(module_attempts),
                completed=module_completed,
                expired=module_expired,
                completion_rate=completion_rate(len(module_attempts), module_completed),
                scores=stats.summary(),
            )
        )

    overall = distribution_stats(
        r.scaled_score for r in records if r.scaled_score is not None
    )

    summary = SessionSummary(
        session_id=session.id,
        session_code=session.session_code,
        status=effective_status(session, now).value,
        progress_percentage=session_progress(session, now),
        registered_participants=registered_count,
        participants=len(started_participants),
        attendance_rate=(
            attendance_rate(registered_count, len(started_participants))
            if registered_count is not None
            else None
        ),
        total_attempts=len(attempts),
        completed_attempts=completed,
        expired_attempts=status_counts[AttemptStatus.EXPIRED],
        in_progress_attempts=status_counts[AttemptStatus.IN_PROGRESS],
        completion_rate=completion_rate(len(attempts), completed),
        modules=module_summaries,
        scores=overall.summary(),
        weighted_average=weighted_average(weighted_pairs),
        category_diversity=diversity_index(category_counts),
        score_trend=series_trend(module_means).value,
    )

    logger.debug(
        f"Summarised session {session.id}: {len(attempts)} attempts, "
        f"{completed} completed"
    )
    return summary

"""
Results Aggregator
Participant statistics and rankings derived from the live answer log
"""
import logging
import math
from typing import Iterable, List, Optional

from lecture_qa.db.session_store import SessionStore
from lecture_qa.models.live_session import (
    LiveAnswer,
    Participant,
    ParticipantStats,
    SessionResults,
)

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 upwards (round() would give 12 for 12.5)"""
    return int(math.floor(value + 0.5))


def compute_participant_stats(
    participant: Participant,
    answers: Iterable[LiveAnswer]
) -> ParticipantStats:
    """
    Statistics for one participant over the answers they submitted

    Every submission counts, including repeated answers to the same question.
    """
    own = [a for a in answers if a.participantId == participant.id]
    total = len(own)
    correct = sum(1 for a in own if a.isCorrect)
    total_time = sum(a.timeSpent for a in own)

    return ParticipantStats(
        **participant.model_dump(),
        correctAnswers=correct,
        totalAnswers=total,
        accuracy=round_half_up(correct / total * 100) if total > 0 else 0,
        averageTime=round_half_up(total_time / total) if total > 0 else 0,
    )


def rank_participants(stats: Iterable[ParticipantStats]) -> List[ParticipantStats]:
    """Most correct answers first; faster average time breaks ties"""
    return sorted(stats, key=lambda s: (-s.correctAnswers, s.averageTime))


class ResultsAggregator:
    """Read-only views over a session's answers"""

    def __init__(self, store: SessionStore):
        self.store = store

    async def get_current_question_answers(
        self,
        session_id: str,
        question_index: int
    ) -> List[LiveAnswer]:
        """All answers submitted for one question index, in submission order"""
        answers = await self.store.list_answers(session_id, question_index=question_index)
        logger.debug(
            f"📊 {len(answers)} answers for question {question_index} in session {session_id}"
        )
        return answers

    async def get_session_results(self, session_id: str) -> Optional[SessionResults]:
        """
        Ranking of a session's participants

        Returns:
            SessionResults, or None when the session does not exist.
            totalQuestions is answers / participants, which only matches
            the number of questions when everyone answered everything once.
        """
        session = await self.store.get_session(session_id)
        if session is None:
            logger.warning(f"⚠️ Results requested for unknown session {session_id}")
            return None

        answers = await self.store.list_answers(session_id)
        stats = [compute_participant_stats(p, answers) for p in session.participants]
        ranking = rank_participants(stats)

        logger.info(
            f"🏆 Results for session {session_id}: "
            f"{len(ranking)} participants, {len(answers)} answers"
        )
        return SessionResults(
            session=session,
            ranking=ranking,
            totalQuestions=len(answers) / (len(session.participants) or 1),
        )

"""
Live Session Service
State machine for hosted live quizzes: creation, joining, starting,
question advancement, answer scoring and early termination
"""
import logging
from typing import Dict, List, Optional

from lecture_qa.core.config import settings
from lecture_qa.db.session_store import LectureCatalog, SessionStore
from lecture_qa.models.live_session import (
    LiveAnswer,
    LiveSession,
    LiveSessionDetail,
    LiveSessionWithLecture,
    Participant,
    Question,
    utc_now,
)
from lecture_qa.services.access_code import AccessCodeGenerator, normalize_access_code

logger = logging.getLogger(__name__)


class LiveSessionServiceError(Exception):
    """Base exception for live session service errors"""
    error_code = "live_session_error"


class NotFoundError(LiveSessionServiceError):
    """Referenced session, lecture or question does not exist"""
    error_code = "not_found"


class SessionNotFoundError(NotFoundError):
    """Session not found error"""
    error_code = "session_not_found"


class LectureNotFoundError(NotFoundError):
    """Lecture not found error"""
    error_code = "lecture_not_found"


class QuestionNotFoundError(NotFoundError):
    """No question at the requested index"""
    error_code = "question_not_found"


class AlreadyJoinedError(LiveSessionServiceError):
    """Participant id already registered in the session"""
    error_code = "already_joined"


class InvalidSessionStateError(LiveSessionServiceError):
    """Operation not allowed in the session's current status"""
    error_code = "invalid_session_state"


class AccessCodeGenerationError(LiveSessionServiceError):
    """Could not find a free access code"""
    error_code = "access_code_unavailable"


def is_correct_answer(submitted: str, expected: str) -> bool:
    """Trimmed, case-insensitive exact match"""
    return submitted.strip().lower() == expected.strip().lower()


class LiveSessionService:
    """
    Service for hosting live quiz sessions

    Status only moves forward:
        waiting --start--> active --next (questions exhausted)--> ended
        waiting/active --end--> ended

    Answers are keyed by the caller-supplied question index, so a late
    submission for a question the host already moved past is still scored.
    Every submission is recorded and every correct one adds 1 to the score.
    """

    def __init__(
        self,
        store: SessionStore,
        lectures: LectureCatalog,
        code_generator: Optional[AccessCodeGenerator] = None,
        max_code_attempts: int = settings.access_code_max_attempts,
        host_sessions_limit: int = settings.host_sessions_limit
    ):
        """
        Args:
            store: Persistence for sessions and answers
            lectures: Read-only lecture/question lookups
            code_generator: Access code source (default: 6 chars, system RNG)
            max_code_attempts: Attempts to find a code not held by an open session
            host_sessions_limit: Number of sessions returned by get_host_sessions
        """
        self.store = store
        self.lectures = lectures
        self.code_generator = code_generator or AccessCodeGenerator(settings.access_code_length)
        self.max_code_attempts = max_code_attempts
        self.host_sessions_limit = host_sessions_limit

    # ============================================================================
    # HOST OPERATIONS
    # ============================================================================

    async def create_session(self, title: str, lecture_id: str, host_id: str) -> LiveSession:
        """
        Create a session in `waiting` status with a fresh access code

        Raises:
            ValueError: If title, lecture id or host id is empty
            LectureNotFoundError: If the lecture does not exist
            AccessCodeGenerationError: If no free code was found
        """
        title = (title or "").strip()
        if not title:
            raise ValueError("Session title cannot be empty")
        if not lecture_id:
            raise ValueError("Lecture ID cannot be empty")
        if not host_id:
            raise ValueError("Host ID cannot be empty")

        lecture = await self.lectures.get_lecture(lecture_id)
        if lecture is None:
            logger.error(f"❌ Lecture not found: {lecture_id}")
            raise LectureNotFoundError(f"Lecture not found: {lecture_id}")

        access_code = await self._allocate_access_code()
        session = LiveSession(
            title=title,
            lectureId=lecture_id,
            hostId=host_id,
            accessCode=access_code,
        )
        await self.store.insert_session(session)

        logger.info(
            f"✅ Created live session {session.sessionId} "
            f"(lecture={lecture_id}, host={host_id}, code={access_code})"
        )
        return session

    async def _allocate_access_code(self) -> str:
        for attempt in range(1, self.max_code_attempts + 1):
            candidate = self.code_generator.generate()
            if await self.store.find_open_session_by_code(candidate) is None:
                return candidate
            logger.warning(f"⚠️ Access code collision on attempt {attempt}: {candidate}")

        logger.error(f"❌ No free access code after {self.max_code_attempts} attempts")
        raise AccessCodeGenerationError(
            f"Could not allocate a unique access code after {self.max_code_attempts} attempts"
        )

    async def start_session(self, session_id: str) -> LiveSession:
        """
        Move a waiting session to `active` at question 0

        Raises:
            SessionNotFoundError: If the session does not exist
            InvalidSessionStateError: If the session is not waiting
        """
        session = await self._require_session(session_id)
        if session.status != "waiting":
            raise InvalidSessionStateError(
                f"Session {session_id} cannot be started from status '{session.status}'"
            )

        now = utc_now()
        updated = await self.store.update_session(
            session_id,
            {
                "status": "active",
                "startedAt": now,
                "currentQuestionIndex": 0,
                "currentQuestionStartedAt": now,
            },
            expected={"status": "waiting"}
        )
        if updated is None:
            raise InvalidSessionStateError(f"Session {session_id} changed while starting")

        logger.info(f"🎬 Started live session {session_id}")
        return updated

    async def next_question(self, session_id: str) -> LiveSession:
        """
        Advance to the next question, ending the session after the last one

        Raises:
            SessionNotFoundError: If the session does not exist
            LectureNotFoundError: If the session's lecture no longer exists
            InvalidSessionStateError: If the session is not active, or another
                advance happened concurrently
        """
        session = await self._require_session(session_id)

        lecture = await self.lectures.get_lecture(session.lectureId)
        if lecture is None:
            logger.error(f"❌ Lecture {session.lectureId} of session {session_id} not found")
            raise LectureNotFoundError(f"Lecture not found: {session.lectureId}")

        if session.status != "active":
            raise InvalidSessionStateError(
                f"Session {session_id} cannot advance from status '{session.status}'"
            )

        questions = await self.lectures.list_questions(session.lectureId)
        next_index = session.currentQuestionIndex + 1
        now = utc_now()

        if next_index >= len(questions):
            changes = {"status": "ended", "endedAt": now}
        else:
            changes = {"currentQuestionIndex": next_index, "currentQuestionStartedAt": now}

        updated = await self.store.update_session(
            session_id,
            changes,
            expected={"status": "active", "currentQuestionIndex": session.currentQuestionIndex}
        )
        if updated is None:
            raise InvalidSessionStateError(f"Session {session_id} changed while advancing")

        if updated.status == "ended":
            logger.info(f"🏁 Live session {session_id} ended after {len(questions)} questions")
        else:
            logger.info(f"➡️ Live session {session_id} moved to question {next_index}")
        return updated

    async def end_session(self, session_id: str) -> LiveSession:
        """
        End a waiting or active session early

        Raises:
            SessionNotFoundError: If the session does not exist
            InvalidSessionStateError: If the session already ended
        """
        session = await self._require_session(session_id)
        if session.status == "ended":
            raise InvalidSessionStateError(f"Session {session_id} has already ended")

        updated = await self.store.update_session(
            session_id,
            {"status": "ended", "endedAt": utc_now()},
            expected={"status": session.status}
        )
        if updated is None:
            raise InvalidSessionStateError(f"Session {session_id} changed while ending")

        logger.info(f"🛑 Live session {session_id} ended by host")
        return updated

    # ============================================================================
    # PARTICIPANT OPERATIONS
    # ============================================================================

    async def join_session(self, access_code: str, participant_id: str, participant_name: str) -> str:
        """
        Join the open session holding `access_code`

        Returns:
            The joined session's id

        Raises:
            ValueError: If participant id or name is empty
            SessionNotFoundError: If no waiting/active session holds the code
            AlreadyJoinedError: If the participant id is already in the session
        """
        if not participant_id:
            raise ValueError("Participant ID cannot be empty")
        participant_name = (participant_name or "").strip()
        if not participant_name:
            raise ValueError("Participant name cannot be empty")

        code = normalize_access_code(access_code or "")
        session = await self.store.find_open_session_by_code(code)
        if session is None:
            logger.warning(f"⚠️ No open session for access code {code}")
            raise SessionNotFoundError(f"No open session for access code: {code}")

        if session.get_participant(participant_id) is not None:
            raise AlreadyJoinedError(
                f"Participant {participant_id} already joined session {session.sessionId}"
            )

        participant = Participant(id=participant_id, name=participant_name)
        added = await self.store.add_participant(session.sessionId, participant)
        if not added:
            # Lost a race: either a concurrent join with the same id or the session ended
            current = await self.store.get_session(session.sessionId)
            if current is not None and current.get_participant(participant_id) is not None:
                raise AlreadyJoinedError(
                    f"Participant {participant_id} already joined session {session.sessionId}"
                )
            raise SessionNotFoundError(f"No open session for access code: {code}")

        logger.info(
            f"👋 Participant {participant_id} ({participant_name}) joined "
            f"session {session.sessionId}"
        )
        return session.sessionId

    async def submit_live_answer(
        self,
        session_id: str,
        participant_id: str,
        question_index: int,
        answer_text: str,
        time_spent: float
    ) -> Dict[str, bool]:
        """
        Score and record one answer

        Returns:
            {"isCorrect": bool}

        Raises:
            SessionNotFoundError: If the session does not exist
            InvalidSessionStateError: If the session has ended
            QuestionNotFoundError: If the lecture has no question at the index
        """
        session = await self._require_session(session_id)
        if session.status == "ended":
            raise InvalidSessionStateError(f"Session {session_id} has ended")

        questions = await self.lectures.list_questions(session.lectureId)
        if question_index < 0 or question_index >= len(questions):
            logger.error(f"❌ Question {question_index} not found for session {session_id}")
            raise QuestionNotFoundError(
                f"Question {question_index} not found in lecture {session.lectureId}"
            )

        question = questions[question_index]
        is_correct = is_correct_answer(answer_text, question.answer)

        answer = LiveAnswer(
            sessionId=session_id,
            participantId=participant_id,
            questionIndex=question_index,
            qaId=question.qaId,
            answer=answer_text,
            isCorrect=is_correct,
            timeSpent=time_spent,
        )
        await self.store.record_answer(answer, credit=is_correct)

        logger.info(
            f"✅ Answer from {participant_id} in session {session_id} "
            f"for question {question_index}: {'✓' if is_correct else '✗'}"
        )
        return {"isCorrect": is_correct}

    # ============================================================================
    # QUERIES
    # ============================================================================

    async def get_active_session(self, session_id: str) -> Optional[LiveSessionDetail]:
        """Session with its lecture and current question; None if unknown"""
        session = await self.store.get_session(session_id)
        if session is None:
            return None

        lecture = await self.lectures.get_lecture(session.lectureId)

        current_question: Optional[Question] = None
        if session.currentQuestionIndex >= 0:
            questions = await self.lectures.list_questions(session.lectureId)
            if session.currentQuestionIndex < len(questions):
                current_question = questions[session.currentQuestionIndex]

        return LiveSessionDetail(
            **session.model_dump(),
            lecture=lecture,
            currentQuestion=current_question,
        )

    async def get_host_sessions(self, host_id: str) -> List[LiveSessionWithLecture]:
        """Most recent sessions of a host, newest first, each with its lecture"""
        sessions = await self.store.list_host_sessions(host_id, self.host_sessions_limit)

        summaries = []
        for session in sessions:
            lecture = await self.lectures.get_lecture(session.lectureId)
            summaries.append(LiveSessionWithLecture(**session.model_dump(), lecture=lecture))

        logger.debug(f"📊 Retrieved {len(summaries)} sessions for host {host_id}")
        return summaries

    async def _require_session(self, session_id: str) -> LiveSession:
        session = await self.store.get_session(session_id)
        if session is None:
            logger.error(f"❌ Live session not found: {session_id}")
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session

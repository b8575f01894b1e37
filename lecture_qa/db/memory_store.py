"""
In-process session store and lecture catalog
Used for local runs without MongoDB and by the test suite
"""
import asyncio
import json
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from lecture_qa.db.session_store import LectureCatalog, SessionStore
from lecture_qa.models.live_session import (
    Lecture,
    LiveAnswer,
    LiveSession,
    Participant,
    Question,
    utc_now,
)

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStore):
    """Dictionary-backed store; one lock serializes every mutation"""

    def __init__(self) -> None:
        self._sessions: Dict[str, LiveSession] = {}
        self._answers: List[LiveAnswer] = []
        self._lock = asyncio.Lock()

    async def insert_session(self, session: LiveSession) -> None:
        async with self._lock:
            if session.sessionId in self._sessions:
                raise ValueError(f"Duplicate session id: {session.sessionId}")
            self._sessions[session.sessionId] = session.model_copy(deep=True)

    async def get_session(self, session_id: str) -> Optional[LiveSession]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def find_open_session_by_code(self, access_code: str) -> Optional[LiveSession]:
        for session in self._sessions.values():
            if session.accessCode == access_code and session.status != "ended":
                return session.model_copy(deep=True)
        return None

    async def add_participant(self, session_id: str, participant: Participant) -> bool:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.status == "ended":
                return False
            if session.get_participant(participant.id) is not None:
                return False
            session.participants.append(participant.model_copy())
            return True

    async def update_session(
        self,
        session_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Optional[LiveSession]:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            for field, value in (expected or {}).items():
                if getattr(session, field) != value:
                    return None
            updated = session.model_copy(update=changes, deep=True)
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)

    async def record_answer(self, answer: LiveAnswer, credit: bool) -> None:
        async with self._lock:
            self._answers.append(answer.model_copy())
            if not credit:
                return
            session = self._sessions.get(answer.sessionId)
            participant = session.get_participant(answer.participantId) if session else None
            if participant is None:
                logger.warning(
                    f"⚠️ No participant {answer.participantId} in session "
                    f"{answer.sessionId} to credit"
                )
                return
            participant.score += 1

    async def list_answers(
        self,
        session_id: str,
        question_index: Optional[int] = None
    ) -> List[LiveAnswer]:
        return [
            answer.model_copy()
            for answer in self._answers
            if answer.sessionId == session_id
            and (question_index is None or answer.questionIndex == question_index)
        ]

    async def list_host_sessions(self, host_id: str, limit: int) -> List[LiveSession]:
        # Reversed insertion order keeps equal timestamps newest first
        hosted = [s for s in reversed(list(self._sessions.values())) if s.hostId == host_id]
        hosted.sort(key=lambda s: s.createdAt, reverse=True)
        return [s.model_copy(deep=True) for s in hosted[:limit]]


class InMemoryLectureCatalog(LectureCatalog):
    """Lectures and questions registered in-process"""

    def __init__(self) -> None:
        self._lectures: Dict[str, Lecture] = {}
        self._questions: Dict[str, List[Question]] = {}

    def add_lecture(self, lecture: Lecture, questions: Optional[List[Question]] = None) -> None:
        self._lectures[lecture.lectureId] = lecture
        self._questions.setdefault(lecture.lectureId, [])
        for question in questions or []:
            self.add_question(question)

    def add_question(self, question: Question) -> None:
        self._questions.setdefault(question.lectureId, []).append(question)

    def load_seed_file(self, path: str) -> int:
        """
        Register lectures and their questions from a JSON file

        Format:
            {"lectures": [{"lectureId": "...", "title": "...",
                           "questions": [{"qaId": "...", "question": "...", "answer": "..."}]}]}

        Questions keep file order. Returns the number of lectures loaded.
        """
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)

        lectures = payload.get("lectures", [])
        for entry in lectures:
            entry = dict(entry)
            raw_questions = entry.pop("questions", [])
            lecture = Lecture(**entry)
            base_time = utc_now()
            questions = [
                Question(
                    **{
                        "lectureId": lecture.lectureId,
                        "createdAt": base_time + timedelta(microseconds=i),
                        **raw,
                    }
                )
                for i, raw in enumerate(raw_questions)
            ]
            self.add_lecture(lecture, questions)

        logger.info(f"✓ Loaded {len(lectures)} lectures from {path}")
        return len(lectures)

    def remove_lecture(self, lecture_id: str) -> None:
        self._lectures.pop(lecture_id, None)
        self._questions.pop(lecture_id, None)

    async def get_lecture(self, lecture_id: str) -> Optional[Lecture]:
        return self._lectures.get(lecture_id)

    async def list_questions(self, lecture_id: str) -> List[Question]:
        # sorted() is stable, so insertion order breaks createdAt ties
        return sorted(self._questions.get(lecture_id, []), key=lambda q: q.createdAt)

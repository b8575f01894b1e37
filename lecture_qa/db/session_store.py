"""
Storage interfaces used by the live quiz services
FILE: lecture_qa/db/session_store.py

Two adapters implement them: MongoDB (live_session_db.py) and an
in-process store (memory_store.py).
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from lecture_qa.models.live_session import (
    Lecture,
    LiveAnswer,
    LiveSession,
    Participant,
    Question,
)


class SessionStoreError(Exception):
    """Raised when the backing store fails"""
    pass


class SessionStore(ABC):
    """
    Persistence for live sessions and their answer log.

    Every method is atomic on its own. Mutations of a single session
    (participant append, score credit, state changes) must never lose a
    concurrent update.
    """

    async def ensure_indexes(self) -> None:
        """Create backing indexes, if the store has any"""

    @abstractmethod
    async def insert_session(self, session: LiveSession) -> None:
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[LiveSession]:
        ...

    @abstractmethod
    async def find_open_session_by_code(self, access_code: str) -> Optional[LiveSession]:
        """Return the non-ended session holding this access code, if any"""

    @abstractmethod
    async def add_participant(self, session_id: str, participant: Participant) -> bool:
        """
        Append a participant to a non-ended session.

        Returns False when the session is missing, already ended, or already
        has a participant with the same id.
        """

    @abstractmethod
    async def update_session(
        self,
        session_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Optional[LiveSession]:
        """
        Set top-level fields on a session, but only if every field in
        `expected` still has the given value (compare-and-swap).

        Returns the updated session, or None when nothing matched.
        """

    @abstractmethod
    async def record_answer(self, answer: LiveAnswer, credit: bool) -> None:
        """Append an answer and, when `credit` is set, add 1 to the participant's score"""

    @abstractmethod
    async def list_answers(
        self,
        session_id: str,
        question_index: Optional[int] = None
    ) -> List[LiveAnswer]:
        """Answers for a session in insertion order, optionally for one question index"""

    @abstractmethod
    async def list_host_sessions(self, host_id: str, limit: int) -> List[LiveSession]:
        """Most recently created sessions of a host, newest first"""


class LectureCatalog(ABC):
    """Read-only access to lectures and their ordered questions"""

    @abstractmethod
    async def get_lecture(self, lecture_id: str) -> Optional[Lecture]:
        ...

    @abstractmethod
    async def list_questions(self, lecture_id: str) -> List[Question]:
        """Questions of a lecture, oldest first"""

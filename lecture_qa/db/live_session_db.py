"""
Live Session Database Operations
MongoDB implementation of the live session store and lecture catalog
FILE: lecture_qa/db/live_session_db.py
"""
from typing import Any, Dict, List, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from lecture_qa.db.session_store import LectureCatalog, SessionStore, SessionStoreError
from lecture_qa.models.live_session import (
    Lecture,
    LiveAnswer,
    LiveSession,
    Participant,
    Question,
)

logger = logging.getLogger(__name__)


class MongoSessionStore(SessionStore):
    """Live sessions (participants embedded) and the append-only answer log"""

    SESSIONS_COLLECTION = "live_sessions"
    ANSWERS_COLLECTION = "live_answers"

    def __init__(self, db: AsyncIOMotorDatabase, use_transactions: bool = False):
        """
        Args:
            db: MongoDB database instance
            use_transactions: Record answer + score credit in one multi-document
                transaction (requires a replica set). Without it a failed credit
                deletes the answer it belongs to.
        """
        self.db = db
        self.sessions = db[self.SESSIONS_COLLECTION]
        self.answers = db[self.ANSWERS_COLLECTION]
        self.use_transactions = use_transactions

    async def ensure_indexes(self) -> None:
        try:
            await self.sessions.create_index("sessionId", unique=True)
            await self.sessions.create_index([("accessCode", ASCENDING), ("status", ASCENDING)])
            await self.sessions.create_index([("hostId", ASCENDING), ("createdAt", DESCENDING)])
            await self.answers.create_index([("sessionId", ASCENDING), ("questionIndex", ASCENDING)])
            await self.answers.create_index("participantId")
            await self.answers.create_index("answerId", unique=True)
            logger.info("✅ Live session indexes ready")
        except Exception as e:
            logger.error(f"❌ Failed to create live session indexes: {e}")
            raise SessionStoreError(f"Failed to create indexes: {str(e)}")

    @staticmethod
    def _to_session(doc: Optional[Dict[str, Any]]) -> Optional[LiveSession]:
        if not doc:
            return None
        doc.pop("_id", None)
        return LiveSession(**doc)

    async def insert_session(self, session: LiveSession) -> None:
        try:
            await self.sessions.insert_one(session.model_dump())
            logger.debug(f"✓ Inserted live session {session.sessionId}")
        except Exception as e:
            logger.error(f"❌ Failed to insert live session {session.sessionId}: {e}")
            raise SessionStoreError(f"Failed to insert live session: {str(e)}")

    async def get_session(self, session_id: str) -> Optional[LiveSession]:
        try:
            doc = await self.sessions.find_one({"sessionId": session_id})
            return self._to_session(doc)
        except Exception as e:
            logger.error(f"❌ Failed to retrieve live session {session_id}: {e}")
            raise SessionStoreError(f"Failed to retrieve live session: {str(e)}")

    async def find_open_session_by_code(self, access_code: str) -> Optional[LiveSession]:
        try:
            doc = await self.sessions.find_one(
                {"accessCode": access_code, "status": {"$ne": "ended"}}
            )
            return self._to_session(doc)
        except Exception as e:
            logger.error(f"❌ Failed to look up access code {access_code}: {e}")
            raise SessionStoreError(f"Failed to look up access code: {str(e)}")

    async def add_participant(self, session_id: str, participant: Participant) -> bool:
        try:
            # The filter makes the check and the push one atomic step
            result = await self.sessions.update_one(
                {
                    "sessionId": session_id,
                    "status": {"$ne": "ended"},
                    "participants.id": {"$ne": participant.id},
                },
                {"$push": {"participants": participant.model_dump()}}
            )
            return result.modified_count > 0
        except Exception as e:
            logger.error(f"❌ Failed to add participant to {session_id}: {e}")
            raise SessionStoreError(f"Failed to add participant: {str(e)}")

    async def update_session(
        self,
        session_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Optional[LiveSession]:
        query = {"sessionId": session_id}
        query.update(expected or {})
        try:
            doc = await self.sessions.find_one_and_update(
                query,
                {"$set": changes},
                return_document=ReturnDocument.AFTER
            )
            return self._to_session(doc)
        except Exception as e:
            logger.error(f"❌ Failed to update live session {session_id}: {e}")
            raise SessionStoreError(f"Failed to update live session: {str(e)}")

    async def record_answer(self, answer: LiveAnswer, credit: bool) -> None:
        """Insert the answer and credit the score; either both land or neither does"""
        if self.use_transactions:
            await self._record_answer_in_transaction(answer, credit)
            return

        try:
            await self.answers.insert_one(answer.model_dump())
        except Exception as e:
            logger.error(f"❌ Failed to record answer for session {answer.sessionId}: {e}")
            raise SessionStoreError(f"Failed to record answer: {str(e)}")

        if not credit:
            return

        try:
            await self._credit_score(answer)
        except Exception as e:
            logger.error(
                f"❌ Failed to credit {answer.participantId} in session {answer.sessionId}, "
                f"removing answer {answer.answerId}: {e}"
            )
            try:
                await self.answers.delete_one({"answerId": answer.answerId})
            except Exception as cleanup_error:
                logger.error(f"❌ Failed to remove answer {answer.answerId}: {cleanup_error}")
            raise SessionStoreError(f"Failed to record answer: {str(e)}")

    async def _record_answer_in_transaction(self, answer: LiveAnswer, credit: bool) -> None:
        try:
            async with await self.db.client.start_session() as session:
                async with session.start_transaction():
                    await self.answers.insert_one(answer.model_dump(), session=session)
                    if credit:
                        await self._credit_score(answer, session=session)
        except Exception as e:
            logger.error(f"❌ Answer transaction failed for session {answer.sessionId}: {e}")
            raise SessionStoreError(f"Failed to record answer: {str(e)}")

    async def _credit_score(self, answer: LiveAnswer, session=None) -> None:
        result = await self.sessions.update_one(
            {"sessionId": answer.sessionId, "participants.id": answer.participantId},
            {"$inc": {"participants.$.score": 1}},
            session=session
        )
        if result.matched_count == 0:
            logger.warning(
                f"⚠️ No participant {answer.participantId} in session "
                f"{answer.sessionId} to credit"
            )

    async def list_answers(
        self,
        session_id: str,
        question_index: Optional[int] = None
    ) -> List[LiveAnswer]:
        query: Dict[str, Any] = {"sessionId": session_id}
        if question_index is not None:
            query["questionIndex"] = question_index
        try:
            cursor = self.answers.find(query).sort("_id", ASCENDING)
            answers = []
            async for doc in cursor:
                doc.pop("_id", None)
                answers.append(LiveAnswer(**doc))
            return answers
        except Exception as e:
            logger.error(f"❌ Failed to list answers for session {session_id}: {e}")
            raise SessionStoreError(f"Failed to list answers: {str(e)}")

    async def list_host_sessions(self, host_id: str, limit: int) -> List[LiveSession]:
        try:
            cursor = self.sessions.find({"hostId": host_id}).sort("createdAt", DESCENDING).limit(limit)
            sessions = []
            async for doc in cursor:
                sessions.append(self._to_session(doc))
            return sessions
        except Exception as e:
            logger.error(f"❌ Failed to list sessions for host {host_id}: {e}")
            raise SessionStoreError(f"Failed to list host sessions: {str(e)}")


class MongoLectureCatalog(LectureCatalog):
    """Reads lectures and their questions written by the lecture management side"""

    LECTURES_COLLECTION = "lectures"
    QUESTIONS_COLLECTION = "qa_templates"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.lectures = db[self.LECTURES_COLLECTION]
        self.questions = db[self.QUESTIONS_COLLECTION]

    async def get_lecture(self, lecture_id: str) -> Optional[Lecture]:
        try:
            doc = await self.lectures.find_one({"lectureId": lecture_id})
        except Exception as e:
            logger.error(f"❌ Failed to retrieve lecture {lecture_id}: {e}")
            raise SessionStoreError(f"Failed to retrieve lecture: {str(e)}")

        if not doc:
            return None
        doc.pop("_id", None)
        return Lecture(**doc)

    async def list_questions(self, lecture_id: str) -> List[Question]:
        try:
            cursor = self.questions.find({"lectureId": lecture_id}).sort(
                [("createdAt", ASCENDING), ("_id", ASCENDING)]
            )
            questions = []
            async for doc in cursor:
                doc.pop("_id", None)
                questions.append(Question(**doc))
            return questions
        except Exception as e:
            logger.error(f"❌ Failed to list questions for lecture {lecture_id}: {e}")
            raise SessionStoreError(f"Failed to list questions: {str(e)}")

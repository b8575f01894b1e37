"""
Live Session Models
Documents stored for live quiz sessions, their participants and answers,
plus the read-only lecture/question shapes consumed from the catalog
"""
from datetime import datetime, timezone
from typing import Literal, Optional, List
from pydantic import BaseModel, Field
import uuid


SessionStatus = Literal["waiting", "active", "ended"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Lecture(BaseModel):
    """Lecture record (read-only here, owned by the lecture catalog)"""
    lectureId: str = Field(..., description="Lecture identifier")
    title: str = Field(..., description="Lecture title")
    description: Optional[str] = Field(default=None, description="Lecture description")
    createdBy: Optional[str] = Field(default=None, description="Teacher who created the lecture")


class Question(BaseModel):
    """
    Question belonging to a lecture
    SECURITY: answer is the authoritative answer used for scoring
    """
    qaId: str = Field(..., description="Question identifier")
    lectureId: str = Field(..., description="Owning lecture")
    question: str = Field(..., description="Question text")
    answer: str = Field(..., description="Authoritative answer - PRIVATE")
    questionType: Optional[Literal["multiple_choice", "short_answer", "descriptive"]] = None
    options: Optional[List[str]] = None
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    explanation: Optional[str] = None
    createdAt: datetime = Field(default_factory=utc_now)

    class Config:
        json_schema_extra = {
            "example": {
                "qaId": "qa_1",
                "lectureId": "lecture_42",
                "question": "What is the capital of France?",
                "answer": "Paris",
                "questionType": "short_answer",
                "difficulty": "easy"
            }
        }


class Participant(BaseModel):
    """Participant embedded in a live session"""
    id: str = Field(..., description="Client-supplied participant id, unique per session")
    name: str = Field(..., description="Display name")
    joinedAt: datetime = Field(default_factory=utc_now, description="When the participant joined")
    score: int = Field(default=0, ge=0, description="Number of correct submissions")


class LiveSession(BaseModel):
    """Live quiz session hosted for one lecture"""
    sessionId: str = Field(
        default_factory=lambda: f"live_{uuid.uuid4().hex[:12]}",
        description="Unique session identifier"
    )
    title: str = Field(..., description="Session title")
    lectureId: str = Field(..., description="Lecture providing the questions")
    hostId: str = Field(..., description="Host identifier")
    accessCode: str = Field(..., min_length=1, description="Join code (uppercase)")
    status: SessionStatus = Field(default="waiting", description="Session status")
    participants: List[Participant] = Field(default_factory=list)
    currentQuestionIndex: int = Field(default=0, ge=0)
    createdAt: datetime = Field(default_factory=utc_now)
    startedAt: Optional[datetime] = None
    currentQuestionStartedAt: Optional[datetime] = None
    endedAt: Optional[datetime] = None

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    class Config:
        json_schema_extra = {
            "example": {
                "sessionId": "live_1a2b3c4d5e6f",
                "title": "Week 3 review",
                "lectureId": "lecture_42",
                "hostId": "teacher_7",
                "accessCode": "K3X9QZ",
                "status": "waiting",
                "participants": [],
                "currentQuestionIndex": 0,
                "createdAt": "2024-01-15T10:00:00Z"
            }
        }


class LiveAnswer(BaseModel):
    """One answer submission; immutable once recorded"""
    answerId: str = Field(default_factory=lambda: f"ans_{uuid.uuid4().hex[:12]}")
    sessionId: str
    participantId: str
    questionIndex: int = Field(..., ge=0)
    qaId: str = Field(..., description="Question that was answered")
    answer: str = Field(..., description="Submitted answer text")
    isCorrect: bool
    timeSpent: float = Field(..., ge=0, description="Caller-reported time spent")
    submittedAt: datetime = Field(default_factory=utc_now)


class LiveSessionWithLecture(LiveSession):
    """Session enriched with its lecture"""
    lecture: Optional[Lecture] = None


class LiveSessionDetail(LiveSessionWithLecture):
    """Session enriched with its lecture and the question at the current index"""
    currentQuestion: Optional[Question] = None


class ParticipantStats(Participant):
    """Per-participant statistics derived from the answer log"""
    correctAnswers: int = 0
    totalAnswers: int = 0
    accuracy: int = 0
    averageTime: int = 0


class SessionResults(BaseModel):
    """Final (or live) results of a session"""
    session: LiveSession
    ranking: List[ParticipantStats]
    # answers / participants; an approximation, not the lecture's question count
    totalQuestions: float

"""
Live Quiz Request/Response Models
"""
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from lecture_qa.models.live_session import LiveSessionDetail, LiveSessionWithLecture, Question


class CreateSessionRequest(BaseModel):
    """Request model for creating a live session"""
    title: str = Field(..., description="Session title")
    lectureId: str = Field(..., min_length=1, description="Lecture providing the questions")
    hostId: str = Field(..., min_length=1, description="Host identifier")

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("title cannot be empty")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Week 3 review",
                "lectureId": "lecture_42",
                "hostId": "teacher_7"
            }
        }


class CreateSessionResponse(BaseModel):
    """Response model for a created live session"""
    sessionId: str = Field(..., description="New session identifier")
    accessCode: str = Field(..., description="Code participants use to join")


class JoinSessionRequest(BaseModel):
    """Request model for joining a live session"""
    accessCode: str = Field(..., description="Access code (case-insensitive)")
    participantId: str = Field(..., min_length=1, description="Client-generated participant id")
    participantName: str = Field(..., description="Display name")

    @field_validator('accessCode')
    @classmethod
    def normalize_code(cls, v):
        """Access codes are compared uppercase"""
        v = v.strip().upper()
        if not v:
            raise ValueError("accessCode cannot be empty")
        return v

    @field_validator('participantName')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("participantName cannot be empty")
        return v


class JoinSessionResponse(BaseModel):
    sessionId: str


class SubmitLiveAnswerRequest(BaseModel):
    """Request model for a live answer submission"""
    participantId: str = Field(..., min_length=1)
    questionIndex: int = Field(..., ge=0, description="Index of the question being answered")
    answer: str = Field(..., description="Free-text answer")
    timeSpent: float = Field(default=0, ge=0, description="Time spent answering, as measured by the client")


class SubmitLiveAnswerResponse(BaseModel):
    """Immediate feedback; scores and ranks are read separately"""
    isCorrect: bool


class PublicQuestion(BaseModel):
    """Question as shown to participants (no answer)"""
    qaId: str
    question: str
    questionType: Optional[str] = None
    options: Optional[List[str]] = None
    difficulty: Optional[str] = None

    @classmethod
    def from_question(cls, question: Question) -> "PublicQuestion":
        return cls(**question.model_dump(include={"qaId", "question", "questionType", "options", "difficulty"}))


class ActiveSessionResponse(LiveSessionWithLecture):
    """Session detail; the authoritative answer is only filled in for the host view"""
    currentQuestion: Optional[PublicQuestion] = None
    currentAnswer: Optional[str] = None

    @classmethod
    def from_detail(cls, detail: LiveSessionDetail, include_answer: bool = False) -> "ActiveSessionResponse":
        question = detail.currentQuestion
        return cls(
            **detail.model_dump(exclude={"currentQuestion"}),
            currentQuestion=PublicQuestion.from_question(question) if question else None,
            currentAnswer=question.answer if question and include_answer else None,
        )


class ErrorResponse(BaseModel):
    """Error payload for typed service failures"""
    error: str = Field(..., description="Machine-readable error kind")
    detail: str = Field(..., description="Human-readable message")

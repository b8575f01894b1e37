import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from lecture_qa.api.live_quiz import get_lecture_catalog, get_session_store
from lecture_qa.db.memory_store import InMemoryLectureCatalog, InMemorySessionStore
from lecture_qa.main import app
from lecture_qa.models.live_session import Lecture, Question
from lecture_qa.services.access_code import AccessCodeGenerator
from lecture_qa.services.live_session_service import LiveSessionService
from lecture_qa.services.results_aggregator import ResultsAggregator

BASE_TIME = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def make_questions(lecture_id, answers):
    return [
        Question(
            qaId=f"{lecture_id}_q{i}",
            lectureId=lecture_id,
            question=f"Question {i}",
            answer=answer,
            questionType="short_answer",
            createdAt=BASE_TIME + timedelta(minutes=i),
        )
        for i, answer in enumerate(answers)
    ]


@pytest.fixture
def catalog():
    catalog = InMemoryLectureCatalog()
    catalog.add_lecture(
        Lecture(lectureId="geo", title="Capitals", createdBy="teacher_1"),
        make_questions("geo", ["paris", "Berlin"]),
    )
    catalog.add_lecture(
        Lecture(lectureId="math", title="Arithmetic", createdBy="teacher_1"),
        make_questions("math", ["2", "4", "8"]),
    )
    catalog.add_lecture(Lecture(lectureId="empty", title="No questions yet"))
    return catalog


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def service(store, catalog):
    return LiveSessionService(
        store=store,
        lectures=catalog,
        code_generator=AccessCodeGenerator(rng=random.Random(1234)),
    )


@pytest.fixture
def aggregator(store):
    return ResultsAggregator(store)


@pytest.fixture
def client(store, catalog):
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_lecture_catalog] = lambda: catalog
    yield TestClient(app)
    app.dependency_overrides.clear()


class InterleavingSessionStore(InMemorySessionStore):
    """
    Hands control back to the event loop after every read and before every
    write, so gathered service calls overlap between their read and their write.
    Keeps the order of store calls in `events`.
    """

    def __init__(self):
        super().__init__()
        self.events = []

    async def get_session(self, session_id):
        session = await super().get_session(session_id)
        self.events.append("read")
        await asyncio.sleep(0)
        return session

    async def find_open_session_by_code(self, access_code):
        session = await super().find_open_session_by_code(access_code)
        self.events.append("read")
        await asyncio.sleep(0)
        return session

    async def add_participant(self, session_id, participant):
        await asyncio.sleep(0)
        self.events.append("write")
        return await super().add_participant(session_id, participant)

    async def record_answer(self, answer, credit):
        await asyncio.sleep(0)
        self.events.append("write")
        await super().record_answer(answer, credit)


@pytest.fixture
def interleaving_store():
    return InterleavingSessionStore()


@pytest.fixture
def interleaving_service(interleaving_store, catalog):
    return LiveSessionService(
        store=interleaving_store,
        lectures=catalog,
        code_generator=AccessCodeGenerator(rng=random.Random(1234)),
    )

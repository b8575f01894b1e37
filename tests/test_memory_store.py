import json
from pathlib import Path

import pytest

from lecture_qa.db.memory_store import InMemoryLectureCatalog

SAMPLE_SEED_FILE = Path(__file__).resolve().parent.parent / "data" / "lectures.sample.json"


def write_seed(tmp_path, payload):
    path = tmp_path / "lectures.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


async def test_seed_file_registers_lectures_and_questions(tmp_path):
    path = write_seed(tmp_path, {
        "lectures": [
            {
                "lectureId": "geo",
                "title": "Capitals",
                "questions": [
                    {"qaId": "q2", "question": "Capital of Germany?", "answer": "Berlin"},
                    {"qaId": "q1", "question": "Capital of France?", "answer": "Paris"},
                ],
            },
            {"lectureId": "blank", "title": "Nothing yet"},
        ]
    })
    catalog = InMemoryLectureCatalog()

    assert catalog.load_seed_file(path) == 2

    assert (await catalog.get_lecture("geo")).title == "Capitals"
    questions = await catalog.list_questions("geo")
    assert [q.qaId for q in questions] == ["q2", "q1"]
    assert {q.lectureId for q in questions} == {"geo"}
    assert await catalog.list_questions("blank") == []


def test_seed_file_rejects_invalid_question(tmp_path):
    path = write_seed(tmp_path, {
        "lectures": [{"lectureId": "geo", "title": "Capitals", "questions": [{"qaId": "q1"}]}]
    })

    with pytest.raises(ValueError):
        InMemoryLectureCatalog().load_seed_file(path)


async def test_bundled_sample_seed_file_loads():
    catalog = InMemoryLectureCatalog()

    catalog.load_seed_file(str(SAMPLE_SEED_FILE))

    questions = await catalog.list_questions("lecture_capitals")
    assert [q.answer for q in questions] == ["Paris", "Berlin"]

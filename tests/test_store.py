from __future__ import annotations

import json

import pytest
from fixtures import make_plan, make_quiz

from study_assistant.errors import PersistenceError
from study_assistant.models import Material, QuizResult
from study_assistant.store import DocumentStore


def test_save_material_writes_document(store, user_id):
    material = Material.create("Notes", "a" * 800)

    doc_id = store.save_material(user_id, material)

    path = store.root / user_id / "materials" / f"{doc_id}.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["title"] == "Notes"
    assert data["userId"] == user_id
    assert len(data["content"]) == 800
    assert data["contentPreview"] == "a" * 500
    assert data["createdAt"]
    assert not (store.root / user_id / ".lock").exists()


def test_plan_progress_updates(store, user_id):
    plan_id = store.save_plan(user_id, "mat1", make_plan())

    store.update_plan_progress(user_id, plan_id, 2, True)
    store.update_plan_progress(user_id, plan_id, 3, True)
    store.update_plan_progress(user_id, plan_id, 2, False)

    doc = store.load(user_id, "studyPlans", plan_id)
    assert doc["id"] == plan_id
    assert doc["materialId"] == "mat1"
    assert doc["progress"] == {"day2": False, "day3": True}
    assert doc["days"][0]["title"] == "Cell structure"
    assert "updatedAt" in doc


def test_quiz_and_result_round_trip(store, user_id):
    quiz_id = store.save_quiz(user_id, None, make_quiz())
    result = QuizResult(
        score=1,
        total_questions=3,
        answers={"1": "Mitochondria", "2": True, "3": "cell"},
        timestamp="2024-05-01T10:00:00+00:00",
    )

    result_id = store.save_quiz_result(user_id, quiz_id, result)

    quiz_doc = store.load(user_id, "quizzes", quiz_id)
    assert quiz_doc["materialId"] is None
    assert quiz_doc["questions"][1]["correctAnswer"] is True
    result_doc = store.load(user_id, "quizResults", result_id)
    assert result_doc["quizId"] == quiz_id
    assert result_doc["answers"]["2"] is True
    assert result_doc["completedAt"] == "2024-05-01T10:00:00+00:00"


def test_listings_are_newest_first(store, user_id):
    for stamp in ("2024-01-01", "2024-03-01", "2024-02-01"):
        store.save_quiz_result(
            user_id,
            "quiz1",
            QuizResult(
                score=0,
                total_questions=1,
                answers={},
                timestamp=f"{stamp}T00:00:00+00:00",
            ),
        )

    listed = store.list_quiz_results(user_id)

    assert [doc["completedAt"][:10] for doc in listed] == [
        "2024-03-01",
        "2024-02-01",
        "2024-01-01",
    ]


def test_listing_unknown_user_is_empty(store):
    assert store.list_materials("nobody") == []
    assert store.list_plans("nobody") == []
    assert store.list_quizzes("nobody") == []


def test_users_are_isolated(store):
    store.save_material("alice", Material.create("A", "alpha"))

    assert store.list_materials("bob") == []
    assert len(store.list_materials("alice")) == 1


@pytest.mark.parametrize("bad_id", ["", "../escape", "a/b", "with space"])
def test_unsafe_ids_are_rejected(store, bad_id):
    with pytest.raises(PersistenceError):
        store.save_material(bad_id, Material.create("A", "alpha"))


def test_missing_document_raises(store, user_id):
    with pytest.raises(PersistenceError):
        store.load(user_id, "studyPlans", "doesnotexist")
    with pytest.raises(PersistenceError):
        store.update_plan_progress(user_id, "doesnotexist", 1, True)


def test_unknown_collection_raises(store, user_id):
    with pytest.raises(PersistenceError):
        store.load(user_id, "flashcards", "abc")


def test_corrupt_document_raises(store, user_id):
    doc_id = store.save_material(user_id, Material.create("A", "alpha"))
    path = store.root / user_id / "materials" / f"{doc_id}.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        store.list_materials(user_id)


def test_held_lock_times_out(store, user_id, monkeypatch):
    from study_assistant import store as store_mod

    monkeypatch.setattr(store_mod, "_LOCK_TIMEOUT_SECONDS", 0.1)
    lock = store.root / user_id / ".lock"
    lock.parent.mkdir(parents=True)
    lock.write_text("", encoding="utf-8")

    with pytest.raises(PersistenceError, match="lock"):
        store.save_material(user_id, Material.create("A", "alpha"))


def test_unwritable_root_raises(tmp_path, user_id):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not directory", encoding="utf-8")
    store = DocumentStore(blocker)

    with pytest.raises(PersistenceError):
        store.save_material(user_id, Material.create("A", "alpha"))

from __future__ import annotations

import pytest
from fixtures import DeferredExecutor

from study_assistant.background import BackgroundWriter
from study_assistant.errors import ExtractionError, InputError, SessionStateError
from study_assistant.host import HostStep, SessionHost
from study_assistant.quiz_session import QuizStatus
from study_assistant.settings import LimitSettings, QuizSettings, Settings


def test_upload_text_moves_to_choose(generator):
    host = SessionHost(generator)

    material = host.upload_text("Biology", "Cells are small.")

    assert host.step is HostStep.CHOOSE
    assert host.material == material


def test_invalid_material_keeps_upload_step(generator):
    host = SessionHost(generator)

    with pytest.raises(InputError):
        host.upload_text("", "content")

    assert host.step is HostStep.UPLOAD
    assert host.material is None


def test_upload_file_uses_stem_as_title(generator, tmp_path):
    source = tmp_path / "chapter-one.txt"
    source.write_text("Photosynthesis basics", encoding="utf-8")
    host = SessionHost(generator)

    material = host.upload_file(source)

    assert material.title == "chapter-one"
    assert material.content == "Photosynthesis basics"


def test_upload_file_truncates_to_configured_limit(generator, tmp_path):
    source = tmp_path / "long.md"
    source.write_text("x" * 50, encoding="utf-8")
    settings = Settings(
        limits=LimitSettings(extract_max_chars=10, prompt_max_chars=5)
    )
    host = SessionHost(generator, settings=settings)

    material = host.upload_file(source)

    assert material.content.startswith("x" * 10)
    assert material.content.endswith("[Content truncated for processing...]")


def test_extraction_failure_keeps_upload_step(generator, tmp_path):
    host = SessionHost(generator)

    with pytest.raises(ExtractionError):
        host.upload_file(tmp_path / "missing.pdf")

    assert host.step is HostStep.UPLOAD


def test_choose_quiz_uses_quiz_settings(generator):
    settings = Settings(
        quiz=QuizSettings(default_questions=5, question_options=(5, 15))
    )
    host = SessionHost(generator, settings=settings)
    host.upload_text("Biology", "Cells")

    session = host.choose_quiz()

    assert host.step is HostStep.QUIZ
    assert session.num_questions == 5
    assert session.question_options == (5, 15)
    assert session.status is QuizStatus.CONFIGURING


def test_choose_requires_material(generator):
    host = SessionHost(generator)

    with pytest.raises(SessionStateError):
        host.choose_plan()
    with pytest.raises(SessionStateError):
        host.choose_quiz()


def test_back_from_workflow_keeps_material(generator):
    host = SessionHost(generator)
    material = host.upload_text("Biology", "Cells")
    tracker = host.choose_plan()
    tracker.generate(3)

    assert host.back() is HostStep.CHOOSE

    assert host.plan_tracker is None
    assert host.material == material
    host.choose_quiz()
    assert host.step is HostStep.QUIZ


def test_back_from_choose_discards_material(generator):
    host = SessionHost(generator)
    host.upload_text("Biology", "Cells")

    assert host.back() is HostStep.UPLOAD

    assert host.material is None
    with pytest.raises(SessionStateError):
        host.back()


def test_upload_rejected_outside_upload_step(generator):
    host = SessionHost(generator)
    host.upload_text("Biology", "Cells")

    with pytest.raises(SessionStateError):
        host.upload_text("Other", "More")


def test_material_id_attached_after_save(generator, store, writer, user_id):
    host = SessionHost(generator, store=store, writer=writer, user_id=user_id)

    host.upload_text("Biology", "Cells " * 200)

    assert host.material.id is not None
    saved = store.load(user_id, "materials", host.material.id)
    assert saved["title"] == "Biology"
    assert len(saved["contentPreview"]) == 500


def test_generated_artifacts_reference_material(generator, store, writer, user_id):
    host = SessionHost(generator, store=store, writer=writer, user_id=user_id)
    host.upload_text("Biology", "Cells")
    session = host.choose_quiz()
    session.generate()

    saved = store.load(user_id, "quizzes", session.quiz_id)

    assert saved["materialId"] == host.material.id


def test_late_material_id_is_dropped_after_back(generator, store, user_id):
    executor = DeferredExecutor()
    host = SessionHost(
        generator,
        store=store,
        writer=BackgroundWriter(executor),
        user_id=user_id,
    )
    host.upload_text("Biology", "Cells")
    host.back()
    host.upload_text("Chemistry", "Atoms")
    executor.jobs = executor.jobs[:1]

    executor.run_all()

    assert host.material.title == "Chemistry"
    assert host.material.id is None


def test_late_material_id_reaches_running_quiz(generator, store, user_id):
    executor = DeferredExecutor()
    host = SessionHost(
        generator,
        store=store,
        writer=BackgroundWriter(executor),
        user_id=user_id,
    )
    host.upload_text("Biology", "Cells")
    session = host.choose_quiz()
    executor.run_all()
    session.generate()
    executor.run_all()

    saved = store.load(user_id, "quizzes", session.quiz_id)

    assert host.material.id is not None
    assert session.material.id == host.material.id
    assert saved["materialId"] == host.material.id


def test_plan_saved_after_material_carries_its_id(generator, store, user_id):
    executor = DeferredExecutor()
    host = SessionHost(
        generator,
        store=store,
        writer=BackgroundWriter(executor),
        user_id=user_id,
    )
    host.upload_text("Biology", "Cells")
    tracker = host.choose_plan()
    tracker.generate(3)
    assert host.material.id is None

    executor.run_all()

    saved = store.load(user_id, "studyPlans", tracker.plan_id)
    assert saved["materialId"] == host.material.id
    assert saved["materialId"] is not None


def test_close_flushes_writer_created_by_host(generator, store, user_id):
    host = SessionHost(generator, store=store, user_id=user_id)
    host.upload_text("Biology", "Cells")

    host.close()

    assert [doc["title"] for doc in store.list_materials(user_id)] == [
        "Biology"
    ]


def test_close_leaves_shared_writer_running(generator, store, user_id):
    writer = BackgroundWriter()
    host = SessionHost(generator, store=store, writer=writer, user_id=user_id)
    host.upload_text("Biology", "Cells")

    host.close()

    assert writer.submit("after close", lambda: "ok").result(timeout=5) == "ok"
    writer.close()

import asyncio

import pytest

from assessment_session.error_utils import QuestionsUnavailable
from assessment_session.question_source import QuestionSource

from conftest import FakeGateway, make_survey, sample_questions


def _bank_survey(source_type="question_bank"):
    return make_survey(sourceType=source_type, questions=[])


def test_manual_questions_are_available_immediately(survey):
    source = QuestionSource(survey)
    assert source.loaded
    assert [q.id for q in source.questions] == ["q1", "q2", "q3"]
    assert [q.id for q in asyncio.run(source.resolve())] == ["q1", "q2", "q3"]


@pytest.mark.parametrize("source_type", ["question_bank", "multi_question_bank", "manual_selection"])
def test_bank_questions_never_come_from_survey(source_type):
    survey = make_survey(sourceType=source_type)
    gateway = FakeGateway(bank=[{"_id": "b1", "type": "short_text", "text": "?"}])
    source = QuestionSource(survey, gateway)
    assert not source.loaded
    assert source.questions == []
    questions = asyncio.run(source.resolve("ana@example.com"))
    assert [q.id for q in questions] == ["b1"]
    assert gateway.question_calls == [("intro-quiz", "ana@example.com")]


def test_bank_source_requires_fetcher():
    with pytest.raises(ValueError):
        QuestionSource(_bank_survey())


def test_resolve_is_cached_for_same_email():
    gateway = FakeGateway(bank=sample_questions())
    source = QuestionSource(_bank_survey(), gateway)

    async def run():
        await source.resolve("ana@example.com")
        await source.resolve("ana@example.com")

    asyncio.run(run())
    assert len(gateway.question_calls) == 1


def test_overlapping_resolves_share_one_fetch():
    gateway = FakeGateway(bank=sample_questions())
    gateway.questions_gate = asyncio.Event()
    source = QuestionSource(_bank_survey(), gateway)

    async def run():
        first = asyncio.ensure_future(source.resolve("ana@example.com"))
        second = asyncio.ensure_future(source.resolve("ana@example.com"))
        await asyncio.sleep(0)
        gateway.questions_gate.set()
        return await first, await second

    first, second = asyncio.run(run())
    assert len(gateway.question_calls) == 1
    assert [q.id for q in first] == [q.id for q in second] == ["q1", "q2", "q3"]


def test_new_email_fetches_again():
    gateway = FakeGateway(bank=sample_questions())
    source = QuestionSource(_bank_survey(), gateway)

    async def run():
        await source.resolve("ana@example.com")
        await source.resolve("bo@example.com")

    asyncio.run(run())
    assert [email for _, email in gateway.question_calls] == ["ana@example.com", "bo@example.com"]


def test_failure_leaves_list_empty_and_allows_retry():
    gateway = FakeGateway(bank=sample_questions(), fail_questions=True)
    source = QuestionSource(_bank_survey(), gateway)

    with pytest.raises(QuestionsUnavailable):
        asyncio.run(source.resolve("ana@example.com"))
    assert source.questions == [] and not source.loaded

    gateway.fail_questions = False
    assert len(asyncio.run(source.resolve("ana@example.com"))) == 3
    assert len(gateway.question_calls) == 2


def test_blank_email_is_rejected():
    source = QuestionSource(_bank_survey(), FakeGateway())
    with pytest.raises(QuestionsUnavailable):
        asyncio.run(source.resolve("   "))


def test_discarded_fetch_result_is_ignored():
    gateway = FakeGateway(bank=sample_questions())
    gateway.questions_gate = asyncio.Event()
    source = QuestionSource(_bank_survey(), gateway)

    async def run():
        pending = asyncio.ensure_future(source.resolve("ana@example.com"))
        await asyncio.sleep(0)
        source.discard_pending()
        gateway.questions_gate.set()
        return await pending

    assert asyncio.run(run()) == []
    assert not source.loaded

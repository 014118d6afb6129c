"""Tests for result persistence: recorder, scheduler and SQLAlchemy repository."""

import asyncio

import pytest
from sqlalchemy import select

from conftest import FakeRepository, OUTAGE_TEXT, build_pipeline
from telcocare.infrastructure.database import (
    close_database, create_tables, get_session_context, init_database
)
from telcocare.triage.application import (
    EvaluateTicketRequest, PersistenceScheduler, TicketResultRecorder
)
from telcocare.triage.domain import DEFAULT_STOPWORDS, KeywordExtractor
from telcocare.triage.infrastructure import (
    SQLAlchemyTicketResultRepository, TicketKeywordModel, TicketResultModel
)


def _result(text=OUTAGE_TEXT):
    return asyncio.run(build_pipeline().run(EvaluateTicketRequest(text=text, ticket_id="TICKET-001")))


def _recorder(repository):
    return TicketResultRecorder(repository, KeywordExtractor(DEFAULT_STOPWORDS))


def test_record_stores_result_then_keywords():
    repository = FakeRepository()

    result_id = asyncio.run(_recorder(repository).record(_result()))

    assert result_id == "result-1"
    assert repository.results[0]["ticket_id"] == "TICKET-001"
    assert repository.keywords[0][0] == "result-1"


def test_record_stops_when_result_insert_fails():
    repository = FakeRepository(fail_result=True)

    result_id = asyncio.run(_recorder(repository).record(_result()))

    assert result_id is None
    assert repository.keywords == []


def test_record_swallows_keyword_failure():
    repository = FakeRepository(fail_keywords=True)

    result_id = asyncio.run(_recorder(repository).record(_result()))

    assert result_id == "result-1"
    assert len(repository.results) == 1


def test_record_skips_keyword_insert_when_nothing_extracted():
    repository = FakeRepository()

    asyncio.run(_recorder(repository).record(_result(text="ya saya")))

    assert len(repository.results) == 1
    assert repository.keywords == []


def test_scheduler_logs_and_forgets_failed_tasks(caplog):
    async def failing():
        raise RuntimeError("lost connection")

    async def scenario():
        scheduler = PersistenceScheduler()
        scheduler.schedule(failing(), name="persist-TICKET-001")
        await scheduler.drain()
        return scheduler

    with caplog.at_level("ERROR"):
        scheduler = asyncio.run(scenario())

    assert scheduler.pending == 0
    assert "Persistence task failed" in caplog.text


def test_scheduler_drain_cancels_after_timeout():
    async def slow():
        await asyncio.sleep(10)

    async def scenario():
        scheduler = PersistenceScheduler()
        task = scheduler.schedule(slow())
        await scheduler.drain(timeout=0.05)
        return scheduler, task

    scheduler, task = asyncio.run(scenario())

    assert task.cancelled()
    assert scheduler.pending == 0


def test_sqlalchemy_repository_round_trip(tmp_path):
    pytest.importorskip("aiosqlite")
    result = _result()
    keywords = KeywordExtractor(DEFAULT_STOPWORDS).extract(result.ticket_text)

    async def scenario():
        init_database(f"sqlite+aiosqlite:///{tmp_path / 'triage.db'}")
        try:
            await create_tables()
            repository = SQLAlchemyTicketResultRepository()
            result_id = await repository.insert_result(result.to_record())
            count = await repository.insert_keywords(result_id, keywords)

            async with get_session_context() as session:
                row = (await session.execute(select(TicketResultModel))).scalar_one()
                keyword_rows = (await session.execute(
                    select(TicketKeywordModel).order_by(TicketKeywordModel.frequency.desc())
                )).scalars().all()
            return result_id, count, row, keyword_rows
        finally:
            await close_database()

    result_id, count, row, keyword_rows = asyncio.run(scenario())

    assert str(row.id) == result_id
    assert row.ticket_id == "TICKET-001"
    assert row.translation_time_ms == result.translation_processing_time_ms
    assert row.escalation_reason == "llm"
    assert count == len(keywords) == len(keyword_rows)
    assert all(str(k.ticket_result_id) == result_id for k in keyword_rows)
    assert {k.keyword for k in keyword_rows} == {k.keyword for k in keywords}

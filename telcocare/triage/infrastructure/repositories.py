"""
Triage Infrastructure Repositories
====================================

SQLAlchemy implementations of triage repositories.
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Dict, List
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from telcocare.core import PersistenceException
from telcocare.infrastructure.database import get_session_context
from telcocare.triage.application import ITicketResultRepository
from telcocare.triage.domain import KeywordFrequency
from telcocare.triage.infrastructure.models import TicketResultModel, TicketKeywordModel


# Result fields stored under a different column name
COLUMN_RENAMES = {"translation_processing_time_ms": "translation_time_ms"}

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class SQLAlchemyTicketResultRepository(ITicketResultRepository):
    """
    SQLAlchemy implementation for ticket results and keywords.

    Each insert opens its own session: the repository is used from
    background tasks that outlive the request scope.
    """

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def insert_result(self, record: Dict[str, Any]) -> str:
        """Store one flat result row and return its ID."""
        columns = {COLUMN_RENAMES.get(key, key): value for key, value in record.items()}
        model = TicketResultModel(id=uuid4(), **columns)

        try:
            async with self._session_factory() as session:
                session.add(model)
                await session.flush()
        except Exception as e:
            raise PersistenceException(
                f"Failed to insert ticket result: {e}",
                details={"ticket_id": record.get("ticket_id")}
            )

        return str(model.id)

    async def insert_keywords(self, result_id: str, keywords: List[KeywordFrequency]) -> int:
        """Bulk-insert keyword rows for an existing result."""
        if not keywords:
            return 0

        try:
            parent_id = UUID(result_id)
        except ValueError:
            raise PersistenceException(f"Invalid ticket result ID: {result_id}")

        models = [
            TicketKeywordModel(
                id=uuid4(),
                ticket_result_id=parent_id,
                keyword=item.keyword,
                frequency=item.frequency
            )
            for item in keywords
        ]

        try:
            async with self._session_factory() as session:
                session.add_all(models)
                await session.flush()
        except Exception as e:
            raise PersistenceException(
                f"Failed to insert keywords: {e}",
                details={"ticket_result_id": result_id, "keyword_count": len(models)}
            )

        return len(models)

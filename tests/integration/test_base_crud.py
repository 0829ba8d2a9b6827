"""
Test suite for BaseCRUD generic database operations.

Tests create, get_by_id, list_by_user, update_by_id and delete_by_id against
a mocked AsyncSession to verify statement construction and flush behavior.

System role: Verification of generic database layer foundation
"""

import uuid
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.boundary.db.CRUD.base_crud import BaseCRUD
from backup_engine.boundary.db.models.social_profile_model import SocialProfileModel


@pytest.fixture
def base_crud() -> BaseCRUD:
    """Provide BaseCRUD instance for testing."""
    return BaseCRUD(SocialProfileModel)


@pytest.fixture
def mock_session() -> AsyncSession:
    """Provide mock async database session."""
    return AsyncMock(spec=AsyncSession)


@pytest.fixture
def sample_id() -> uuid.UUID:
    return uuid.uuid4()


def _result_returning(value: Any) -> MagicMock:
    mock_result = MagicMock()
    mock_result.scalar_one_or_none = MagicMock(return_value=value)
    return mock_result


class TestBaseCRUDCreate:
    """Test suite for BaseCRUD.create() method."""

    async def test_create_should_add_flush_and_refresh(self, base_crud: BaseCRUD, mock_session: AsyncSession) -> None:
        # Arrange
        call_order: list[str] = []

        async def flush_effect() -> None:
            call_order.append("flush")

        async def refresh_effect(obj: Any) -> None:
            call_order.append("refresh")

        mock_session.flush = AsyncMock(side_effect=flush_effect)
        mock_session.refresh = AsyncMock(side_effect=refresh_effect)

        # Act
        instance = await base_crud.create(mock_session, user_id="u1", platform="twitter", platform_username="alice")

        # Assert
        mock_session.add.assert_called_once_with(instance)
        assert call_order == ["flush", "refresh"]
        assert instance.platform_username == "alice"


class TestBaseCRUDGetByID:
    """Test suite for BaseCRUD.get_by_id() method."""

    async def test_get_by_id_should_return_model_when_found(
        self, base_crud: BaseCRUD, mock_session: AsyncSession, sample_id: uuid.UUID
    ) -> None:
        # Arrange
        mock_instance = MagicMock()
        mock_session.execute = AsyncMock(return_value=_result_returning(mock_instance))

        # Act
        result = await base_crud.get_by_id(mock_session, sample_id)

        # Assert
        assert result == mock_instance
        mock_session.execute.assert_called_once()

    async def test_get_by_id_should_return_none_when_not_found(
        self, base_crud: BaseCRUD, mock_session: AsyncSession, sample_id: uuid.UUID
    ) -> None:
        mock_session.execute = AsyncMock(return_value=_result_returning(None))
        assert await base_crud.get_by_id(mock_session, sample_id) is None

    async def test_get_by_id_should_refresh_identity_map(
        self, base_crud: BaseCRUD, mock_session: AsyncSession, sample_id: uuid.UUID
    ) -> None:
        """Rows written by another process must not be served stale."""
        # Arrange
        mock_session.execute = AsyncMock(return_value=_result_returning(None))

        # Act
        await base_crud.get_by_id(mock_session, sample_id)

        # Assert
        stmt = mock_session.execute.call_args.args[0]
        assert stmt.get_execution_options()["populate_existing"] is True


class TestBaseCRUDListByUser:
    async def test_list_by_user_should_apply_limit(self, base_crud: BaseCRUD, mock_session: AsyncSession) -> None:
        # Arrange
        instances = [MagicMock(), MagicMock()]
        mock_scalars = MagicMock()
        mock_scalars.all = MagicMock(return_value=instances)
        mock_result = MagicMock()
        mock_result.scalars = MagicMock(return_value=mock_scalars)
        mock_session.execute = AsyncMock(return_value=mock_result)

        # Act
        result = await base_crud.list_by_user(mock_session, "u1", limit=2)

        # Assert
        assert result == instances
        stmt = mock_session.execute.call_args.args[0]
        assert "LIMIT" in str(stmt)
        assert "ORDER BY" in str(stmt)


class TestBaseCRUDUpdateByID:
    """Test suite for BaseCRUD.update_by_id() method."""

    async def test_update_by_id_should_set_fields_and_flush(
        self, base_crud: BaseCRUD, mock_session: AsyncSession, sample_id: uuid.UUID
    ) -> None:
        # Arrange
        instance = MagicMock()
        mock_session.execute = AsyncMock(return_value=_result_returning(instance))

        # Act
        result = await base_crud.update_by_id(mock_session, sample_id, display_name="Alice", added_via="archive")

        # Assert
        assert result is instance
        assert instance.display_name == "Alice"
        assert instance.added_via == "archive"
        mock_session.flush.assert_awaited_once()

    async def test_update_by_id_should_return_none_when_not_found(
        self, base_crud: BaseCRUD, mock_session: AsyncSession, sample_id: uuid.UUID
    ) -> None:
        # Arrange
        mock_session.execute = AsyncMock(return_value=_result_returning(None))

        # Act
        result = await base_crud.update_by_id(mock_session, sample_id, display_name="Alice")

        # Assert
        assert result is None
        mock_session.flush.assert_not_awaited()


class TestBaseCRUDDeleteByID:
    """Test suite for BaseCRUD.delete_by_id() method."""

    @pytest.mark.parametrize("rowcount, expected", [(1, True), (0, False), (None, False)])
    async def test_delete_by_id_reports_rowcount(
        self,
        base_crud: BaseCRUD,
        mock_session: AsyncSession,
        sample_id: uuid.UUID,
        rowcount: int | None,
        expected: bool,
    ) -> None:
        # Arrange
        mock_result = MagicMock()
        mock_result.rowcount = rowcount
        mock_session.execute = AsyncMock(return_value=mock_result)

        # Act
        result = await base_crud.delete_by_id(mock_session, sample_id)

        # Assert
        assert result is expected
        mock_session.execute.assert_called_once()

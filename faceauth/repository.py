"""
Identity Repository

Database operations for the identities table using SQLAlchemy async.
This is the storage contract the pipelines rely on: lookup by identifier
and an atomic, uniqueness-enforcing create.
"""
import uuid
from typing import Optional, List
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from faceauth.config import EMBEDDING_DIM
from faceauth.exceptions import DuplicateIdentity, InvalidEmbedding, StorageError
from faceauth.models import IdentityRecordDB
from faceauth.schemas import IdentityRecord

logger = logging.getLogger(__name__)


class IdentityRepository:
    """
    Repository class for identity records.

    All methods are async and require an AsyncSession.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        identifier: str,
        display_name: str,
        credential: str,
        embedding: List[float],
        embedding_dim: int = EMBEDDING_DIM
    ) -> IdentityRecordDB:
        """
        Create a new identity record.

        Args:
            session: Database session
            identifier: Unique identifier (e.g. an email)
            display_name: Human readable name
            credential: Credential as it should be stored (already encoded)
            embedding: Face embedding of the reference photo
            embedding_dim: Required embedding length

        Returns:
            Created IdentityRecordDB instance

        Raises:
            InvalidEmbedding: embedding length differs from embedding_dim
            DuplicateIdentity: identifier already taken (unique constraint)
            StorageError: any other database failure
        """
        if len(embedding) != embedding_dim:
            raise InvalidEmbedding(
                f"Embedding has {len(embedding)} dimensions, expected {embedding_dim}"
            )

        db_record = IdentityRecordDB(
            id=uuid.uuid4(),
            identifier=identifier,
            display_name=display_name,
            credential=credential,
            embedding=[float(x) for x in embedding],
            embedding_dim=embedding_dim,
        )

        session.add(db_record)
        try:
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            logger.info(f"Rejected duplicate identifier '{identifier}' at insert")
            raise DuplicateIdentity() from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Failed to store identity '{identifier}': {e}")
            raise StorageError() from e

        await session.refresh(db_record)
        logger.info(f"Created DB record {db_record.id} for identifier '{identifier}'")
        return db_record

    @staticmethod
    async def get_by_identifier(session: AsyncSession, identifier: str) -> Optional[IdentityRecordDB]:
        """Get an identity record by its identifier."""
        try:
            result = await session.execute(
                select(IdentityRecordDB).where(IdentityRecordDB.identifier == identifier)
            )
        except SQLAlchemyError as e:
            logger.error(f"Identity lookup failed: {e}")
            raise StorageError() from e
        return result.scalar_one_or_none()

    @staticmethod
    async def count(session: AsyncSession) -> int:
        """Get total count of identity records."""
        result = await session.execute(select(func.count(IdentityRecordDB.id)))
        return result.scalar() or 0

    @staticmethod
    def db_to_schema(db_record: IdentityRecordDB) -> IdentityRecord:
        """Convert database model to Pydantic schema."""
        return IdentityRecord(
            id=str(db_record.id),
            identifier=db_record.identifier,
            display_name=db_record.display_name,
            embedding_dim=db_record.embedding_dim,
            created_at=db_record.created_at
        )

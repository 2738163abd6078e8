"""
Registration and verification pipelines.

Both fail fast on the first violated condition, in this order:
input validation, face extraction, identity lookup, credential check,
and (verification only) the match decision.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from faceauth.config import EMBEDDING_DIM
from faceauth.credentials import CredentialHasher
from faceauth.exceptions import (
    DuplicateIdentity,
    IdentityNotFound,
    InvalidCredential,
    ValidationError
)
from faceauth.matcher import Matcher
from faceauth.models import IdentityRecordDB
from faceauth.repository import IdentityRepository
from faceauth.workers import ExtractionPool

logger = logging.getLogger(__name__)


def _require(**fields):
    missing = [name for name, value in fields.items() if not value or (isinstance(value, str) and not value.strip())]
    if missing:
        raise ValidationError(f"All fields are required (missing: {', '.join(missing)}).")


@dataclass(frozen=True)
class VerificationResult:
    identifier: str
    accepted: bool
    distance: float
    threshold: float


class RegistrationPipeline:

    def __init__(
        self,
        extraction_pool: ExtractionPool,
        credentials: CredentialHasher,
        embedding_dim: int = EMBEDDING_DIM
    ):
        self.extraction_pool = extraction_pool
        self.credentials = credentials
        self.embedding_dim = embedding_dim

    async def register(
        self,
        session: AsyncSession,
        identifier: str,
        display_name: str,
        credential: str,
        photo: bytes
    ) -> IdentityRecordDB:
        """
        Enroll a new identity from one reference photo.

        Raises:
            ValidationError: a field is missing or empty
            NoFaceDetected: no face in the photo
            DuplicateIdentity: identifier already registered
            StorageError: the record could not be persisted
        """
        _require(identifier=identifier, display_name=display_name, credential=credential, photo=photo)
        identifier = identifier.strip()

        embedding = await self.extraction_pool.extract(photo)

        # Advisory only; the unique constraint decides under concurrency
        if await IdentityRepository.get_by_identifier(session, identifier) is not None:
            logger.info(f"Registration rejected, identifier '{identifier}' already exists")
            raise DuplicateIdentity()

        return await IdentityRepository.create(
            session=session,
            identifier=identifier,
            display_name=display_name.strip(),
            credential=self.credentials.encode(credential),
            embedding=embedding,
            embedding_dim=self.embedding_dim
        )


class VerificationPipeline:

    def __init__(
        self,
        extraction_pool: ExtractionPool,
        credentials: CredentialHasher,
        matcher: Matcher
    ):
        self.extraction_pool = extraction_pool
        self.credentials = credentials
        self.matcher = matcher

    async def verify(
        self,
        session: AsyncSession,
        identifier: str,
        credential: str,
        photo: bytes
    ) -> VerificationResult:
        """
        Check a fresh photo against the enrolled face of a claimed identity.

        A face that does not match is a normal result (accepted=False),
        not an exception. Never writes to the store.

        Raises:
            ValidationError: a field is missing or empty
            NoFaceDetected: no face in the photo
            IdentityNotFound: identifier is not registered
            InvalidCredential: credential does not match the stored one
        """
        _require(identifier=identifier, credential=credential, photo=photo)
        identifier = identifier.strip()

        embedding = await self.extraction_pool.extract(photo)

        record = await IdentityRepository.get_by_identifier(session, identifier)
        if record is None:
            raise IdentityNotFound()

        if not self.credentials.verify(credential, record.credential):
            raise InvalidCredential()

        result = self.matcher.compare(embedding, record.embedding)
        logger.info(
            f"Verification for '{identifier}': distance={result.distance:.4f} "
            f"threshold={result.threshold} -> {'accepted' if result.matched else 'rejected'}"
        )
        return VerificationResult(
            identifier=identifier,
            accepted=result.matched,
            distance=result.distance,
            threshold=result.threshold
        )

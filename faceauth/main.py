"""
Face Identity Verification API

Registers identities with one reference face and verifies fresh photos
against the enrolled face, with PostgreSQL for identity storage.

Endpoints:
- POST /api/register - Enroll a new identity
- POST /api/verify - Verify a claimed identity (also served as /api/enroll)
- GET /health - Database and model status
"""
import time
import logging
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from faceauth.config import (
    API_TITLE,
    API_DESCRIPTION,
    API_VERSION,
    CORS_ORIGINS,
    DATABASE_URL,
    EXPOSE_AUTH_FAILURE_REASON,
    FACE_RECOGNITION_MODEL,
    FACE_DETECTOR_BACKEND,
    HOST,
    LOG_LEVEL,
    MATCH_THRESHOLD,
    PORT
)
from faceauth.credentials import CredentialHasher
from faceauth.database import create_engine, create_session_maker, init_db, close_db
from faceauth.exceptions import (
    AuthenticationFailed,
    DuplicateIdentity,
    ExtractorBusy,
    ExtractionTimeout,
    FaceAuthError,
    IdentityNotFound,
    MultipleFacesDetected,
    NoFaceDetected,
    ValidationError
)
from faceauth.matcher import Matcher
from faceauth.pipelines import RegistrationPipeline, VerificationPipeline
from faceauth.repository import IdentityRepository
from faceauth.schemas import (
    ErrorResponse,
    RegisterRequest,
    RegisterResponse,
    VerifyRequest,
    VerifyResponse
)
from faceauth.utils import decode_photo
from faceauth.workers import ExtractionPool

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Status code per error kind; checked in order, so subclasses come first
ERROR_STATUS = (
    (ValidationError, 400),
    (NoFaceDetected, 422),
    (MultipleFacesDetected, 422),
    (DuplicateIdentity, 409),
    (IdentityNotFound, 404),
    (AuthenticationFailed, 403),
    (ExtractorBusy, 503),
    (ExtractionTimeout, 504),
)


def default_extractor():
    """DeepFace-backed extractor; imported here so the model stack loads with the app."""
    from faceauth.face_service import FaceEmbeddingExtractor, FaceModel

    return FaceEmbeddingExtractor(FaceModel())


async def get_db(request: Request) -> AsyncSession:
    """Dependency to get database session."""
    async with request.app.state.session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def _photo_bytes(photo: Optional[str]) -> bytes:
    # Missing photos are reported by the pipeline with the other missing fields
    if not photo or not photo.strip():
        return b""
    return decode_photo(photo)


def create_app(
    database_url: Optional[str] = None,
    extractor=None,
    credentials: Optional[CredentialHasher] = None,
    expose_auth_failure_reason: bool = EXPOSE_AUTH_FAILURE_REASON,
    extraction_pool_options: Optional[dict] = None
) -> FastAPI:
    """
    Build the application.

    The extractor must provide load(), extract(bytes) and a loaded property;
    by default it is the DeepFace extractor. Its model is loaded during
    startup and any failure aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        # Startup
        logger.info("Starting Face Identity Verification API...")
        logger.info(f"Model: {FACE_RECOGNITION_MODEL}")
        logger.info(f"Detector: {FACE_DETECTOR_BACKEND}")

        face_extractor = extractor if extractor is not None else default_extractor()
        face_extractor.load()

        engine = create_engine(database_url or DATABASE_URL)
        await init_db(engine)

        pool = ExtractionPool(face_extractor, **(extraction_pool_options or {}))
        pool.start()

        hasher = credentials or CredentialHasher()
        app.state.extractor = face_extractor
        app.state.session_maker = create_session_maker(engine)
        app.state.expose_auth_failure_reason = expose_auth_failure_reason
        app.state.registration = RegistrationPipeline(pool, hasher)
        app.state.verification = VerificationPipeline(pool, hasher, Matcher())
        logger.info("All services initialized successfully!")
        try:
            yield
        finally:
            # Shutdown
            pool.shutdown()
            await close_db(engine)
            logger.info("Shutting down Face Identity Verification API...")

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    @app.get("/", include_in_schema=False)
    async def root(db: AsyncSession = Depends(get_db)):
        """Root endpoint with API info."""
        total_records = await IdentityRepository.count(db)
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "model": FACE_RECOGNITION_MODEL,
            "detector": FACE_DETECTOR_BACKEND,
            "threshold": MATCH_THRESHOLD,
            "total_records": total_records,
            "endpoints": {
                "register": "POST /api/register",
                "verify": "POST /api/verify"
            }
        }

    @app.get("/health")
    async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
        """Health check endpoint."""
        try:
            db_count = await IdentityRepository.count(db)
            db_status = "healthy"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_count = 0
            db_status = "unhealthy"

        return {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "model_loaded": request.app.state.extractor.loaded,
            "database_status": db_status,
            "total_records": db_count
        }

    @app.post(
        "/api/register",
        status_code=201,
        response_model=RegisterResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid input"},
            409: {"model": ErrorResponse, "description": "Identifier already registered"},
            422: {"model": ErrorResponse, "description": "No face detected"}
        },
        summary="Register a new identity",
        description="""
        Enroll an identity with one reference photo.

        **Pipeline:**
        1. Check that all fields are present
        2. Decode the photo and detect the face
        3. Generate the face embedding
        4. Reject identifiers that are already registered
        5. Store the identity with its embedding
        """
    )
    async def register(
        payload: RegisterRequest,
        request: Request,
        db: AsyncSession = Depends(get_db)
    ):
        """Register a new identity."""
        start_time = time.time()

        db_record = await request.app.state.registration.register(
            session=db,
            identifier=payload.identifier,
            display_name=payload.display_name,
            credential=payload.credential,
            photo=_photo_bytes(payload.photo)
        )
        record = IdentityRepository.db_to_schema(db_record)

        processing_time = (time.time() - start_time) * 1000
        logger.info(f"Registered '{record.identifier}' ({record.id}) in {processing_time:.1f}ms")

        return RegisterResponse(
            success=True,
            message="Identity registered successfully.",
            record=record
        )

    async def verify(
        payload: VerifyRequest,
        request: Request,
        db: AsyncSession = Depends(get_db)
    ):
        """Verify a claimed identity against a fresh photo."""
        start_time = time.time()

        result = await request.app.state.verification.verify(
            session=db,
            identifier=payload.identifier,
            credential=payload.credential,
            photo=_photo_bytes(payload.photo)
        )

        processing_time = (time.time() - start_time) * 1000
        response = VerifyResponse(
            verified=result.accepted,
            message="Verification successful." if result.accepted else "Face does not match.",
            distance=result.distance,
            threshold=result.threshold,
            processing_time_ms=round(processing_time, 2)
        )
        if not result.accepted:
            return JSONResponse(status_code=403, content=response.model_dump())
        return response

    verify_route_options = dict(
        response_model=VerifyResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid input"},
            403: {"model": VerifyResponse, "description": "Verification failed or face does not match"},
            422: {"model": ErrorResponse, "description": "No face detected"}
        },
        summary="Verify a claimed identity",
        description="""
        Compare a fresh photo with the enrolled face of an identity.

        **Pipeline:**
        1. Check that all fields are present
        2. Generate the embedding of the fresh photo
        3. Look up the identity and check its credential
        4. Accept when the Euclidean distance is at most the threshold
        """
    )
    app.add_api_route("/api/verify", verify, methods=["POST"], **verify_route_options)
    app.add_api_route("/api/enroll", verify, methods=["POST"], include_in_schema=False,
                      **verify_route_options)

    # Exception handlers
    @app.exception_handler(FaceAuthError)
    async def face_auth_exception_handler(request: Request, exc: FaceAuthError):
        """Map service errors to HTTP responses."""
        status_code = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 500)
        error, detail = exc.error, exc.message

        if isinstance(exc, AuthenticationFailed) and not request.app.state.expose_auth_failure_reason:
            status_code = 403
            error, detail = AuthenticationFailed.error, AuthenticationFailed.default_message

        if status_code >= 500:
            logger.error(f"{exc.error}: {exc.message}", exc_info=exc)
            if status_code == 500:
                error, detail = "InternalServerError", "An unexpected error occurred"
        else:
            logger.warning(f"{exc.error}: {exc.message}")

        return JSONResponse(
            status_code=status_code,
            content={"error": error, "detail": detail}
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are reported like missing fields."""
        return JSONResponse(
            status_code=400,
            content={
                "error": ValidationError.error,
                "detail": "Request body must be a JSON object with string fields."
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """General exception handler."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "InternalServerError",
                "detail": "An unexpected error occurred"
            }
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)

"""
Error taxonomy for registration and verification.

The pipelines raise these; the API layer maps them to HTTP responses.
"""


class FaceAuthError(Exception):
    """Base class for all service errors."""

    error = "FaceAuthError"
    default_message = "Face authentication error"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(FaceAuthError):
    """Missing or malformed input; the caller can fix the request."""

    error = "ValidationError"
    default_message = "All fields are required."


class InvalidImage(ValidationError):
    error = "InvalidImage"
    default_message = "The provided photo could not be decoded as an image."


class NoFaceDetected(FaceAuthError):
    error = "NoFaceDetected"
    default_message = "No face detected in the provided image."


class MultipleFacesDetected(FaceAuthError):
    error = "MultipleFacesDetected"
    default_message = "More than one face detected in the provided image."


class DuplicateIdentity(FaceAuthError):
    error = "DuplicateIdentity"
    default_message = "An identity with this identifier already exists."


class AuthenticationFailed(FaceAuthError):
    """Common parent of the two failures that must look alike to callers."""

    error = "AuthenticationFailed"
    default_message = "Verification failed."


class IdentityNotFound(AuthenticationFailed):
    error = "IdentityNotFound"
    default_message = "Identity not found."


class InvalidCredential(AuthenticationFailed):
    error = "InvalidCredential"
    default_message = "Invalid credential."


class StorageError(FaceAuthError):
    error = "StorageError"
    default_message = "Failed to access the identity store."


class InvalidEmbedding(StorageError):
    error = "InvalidEmbedding"
    default_message = "Embedding has an unexpected length."


class ExtractionError(FaceAuthError):
    """The face model failed for a reason other than a missing face."""

    error = "ExtractionError"
    default_message = "Face embedding extraction failed."


class ExtractorBusy(ExtractionError):
    error = "ExtractorBusy"
    default_message = "Too many concurrent requests, try again later."


class ExtractionTimeout(ExtractionError):
    error = "ExtractionTimeout"
    default_message = "Face embedding extraction timed out."


class ModelLoadError(FaceAuthError):
    """Raised at startup only; the service must not start without a model."""

    error = "ModelLoadError"
    default_message = "Failed to load face recognition model."

"""
Pydantic models for API request/response schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class RegisterRequest(BaseModel):
    """Schema for registering a new identity.

    Fields are optional at the schema level so that missing values are
    reported by the registration pipeline as a ValidationError (400).
    """
    identifier: Optional[str] = Field(default=None, description="Unique identifier, e.g. an email")
    display_name: Optional[str] = Field(default=None, alias="displayName", description="Display name")
    credential: Optional[str] = Field(default=None, description="Secret used to authorize verification")
    photo: Optional[str] = Field(default=None, description="Reference photo as a data URL or base64 string")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "identifier": "alice@example.com",
                "displayName": "Alice",
                "credential": "secret",
                "photo": "data:image/jpeg;base64,/9j/4AAQSkZJRg..."
            }
        }


class VerifyRequest(BaseModel):
    """Schema for verifying a claimed identity"""
    identifier: Optional[str] = Field(default=None, description="Claimed identifier")
    credential: Optional[str] = Field(default=None, description="Credential of the claimed identity")
    photo: Optional[str] = Field(default=None, description="Fresh photo as a data URL or base64 string")

    class Config:
        json_schema_extra = {
            "example": {
                "identifier": "alice@example.com",
                "credential": "secret",
                "photo": "data:image/jpeg;base64,/9j/4AAQSkZJRg..."
            }
        }


class IdentityRecord(BaseModel):
    """Schema for an identity record response"""
    id: str = Field(..., description="Record UUID")
    identifier: str = Field(..., description="Unique identifier")
    display_name: str = Field(..., description="Display name")
    embedding_dim: int = Field(..., description="Length of the stored embedding")
    created_at: datetime = Field(..., description="Timestamp when record was created")


class RegisterResponse(BaseModel):
    """Schema for register response"""
    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Status message")
    record: Optional[IdentityRecord] = Field(default=None, description="Created record details")


class VerifyResponse(BaseModel):
    """Schema for verify response"""
    verified: bool = Field(..., description="Whether the face matched the enrolled face")
    message: str = Field(..., description="Status message")
    distance: float = Field(..., ge=0, description="Euclidean distance (lower is more similar)")
    threshold: float = Field(..., description="Maximum distance accepted as a match")
    processing_time_ms: float = Field(..., description="Processing time in milliseconds")

    class Config:
        json_schema_extra = {
            "example": {
                "verified": True,
                "message": "Verification successful.",
                "distance": 0.41,
                "threshold": 0.6,
                "processing_time_ms": 245.5
            }
        }


class ErrorResponse(BaseModel):
    """Schema for error responses"""
    error: str = Field(..., description="Error type")
    detail: str = Field(..., description="Detailed error message")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "NoFaceDetected",
                "detail": "No face detected in the provided image."
            }
        }

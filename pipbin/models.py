"""
Pydantic models for stored records, service contracts and page rendering.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SshKey(BaseModel):
    """A registered public-key credential."""
    type: str = Field(..., description="Key algorithm name, e.g. ssh-ed25519")
    fingerprint: str = Field(..., description="SHA256 fingerprint of the public key")

    def matches(self, fingerprint: str, key_type: str) -> bool:
        return self.fingerprint == fingerprint and self.type == key_type


class User(BaseModel):
    """A user identified by their SSH username."""
    id: int = Field(..., description="Storage-assigned identifier")
    name: str = Field(..., min_length=1, description="Unique, stable handle")
    ssh_keys: List[SshKey] = Field(default_factory=list, description="Registered credentials")
    pastes: List[str] = Field(default_factory=list, description="References to authored pastes")


class Paste(BaseModel):
    """A stored paste. Immutable once created."""
    id: int = Field(..., ge=0, description="Storage-assigned, monotonic identifier")
    content: str = Field(..., description="Paste text content")
    language: str = Field("", description="Detected language tag")
    expiry: str = Field("never", description="Expiry policy tag")


class ClassifierResponse(BaseModel):
    """Body returned by the language-classification service."""
    language: Optional[str] = Field(None, description="Guessed language name")


class Greeting(str, Enum):
    WELCOME = "welcome"
    WELCOME_BACK = "welcome_back"
    UNAUTHORIZED = "unauthorized"


class Resolution(BaseModel):
    """Outcome of resolving a connecting user."""
    user: User
    greeting: Greeting
    message: str = Field(..., description="Line to show the remote party")


class IngestResult(BaseModel):
    """Outcome of a successful ingestion."""
    paste: Paste
    short_id: str = Field(..., description="Public identifier of the paste")
    url: str = Field(..., description="Shareable URL to view the paste")
    language: str = Field(..., description="Detected language tag")
    size: int = Field(..., ge=0, description="Number of bytes stored")
    linked: bool = Field(True, description="Whether the paste was added to the user record")
    classifier_error: Optional[str] = Field(None, description="Classifier failure, if any")
    link_error: Optional[str] = Field(None, description="Failure linking the paste to its author, if any")


class DisplayModel(BaseModel):
    """Everything the paste page template needs."""
    name: str = Field(..., description="Short id, or README.md for the landing page")
    language: str = Field("", description="Language tag")
    content: str = Field("", description="Literal content, shown unrendered")
    html: str = Field("", description="Sanitized HTML fragment, shown when rendered")
    rendered: bool = Field(False, description="True when html should be shown")


class HealthCheck(BaseModel):
    """Schema for health check response."""
    ok: bool = Field(..., description="Is the application healthy?")

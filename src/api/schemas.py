"""Pydantic request/response schemas for the FastAPI endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either case."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class ResetTarget(StrEnum):
    """Data sets that can be cleared from the data management page."""

    ALL = "all"
    UPLOADS = "uploads"
    RESULTS = "results"
    VOTER_STATISTICS = "voter_statistics"
    CANDIDATES = "candidates"


class CandidateResult(CamelModel):
    candidate_name: str
    votes: int = Field(ge=0)


class VoterStatsSchema(CamelModel):
    male_voters: int = Field(default=0, ge=0)
    female_voters: int = Field(default=0, ge=0)
    wasted_ballots: int = Field(default=0, ge=0)
    total_voters: int = Field(default=0, ge=0)


class ProcessDRFormRequest(CamelModel):
    """Body of the text-extraction function."""

    image_url: str = Field(min_length=1)


class ProcessDRFormResponse(CamelModel):
    """Result of the text-extraction function."""

    results: list[CandidateResult]
    voter_stats: VoterStatsSchema
    success: bool
    error: str | None = None


class StationIn(CamelModel):
    name: str
    district: str


class StationOut(CamelModel):
    id: str
    name: str
    district: str


class UploadIn(CamelModel):
    """A field agent's DR form submission."""

    station_id: str
    image_path: str
    results: list[CandidateResult]
    voter_stats: VoterStatsSchema | None = None


class UploadOut(CamelModel):
    id: str
    station_id: str
    image_path: str
    timestamp: datetime
    station_name: str
    district: str
    results: list[CandidateResult]
    voter_stats: VoterStatsSchema | None = None


class ImageUploadResponse(CamelModel):
    image_path: str


class CandidateTotalOut(CamelModel):
    name: str
    votes: int
    percentage: float


class DashboardStatsOut(CamelModel):
    total_stations: int
    uploaded_stations: int
    male_voters: int
    female_voters: int
    wasted_ballots: int
    total_voters: int
    total_votes_counted: int


class ResetResponse(CamelModel):
    target: ResetTarget
    deleted: dict[str, int]


class LoginRequest(CamelModel):
    username: str
    password: str


class LoginResponse(CamelModel):
    authenticated: bool


class ChangeEventOut(CamelModel):
    seq: int
    table: str
    event: str
    record: dict[str, Any]
    timestamp: datetime


class ChangesResponse(CamelModel):
    last_seq: int
    events: list[ChangeEventOut]


class NotificationOut(CamelModel):
    seq: int
    table: str
    message: str
    timestamp: datetime


class HealthResponse(CamelModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    database_available: bool

"""SQLAlchemy ORM models for the five VoteSnap tables.

Polling stations, uploads, candidates, per-candidate results and
voter statistics. Primary keys are string UUIDs.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all tables."""


class PollingStation(Base):
    __tablename__ = "polling_stations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    district: Mapped[str] = mapped_column(String(200), nullable=False)

    uploads: Mapped[list["Upload"]] = relationship(back_populates="station")

    def to_record(self) -> dict:
        return {"id": self.id, "name": self.name, "district": self.district}


class Upload(Base):
    __tablename__ = "uploads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    station_id: Mapped[str] = mapped_column(
        ForeignKey("polling_stations.id"), nullable=False, index=True
    )
    image_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    station: Mapped[PollingStation | None] = relationship(back_populates="uploads")
    results: Mapped[list["Result"]] = relationship(back_populates="upload")
    voter_statistics: Mapped[list["VoterStatistics"]] = relationship(
        back_populates="upload"
    )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "image_path": self.image_path,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


class Candidate(Base):
    __tablename__ = "candidates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)

    def to_record(self) -> dict:
        return {"id": self.id, "name": self.name}


class Result(Base):
    __tablename__ = "results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    upload_id: Mapped[str] = mapped_column(
        ForeignKey("uploads.id"), nullable=False, index=True
    )
    candidate_id: Mapped[str] = mapped_column(
        ForeignKey("candidates.id"), nullable=False, index=True
    )
    votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    upload: Mapped[Upload] = relationship(back_populates="results")
    candidate: Mapped[Candidate] = relationship()

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "upload_id": self.upload_id,
            "candidate_id": self.candidate_id,
            "votes": self.votes,
        }


class VoterStatistics(Base):
    __tablename__ = "voter_statistics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    upload_id: Mapped[str] = mapped_column(
        ForeignKey("uploads.id"), nullable=False, index=True
    )
    station_id: Mapped[str] = mapped_column(
        ForeignKey("polling_stations.id"), nullable=False, index=True
    )
    male_voters: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    female_voters: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wasted_ballots: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_voters: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    upload: Mapped[Upload] = relationship(back_populates="voter_statistics")

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "upload_id": self.upload_id,
            "station_id": self.station_id,
            "male_voters": self.male_voters,
            "female_voters": self.female_voters,
            "wasted_ballots": self.wasted_ballots,
            "total_voters": self.total_voters,
        }

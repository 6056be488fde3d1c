"""Vote collection service: submissions, stations, totals and resets.

This is the shared application layer used by the API and the CLI.
Every write is published on the change feed after the transaction
commits.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from src.db.database import Database
from src.db.models import (
    Candidate,
    PollingStation,
    Result,
    Upload,
    VoterStatistics,
)
from src.extraction.dr_form_parser import ExtractedResult, VoterStats
from src.realtime.feed import ChangeFeed
from src.utils.logger import get_logger

logger = get_logger(__name__)

RESET_TARGETS = ("all", "uploads", "results", "voter_statistics", "candidates")


class StationNotFoundError(LookupError):
    """Raised when a polling station id does not exist."""


class UploadNotFoundError(LookupError):
    """Raised when an upload id does not exist."""


class StationInUseError(Exception):
    """Raised when deleting a station that already has uploads."""


class StationAlreadySubmittedError(Exception):
    """Raised when a station submits a second DR form."""


@dataclass
class Station:
    id: str
    name: str
    district: str


@dataclass
class CandidateTotal:
    name: str
    votes: int
    percentage: float


@dataclass
class UploadSummary:
    """An upload with its station, results and statistics."""

    id: str
    station_id: str
    image_path: str
    timestamp: datetime
    station_name: str
    district: str
    results: list[ExtractedResult] = field(default_factory=list)
    voter_stats: VoterStats | None = None


@dataclass
class DashboardStats:
    total_stations: int
    uploaded_stations: int
    male_voters: int
    female_voters: int
    wasted_ballots: int
    total_voters: int
    total_votes_counted: int


def _require_text(value: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{label} is required")
    return value


class VoteService:
    """Application operations over the five VoteSnap tables.

    Args:
        database: Database providing transactional sessions.
        feed: Change feed receiving INSERT/UPDATE/DELETE events.
    """

    def __init__(self, database: Database, feed: ChangeFeed) -> None:
        self.database = database
        self.feed = feed

    # Submissions

    def add_upload(
        self,
        station_id: str,
        image_path: str,
        results: list[ExtractedResult],
        voter_stats: VoterStats | None = None,
    ) -> UploadSummary:
        """Record a DR form submission with its results and statistics.

        Candidates are matched by trimmed name and created when new.

        Raises:
            ValueError: For an empty result list, blank names or negative counts.
            StationNotFoundError: If the station does not exist.
            StationAlreadySubmittedError: If the station already has an upload.
        """
        image_path = _require_text(image_path, "Image path")
        if not results:
            raise ValueError("At least one candidate result is required")
        for result in results:
            _require_text(result.candidate_name, "Candidate name")
            if result.votes < 0:
                raise ValueError("Vote counts cannot be negative")
        if voter_stats is not None:
            counts = (
                voter_stats.male_voters,
                voter_stats.female_voters,
                voter_stats.wasted_ballots,
                voter_stats.total_voters,
            )
            if any(c < 0 for c in counts):
                raise ValueError("Voter statistics cannot be negative")
            voter_stats.with_computed_total()

        events: list[tuple[str, dict]] = []
        with self.database.session() as session:
            station = session.get(PollingStation, station_id)
            if station is None:
                raise StationNotFoundError(station_id)
            if self._has_upload(session, station_id):
                raise StationAlreadySubmittedError(station.name)

            upload = Upload(station_id=station_id, image_path=image_path)
            session.add(upload)
            session.flush()
            events.append(("uploads", upload.to_record()))

            for result in results:
                candidate = self._upsert_candidate(
                    session, result.candidate_name, events
                )
                row = Result(
                    upload_id=upload.id, candidate_id=candidate.id, votes=result.votes
                )
                session.add(row)
                session.flush()
                events.append(("results", row.to_record()))

            if voter_stats is not None:
                stats_row = VoterStatistics(
                    upload_id=upload.id,
                    station_id=station_id,
                    male_voters=voter_stats.male_voters,
                    female_voters=voter_stats.female_voters,
                    wasted_ballots=voter_stats.wasted_ballots,
                    total_voters=voter_stats.total_voters,
                )
                session.add(stats_row)
                session.flush()
                events.append(("voter_statistics", stats_row.to_record()))

            upload_id = upload.id

        for table, record in events:
            self.feed.publish(table, "INSERT", record)
        logger.info(
            "Recorded upload %s for station %s with %d results",
            upload_id,
            station_id,
            len(results),
        )
        return self.get_upload(upload_id)

    def _has_upload(self, session: Session, station_id: str) -> bool:
        found = session.scalar(
            select(Upload.id).where(Upload.station_id == station_id).limit(1)
        )
        return found is not None

    def _upsert_candidate(
        self, session: Session, name: str, events: list[tuple[str, dict]]
    ) -> Candidate:
        name = " ".join(name.split())
        candidate = session.scalar(select(Candidate).where(Candidate.name == name))
        if candidate is None:
            candidate = Candidate(name=name)
            session.add(candidate)
            session.flush()
            events.append(("candidates", candidate.to_record()))
        return candidate

    # Uploads

    def list_uploads(self) -> list[UploadSummary]:
        """All uploads, newest first, with station details and results."""
        with self.database.session() as session:
            uploads = session.scalars(
                select(Upload)
                .options(
                    selectinload(Upload.station),
                    selectinload(Upload.results).selectinload(Result.candidate),
                    selectinload(Upload.voter_statistics),
                )
                .order_by(Upload.timestamp.desc())
            ).all()
            return [self._summarize(u) for u in uploads]

    def get_upload(self, upload_id: str) -> UploadSummary:
        """Fetch one upload.

        Raises:
            UploadNotFoundError: If the upload does not exist.
        """
        with self.database.session() as session:
            upload = session.get(Upload, upload_id)
            if upload is None:
                raise UploadNotFoundError(upload_id)
            return self._summarize(upload)

    def get_station_breakdown(self) -> list[UploadSummary]:
        """Per-station result cards: uploads that carry at least one result."""
        return [u for u in self.list_uploads() if u.results]

    @staticmethod
    def _summarize(upload: Upload) -> UploadSummary:
        stats_row = upload.voter_statistics[0] if upload.voter_statistics else None
        return UploadSummary(
            id=upload.id,
            station_id=upload.station_id,
            image_path=upload.image_path,
            timestamp=upload.timestamp,
            station_name=upload.station.name if upload.station else "Unknown Station",
            district=upload.station.district if upload.station else "Unknown District",
            results=[
                ExtractedResult(r.candidate.name, r.votes) for r in upload.results
            ],
            voter_stats=(
                VoterStats(
                    male_voters=stats_row.male_voters,
                    female_voters=stats_row.female_voters,
                    wasted_ballots=stats_row.wasted_ballots,
                    total_voters=stats_row.total_voters,
                )
                if stats_row
                else None
            ),
        )

    # Aggregates

    def get_total_votes(self) -> list[CandidateTotal]:
        """Votes per candidate across all stations, highest first."""
        with self.database.session() as session:
            rows = session.execute(
                select(Candidate.name, func.sum(Result.votes))
                .join(Result, Result.candidate_id == Candidate.id)
                .where(Result.votes > 0)
                .group_by(Candidate.name)
            ).all()

        totals: dict[str, int] = defaultdict(int)
        for name, votes in rows:
            totals[name] += int(votes or 0)
        grand_total = max(sum(totals.values()), 1)
        return [
            CandidateTotal(
                name=name, votes=votes, percentage=round(votes / grand_total * 100, 1)
            )
            for name, votes in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
        ]

    def get_dashboard_stats(self) -> DashboardStats:
        """Station coverage, turnout sums and votes counted."""
        with self.database.session() as session:
            total_stations = session.scalar(
                select(func.count()).select_from(PollingStation)
            )
            uploaded_stations = session.scalar(
                select(func.count(func.distinct(Upload.station_id))).where(
                    select(Result.id).where(Result.upload_id == Upload.id).exists()
                )
            )
            total_votes = session.scalar(
                select(func.coalesce(func.sum(Result.votes), 0))
            )
            male, female, wasted = session.execute(
                select(
                    func.coalesce(func.sum(VoterStatistics.male_voters), 0),
                    func.coalesce(func.sum(VoterStatistics.female_voters), 0),
                    func.coalesce(func.sum(VoterStatistics.wasted_ballots), 0),
                )
            ).one()

        return DashboardStats(
            total_stations=int(total_stations or 0),
            uploaded_stations=int(uploaded_stations or 0),
            male_voters=int(male),
            female_voters=int(female),
            wasted_ballots=int(wasted),
            total_voters=int(male) + int(female) + int(wasted),
            total_votes_counted=int(total_votes),
        )

    # Stations

    def list_stations(self) -> list[Station]:
        with self.database.session() as session:
            rows = session.scalars(select(PollingStation).order_by(PollingStation.name))
            return [Station(s.id, s.name, s.district) for s in rows]

    def get_available_stations(self) -> list[Station]:
        """Stations that have not submitted a DR form yet."""
        with self.database.session() as session:
            submitted = select(Upload.station_id)
            rows = session.scalars(
                select(PollingStation)
                .where(PollingStation.id.not_in(submitted))
                .order_by(PollingStation.name)
            )
            return [Station(s.id, s.name, s.district) for s in rows]

    def station_name(self, station_id: str) -> str | None:
        with self.database.session() as session:
            station = session.get(PollingStation, station_id)
            return station.name if station else None

    def create_station(self, name: str, district: str) -> Station:
        station = PollingStation(
            name=_require_text(name, "Station name"),
            district=_require_text(district, "District"),
        )
        with self.database.session() as session:
            session.add(station)
            session.flush()
            record = station.to_record()
        self.feed.publish("polling_stations", "INSERT", record)
        logger.info("Created polling station %s", record["name"])
        return Station(**record)

    def update_station(self, station_id: str, name: str, district: str) -> Station:
        name = _require_text(name, "Station name")
        district = _require_text(district, "District")
        with self.database.session() as session:
            station = session.get(PollingStation, station_id)
            if station is None:
                raise StationNotFoundError(station_id)
            station.name = name
            station.district = district
            record = station.to_record()
        self.feed.publish("polling_stations", "UPDATE", record)
        return Station(**record)

    def delete_station(self, station_id: str) -> None:
        """Delete a station that has no uploads.

        Raises:
            StationNotFoundError: If the station does not exist.
            StationInUseError: If the station already has uploads.
        """
        with self.database.session() as session:
            station = session.get(PollingStation, station_id)
            if station is None:
                raise StationNotFoundError(station_id)
            if self._has_upload(session, station_id):
                raise StationInUseError("Cannot delete a station with uploaded results")
            record = station.to_record()
            session.delete(station)
        self.feed.publish("polling_stations", "DELETE", record)
        logger.info("Deleted polling station %s", record["name"])

    # Data management

    def reset_data(self, target: str) -> dict[str, int]:
        """Delete all rows of a data set.

        ``all`` clears results, voter statistics and uploads. ``uploads``
        and ``candidates`` also clear the rows that depend on them.

        Returns:
            Number of deleted rows per table.

        Raises:
            ValueError: If the target is unknown.
        """
        if target not in RESET_TARGETS:
            raise ValueError(f"Unknown data set: {target}")

        plan = {
            "all": [Result, VoterStatistics, Upload],
            "uploads": [Result, VoterStatistics, Upload],
            "results": [Result],
            "voter_statistics": [VoterStatistics],
            "candidates": [Result, Candidate],
        }[target]

        deleted: dict[str, int] = {}
        with self.database.session() as session:
            for model in plan:
                outcome = session.execute(delete(model))
                deleted[model.__tablename__] = outcome.rowcount or 0

        for table, count in deleted.items():
            if count:
                self.feed.publish(table, "DELETE", {"deleted": count})
        logger.warning("Reset %s: %s", target, deleted)
        return deleted

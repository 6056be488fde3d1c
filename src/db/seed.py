"""Demo data set for local development.

Loads a fixed set of polling stations, candidates and three submitted
uploads so the dashboard has something to show without field agents.
"""

from datetime import datetime, timezone

from sqlalchemy import func, select

from src.utils.logger import get_logger

from .database import Database
from .models import Candidate, PollingStation, Result, Upload

logger = get_logger(__name__)

DEMO_STATIONS: list[tuple[str, str]] = [
    ("Central Primary School", "Eastern District"),
    ("Grace Community Center", "Western District"),
    ("St. Mary's Church Hall", "Northern District"),
    ("Oakwood High School", "Southern District"),
    ("Riverside Community Hall", "Eastern District"),
    ("Hill View Academy", "Western District"),
    ("Liberty Town Hall", "Central District"),
    ("Sunset Village Center", "Northern District"),
    ("Greenmount Library", "Southern District"),
    ("Victory Sports Center", "Central District"),
]

DEMO_CANDIDATES: list[str] = [
    "John Doe",
    "Jane Smith",
    "Michael Johnson",
    "Emily Williams",
]

# (station index, image path, timestamp, votes per candidate in DEMO_CANDIDATES order)
DEMO_UPLOADS: list[tuple[int, str, str, list[int]]] = [
    (0, "/media/demo/central-primary.jpg", "2025-04-26T09:15:32", [234, 189, 167, 122]),
    (1, "/media/demo/grace-community.jpg", "2025-04-26T10:23:18", [112, 145, 98, 78]),
    (4, "/media/demo/riverside-hall.jpg", "2025-04-26T11:42:05", [178, 166, 143, 101]),
]


def seed_demo_data(database: Database) -> bool:
    """Insert the demo data set unless stations already exist.

    Args:
        database: Database to populate. Tables must already exist.

    Returns:
        ``True`` if data was inserted, ``False`` if the store was not empty.
    """
    with database.session() as session:
        existing = session.scalar(select(func.count()).select_from(PollingStation))
        if existing:
            logger.info("Skipping demo seed, %d stations already present", existing)
            return False

        stations = [PollingStation(name=n, district=d) for n, d in DEMO_STATIONS]
        candidates = [Candidate(name=n) for n in DEMO_CANDIDATES]
        session.add_all(stations + candidates)
        session.flush()

        for station_idx, image_path, stamp, votes in DEMO_UPLOADS:
            upload = Upload(
                station_id=stations[station_idx].id,
                image_path=image_path,
                timestamp=datetime.fromisoformat(stamp).replace(tzinfo=timezone.utc),
            )
            session.add(upload)
            session.flush()
            for candidate, count in zip(candidates, votes):
                session.add(
                    Result(upload_id=upload.id, candidate_id=candidate.id, votes=count)
                )

    logger.info(
        "Seeded %d stations, %d candidates, %d uploads",
        len(DEMO_STATIONS),
        len(DEMO_CANDIDATES),
        len(DEMO_UPLOADS),
    )
    return True

"""FastAPI application for the VoteSnap DR form service.

Provides REST endpoints for field agents (station picker, image
upload, text extraction, submission), administrators (stations,
dashboard, data management) and realtime polling.
"""

import shutil
from pathlib import Path
from typing import Annotated

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.staticfiles import StaticFiles

from src import __version__
from src.db.database import Database
from src.db.seed import seed_demo_data
from src.extraction.dr_form_parser import ExtractedResult, VoterStats
from src.ocr.dr_form_processor import DRFormProcessor, fallback_result
from src.realtime.feed import ChangeFeed
from src.realtime.notifications import UploadNotifier
from src.services.auth import AdminAuthenticator
from src.services.votes import (
    StationAlreadySubmittedError,
    StationInUseError,
    StationNotFoundError,
    UploadNotFoundError,
    VoteService,
)
from src.storage.images import ImageStore, ImageTooLargeError, UnsupportedImageError
from src.utils.config import AppConfig, load_config
from src.utils.logger import get_logger

from .schemas import (
    CandidateResult,
    CandidateTotalOut,
    ChangeEventOut,
    ChangesResponse,
    DashboardStatsOut,
    HealthResponse,
    ImageUploadResponse,
    LoginRequest,
    LoginResponse,
    NotificationOut,
    ProcessDRFormRequest,
    ProcessDRFormResponse,
    ResetResponse,
    ResetTarget,
    StationIn,
    StationOut,
    UploadIn,
    UploadOut,
    VoterStatsSchema,
)

logger = get_logger(__name__)

router = APIRouter()
_basic = HTTPBasic()


def _service(request: Request) -> VoteService:
    return request.app.state.service


def _get_processor(request: Request) -> DRFormProcessor:
    """Build the extraction pipeline for one request.

    Only stored uploads and remote URLs are readable over HTTP.
    """
    return DRFormProcessor(
        request.app.state.config,
        request.app.state.image_store,
        allow_local_files=False,
    )


def require_admin(
    request: Request,
    credentials: Annotated[HTTPBasicCredentials, Depends(_basic)],
) -> str:
    """Reject requests without the administrator credentials."""
    authenticator: AdminAuthenticator = request.app.state.authenticator
    if not authenticator.check(credentials.username, credentials.password):
        raise HTTPException(
            status_code=401,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


Service = Annotated[VoteService, Depends(_service)]
Admin = Annotated[str, Depends(require_admin)]


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Return system health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        tesseract_available=shutil.which("tesseract") is not None,
        database_available=request.app.state.database.ping(),
    )


@router.post("/auth/login", response_model=LoginResponse)
def login(body: LoginRequest, request: Request) -> LoginResponse:
    """Check administrator credentials."""
    if not request.app.state.authenticator.check(body.username, body.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return LoginResponse(authenticated=True)


# Agent endpoints


@router.get("/stations/available", response_model=list[StationOut])
def available_stations(service: Service) -> list[StationOut]:
    """Stations that have not submitted a DR form yet."""
    try:
        return [StationOut.model_validate(s) for s in service.get_available_stations()]
    except Exception as exc:
        logger.error("Error fetching available stations: %s", exc)
        raise HTTPException(
            status_code=500, detail="Failed to load available stations"
        ) from exc


@router.post("/images", response_model=ImageUploadResponse, status_code=201)
async def upload_image(
    request: Request, file: Annotated[UploadFile, File(...)]
) -> ImageUploadResponse:
    """Store a DR form photograph and return its public path."""
    store: ImageStore = request.app.state.image_store
    content = await file.read()
    try:
        path = store.save(content, file.filename or "image", file.content_type)
    except UnsupportedImageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ImageTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    return ImageUploadResponse(image_path=path)


@router.post("/functions/process-dr-form", response_model=ProcessDRFormResponse)
def process_dr_form(
    body: ProcessDRFormRequest, request: Request
) -> ProcessDRFormResponse:
    """Extract candidate results and voter statistics from a DR form image."""
    processor = _get_processor(request)
    try:
        outcome = processor.process(body.image_url)
    except Exception as exc:
        logger.error("Error in process-dr-form: %s", exc)
        outcome = fallback_result(str(exc))
    return ProcessDRFormResponse(
        results=[CandidateResult.model_validate(r) for r in outcome.results],
        voter_stats=VoterStatsSchema.model_validate(outcome.voter_stats),
        success=outcome.success,
        error=outcome.error,
    )


@router.post("/uploads", response_model=UploadOut, status_code=201)
def submit_upload(body: UploadIn, service: Service) -> UploadOut:
    """Record a field agent's DR form submission."""
    results = [ExtractedResult(r.candidate_name, r.votes) for r in body.results]
    voter_stats = (
        VoterStats(**body.voter_stats.model_dump()) if body.voter_stats else None
    )
    try:
        summary = service.add_upload(
            body.station_id, body.image_path, results, voter_stats
        )
    except StationNotFoundError as exc:
        raise HTTPException(
            status_code=404, detail="Polling station not found"
        ) from exc
    except StationAlreadySubmittedError as exc:
        raise HTTPException(
            status_code=409, detail=f"{exc} has already submitted results"
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("Upload error: %s", exc)
        raise HTTPException(
            status_code=500,
            detail="There was an error uploading the results. Please try again.",
        ) from exc
    return UploadOut.model_validate(summary)


@router.get("/uploads", response_model=list[UploadOut])
def list_uploads(service: Service) -> list[UploadOut]:
    """Uploads gallery, newest first."""
    return [UploadOut.model_validate(u) for u in service.list_uploads()]


@router.get("/uploads/{upload_id}", response_model=UploadOut)
def get_upload(upload_id: str, service: Service) -> UploadOut:
    try:
        return UploadOut.model_validate(service.get_upload(upload_id))
    except UploadNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Upload not found") from exc


# Admin endpoints


@router.get("/stations", response_model=list[StationOut])
def list_stations(service: Service, _: Admin) -> list[StationOut]:
    return [StationOut.model_validate(s) for s in service.list_stations()]


@router.post("/stations", response_model=StationOut, status_code=201)
def create_station(body: StationIn, service: Service, _: Admin) -> StationOut:
    try:
        station = service.create_station(body.name, body.district)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return StationOut.model_validate(station)


@router.put("/stations/{station_id}", response_model=StationOut)
def update_station(
    station_id: str, body: StationIn, service: Service, _: Admin
) -> StationOut:
    try:
        station = service.update_station(station_id, body.name, body.district)
    except StationNotFoundError as exc:
        raise HTTPException(
            status_code=404, detail="Polling station not found"
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return StationOut.model_validate(station)


@router.delete("/stations/{station_id}", status_code=204)
def delete_station(station_id: str, service: Service, _: Admin) -> None:
    try:
        service.delete_station(station_id)
    except StationNotFoundError as exc:
        raise HTTPException(
            status_code=404, detail="Polling station not found"
        ) from exc
    except StationInUseError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/dashboard/totals", response_model=list[CandidateTotalOut])
def dashboard_totals(service: Service, _: Admin) -> list[CandidateTotalOut]:
    """Votes and vote share per candidate for the charts."""
    return [CandidateTotalOut.model_validate(t) for t in service.get_total_votes()]


@router.get("/dashboard/stats", response_model=DashboardStatsOut)
def dashboard_stats(service: Service, _: Admin) -> DashboardStatsOut:
    try:
        return DashboardStatsOut.model_validate(service.get_dashboard_stats())
    except Exception as exc:
        logger.error("Error fetching stats: %s", exc)
        raise HTTPException(
            status_code=500, detail="Failed to fetch statistics"
        ) from exc


@router.get("/dashboard/stations", response_model=list[UploadOut])
def dashboard_stations(service: Service, _: Admin) -> list[UploadOut]:
    """Per-station result cards."""
    return [UploadOut.model_validate(u) for u in service.get_station_breakdown()]


@router.delete("/data/{target}", response_model=ResetResponse)
def reset_data(target: ResetTarget, service: Service, _: Admin) -> ResetResponse:
    """Permanently delete a data set."""
    try:
        deleted = service.reset_data(target.value)
    except Exception as exc:
        logger.error("Error deleting data: %s", exc)
        raise HTTPException(status_code=500, detail=f"Failed to delete: {exc}") from exc
    return ResetResponse(target=target, deleted=deleted)


# Realtime polling


@router.get("/changes", response_model=ChangesResponse)
def list_changes(
    request: Request,
    since: Annotated[int, Query(ge=0)] = 0,
    table: Annotated[str | None, Query()] = None,
) -> ChangesResponse:
    """Table changes newer than ``since``."""
    feed: ChangeFeed = request.app.state.feed
    return ChangesResponse(
        last_seq=feed.last_seq,
        events=[ChangeEventOut.model_validate(c) for c in feed.since(since, table)],
    )


@router.get("/notifications", response_model=list[NotificationOut])
def list_notifications(
    request: Request, since: Annotated[int, Query(ge=0)] = 0
) -> list[NotificationOut]:
    notifier: UploadNotifier = request.app.state.notifier
    return [NotificationOut.model_validate(n) for n in notifier.since(since)]


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Build the application and its shared components.

    Args:
        config: Application configuration. Loaded from
            configs/config.yaml when omitted.

    Returns:
        Configured FastAPI application.
    """
    config = config or load_config()

    database = Database(config.database)
    database.create_all()
    if config.database.seed_demo_data:
        seed_demo_data(database)

    feed = ChangeFeed(history_size=config.realtime.history_size)
    service = VoteService(database, feed)

    app = FastAPI(
        title="VoteSnap DR Form API",
        description="Collect DR form results from polling stations and aggregate them",
        version=__version__,
    )
    app.state.config = config
    app.state.database = database
    app.state.feed = feed
    app.state.service = service
    app.state.image_store = ImageStore(config.storage)
    app.state.authenticator = AdminAuthenticator(config.auth)
    app.state.notifier = UploadNotifier(feed, service.station_name)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    media_dir = Path(config.storage.media_dir)
    media_dir.mkdir(parents=True, exist_ok=True)
    app.mount(
        app.state.image_store.prefix,
        StaticFiles(directory=media_dir),
        name="media",
    )
    app.include_router(router)
    return app

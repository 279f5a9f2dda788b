from __future__ import annotations

import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from autoapply.api.deps import get_db
from autoapply.api.schemas import (
    ApplicationEnvelope,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStatusRequest,
    ApplyRequest,
    AutoApplyRequest,
    AutoApplyResponse,
    CvDeleteResponse,
    CvListResponse,
    CvResponse,
    CvUploadResponse,
    JobPostingResponse,
    JobPreferencesEnvelope,
    JobPreferencesRequest,
    JobPreferencesResponse,
    JobSearchRequest,
    JobSearchResponse,
    StatsResponse,
    UserEnvelope,
    UserLoginRequest,
    UserRegisterRequest,
    UserResponse,
)
from autoapply.config import get_settings
from autoapply.core.cv_parser import parse_cv
from autoapply.core.errors import (
    AutoApplyError,
    InvalidCredentialsError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from autoapply.core.job_search import JobSearchService
from autoapply.core.orchestrator import AutoApplyOrchestrator
from autoapply.core.users import UserService
from autoapply.db.repositories import Repository
from autoapply.types import NewApplication

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

_UPLOAD_CHUNK_BYTES = 1024 * 1024


def to_http_error(exc: AutoApplyError) -> HTTPException:
    if isinstance(exc, (ValidationError, PreconditionError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidCredentialsError):
        return HTTPException(status_code=401, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _require_user(repo: Repository, user_id: str) -> None:
    if not repo.get_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")


@router.post("/users/register", response_model=UserEnvelope)
def register_user(payload: UserRegisterRequest, db: Session = Depends(get_db)) -> UserEnvelope:
    try:
        user = UserService(db).register(
            email=payload.email,
            username=payload.username,
            password=payload.password,
            name=payload.name,
            plan=payload.plan,
        )
    except AutoApplyError as exc:
        raise to_http_error(exc) from exc
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.post("/users/login", response_model=UserEnvelope)
def login_user(payload: UserLoginRequest, db: Session = Depends(get_db)) -> UserEnvelope:
    try:
        user = UserService(db).login(email=payload.email, password=payload.password)
    except AutoApplyError as exc:
        raise to_http_error(exc) from exc
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.post("/cvs/upload", response_model=CvUploadResponse)
def upload_cv(
    cv: UploadFile | None = File(None),
    user_id: str | None = Form(None, alias="userId"),
    db: Session = Depends(get_db),
) -> CvUploadResponse:
    settings = get_settings()
    if cv is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID is required")
    if cv.content_type not in settings.allowed_cv_mime_types:
        raise HTTPException(status_code=400, detail="Only PDF, DOC, and DOCX files are allowed")

    repo = Repository(db)
    _require_user(repo, user_id)

    filename = uuid.uuid4().hex
    destination = Path(settings.upload_dir) / filename
    destination.parent.mkdir(parents=True, exist_ok=True)
    size = 0
    with destination.open("wb") as handle:
        while chunk := cv.file.read(_UPLOAD_CHUNK_BYTES):
            size += len(chunk)
            if size > settings.max_upload_bytes:
                break
            handle.write(chunk)
    if size > settings.max_upload_bytes:
        destination.unlink(missing_ok=True)
        raise HTTPException(status_code=400, detail="File too large")

    parsed = parse_cv(destination, cv.content_type, min_text_chars=settings.min_extracted_text_chars)
    try:
        row = repo.create_cv(
            user_id=user_id,
            filename=filename,
            original_name=cv.filename or filename,
            file_size=size,
            mime_type=cv.content_type,
            parsed_data=parsed.model_dump(exclude_none=True),
        )
    except Exception as exc:
        logger.exception("Storing CV failed user_id=%s", user_id)
        destination.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail=f"CV upload failed: {exc}") from exc

    return CvUploadResponse(cv=CvResponse.model_validate(row), parsed_data=parsed)


@router.delete("/cvs/{cv_id}", response_model=CvDeleteResponse)
def delete_cv(cv_id: str, db: Session = Depends(get_db)) -> CvDeleteResponse:
    repo = Repository(db)
    cv = repo.get_cv(cv_id)
    if not cv:
        raise HTTPException(status_code=404, detail="CV not found")

    (Path(get_settings().upload_dir) / cv.filename).unlink(missing_ok=True)
    repo.delete_cv(cv_id)
    return CvDeleteResponse(deleted=True)


@router.get("/users/{user_id}/cvs", response_model=CvListResponse)
def list_cvs(user_id: str, db: Session = Depends(get_db)) -> CvListResponse:
    repo = Repository(db)
    _require_user(repo, user_id)
    return CvListResponse(cvs=[CvResponse.model_validate(row) for row in repo.list_user_cvs(user_id)])


@router.post("/users/{user_id}/job-preferences", response_model=JobPreferencesEnvelope)
def save_job_preferences(
    user_id: str,
    payload: JobPreferencesRequest,
    db: Session = Depends(get_db),
) -> JobPreferencesEnvelope:
    repo = Repository(db)
    _require_user(repo, user_id)
    preferences = repo.upsert_job_preferences(user_id, payload.model_dump())
    return JobPreferencesEnvelope(preferences=JobPreferencesResponse.model_validate(preferences))


@router.get("/users/{user_id}/job-preferences", response_model=JobPreferencesEnvelope)
def get_job_preferences(user_id: str, db: Session = Depends(get_db)) -> JobPreferencesEnvelope:
    repo = Repository(db)
    _require_user(repo, user_id)
    preferences = repo.get_job_preferences(user_id)
    if preferences is None:
        return JobPreferencesEnvelope(preferences=None)
    return JobPreferencesEnvelope(preferences=JobPreferencesResponse.model_validate(preferences))


@router.post("/jobs/search", response_model=JobSearchResponse)
def search_jobs(payload: JobSearchRequest) -> JobSearchResponse:
    try:
        postings = JobSearchService().search(payload.keywords, payload.location, payload.limit)
    except Exception as exc:
        logger.exception("Job search failed")
        raise HTTPException(status_code=500, detail=f"Job search failed: {exc}") from exc
    return JobSearchResponse(jobs=[JobPostingResponse.model_validate(item) for item in postings])


@router.post("/jobs/apply", response_model=ApplicationEnvelope)
def apply_to_job(payload: ApplyRequest, db: Session = Depends(get_db)) -> ApplicationEnvelope:
    try:
        application = AutoApplyOrchestrator(db).apply_to_job(NewApplication(**payload.model_dump()))
    except AutoApplyError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Job application failed user_id=%s", payload.user_id)
        raise HTTPException(status_code=500, detail=f"Job application failed: {exc}") from exc
    return ApplicationEnvelope(application=ApplicationResponse.model_validate(application))


@router.post("/jobs/auto-apply", response_model=AutoApplyResponse)
def auto_apply(payload: AutoApplyRequest, db: Session = Depends(get_db)) -> AutoApplyResponse:
    try:
        result = AutoApplyOrchestrator(db).auto_apply(
            user_id=payload.user_id,
            max_applications=payload.max_applications,
        )
    except AutoApplyError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Auto-apply failed user_id=%s", payload.user_id)
        raise HTTPException(status_code=500, detail=f"Auto-apply failed: {exc}") from exc
    return AutoApplyResponse.model_validate(result.model_dump())


@router.get("/users/{user_id}/applications", response_model=ApplicationListResponse)
def list_applications(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> ApplicationListResponse:
    repo = Repository(db)
    _require_user(repo, user_id)
    rows = repo.list_user_applications(user_id, limit=limit)
    return ApplicationListResponse(applications=[ApplicationResponse.model_validate(row) for row in rows])


@router.patch("/applications/{application_id}", response_model=ApplicationEnvelope)
def update_application_status(
    application_id: str,
    payload: ApplicationStatusRequest,
    db: Session = Depends(get_db),
) -> ApplicationEnvelope:
    repo = Repository(db)
    if not repo.get_application(application_id):
        raise HTTPException(status_code=404, detail="Application not found")
    application = repo.update_application_status(application_id, payload.status, payload.response_data)
    return ApplicationEnvelope(application=ApplicationResponse.model_validate(application))


@router.get("/users/{user_id}/stats", response_model=StatsResponse)
def application_stats(user_id: str, db: Session = Depends(get_db)) -> StatsResponse:
    repo = Repository(db)
    _require_user(repo, user_id)
    return StatsResponse(stats=repo.application_stats(user_id))

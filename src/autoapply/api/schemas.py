from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from autoapply.types import ApplicationMethod, ApplicationStats, ApplicationStatus, ParsedCVData, Plan


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserRegisterRequest(APIModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=1)
    name: str | None = None
    plan: Plan = "free"


class UserLoginRequest(APIModel):
    email: str
    password: str


class UserResponse(APIModel):
    id: str
    email: str
    username: str
    name: str | None
    plan: str


class UserEnvelope(APIModel):
    user: UserResponse


class CvResponse(APIModel):
    id: str
    user_id: str
    filename: str
    original_name: str
    file_size: int
    mime_type: str
    parsed_data: dict[str, Any] | None
    uploaded_at: datetime


class CvUploadResponse(APIModel):
    cv: CvResponse
    parsed_data: ParsedCVData


class CvListResponse(APIModel):
    cvs: list[CvResponse]


class CvDeleteResponse(APIModel):
    deleted: bool


class JobPreferencesRequest(APIModel):
    industries: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    keywords: str | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    job_types: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_salary_range(self) -> "JobPreferencesRequest":
        if self.salary_min is not None and self.salary_max is not None and self.salary_min > self.salary_max:
            raise ValueError("salaryMin must not exceed salaryMax")
        return self


class JobPreferencesResponse(JobPreferencesRequest):
    id: str
    user_id: str
    updated_at: datetime


class JobPreferencesEnvelope(APIModel):
    preferences: JobPreferencesResponse | None


class JobSearchRequest(APIModel):
    keywords: str = Field(min_length=1)
    location: str = ""
    limit: int = Field(default=20, ge=1, le=100)


class JobPostingResponse(APIModel):
    title: str
    company: str
    description: str
    url: str
    contact_email: str | None
    source: str


class JobSearchResponse(APIModel):
    jobs: list[JobPostingResponse]


class ApplyRequest(APIModel):
    user_id: str
    job_title: str = Field(min_length=1)
    company: str = Field(min_length=1)
    job_description: str | None = None
    job_url: str | None = None
    application_method: ApplicationMethod = "email"
    applied_via: str = "manual"
    application_data: dict[str, Any] = Field(default_factory=dict)


class ApplicationResponse(APIModel):
    id: str
    user_id: str
    job_title: str
    company: str
    job_description: str | None
    job_url: str | None
    application_method: str
    status: str
    applied_via: str
    application_data: dict[str, Any] | None
    response_data: dict[str, Any] | None
    applied_at: datetime
    response_at: datetime | None


class ApplicationEnvelope(APIModel):
    application: ApplicationResponse


class ApplicationListResponse(APIModel):
    applications: list[ApplicationResponse]


class ApplicationStatusRequest(APIModel):
    status: ApplicationStatus
    response_data: dict[str, Any] | None = None


class AutoApplyRequest(APIModel):
    user_id: str
    max_applications: int = Field(default=5, ge=1, le=500)


class AutoApplyResponse(APIModel):
    message: str
    applications: int
    jobs_found: int
    failed: int
    skipped: int


class StatsResponse(APIModel):
    stats: ApplicationStats

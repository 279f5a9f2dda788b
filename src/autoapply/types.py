from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Plan = Literal["free", "starter", "professional", "enterprise"]
ApplicationStatus = Literal["sent", "pending", "responded", "failed"]
ApplicationMethod = Literal["email", "form", "api"]


class ParsedCVData(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    skills: list[str] | None = None
    experience: list[str] | None = None
    education: list[str] | None = None
    summary: str | None = None


class ExtractedText(BaseModel):
    text: str
    is_placeholder: bool = False


class JobPosting(BaseModel):
    title: str
    company: str
    description: str = ""
    url: str = ""
    contact_email: str | None = None
    source: str


class EmailApplicationRequest(BaseModel):
    to: str
    job_title: str
    company: str
    cv_path: str
    cv_original_name: str
    applicant_name: str
    custom_message: str | None = None


class EmailResult(BaseModel):
    success: bool
    error: str | None = None


class AutoApplyResult(BaseModel):
    message: str
    applications: int = 0
    jobs_found: int = 0
    failed: int = 0
    skipped: int = 0


class ApplicationStats(BaseModel):
    total: int = 0
    sent: int = 0
    pending: int = 0
    responded: int = 0
    failed: int = 0


class NewApplication(BaseModel):
    user_id: str
    job_title: str
    company: str
    job_description: str | None = None
    job_url: str | None = None
    application_method: ApplicationMethod = "email"
    applied_via: str = "manual"
    application_data: dict = Field(default_factory=dict)

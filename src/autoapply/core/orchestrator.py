from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.orm import Session

from autoapply.config import Settings, get_settings
from autoapply.core.email_sender import EmailSender
from autoapply.core.errors import (
    EmailDeliveryError,
    MissingCvError,
    MissingPreferencesError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from autoapply.core.job_search import JobSearchService
from autoapply.core.plans import monthly_limit, remaining_quota
from autoapply.db.models import Application, Cv
from autoapply.db.repositories import Repository
from autoapply.types import AutoApplyResult, EmailApplicationRequest, JobPosting, NewApplication

logger = logging.getLogger(__name__)

DEFAULT_APPLICANT_NAME = "Job Applicant"


class AutoApplyOrchestrator:
    """Searches postings for a user and emails applications, one posting at a time.

    Every posting is handled independently: a failed send is recorded on its
    Application row and the batch moves on. There is no retry and no locking, so
    two concurrent runs for the same user can apply to the same posting twice.
    """

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        job_search: JobSearchService | None = None,
        email_sender: EmailSender | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.repo = Repository(session)
        self.job_search = job_search or JobSearchService(self.settings)
        self.email_sender = email_sender or EmailSender(self.settings)

    def auto_apply(self, *, user_id: str, max_applications: int | None = None) -> AutoApplyResult:
        requested = self.settings.default_max_applications if max_applications is None else max_applications
        if requested < 1:
            raise ValidationError("maxApplications must be at least 1")

        preferences = self.repo.get_job_preferences(user_id)
        if preferences is None:
            raise MissingPreferencesError()

        cvs = self.repo.list_user_cvs(user_id)
        if not cvs:
            raise MissingCvError()
        latest_cv = cvs[0]

        cap = self._application_cap(user_id, requested)
        location = preferences.locations[0] if preferences.locations else ""
        postings = self.job_search.search(
            preferences.keywords or "",
            location,
            cap * self.settings.search_overfetch_factor,
        )
        logger.info("Auto-apply user=%s found %d postings, cap=%d", user_id, len(postings), cap)

        sent = failed = skipped = 0
        for posting in postings:
            if sent >= cap:
                break

            outcome = self._process_posting(user_id, posting, latest_cv)
            if outcome == "sent":
                sent += 1
            elif outcome == "failed":
                failed += 1
            else:
                skipped += 1

        return AutoApplyResult(
            message=f"Successfully applied to {sent} jobs",
            applications=sent,
            jobs_found=len(postings),
            failed=failed,
            skipped=skipped,
        )

    def apply_to_job(self, application: NewApplication) -> Application:
        cvs = self.repo.list_user_cvs(application.user_id)
        if not cvs:
            raise MissingCvError()
        self._application_cap(application.user_id, 1)

        if application.application_method == "email":
            contact_email = application.application_data.get("email")
            if not contact_email:
                raise ValidationError("applicationData.email is required for email applications")
            result = self.email_sender.send_job_application(
                self._email_request(
                    cvs[0],
                    to=contact_email,
                    job_title=application.job_title,
                    company=application.company,
                    custom_message=application.application_data.get("customMessage"),
                )
            )
            if not result.success:
                raise EmailDeliveryError(result.error or "Email delivery failed")

        return self.repo.create_application(application)

    def _application_cap(self, user_id: str, requested: int) -> int:
        if not self.settings.enforce_plan_quota:
            return requested

        user = self.repo.get_user(user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        remaining = remaining_quota(self.repo, user)
        if remaining <= 0:
            raise QuotaExceededError(user.plan, monthly_limit(user.plan))
        return min(requested, remaining)

    def _already_applied(self, user_id: str, posting: JobPosting) -> bool:
        history = self.repo.list_user_applications(user_id)
        return any(row.company == posting.company and row.job_title == posting.title for row in history)

    def _process_posting(self, user_id: str, posting: JobPosting, cv: Cv) -> str:
        """Returns "sent", "failed" or "skipped"; never raises."""
        application_id: str | None = None
        try:
            if self._already_applied(user_id, posting):
                logger.info("Skipping %s at %s: already applied", posting.title, posting.company)
                return "skipped"
            if not posting.contact_email:
                logger.info("Skipping %s at %s: no contact email", posting.title, posting.company)
                return "skipped"

            row = self.repo.create_application(
                NewApplication(
                    user_id=user_id,
                    job_title=posting.title,
                    company=posting.company,
                    job_description=posting.description,
                    job_url=posting.url,
                    application_method="email",
                    applied_via=posting.source,
                    application_data={"email": posting.contact_email, "autoApplied": True},
                )
            )
            application_id = row.id
            result = self.email_sender.send_job_application(
                self._email_request(
                    cv,
                    to=posting.contact_email or "",
                    job_title=posting.title,
                    company=posting.company,
                )
            )
        except Exception as exc:
            logger.exception("Error applying to %s at %s", posting.title, posting.company)
            self.session.rollback()
            if application_id is not None:
                self.repo.update_application_status(application_id, "failed", {"error": str(exc)})
            return "failed"

        if not result.success:
            logger.warning(
                "Application email for %s at %s failed: %s", posting.title, posting.company, result.error
            )
            self.repo.update_application_status(
                application_id, "failed", {"error": result.error or "Email delivery failed"}
            )
            return "failed"
        return "sent"

    def _email_request(
        self,
        cv: Cv,
        *,
        to: str,
        job_title: str,
        company: str,
        custom_message: str | None = None,
    ) -> EmailApplicationRequest:
        parsed = cv.parsed_data or {}
        return EmailApplicationRequest(
            to=to,
            job_title=job_title,
            company=company,
            cv_path=str(self.cv_path(cv)),
            cv_original_name=cv.original_name,
            applicant_name=parsed.get("name") or DEFAULT_APPLICANT_NAME,
            custom_message=custom_message,
        )

    def cv_path(self, cv: Cv) -> Path:
        return Path(self.settings.upload_dir) / cv.filename

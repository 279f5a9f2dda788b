import pytest

from autoapply.config import get_settings
from autoapply.core.errors import MissingCvError, MissingPreferencesError, QuotaExceededError
from autoapply.core.orchestrator import AutoApplyOrchestrator
from autoapply.db.repositories import Repository
from autoapply.db.session import SessionLocal
from autoapply.types import EmailResult, JobPosting, NewApplication


class FakeJobSearch:
    def __init__(self, postings: list[JobPosting]):
        self.postings = postings
        self.calls: list[tuple[str, str, int]] = []

    def search(self, keywords: str, location: str = "", limit: int = 20) -> list[JobPosting]:
        self.calls.append((keywords, location, limit))
        return self.postings[:limit]


class FakeEmailSender:
    def __init__(self, fail_for: set[str] | None = None, raise_for: set[str] | None = None):
        self.fail_for = fail_for or set()
        self.raise_for = raise_for or set()
        self.requests = []

    def send_job_application(self, request) -> EmailResult:
        self.requests.append(request)
        if request.company in self.raise_for:
            raise RuntimeError("smtp exploded")
        if request.company in self.fail_for:
            return EmailResult(success=False, error="mailbox unavailable")
        return EmailResult(success=True)


def _posting(company: str, title: str = "Backend Engineer", email: str | None = "jobs@example.com") -> JobPosting:
    return JobPosting(
        title=title,
        company=company,
        description=f"{title} at {company}",
        url=f"https://jobs.example.com/{company}",
        contact_email=email,
        source="adzuna",
    )


def _setup_user(db, *, plan: str = "enterprise", with_cv: bool = True, with_preferences: bool = True):
    repo = Repository(db)
    user = repo.create_user(email="jane@example.com", username="jane", password_hash="x", plan=plan)
    if with_preferences:
        repo.upsert_job_preferences(
            user.id,
            {"keywords": "python developer", "locations": ["London", "Remote"]},
        )
    if with_cv:
        repo.create_cv(
            user_id=user.id,
            filename="stored-cv",
            original_name="jane.pdf",
            file_size=10,
            mime_type="application/pdf",
            parsed_data={"name": "Jane Doe"},
        )
    return repo, user


def _orchestrator(db, postings, sender=None):
    search = FakeJobSearch(postings)
    sender = sender or FakeEmailSender()
    return AutoApplyOrchestrator(db, job_search=search, email_sender=sender), search, sender


def _statuses(repo, user_id):
    return [row.status for row in repo.list_user_applications(user_id)]


def test_auto_apply_stops_at_max_applications() -> None:
    with SessionLocal() as db:
        repo, user = _setup_user(db)
        postings = [_posting(f"Company {idx}") for idx in range(6)]
        orchestrator, search, sender = _orchestrator(db, postings)

        result = orchestrator.auto_apply(user_id=user.id, max_applications=2)

        assert search.calls == [("python developer", "London", 4)]
        assert result.applications == 2
        assert result.jobs_found == 4
        assert result.message == "Successfully applied to 2 jobs"
        assert _statuses(repo, user.id).count("sent") == 2
        assert [request.company for request in sender.requests] == ["Company 0", "Company 1"]
        assert sender.requests[0].applicant_name == "Jane Doe"
        assert sender.requests[0].cv_path.endswith("stored-cv")


def test_auto_apply_skips_previously_applied_postings() -> None:
    with SessionLocal() as db:
        repo, user = _setup_user(db)
        repo.create_application(
            NewApplication(user_id=user.id, job_title="Backend Engineer", company="Acme", applied_via="manual")
        )
        orchestrator, _, sender = _orchestrator(db, [_posting("Acme"), _posting("Beta")])

        result = orchestrator.auto_apply(user_id=user.id, max_applications=5)

        assert result.applications == 1
        assert result.skipped == 1
        assert [request.company for request in sender.requests] == ["Beta"]


def test_auto_apply_rereads_history_between_postings() -> None:
    with SessionLocal() as db:
        repo, user = _setup_user(db)
        orchestrator, _, sender = _orchestrator(db, [_posting("Acme"), _posting("Acme")])

        result = orchestrator.auto_apply(user_id=user.id, max_applications=5)

        assert result.applications == 1
        assert result.skipped == 1
        assert len(repo.list_user_applications(user.id)) == 1


def test_auto_apply_skips_postings_without_contact_email() -> None:
    with SessionLocal() as db:
        repo, user = _setup_user(db)
        orchestrator, _, sender = _orchestrator(db, [_posting("Acme", email=None), _posting("Beta")])

        result = orchestrator.auto_apply(user_id=user.id, max_applications=5)

        assert result.applications == 1
        assert result.skipped == 1
        assert [row.company for row in repo.list_user_applications(user.id)] == ["Beta"]


def test_failed_send_is_recorded_and_batch_continues() -> None:
    with SessionLocal() as db:
        repo, user = _setup_user(db)
        sender = FakeEmailSender(fail_for={"Acme"}, raise_for={"Beta"})
        postings = [_posting("Acme"), _posting("Beta"), _posting("Gamma"), _posting("Delta")]
        orchestrator, _, _ = _orchestrator(db, postings, sender)

        result = orchestrator.auto_apply(user_id=user.id, max_applications=2)

        assert result.applications == 2
        assert result.failed == 2
        rows = {row.company: row for row in repo.list_user_applications(user.id)}
        assert rows["Acme"].status == "failed"
        assert rows["Acme"].response_data == {"error": "mailbox unavailable"}
        assert rows["Acme"].response_at is not None
        assert rows["Beta"].status == "failed"
        assert rows["Beta"].response_data == {"error": "smtp exploded"}
        assert rows["Gamma"].status == "sent"
        assert rows["Delta"].status == "sent"
        assert rows["Gamma"].application_data == {"email": "jobs@example.com", "autoApplied": True}
        assert rows["Gamma"].applied_via == "adzuna"


def test_history_lookup_error_fails_only_that_posting(monkeypatch) -> None:
    with SessionLocal() as db:
        repo, user = _setup_user(db)
        orchestrator, _, sender = _orchestrator(db, [_posting("Acme"), _posting("Beta"), _posting("Gamma")])
        original = orchestrator.repo.list_user_applications
        calls = []

        def flaky_history(user_id, limit=None):
            calls.append(user_id)
            if len(calls) == 1:
                raise RuntimeError("database is locked")
            return original(user_id, limit=limit)

        monkeypatch.setattr(orchestrator.repo, "list_user_applications", flaky_history)

        result = orchestrator.auto_apply(user_id=user.id, max_applications=5)

        assert result.applications == 2
        assert result.failed == 1
        assert [request.company for request in sender.requests] == ["Beta", "Gamma"]
        assert sorted(row.company for row in repo.list_user_applications(user.id)) == ["Beta", "Gamma"]


def test_missing_cv_is_a_precondition_error_and_creates_nothing() -> None:
    with SessionLocal() as db:
        repo, user = _setup_user(db, with_cv=False)
        orchestrator, search, _ = _orchestrator(db, [_posting("Acme")])

        with pytest.raises(MissingCvError):
            orchestrator.auto_apply(user_id=user.id, max_applications=3)

        assert search.calls == []
        assert repo.list_user_applications(user.id) == []


def test_missing_preferences_is_a_precondition_error() -> None:
    with SessionLocal() as db:
        _, user = _setup_user(db, with_preferences=False)
        orchestrator, _, _ = _orchestrator(db, [_posting("Acme")])

        with pytest.raises(MissingPreferencesError):
            orchestrator.auto_apply(user_id=user.id, max_applications=3)


def test_plan_quota_caps_the_batch() -> None:
    with SessionLocal() as db:
        repo, user = _setup_user(db, plan="free")
        for idx in range(3):
            repo.create_application(
                NewApplication(user_id=user.id, job_title="Old", company=f"Old {idx}", applied_via="manual")
            )
        postings = [_posting(f"Company {idx}") for idx in range(6)]
        orchestrator, search, _ = _orchestrator(db, postings)

        result = orchestrator.auto_apply(user_id=user.id, max_applications=5)

        assert search.calls[0][2] == 4
        assert result.applications == 2

        with pytest.raises(QuotaExceededError):
            orchestrator.auto_apply(user_id=user.id, max_applications=5)


def test_quota_can_be_disabled(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "enforce_plan_quota", False)
    with SessionLocal() as db:
        repo, user = _setup_user(db, plan="free")
        postings = [_posting(f"Company {idx}") for idx in range(8)]
        orchestrator, _, _ = _orchestrator(db, postings)

        result = orchestrator.auto_apply(user_id=user.id, max_applications=7)

        assert result.applications == 7

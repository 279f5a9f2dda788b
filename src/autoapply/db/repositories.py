from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from autoapply.db.base import utcnow
from autoapply.db.models import Application, Cv, JobPreferences, User
from autoapply.types import ApplicationStats, NewApplication

APPLICATION_STATUSES = ("sent", "pending", "responded", "failed")
PREFERENCE_FIELDS = ("industries", "locations", "keywords", "salary_min", "salary_max", "job_types")


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def create_user(
        self,
        *,
        email: str,
        username: str,
        password_hash: str,
        name: str | None = None,
        plan: str = "free",
    ) -> User:
        user = User(email=email, username=username, password_hash=password_hash, name=name, plan=plan)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_user(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        return self.session.scalar(select(User).where(User.email == email))

    def get_user_by_username(self, username: str) -> User | None:
        return self.session.scalar(select(User).where(User.username == username))

    def create_cv(
        self,
        *,
        user_id: str,
        filename: str,
        original_name: str,
        file_size: int,
        mime_type: str,
        parsed_data: dict[str, Any] | None,
    ) -> Cv:
        cv = Cv(
            user_id=user_id,
            filename=filename,
            original_name=original_name,
            file_size=file_size,
            mime_type=mime_type,
            parsed_data=parsed_data,
        )
        self.session.add(cv)
        self.session.commit()
        self.session.refresh(cv)
        return cv

    def list_user_cvs(self, user_id: str) -> list[Cv]:
        statement = select(Cv).where(Cv.user_id == user_id).order_by(Cv.uploaded_at.desc())
        return list(self.session.scalars(statement).all())

    def get_cv(self, cv_id: str) -> Cv | None:
        return self.session.get(Cv, cv_id)

    def delete_cv(self, cv_id: str) -> None:
        cv = self.session.get(Cv, cv_id)
        if cv is None:
            return
        self.session.delete(cv)
        self.session.commit()

    def get_job_preferences(self, user_id: str) -> JobPreferences | None:
        return self.session.scalar(select(JobPreferences).where(JobPreferences.user_id == user_id))

    def upsert_job_preferences(self, user_id: str, values: dict[str, Any]) -> JobPreferences:
        values = {key: value for key, value in values.items() if key in PREFERENCE_FIELDS}
        existing = self.get_job_preferences(user_id)
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            obj = existing
        else:
            obj = JobPreferences(user_id=user_id, **values)
            self.session.add(obj)

        self.session.commit()
        self.session.refresh(obj)
        return obj

    def create_application(self, application: NewApplication) -> Application:
        row = Application(**application.model_dump())
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def list_user_applications(self, user_id: str, limit: int | None = None) -> list[Application]:
        statement = (
            select(Application)
            .where(Application.user_id == user_id)
            .order_by(Application.applied_at.desc())
        )
        if limit is not None:
            statement = statement.limit(limit)
        return list(self.session.scalars(statement).all())

    def get_application(self, application_id: str) -> Application | None:
        return self.session.get(Application, application_id)

    def update_application_status(
        self,
        application_id: str,
        status: str,
        response_data: dict[str, Any] | None = None,
    ) -> Application:
        if status not in APPLICATION_STATUSES:
            raise ValueError(f"status must be one of {list(APPLICATION_STATUSES)}")

        application = self.session.get(Application, application_id)
        if not application:
            raise ValueError(f"application {application_id} not found")

        application.status = status
        if response_data:
            application.response_data = response_data
            application.response_at = utcnow()

        self.session.commit()
        self.session.refresh(application)
        return application

    def count_sent_applications_since(self, user_id: str, since: datetime) -> int:
        statement = select(func.count(Application.id)).where(
            Application.user_id == user_id,
            Application.status == "sent",
            Application.applied_at >= since,
        )
        return int(self.session.scalar(statement) or 0)

    def application_stats(self, user_id: str) -> ApplicationStats:
        statement = (
            select(Application.status, func.count(Application.id))
            .where(Application.user_id == user_id)
            .group_by(Application.status)
        )
        counts = {status: int(count) for status, count in self.session.execute(statement).all()}
        return ApplicationStats(
            total=sum(counts.values()),
            sent=counts.get("sent", 0),
            pending=counts.get("pending", 0),
            responded=counts.get("responded", 0),
            failed=counts.get("failed", 0),
        )

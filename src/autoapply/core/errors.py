from __future__ import annotations


class AutoApplyError(Exception):
    """Base class for errors raised by the application core."""


class ValidationError(AutoApplyError):
    pass


class NotFoundError(AutoApplyError):
    pass


class InvalidCredentialsError(AutoApplyError):
    pass


class UnsupportedFormatError(AutoApplyError):
    def __init__(self, mime_type: str):
        super().__init__(f"Unsupported file type: {mime_type}")
        self.mime_type = mime_type


class PreconditionError(AutoApplyError):
    """A request cannot proceed until the user sets something up first."""


class MissingPreferencesError(PreconditionError):
    def __init__(self) -> None:
        super().__init__("Please set job preferences first")


class MissingCvError(PreconditionError):
    def __init__(self) -> None:
        super().__init__("No CV found. Please upload a CV first.")


class DuplicateUserError(PreconditionError):
    def __init__(self) -> None:
        super().__init__("User already exists")


class QuotaExceededError(PreconditionError):
    def __init__(self, plan: str, limit: int):
        super().__init__(f"Monthly application limit reached for the {plan} plan ({limit})")
        self.plan = plan
        self.limit = limit


class EmailDeliveryError(AutoApplyError):
    """The email collaborator reported a failed send."""

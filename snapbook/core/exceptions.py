from typing import Any, Dict


class SnapbookError(Exception):
    """Base error; ``context`` carries the ids involved for logging and responses."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


# NotFound
class NotFoundError(SnapbookError):
    pass

class CardNotFoundError(NotFoundError):
    def __init__(self, card_id: int) -> None:
        super().__init__("Card not found", card_id=card_id)

class SprintNotFoundError(NotFoundError):
    def __init__(self, sprint_id: int) -> None:
        super().__init__(f"Sprint with ID {sprint_id} not found", sprint_id=sprint_id)

class SnapNotFoundError(NotFoundError):
    def __init__(self, snap_id: int) -> None:
        super().__init__("Snap not found", snap_id=snap_id)

class LockNotFoundError(NotFoundError):
    pass

class SummaryNotFoundError(NotFoundError):
    pass


# ValidationFailed
class ValidationFailedError(SnapbookError):
    pass

class AlreadyLockedError(ValidationFailedError):
    pass

class SnapLockedError(ValidationFailedError):
    pass


class ForbiddenError(SnapbookError):
    pass


class ExternalDependencyDegradedError(SnapbookError):
    """A collaborator (the text classifier) failed; callers recover locally."""


class InternalConsistencyError(SnapbookError):
    pass

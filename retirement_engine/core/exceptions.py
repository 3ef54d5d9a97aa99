from typing import List, Optional
from uuid import UUID


class InvalidParameters(ValueError):
    """Plan parameters failed validation; nothing was computed or persisted."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid plan parameters: " + "; ".join(self.errors))


class GenerationFailed(RuntimeError):
    """A generation run failed after it started writing; partial output was removed."""

    def __init__(self, plan_id: UUID, cause: Optional[BaseException] = None):
        self.plan_id = plan_id
        self.cause = cause
        message = f"Failed to generate retirement plan data for plan {plan_id}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)

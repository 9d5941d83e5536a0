"""Errors raised by the flow form engine."""

from typing import Optional

from networth.models.form import Side, ValidationResult


class FlowFormError(Exception):
    """Base error for the flow form engine."""
    pass


class FlowValidationError(FlowFormError):
    """Submission stopped because the form did not validate."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(result.errors_by_field.values())
        super().__init__(f"Validation failed: {messages}")


class AssetCreationError(FlowFormError):
    """An inline asset could not be created or reused."""

    def __init__(self, side: Optional[Side], name: str, reason: str):
        self.side = side
        self.name = name
        self.reason = reason
        super().__init__(f"Could not create asset {name!r}: {reason}")


class SubmissionInProgressError(FlowFormError):
    """submit() was called while a submission was still running."""
    pass

"""
Validation models for gameplay input.

ValidationResult represents the outcome of checking an input (a movement
step, for instance) against the zone rules. It indicates whether the
action is allowed and provides context for rejection handling.

Example:
    >>> # Successful validation
    >>> result = ValidationResult(
    ...     valid=True,
    ...     context={"destination": Position(x=3, y=4)},
    ... )

    >>> # Failed validation
    >>> result = ValidationResult(
    ...     valid=False,
    ...     rejection_code=RejectionCode.OBSTACLE,
    ...     rejection_reason="The way is blocked by water.",
    ... )
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from tiledm.models.event import RejectionCode, RejectionEvent


class ValidationResult(BaseModel):
    """Result of validating an input against the zone rules.

    Attributes:
        valid: Whether the action is allowed
        rejection_code: Code indicating why validation failed (if invalid)
        rejection_reason: Human-readable reason for failure (if invalid)
        context: Additional context (destination, blocking entity, etc.)
    """

    valid: bool

    # Rejection details (required if valid=False)
    rejection_code: RejectionCode | None = None
    rejection_reason: str | None = None

    context: dict[str, object] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_rejection_fields(self) -> "ValidationResult":
        """Ensure rejection fields are present when valid=False."""
        if not self.valid:
            if self.rejection_code is None:
                raise ValueError("rejection_code is required when valid=False")
            if self.rejection_reason is None:
                raise ValueError("rejection_reason is required when valid=False")
        return self

    def to_rejection_event(self, subject: str | None = None) -> RejectionEvent:
        """Convert this ValidationResult to a RejectionEvent.

        Raises:
            ValueError: If called on a valid result
        """
        if self.valid:
            raise ValueError("Cannot create RejectionEvent from valid result")

        assert self.rejection_code is not None
        assert self.rejection_reason is not None

        return RejectionEvent(
            rejection_code=self.rejection_code,
            rejection_reason=self.rejection_reason,
            subject=subject,
            context=dict(self.context),
        )


def valid_result(**context: object) -> ValidationResult:
    """Create a successful ValidationResult."""
    return ValidationResult(valid=True, context=dict(context))


def invalid_result(
    code: RejectionCode,
    reason: str,
    **context: object,
) -> ValidationResult:
    """Create a failed ValidationResult."""
    return ValidationResult(
        valid=False,
        rejection_code=code,
        rejection_reason=reason,
        context=dict(context),
    )

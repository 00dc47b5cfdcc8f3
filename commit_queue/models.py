"""
Commit model for the durable queue.

A Commit is one inventory adjustment recorded on a device. Once enqueued it
is never mutated; the queue only appends or removes whole commits.
"""

from typing import Any, Mapping, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from validation.errors import InputValidationError

INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT16_MIN, INT16_MAX = -(2 ** 15), 2 ** 15 - 1


class Commit(BaseModel):
    """
    One inventory adjustment.

    Fields:
        device_id: Originating device (non-empty)
        location: Physical or logical storage slot
        delta: Quantity change, signed 32-bit (zero is accepted)
        item_id: Item catalog entry, signed 16-bit
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    device_id: str = Field(min_length=1)
    location: str
    # Strict: bools, numeric strings and floats are not silently coerced
    delta: int = Field(strict=True, ge=INT32_MIN, le=INT32_MAX)
    item_id: int = Field(strict=True, ge=INT16_MIN, le=INT16_MAX)

    @field_validator('device_id')
    @classmethod
    def device_id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('device_id must not be blank')
        return v

    @classmethod
    def from_fields(cls, fields: Union['Commit', Mapping[str, Any]]) -> 'Commit':
        """
        Validate untrusted input into a Commit.

        Args:
            fields: An existing Commit (returned as-is) or a mapping with
                    device_id, location, delta and item_id

        Returns:
            Validated Commit

        Raises:
            InputValidationError: Missing, extra or out-of-range fields
        """
        if isinstance(fields, cls):
            return fields
        if not isinstance(fields, Mapping):
            raise InputValidationError(
                f"commit must be a mapping, got {type(fields).__name__}"
            )
        try:
            return cls.model_validate(dict(fields))
        except pydantic.ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in e['loc']) or 'commit'}: {e['msg']}"
                for e in exc.errors()
            )
            raise InputValidationError(f"invalid commit: {problems}") from exc

    def to_record(self) -> dict:
        """JSON-ready dict as stored in the queue file."""
        return self.model_dump()

    def describe(self) -> str:
        """Short human-readable form for log lines."""
        sign = '+' if self.delta >= 0 else ''
        return f"{self.device_id}@{self.location} item {self.item_id} {sign}{self.delta}"

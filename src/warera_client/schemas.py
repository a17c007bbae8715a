"""Pydantic schemas for tRPC wire envelopes.

A batched HTTP response is a JSON array holding one envelope per call,
in request order:

    [{"result": {"data": {...}}}, {"error": {"message": ..., "code": ..., "data": {...}}}]
"""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class ErrorData(BaseModel):
    """Machine-readable part of a tRPC error."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    code: str | None = Field(default=None, description="tRPC error code, e.g. NOT_FOUND")
    http_status: int | None = Field(default=None, alias="httpStatus")
    path: str | None = None


class ErrorShape(BaseModel):
    """Error payload of a failed call."""

    model_config = ConfigDict(extra="allow")

    message: str = ""
    code: int | None = Field(default=None, description="JSON-RPC style numeric code")
    data: ErrorData = Field(default_factory=ErrorData)

    @model_validator(mode="before")
    @classmethod
    def unwrap_serialized(cls, value: Any) -> Any:
        """Accept errors wrapped by a data transformer ({"json": {...}})."""
        if isinstance(value, dict) and set(value) == {"json"}:
            return value["json"]
        return value


class ResultShape(BaseModel):
    """Result payload of a successful call."""

    model_config = ConfigDict(extra="allow")

    data: Any = None


class Envelope(BaseModel):
    """One call's outcome inside a batched response."""

    result: ResultShape | None = None
    error: ErrorShape | None = None

    @model_validator(mode="after")
    def check_outcome(self) -> Self:
        if (self.result is None) == (self.error is None):
            raise ValueError("envelope must carry exactly one of 'result' or 'error'")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


EnvelopeList = TypeAdapter(list[Envelope])

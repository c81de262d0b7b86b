"""
Route, step and field definitions consumed by the step router.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldOptions(BaseModel):
    """Options for a single form field."""

    model_config = ConfigDict(extra="allow")

    label: Optional[str] = None
    validate_: list[str] = Field(default_factory=list, alias="validate")
    options: list[str] = Field(default_factory=list)

    @field_validator("validate_", mode="before")
    @classmethod
    def coerce_validators(cls, v) -> list[str]:
        if isinstance(v, str):
            return [v]
        return v


class StepOptions(BaseModel):
    """Options for a single step of a route."""

    model_config = ConfigDict(extra="allow")

    template: Optional[str] = None
    fields: list[str] = Field(default_factory=list)
    next: Optional[str] = None


class RouteDefinition(BaseModel):
    """
    A URL prefix and the ordered steps served under it.

    ``baseUrl`` is accepted as an alias of ``base_url``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: Optional[str] = None
    base_url: str = Field(default="/", alias="baseUrl")
    views: Optional[str] = None
    fields: dict[str, FieldOptions] = Field(default_factory=dict)
    steps: dict[str, StepOptions] = Field(min_length=1)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("Route base URL must start with '/'")
        return v

    @field_validator("steps")
    @classmethod
    def validate_step_paths(cls, v: dict[str, StepOptions]) -> dict[str, StepOptions]:
        for path in v:
            if not path.startswith("/"):
                raise ValueError(f"Step path '{path}' must start with '/'")
        return v

    @property
    def prefix(self) -> str:
        """Router prefix; the root base URL mounts without one."""
        return self.base_url.rstrip("/")

    @property
    def key(self) -> str:
        """Session key the route's values are stored under."""
        return self.name or self.prefix or "root"

"""
Capability Catalog Schema

Pydantic models for the capability manifest a service publishes (natively or via
the secondary registry) and for the catalogs local adapters declare. Manifests
are untrusted JSON; `parse_manifest` validates them strictly at the boundary and
raises ManifestValidationError on any non-conforming body.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, ValidationError, field_validator

from aiwe.core.domain.errors import ActionNotFoundError, ManifestValidationError


class ParameterSpec(BaseModel):
    """Schema of one declared action parameter."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: StrictStr
    required: Optional[StrictBool] = None
    enum: Optional[list[Any]] = None
    items: Optional[Union["ParameterSpec", dict[str, "ParameterSpec"]]] = None
    description: Optional[StrictStr] = None

    @field_validator("items", mode="before")
    @classmethod
    def _items_shape(cls, value: Any) -> Any:
        # A single nested schema carries its own "type"; otherwise it is a
        # mapping of item field names to schemas.
        if value is None:
            return value
        if not isinstance(value, dict):
            raise ValueError("items must be an object")
        if "type" in value and isinstance(value["type"], str):
            return ParameterSpec.model_validate(value)
        return {name: ParameterSpec.model_validate(spec) for name, spec in value.items()}


class CatalogAction(BaseModel):
    """An executable action declared by a service."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: StrictStr
    description: StrictStr
    parameters: dict[str, ParameterSpec] = {}
    output: Optional[dict[str, Any]] = None

    @field_validator("parameters", mode="before")
    @classmethod
    def _parameters_default(cls, value: Any) -> Any:
        return {} if value is None else value


class AuthOption(BaseModel):
    """One authentication option: a named set of required headers."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: Optional[StrictStr] = None
    headers: dict[str, Any] = {}


class AuthDescriptor(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    type: StrictStr
    options: list[AuthOption] = []


class CapabilityCatalog(BaseModel):
    """
    Per-service description of executable actions and auth requirements.

    Fetched once per plan execution and immutable thereafter.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    service: StrictStr
    description: StrictStr
    actions: list[CatalogAction]
    authentication: Optional[AuthDescriptor] = None

    def find_action(self, name: str) -> Optional[CatalogAction]:
        for action in self.actions:
            if action.name == name:
                return action
        return None

    def require_action(self, name: str) -> CatalogAction:
        action = self.find_action(name)
        if action is None:
            raise ActionNotFoundError(
                f"Action {name} not found in {self.service} config",
                action_id=name,
                service_name=self.service,
            )
        return action

    def to_prompt_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


ParameterSpec.model_rebuild()


def parse_manifest(data: Any, source: str) -> CapabilityCatalog:
    """
    Validate a raw manifest body.

    Args:
        data: Decoded JSON body
        source: Where the body came from (for the error message)

    Raises:
        ManifestValidationError: If the body does not conform
    """
    if not isinstance(data, dict):
        raise ManifestValidationError(f"Invalid capability manifest format from {source}")
    try:
        return CapabilityCatalog.model_validate(data)
    except ValidationError as e:
        raise ManifestValidationError(
            f"Invalid capability manifest format from {source}",
            details={"errors": e.errors(include_url=False)},
        ) from e

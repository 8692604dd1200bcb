"""
Index schema models: fields, suggesters and the index definition itself.

These are transient client-side copies; the remote service owns the
authoritative schema.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import DomainType, WireType, domain_type_of, to_wire_type


class FieldDefinition(BaseModel):
    """A typed document attribute and its capability flags."""

    name: str = Field(..., min_length=1)
    type: DomainType
    key: bool = False
    searchable: bool = False
    filterable: bool = False
    sortable: bool = False
    facetable: bool = False
    retrievable: bool = True

    model_config = ConfigDict(frozen=True)

    @field_validator("type", mode="before")
    @classmethod
    def _normalise_type(cls, value: Any) -> DomainType:
        # UnsupportedType is not a ValueError, so it escapes pydantic untouched
        return domain_type_of(value)

    @property
    def wire_type(self) -> WireType:
        return to_wire_type(self.type)

    def same_name(self, name: str) -> bool:
        return self.name.lower() == name.lower()


class Suggester(BaseModel):
    """A typeahead configuration sourcing completions from index fields."""

    name: str = Field(..., min_length=1)
    source_fields: List[str] = Field(..., min_length=1)
    search_mode: str = "analyzingInfixMatching"

    model_config = ConfigDict(frozen=True)


class IndexSchema(BaseModel):
    """
    Definition of one index.

    Field names are unique ignoring case, at most one field is the key, and
    every suggester source field must be one of the index fields.
    ``version`` is the opaque token used for optimistic concurrency; it is
    None for schemas that were never read from the service.
    """

    name: str = Field(..., min_length=1)
    fields: List[FieldDefinition] = Field(default_factory=list)
    suggesters: List[Suggester] = Field(default_factory=list)
    version: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "IndexSchema":
        seen: Dict[str, str] = {}
        for fld in self.fields:
            lowered = fld.name.lower()
            if lowered in seen:
                raise ValueError(f"duplicate field name '{fld.name}' (already defined as '{seen[lowered]}')")
            seen[lowered] = fld.name

        keys = [fld.name for fld in self.fields if fld.key]
        if len(keys) > 1:
            raise ValueError(f"more than one key field: {', '.join(keys)}")

        for suggester in self.suggesters:
            missing = [name for name in suggester.source_fields if name.lower() not in seen]
            if missing:
                raise ValueError(
                    f"suggester '{suggester.name}' references unknown fields: {', '.join(missing)}"
                )
        return self

    @property
    def key_field(self) -> Optional[FieldDefinition]:
        return next((fld for fld in self.fields if fld.key), None)

    def field(self, name: str) -> Optional[FieldDefinition]:
        """Look up a field by name, ignoring case."""
        return next((fld for fld in self.fields if fld.same_name(name)), None)

    def suggester(self, name: str) -> Optional[Suggester]:
        return next((s for s in self.suggesters if s.name == name), None)

    def with_field(self, field: FieldDefinition) -> "IndexSchema":
        """Return a copy with ``field`` appended (validated)."""
        return IndexSchema(
            name=self.name,
            fields=[*self.fields, field],
            suggesters=list(self.suggesters),
            version=self.version,
        )

    def field_types(self) -> Dict[str, DomainType]:
        return {fld.name: fld.type for fld in self.fields}

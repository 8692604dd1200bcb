"""Index schema: type mapping and schema models. The manager lives in ``indexkit.schema.manager``."""

from .models import FieldDefinition, IndexSchema, Suggester
from .types import DomainType, WireType, domain_type_of, to_domain_type, to_wire_type

__all__ = [
    "FieldDefinition",
    "IndexSchema",
    "Suggester",
    "DomainType",
    "WireType",
    "domain_type_of",
    "to_domain_type",
    "to_wire_type",
]

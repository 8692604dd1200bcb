"""
Field type mapping between domain value types and the service's wire types.

The mapping is lossy in one direction: float32 and decimal both travel as the
single wire floating type and come back as float64.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Union

from indexkit.errors import UnsupportedType


class DomainType(str, Enum):
    """Value types a field can be declared with."""

    STRING = "string"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"


class WireType(str, Enum):
    """Entity Data Model types understood by the remote service."""

    STRING = "Edm.String"
    INT32 = "Edm.Int32"
    INT64 = "Edm.Int64"
    DOUBLE = "Edm.Double"
    BOOLEAN = "Edm.Boolean"
    DATETIME_OFFSET = "Edm.DateTimeOffset"


TypeRef = Union[DomainType, type, str]

_TO_WIRE: Dict[DomainType, WireType] = {
    DomainType.STRING: WireType.STRING,
    DomainType.INT32: WireType.INT32,
    DomainType.INT64: WireType.INT64,
    DomainType.FLOAT32: WireType.DOUBLE,
    DomainType.FLOAT64: WireType.DOUBLE,
    DomainType.DECIMAL: WireType.DOUBLE,
    DomainType.BOOLEAN: WireType.BOOLEAN,
    DomainType.TIMESTAMP: WireType.DATETIME_OFFSET,
}

_TO_DOMAIN: Dict[WireType, DomainType] = {
    WireType.STRING: DomainType.STRING,
    WireType.INT32: DomainType.INT32,
    WireType.INT64: DomainType.INT64,
    WireType.DOUBLE: DomainType.FLOAT64,
    WireType.BOOLEAN: DomainType.BOOLEAN,
    WireType.DATETIME_OFFSET: DomainType.TIMESTAMP,
}

# Python classes accepted in place of a DomainType
_PYTHON_TYPES: Dict[type, DomainType] = {
    str: DomainType.STRING,
    int: DomainType.INT64,
    float: DomainType.FLOAT64,
    Decimal: DomainType.DECIMAL,
    bool: DomainType.BOOLEAN,
    datetime: DomainType.TIMESTAMP,
}


def domain_type_of(type_ref: Any) -> DomainType:
    """
    Normalise a type reference to a DomainType.

    Accepts a DomainType, its string value ("int32") or one of the Python
    classes str, int, float, Decimal, bool, datetime.
    """
    if isinstance(type_ref, DomainType):
        return type_ref
    if isinstance(type_ref, type):
        # exact lookup, bool must not resolve through int
        domain = _PYTHON_TYPES.get(type_ref)
        if domain is not None:
            return domain
        raise UnsupportedType(type_ref)
    if isinstance(type_ref, str):
        try:
            return DomainType(type_ref.lower())
        except ValueError:
            raise UnsupportedType(type_ref) from None
    raise UnsupportedType(type_ref)


def to_wire_type(type_ref: TypeRef) -> WireType:
    """Map a domain type to the wire type it is stored as."""
    return _TO_WIRE[domain_type_of(type_ref)]


def to_domain_type(wire_type: Union[WireType, str]) -> DomainType:
    """Map a wire type reported by the service back to a domain type."""
    try:
        wire = WireType(wire_type)
    except ValueError:
        raise UnsupportedType(wire_type) from None
    return _TO_DOMAIN[wire]

"""
Schema Manager - create, evolve and delete index schemas on the remote service.
"""

import asyncio
from typing import Dict, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from indexkit.errors import (
    DuplicateKeyField,
    IndexNotFound,
    RemoteServiceError,
    SchemaError,
    UnsupportedType,
    VersionConflict,
)
from indexkit.schema.models import FieldDefinition, IndexSchema, Suggester
from indexkit.schema.types import DomainType
from indexkit.service.base import RemoteIndexService

logger = structlog.get_logger()


class SchemaManager:
    """
    Reconciles desired field/suggester declarations with the remote schema.

    ``ensure_index`` is a single create-or-update that is never retried: a
    conflict there usually means an incompatible declaration. ``add_field``
    re-reads and re-applies on version conflicts, since concurrent writers
    adding the same field converge.
    """

    def __init__(
        self,
        service: RemoteIndexService,
        conflict_max_retries: Optional[int] = None,
        conflict_backoff: float = 0.0,
        creation_delay: float = 0.0,
    ):
        """
        Initialize the schema manager.

        Args:
            service: Remote index service
            conflict_max_retries: Cap on re-applies after a version conflict
                in ``add_field`` (None means keep going until it succeeds)
            conflict_backoff: Seconds to wait before each re-apply
            creation_delay: Default wait after ``ensure_index`` writes
        """
        self.service = service
        self.conflict_max_retries = conflict_max_retries
        self.conflict_backoff = conflict_backoff
        self.creation_delay = creation_delay

    async def ensure_index(
        self,
        name: str,
        fields: Sequence[FieldDefinition],
        suggesters: Sequence[Suggester] = (),
        creation_delay: Optional[float] = None,
    ) -> bool:
        """
        Create the index, or merge new fields and suggesters into it.

        Args:
            name: Index name
            fields: Ordered field declarations
            suggesters: Suggester declarations
            creation_delay: Seconds to wait after a successful write, for the
                service to propagate the schema (defaults to the manager's)

        Returns:
            True once the service accepted the schema

        Raises:
            SchemaError: the schema was invalid or the service refused it
        """
        try:
            desired = IndexSchema(name=name, fields=list(fields), suggesters=list(suggesters))
            try:
                current: Optional[IndexSchema] = await self.service.get_index(name)
            except IndexNotFound:
                current = None

            if current is None:
                target = desired
            else:
                target = self._merge(current, desired)

            await self.service.create_or_update_index(target, target.version)
        except ValidationError as e:
            logger.error("ensure_index_invalid_schema", index=name, error=str(e))
            raise SchemaError(name, str(e)) from e
        except RemoteServiceError as e:
            logger.error("ensure_index_failed", index=name, status=e.status_code, error=e.detail)
            raise SchemaError(name, e.detail) from e
        except UnsupportedType as e:
            logger.error("ensure_index_unreadable_schema", index=name, error=str(e))
            raise SchemaError(name, str(e)) from e

        logger.info("ensured_index", index=name, fields=len(target.fields), suggesters=len(target.suggesters))
        delay = self.creation_delay if creation_delay is None else creation_delay
        if delay > 0:
            await asyncio.sleep(delay)
        return True

    def _merge(self, current: IndexSchema, desired: IndexSchema) -> IndexSchema:
        """Append declared fields/suggesters missing from ``current``."""
        current_key = current.key_field
        desired_key = desired.key_field
        if current_key and desired_key and not current_key.same_name(desired_key.name):
            raise DuplicateKeyField(current.name, current_key.name, desired_key.name)

        fields: List[FieldDefinition] = list(current.fields)
        for fld in desired.fields:
            if current.field(fld.name) is None:
                fields.append(fld)

        suggesters = list(current.suggesters)
        known = {s.name for s in suggesters}
        suggesters.extend(s for s in desired.suggesters if s.name not in known)

        return IndexSchema(
            name=current.name,
            fields=fields,
            suggesters=suggesters,
            version=current.version,
        )

    async def add_field(self, index_name: str, field: FieldDefinition) -> FieldDefinition:
        """
        Add one field to an index, creating the index if needed.

        Returns the existing definition when a field of the same name (any
        case) is already present.

        Raises:
            DuplicateKeyField: ``field`` is a key and the index already has one
            SchemaError: conflicts persisted past ``conflict_max_retries``, or
                the service rejected the update
        """
        conflicts = 0
        while True:
            try:
                schema = await self.service.get_index(index_name)
            except IndexNotFound:
                if not await self._create_minimal(index_name, field):
                    # Created elsewhere but not yet readable here
                    conflicts += 1
                    await self._before_reapply(index_name, field, conflicts)
                continue

            existing = schema.field(field.name)
            if existing is not None:
                return existing

            key = schema.key_field
            if field.key and key is not None:
                raise DuplicateKeyField(index_name, key.name, field.name)

            try:
                await self.service.create_or_update_index(schema.with_field(field), schema.version)
            except VersionConflict:
                conflicts += 1
                await self._before_reapply(index_name, field, conflicts)
                continue
            except RemoteServiceError as e:
                logger.error("add_field_failed", index=index_name, field=field.name, error=e.detail)
                raise SchemaError(index_name, e.detail) from e

            logger.info("added_field", index=index_name, field=field.name, type=field.type.value)
            return field

    async def _before_reapply(self, index_name: str, field: FieldDefinition, conflicts: int) -> None:
        if self.conflict_max_retries is not None and conflicts > self.conflict_max_retries:
            raise SchemaError(index_name, f"schema kept changing while adding field '{field.name}'")
        logger.warning("add_field_conflict", index=index_name, field=field.name, attempt=conflicts)
        if self.conflict_backoff > 0:
            await asyncio.sleep(self.conflict_backoff)

    async def _create_minimal(self, index_name: str, field: FieldDefinition) -> bool:
        """Create an index holding only ``field``; False if it already exists."""
        try:
            await self.service.create_index(IndexSchema(name=index_name, fields=[field]))
        except VersionConflict:
            logger.debug("index_created_concurrently", index=index_name)
            return False
        except RemoteServiceError as e:
            logger.error("create_index_failed", index=index_name, error=e.detail)
            raise SchemaError(index_name, e.detail) from e
        logger.info("created_index_for_field", index=index_name, field=field.name)
        return True

    async def delete_index(self, name: str) -> bool:
        """
        Delete an index. An index that is already gone counts as deleted.

        Returns:
            False when the service refused the delete
        """
        try:
            await self.service.delete_index(name)
        except IndexNotFound:
            logger.debug("delete_index_absent", index=name)
            return True
        except RemoteServiceError as e:
            logger.error("delete_index_failed", index=name, status=e.status_code, error=e.detail)
            return False
        logger.info("deleted_index", index=name)
        return True

    async def fields_of(self, index_name: str) -> Dict[str, DomainType]:
        """Field name to domain type for an index; empty if it does not exist."""
        try:
            schema = await self.service.get_index(index_name)
        except IndexNotFound:
            return {}
        return schema.field_types()

"""Pydantic models for table identity and schema.

This module contains schema-domain models:
- Identity: TableName
- Descriptors: ColumnFamily, TableSchema
- Diff result: SchemaChange

All models are frozen.  Schema changes never mutate a descriptor in place;
helpers return a new ``TableSchema`` instead.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_NAMESPACE = "default"


# ============================================================================
# Table Identity
# ============================================================================


class TableName(BaseModel):
    """Namespace-qualified table name.

    Example:
        >>> name = TableName.parse("sales:orders")
        >>> name.namespace, name.qualifier
        ('sales', 'orders')
        >>> str(TableName(qualifier="t1"))
        't1'
    """

    model_config = ConfigDict(frozen=True)

    namespace: str = DEFAULT_NAMESPACE
    qualifier: str

    @classmethod
    def parse(cls, value: str) -> "TableName":
        """Parse ``"namespace:qualifier"`` or a bare qualifier."""
        if ":" in value:
            namespace, qualifier = value.split(":", 1)
            return cls(namespace=namespace, qualifier=qualifier)
        return cls(qualifier=value)

    def __str__(self) -> str:
        if self.namespace == DEFAULT_NAMESPACE:
            return self.qualifier
        return f"{self.namespace}:{self.qualifier}"


# ============================================================================
# Descriptors
# ============================================================================


class ColumnFamily(BaseModel):
    """Column family descriptor.

    Attributes (compression, durability, versions, ...) are opaque to the
    restore logic and only take part in equality.  They are stored as
    key-sorted pairs so families and schemas stay hashable; a dict is
    accepted on construction.

    Example:
        >>> cf = ColumnFamily(name="cf", attributes={"VERSIONS": "3", "TTL": "60"})
        >>> cf.attributes
        (('TTL', '60'), ('VERSIONS', '3'))
        >>> cf.attribute_map["VERSIONS"]
        '3'
    """

    model_config = ConfigDict(frozen=True)

    name: str
    attributes: tuple[tuple[str, str], ...] = ()

    @field_validator("attributes", mode="before")
    @classmethod
    def _sorted_pairs(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            value = value.items()
        return tuple(sorted(tuple(pair) for pair in value))

    @property
    def attribute_map(self) -> dict[str, str]:
        """Attributes as a fresh dict."""
        return dict(self.attributes)


class TableSchema(BaseModel):
    """Table descriptor: identity plus an ordered set of column families.

    Example:
        >>> schema = TableSchema(
        ...     table=TableName(qualifier="t1"),
        ...     families=(ColumnFamily(name="cf"),),
        ... )
        >>> schema.family_names
        ['cf']
    """

    model_config = ConfigDict(frozen=True)

    table: TableName
    families: tuple[ColumnFamily, ...] = ()

    @field_validator("families")
    @classmethod
    def _unique_family_names(
        cls, families: tuple[ColumnFamily, ...]
    ) -> tuple[ColumnFamily, ...]:
        seen: set[str] = set()
        for family in families:
            if family.name in seen:
                raise ValueError(f"Duplicate column family '{family.name}'")
            seen.add(family.name)
        return families

    @property
    def family_names(self) -> list[str]:
        """Family names in declaration order."""
        return [f.name for f in self.families]

    def family(self, name: str) -> ColumnFamily | None:
        """Look up a family by name."""
        for f in self.families:
            if f.name == name:
                return f
        return None

    def with_table(self, table: TableName) -> "TableSchema":
        """Return a copy of this schema bound to another table name."""
        return TableSchema(table=table, families=self.families)

    def with_families(self, families: tuple[ColumnFamily, ...]) -> "TableSchema":
        """Return a copy of this schema with a different family set."""
        return TableSchema(table=self.table, families=families)


# ============================================================================
# Diff Result
# ============================================================================


class SchemaChange(BaseModel):
    """Families to add to and remove from a live table."""

    model_config = ConfigDict(frozen=True)

    added: tuple[ColumnFamily, ...] = ()
    removed: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        """True if any family is added or removed."""
        return bool(self.added or self.removed)

    def format_report(self) -> str:
        """Format the change as a human-readable summary."""
        if not self.has_changes:
            return "No schema change"
        parts = []
        if self.added:
            parts.append(f"add {', '.join(f.name for f in self.added)}")
        if self.removed:
            parts.append(f"remove {', '.join(self.removed)}")
        return "; ".join(parts)

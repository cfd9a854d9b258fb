"""The header models the schema of a relation: its attributes, their types and the primary key.

Headers are immutable. All transformations (projection, join, alias resolution) produce new header instances. This is
important because headers are computed anew every time a relational expression is compiled and the same base header is
shared by all relvars that are derived from the same table.

Attributes of a header can be *aliased*: a renamed attribute keeps its original name, but additionally carries the name
it should have in the output relation. Likewise, a computed attribute carries the SQL expression that computes it and
its output name as alias. Aliased attributes only become "real" columns once the relation has been enclosed in a
subquery. See `relvar.qal.compiler` for the enclosure rules.
"""
from __future__ import annotations

import dataclasses
import enum
import re
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Optional

from ._errors import BlobJoinKey, DuplicateAttribute, TypeMismatch, UnknownAttribute
from .._core import is_identifier, quote


class AttributeType(enum.Enum):
    """Coarse classification of SQL data types. The classification determines how attribute values are encoded."""
    String = "string"
    Numeric = "numeric"
    Blob = "blob"
    Computed = "computed"
    Other = "other"

    @staticmethod
    def from_sql_type(sql_type: str) -> AttributeType:
        """Classifies a MySQL column type such as ``varchar(255)`` or ``int unsigned``."""
        sql_type = sql_type.strip().lower()
        if _NumericTypePattern.match(sql_type):
            return AttributeType.Numeric
        if _StringTypePattern.match(sql_type):
            return AttributeType.String
        if _BlobTypePattern.match(sql_type):
            return AttributeType.Blob
        return AttributeType.Other

    def is_known(self) -> bool:
        """Checks, whether the type has a definite meaning. Computed and other types are compatible with everything."""
        return self not in (AttributeType.Computed, AttributeType.Other)


_NumericTypePattern = re.compile(r"^((tiny|small|medium|big)?int(eger)?|decimal|numeric|double|float|real|bit|bool(ean)?)\b")
_StringTypePattern = re.compile(r"^((var)?char|enum|set|date|time|datetime|timestamp|year|(tiny|medium|long)?text)\b")
_BlobTypePattern = re.compile(r"^((tiny|medium|long)?blob|(var)?binary)\b")


@dataclasses.dataclass(frozen=True)
class Attribute:
    """An attribute describes a single column of a relation.

    Attributes
    ----------
    name : str
        The name of the attribute in the input relation. For computed attributes, this is the SQL expression.
    type : AttributeType
        The classification of the data type
    sql_type : str
        The actual column type as reported by the database, e.g. ``smallint unsigned``
    is_key : bool
        Whether the attribute is part of the primary key
    nullable : bool
        Whether the attribute can contain *NULL* values
    default : Optional[str]
        The default value as a SQL literal, if any
    comment : str
        The comment that describes the attribute
    alias : str
        The name of the attribute in the output relation. Empty if the attribute is not renamed or computed.
    expression : Optional[str]
        The SQL expression that computes the attribute. *None* for all attributes that correspond to actual columns.
    auto_increment : bool
        Whether the attribute is filled automatically by the database
    """
    name: str
    type: AttributeType
    sql_type: str = ""
    is_key: bool = False
    nullable: bool = False
    default: Optional[str] = None
    comment: str = ""
    alias: str = ""
    expression: Optional[str] = None
    auto_increment: bool = False

    @staticmethod
    def computed(expression: str, alias: str) -> Attribute:
        """Creates a new attribute that is computed by an arbitrary SQL expression and made available as `alias`."""
        return Attribute(name=expression, type=AttributeType.Computed, sql_type="<sql_computed>", expression=expression,
                         alias=alias)

    @property
    def output_name(self) -> str:
        """Get the name under which the attribute is visible to consumers of the relation."""
        return self.alias if self.alias else self.name

    @property
    def is_aliased(self) -> bool:
        return bool(self.alias)

    @property
    def is_computed(self) -> bool:
        return self.expression is not None

    @property
    def is_blob(self) -> bool:
        return self.type == AttributeType.Blob

    @property
    def is_string(self) -> bool:
        return self.type == AttributeType.String

    @property
    def is_numeric(self) -> bool:
        return self.type == AttributeType.Numeric

    def select_sql(self) -> str:
        """Provides the SQL text that selects this attribute, including any renaming."""
        if self.is_computed:
            return f"{self.expression} AS {quote(self.alias)}"
        if self.alias:
            return f"{quote(self.name)} AS {quote(self.alias)}"
        return quote(self.name)

    def resolve(self) -> Attribute:
        """Turns an aliased attribute into a plain column named by its alias."""
        if not self.alias:
            return self
        return dataclasses.replace(self, name=self.alias, alias="", expression=None)


class AttributeSpecKind(enum.Enum):
    """The different forms an attribute specification can take."""
    Plain = "plain"
    Wildcard = "wildcard"
    Rename = "rename"
    Compute = "compute"


@dataclasses.dataclass(frozen=True)
class AttributeSpec:
    """A parsed attribute specification as used by projections and fetch operations.

    Specifications take one of the forms ``name``, ``*``, ``old->new`` or ``expr->new``. Use `parse_attribute_spec` to
    create instances.
    """
    kind: AttributeSpecKind
    source: str
    target: str = ""

    @property
    def output_name(self) -> str:
        """Get the name of the attribute in the output relation."""
        return self.target if self.target else self.source


_ComputationPattern = re.compile(r"^\s*(.*\S)\s*->\s*([A-Za-z_]\w*)\s*$", re.DOTALL)


def parse_attribute_spec(spec: str) -> AttributeSpec:
    """Parses a single attribute specification.

    Whether an ``x->y`` specification is a rename or a computation is decided syntactically: if ``x`` is a plain
    identifier, the specification is a rename. Otherwise it is a computation.

    Raises
    ------
    ValueError
        If the specification is empty
    """
    spec = spec.strip()
    if not spec:
        raise ValueError("Attribute specification must not be empty")
    if spec == "*":
        return AttributeSpec(AttributeSpecKind.Wildcard, "*")
    match = _ComputationPattern.match(spec)
    if not match:
        return AttributeSpec(AttributeSpecKind.Plain, spec)
    source, target = match.group(1), match.group(2)
    kind = AttributeSpecKind.Rename if is_identifier(source) else AttributeSpecKind.Compute
    return AttributeSpec(kind, source, target)


class Header:
    """The header is the ordered list of attributes of a relation.

    Parameters
    ----------
    attributes : Iterable[Attribute]
        The attributes, in the order in which they should be selected

    Raises
    ------
    DuplicateAttribute
        If multiple attributes share the same output name
    """

    def __init__(self, attributes: Iterable[Attribute]) -> None:
        self._attributes = tuple(attributes)
        seen: set[str] = set()
        for attr in self._attributes:
            if attr.output_name in seen:
                raise DuplicateAttribute(attr.output_name)
            seen.add(attr.output_name)
        self._index = {attr.output_name: attr for attr in self._attributes}

    @property
    def attributes(self) -> Sequence[Attribute]:
        """Get all attributes in their natural order."""
        return self._attributes

    @property
    def names(self) -> Sequence[str]:
        """Get the output names of all attributes."""
        return [attr.output_name for attr in self._attributes]

    @property
    def primary_key(self) -> Sequence[str]:
        """Get the names of all primary key attributes."""
        return [attr.output_name for attr in self._attributes if attr.is_key]

    @property
    def dependent_attributes(self) -> Sequence[str]:
        """Get the names of all attributes that are not part of the primary key."""
        return [attr.output_name for attr in self._attributes if not attr.is_key]

    @property
    def blob_names(self) -> Sequence[str]:
        return [attr.output_name for attr in self._attributes if attr.is_blob]

    @property
    def non_blobs(self) -> Sequence[str]:
        return [attr.output_name for attr in self._attributes if not attr.is_blob]

    @property
    def has_aliases(self) -> bool:
        """Checks, whether any of the attributes still has to be materialized by enclosing the relation."""
        return any(attr.is_aliased for attr in self._attributes)

    def by_name(self, name: str) -> Attribute:
        """Provides the attribute with the given output name.

        Raises
        ------
        UnknownAttribute
            If there is no such attribute
        """
        attr = self._index.get(name)
        if attr is None:
            raise UnknownAttribute(name, self.names)
        return attr

    def select_list(self) -> str:
        """Provides the comma-separated select list for all attributes of the header."""
        return ",".join(attr.select_sql() for attr in self._attributes)

    def project(self, specs: Iterable[str]) -> Header:
        """Applies a projection to the header, including renamed and computed attributes.

        Primary key attributes are always retained, even if they are not listed explicitly. Therefore an empty
        specification reduces the header to its primary key.

        Parameters
        ----------
        specs : Iterable[str]
            The attribute specifications, see `parse_attribute_spec`

        Returns
        -------
        Header
            The projected header

        Raises
        ------
        UnknownAttribute
            If a plain or renamed attribute is not part of this header
        DuplicateAttribute
            If multiple attributes of the result share the same name, or if a renamed or computed attribute reuses the
            name of an attribute of this header
        """
        attributes = list(self._attributes)
        include = [attr.is_key for attr in attributes]
        positions = {attr.output_name: idx for idx, attr in enumerate(attributes)}

        for spec in map(parse_attribute_spec, specs):
            if spec.kind in (AttributeSpecKind.Rename, AttributeSpecKind.Compute) and spec.target != spec.source:
                if spec.target in positions:
                    raise DuplicateAttribute(spec.target)
            if spec.kind == AttributeSpecKind.Wildcard:
                include = [True] * len(attributes)
            elif spec.kind == AttributeSpecKind.Compute:
                attributes.append(Attribute.computed(spec.source, spec.target))
                include.append(True)
            else:
                idx = positions.get(spec.source)
                if idx is None:
                    raise UnknownAttribute(spec.source, self.names)
                include[idx] = True
                if spec.kind == AttributeSpecKind.Rename:
                    attributes[idx] = dataclasses.replace(attributes[idx], alias=spec.target)

        return Header(attr for attr, included in zip(attributes, include) if included)

    def join(self, other: Header) -> Header:
        """Computes the header of the natural join between this header and another one.

        Attributes that are present in both headers are matched. Their types must be compatible and they must not be
        blobs. The primary key of the result consists of the primary keys of both inputs.

        Raises
        ------
        BlobJoinKey
            If any of the common attributes is a blob
        TypeMismatch
            If two common attributes have different types
        """
        common = [name for name in self.names if name in other]
        blobs = [name for name in common if self.by_name(name).is_blob or other.by_name(name).is_blob]
        if blobs:
            raise BlobJoinKey(blobs)
        for name in common:
            left_type, right_type = self.by_name(name).type, other.by_name(name).type
            if left_type.is_known() and right_type.is_known() and left_type != right_type:
                raise TypeMismatch(name, left_type, right_type)

        right_keys = set(other.primary_key)
        keys = [dataclasses.replace(attr, is_key=True) if attr.output_name in right_keys else attr
                for attr in self._attributes if attr.is_key or attr.output_name in right_keys]
        keys.extend(attr for attr in other.attributes if attr.is_key and attr.output_name not in self)
        dependents = [attr for attr in self._attributes if not attr.is_key and attr.output_name not in right_keys]
        dependents.extend(attr for attr in other.attributes if not attr.is_key and attr.output_name not in self)
        return Header(keys + dependents)

    def strip_aliases(self) -> Header:
        """Resolves all aliases. This is only valid after the relation has been enclosed in a subquery."""
        if not self.has_aliases:
            return self
        return Header(attr.resolve() for attr in self._attributes)

    def describe(self) -> str:
        """Provides a human-readable description of the header, listing key attributes and dependent attributes."""
        lines = []
        for attr in self._attributes:
            if not attr.is_key:
                continue
            auto_increment = " AUTO_INCREMENT" if attr.auto_increment else ""
            lines.append(f"{f'{attr.output_name:<16}: {attr.sql_type}{auto_increment}':<40} # {attr.comment}".rstrip())
        lines.append("---")
        for attr in self._attributes:
            if attr.is_key:
                continue
            default = _describe_default(attr)
            auto_increment = " AUTO_INCREMENT" if attr.auto_increment else ""
            lines.append(f"{f'{attr.output_name + default:<28}: {attr.sql_type}{auto_increment}':<60}# {attr.comment}"
                         .rstrip())
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __hash__(self) -> int:
        return hash(self._attributes)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._attributes == other._attributes

    def __repr__(self) -> str:
        return f"Header({list(self._attributes)})"

    def __str__(self) -> str:
        key = ", ".join(self.primary_key)
        dependents = ", ".join(self.dependent_attributes)
        return f"({key} | {dependents})" if dependents else f"({key})"


_SqlConstants = frozenset({"CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME", "NOW()", "NULL"})


def _describe_default(attr: Attribute) -> str:
    if attr.nullable:
        return "=null"
    if not attr.default:
        return ""
    if attr.is_numeric or attr.default.upper() in _SqlConstants:
        return f"={attr.default}"
    return f'="{attr.default}"'


def make_header(attributes: Iterable[Attribute | dict[str, Any]]) -> Header:
    """Convenience function to build a header from attributes or plain dictionaries.

    Dictionaries must contain at least the ``name`` and ``sql_type`` keys. All other keys are passed to `Attribute`. The
    attribute type is derived from the SQL type if it is not given.
    """
    parsed: list[Attribute] = []
    for attr in attributes:
        if isinstance(attr, Attribute):
            parsed.append(attr)
            continue
        attr = dict(attr)
        attr.setdefault("type", AttributeType.from_sql_type(attr.get("sql_type", "")))
        parsed.append(Attribute(**attr))
    return Header(parsed)

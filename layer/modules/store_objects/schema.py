# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

'''
Schema module describing the persisted fields of a record type.

Record types declare their fields explicitly with Field descriptors:

    >>> class Customer(TableRecord):
    ...     name = Field(default='anonymous')
    ...     email = Field()
    ...     session = Field(persisted=False)

derive_schema collects those declarations into an ordered Schema: the identity
field first, then the declared fields (base classes before subclasses, in
declaration order), skipping fields declared with persisted=False.
'''

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional

if TYPE_CHECKING:
    from .record import Record


class Field:
    '''
    Descriptor declaring one string field of a record type.

    Values are stored as strings on the record instance. Attribute access
    goes through the record's field accessor, so reading an unset field
    returns its default.

    Attributes:
        name: The attribute name, set when the owning class is created.
        column: The column name used in the table store.
        default: The value used when the field is unset.
        persisted: Whether the field is part of the schema.
    '''

    identity = False

    def __init__(
        self,
        default: Optional[str] = None,
        column: Optional[str] = None,
        persisted: bool = True,
    ) -> None:
        self.name: Optional[str] = None
        self.default = default
        self.column = column
        self.persisted = persisted

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        if self.column is None:
            self.column = name

    def __get__(self, record: Optional[Record], owner: Optional[type] = None) -> Any:
        if record is None:
            return self
        return record.get_field(self.name)  # type: ignore[arg-type]

    def __set__(self, record: Record, value: Optional[str]) -> None:
        record.set_field(self.name, value)  # type: ignore[arg-type]

    def get_raw(self, record: Record) -> Optional[str]:
        '''
        Return the value stored on the record, without default resolution.
        '''
        return record._values.get(self.name)  # pylint: disable=protected-access

    def set_raw(self, record: Record, value: Optional[str]) -> None:
        '''
        Store a value on the record, without default resolution.
        '''
        record._values[self.name] = value  # type: ignore[index] # pylint: disable=protected-access

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.name!r}, column={self.column!r})'


class IdentityField(Field):
    '''
    Descriptor for the identity field of a record type.

    The identity field is always the first field of a schema. When attribute
    is given, the value lives in that instance attribute instead of the field
    value mapping (table records keep their identity in row_key).
    '''

    identity = True

    def __init__(self, attribute: Optional[str] = None, column: Optional[str] = None) -> None:
        super().__init__(column=column)
        self.attribute = attribute

    def get_raw(self, record: Record) -> Optional[str]:
        if self.attribute is None:
            return super().get_raw(record)
        return getattr(record, self.attribute, None)

    def set_raw(self, record: Record, value: Optional[str]) -> None:
        if self.attribute is None:
            super().set_raw(record, value)
        else:
            setattr(record, self.attribute, value)


@dataclass(frozen=True)
class Schema:
    '''
    Ordered persisted fields of a record type.

    Attributes:
        record_type: The record class the schema was derived from.
        fields: The persisted fields, identity field first.
        defaults: The per-type default table, by field name.
    '''

    record_type: type
    fields: tuple[Field, ...]
    defaults: Mapping[str, str] = field(default_factory=dict)

    @property
    def identity(self) -> Field:
        return self.fields[0]

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]  # type: ignore[misc]

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]  # type: ignore[misc]

    def field(self, name: str) -> Optional[Field]:
        for schema_field in self.fields:
            if schema_field.name == name:
                return schema_field
        return None


def resolve_value(
    current: Optional[str], defaults: Mapping[str, str], name: str
) -> Optional[str]:
    '''
    Resolve the effective value of a field.

    Resolution order:
    1. The value currently stored on the record, if it is not None
    2. The per-type default for the field, if there is one
    3. None

    Args:
        current: The value stored on the record, or None if unset.
        defaults: The per-type default table.
        name: The field name.

    Returns:
        The effective value, or None if the field has neither a value nor a default.
    '''
    if current is not None:
        return current
    if name in defaults:
        return defaults[name]
    return None


def derive_schema(record_type: type) -> Schema:
    '''
    Derive the schema of a record type from its Field declarations.

    Fields are collected along the MRO, base classes first. A field redeclared
    in a subclass replaces the inherited declaration and moves to the
    subclass position. The per-type default table is built from the Field
    defaults, overridden by the class-level ``defaults`` mapping.

    Args:
        record_type: The record class.

    Returns:
        The schema, identity field first.
    '''
    identity: Optional[Field] = None
    declared: dict[str, Field] = {}

    for klass in reversed(record_type.__mro__):
        for name, attribute in vars(klass).items():
            if not isinstance(attribute, Field):
                continue
            if attribute.identity:
                identity = attribute
                continue
            declared.pop(name, None)
            declared[name] = attribute

    if identity is None:
        # Types outside the record hierarchy still get an identity field.
        identity = IdentityField()
        identity.__set_name__(record_type, 'id')

    fields = (identity,) + tuple(f for f in declared.values() if f.persisted)

    defaults = {
        f.name: f.default for f in (identity, *declared.values()) if f.default is not None
    }
    defaults.update(getattr(record_type, 'defaults', None) or {})

    return Schema(record_type, fields, defaults)  # type: ignore[arg-type]

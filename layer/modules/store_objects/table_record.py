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
Table record module mapping typed records onto a partitioned table.

A TableRecord subclass is stored in its own table. The row key is the record
identity (the ``id`` field), the partition key groups rows for queries and
atomic batches. Point operations (load, save, replace, delete) never raise
store errors: they return False and leave the message in ``error``. Bulk
operations (query, iterate, insert, update_all) raise.

Example:
    >>> class Customer(TableRecord):
    ...     name = Field(default='anonymous')
    ...     email = Field()
    >>> customer = Customer(registry, 'eu', 'c-42', email='c42@example.com')
    >>> customer.save()
    True
    >>> Customer(registry, partition_key='eu').query_by_values()
    [Customer({'id': 'c-42', 'name': 'anonymous', 'email': 'c42@example.com'})]
'''

from __future__ import annotations

from datetime import datetime, UTC
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    ClassVar,
    Iterable,
    List,
    Optional,
    Sequence,
    Type,
    TypeVar,
)
import uuid

from boto3.dynamodb.conditions import Attr

from dynamodb_wrapper import ETAG, PARTITION_KEY, ROW_KEY, TIMESTAMP

from . import batcher, iterate as iterate_engine
from .batcher import BatchReport, DuplicatePolicy
from .exceptions import NotFoundException, StoreFaultException, store_faults
from .filters import Comparison, Filter, Operator, build_filter, build_selection
from .query import QueryDescriptor, execute_query
from .record import Record
from .schema import IdentityField

if TYPE_CHECKING:
    from dynamodb_wrapper import DynamoDbWrapper

    from .registry import Registry

T = TypeVar('T', bound='TableRecord')

WILDCARD_ETAG = '*'


def new_version() -> tuple[str, str]:
    '''
    Create a new (version token, timestamp) pair for a write.
    '''
    return uuid.uuid4().hex, datetime.now(UTC).isoformat()


class TableRecord(Record):
    '''
    Base class for records stored in a partitioned table.

    Attributes:
        id: The identity field, stored as the row key.
        partition_prefix: Number of leading id characters used as the partition
                          key when no partition key is given.
        partition_key: The partition key.
        row_key: The row key.
        etag: The version token of the stored row, or None if unknown.
        timestamp: The time of the last write of the stored row.
    '''

    id = IdentityField(attribute='row_key', column=ROW_KEY)
    partition_prefix: ClassVar[int] = 2

    def __init__(
        self,
        registry: Registry,
        partition_key: Optional[str] = None,
        row_key: Optional[str] = None,
        partition_prefix: Optional[int] = None,
        **values: Optional[str],
    ) -> None:
        '''
        Initialize a table record.

        The row key may also be given as ``id``. When only the row key is
        given, the partition key is its first partition_prefix characters.

        Args:
            registry: The registry used to resolve the schema and the table.
            partition_key: The partition key.
            row_key: The row key (the record id).
            partition_prefix: Overrides the class partition_prefix.
            **values: Initial field values.
        '''
        if row_key is None:
            row_key = values.pop('id', None)
        if partition_key is None and row_key is not None:
            prefix = partition_prefix if partition_prefix is not None else self.partition_prefix
            partition_key = row_key[:prefix]

        self.partition_key = partition_key or ''
        self.row_key = row_key
        self.etag: Optional[str] = None
        self.timestamp: Optional[str] = None
        super().__init__(registry, **values)

    @property
    def table(self) -> DynamoDbWrapper:
        return self.registry.table(type(self))

    def key(self) -> dict:
        return {PARTITION_KEY: self.partition_key, ROW_KEY: self.row_key}

    @staticmethod
    def new_version() -> tuple[str, str]:
        return new_version()

    def _field_values(self, resolved: bool) -> dict:
        values = {}
        for schema_field in self.schema.fields[1:]:
            value = (
                self.get_field(schema_field.name)  # type: ignore[arg-type]
                if resolved
                else schema_field.get_raw(self)
            )
            if value is not None:
                values[schema_field.column] = value
        return values

    def to_row(self, etag: str, timestamp: str) -> dict:
        '''
        Build the full stored row: keys, version, timestamp and every field with a value.
        '''
        return {
            **self._field_values(resolved=True),
            **self.key(),
            ETAG: etag,
            TIMESTAMP: timestamp,
        }

    def to_merge_values(self, etag: str, timestamp: str) -> dict:
        '''
        Build the attributes a merge sets: the fields set on this record, version and timestamp.
        '''
        return {**self._field_values(resolved=False), ETAG: etag, TIMESTAMP: timestamp}

    def copy_from_row(self, row: Optional[dict]) -> None:
        '''
        Copy a stored row into this record.

        Fields missing from the row, for example outside a column selection,
        stay unset: they read as their defaults and a merge does not write them.

        Args:
            row: The stored row, as returned by the table wrapper.
        '''
        if not row:
            return

        for schema_field in self.schema.fields[1:]:
            value = row.get(schema_field.column)
            if value is None:
                schema_field.set_raw(self, None)
            else:
                self.set_field(schema_field.name, value)  # type: ignore[arg-type]

        self.partition_key = str(row.get(PARTITION_KEY, self.partition_key))
        self.row_key = str(row.get(ROW_KEY, self.row_key))
        self.etag = row.get(ETAG)
        self.timestamp = row.get(TIMESTAMP)

    def _version_condition(self, etag: Optional[str]) -> Any:
        if etag in (None, WILDCARD_ETAG):
            return Attr(PARTITION_KEY).exists()
        return Attr(ETAG).eq(etag)

    def load(self) -> bool:
        '''
        Load the record from the table by its partition and row key.

        Returns:
            True if loaded. Otherwise False, with the reason in error.
        '''
        self.error = ''
        try:
            with store_faults(f'{type(self).__name__}.load'):
                item = self.table.get_item(self.key())
            if not item:
                raise NotFoundException(
                    f'{type(self).__name__}.load: not found '
                    f'({self.partition_key}/{self.row_key})'
                )
        except (NotFoundException, StoreFaultException) as e:
            return self._fail(e)

        self.copy_from_row(item)
        self._mark_loaded()
        return True

    def refresh(self, period: float) -> bool:
        '''
        Reload the record if it was not loaded within the last period seconds.

        Returns:
            True if the record was loaded by this call.
        '''
        if self._loaded_within(period):
            return False
        return self.load()

    def save(self) -> bool:
        '''
        Insert or replace the record, whatever the stored version.

        Returns:
            True if saved. Otherwise False, with the reason in error.
        '''
        return self._put('save', condition=None)

    def replace(self) -> bool:
        '''
        Replace the stored row if its version token still matches.

        With no known version token (or the '*' wildcard) the row only has to exist.

        Returns:
            True if replaced. Otherwise False, with the reason in error.
        '''
        return self._put('replace', condition=self._version_condition(self.etag))

    def _put(self, operation: str, condition: Any) -> bool:
        self.error = ''
        etag, timestamp = self.new_version()
        try:
            with store_faults(f'{type(self).__name__}.{operation}'):
                self.table.put_item(self.to_row(etag, timestamp), condition)
        except StoreFaultException as e:
            return self._fail(e)

        self.etag, self.timestamp = etag, timestamp
        return True

    def delete(self) -> bool:
        '''
        Delete the stored row if its version token still matches.

        With no known version token the '*' wildcard is used and the row only
        has to exist.

        Returns:
            True if deleted. Otherwise False, with the reason in error.
        '''
        self.error = ''
        try:
            with store_faults(f'{type(self).__name__}.delete'):
                self.table.delete_item(self.key(), self._version_condition(self.etag))
        except StoreFaultException as e:
            return self._fail(e)

        return True

    def query_descriptor(
        self,
        comparison: Comparison = Comparison.EQUAL,
        table_operator: Operator = Operator.AND,
    ) -> QueryDescriptor:
        '''
        Build the descriptor matching this record used as an example.
        '''
        return QueryDescriptor(
            build_filter(self, comparison, table_operator),
            build_selection(self),
        )

    @classmethod
    def query(
        cls: Type[T],
        registry: Registry,
        query_filter: Optional[Filter] = None,
        query_selection: Optional[List[str]] = None,
    ) -> List[T]:
        '''
        Query the table with a filter and an optional column selection.

        Args:
            registry: The registry.
            query_filter: The filter, or None for every row.
            query_selection: Columns to return, or None for all.

        Returns:
            The matching records in store order.

        Raises:
            StoreFaultException: If a page cannot be read.
        '''
        descriptor = QueryDescriptor(query_filter, query_selection)
        return list(execute_query(registry.table(cls), cls, registry, descriptor))

    def query_by_values(
        self: T,
        comparison: Comparison = Comparison.EQUAL,
        table_operator: Operator = Operator.AND,
    ) -> List[T]:
        '''
        Query the table using this record's non-empty values as the filter.

        Non-empty values are matched with the comparison and joined with the
        operator, empty values are returned but not matched and unset values
        are ignored.
        '''
        descriptor = self.query_descriptor(comparison, table_operator)
        return list(execute_query(self.table, type(self), self.registry, descriptor))

    @classmethod
    def iterate(
        cls: Type[T],
        registry: Registry,
        update_method: Optional[Callable[[T], bool]],
        query_filter: Optional[Filter] = None,
        query_selection: Optional[List[str]] = None,
    ) -> int:
        '''
        Call update_method on every matching record and write back the changed ones.

        Returns:
            The number of records update_method reported as changed.
        '''
        descriptor = QueryDescriptor(query_filter, query_selection)
        return iterate_engine.iterate(
            registry.table(cls), cls, registry, descriptor, update_method
        )

    def iterate_by_values(
        self: T,
        update_method: Optional[Callable[[T], bool]],
        comparison: Comparison = Comparison.EQUAL,
        table_operator: Operator = Operator.AND,
    ) -> int:
        '''
        Iterate the records matching this record used as an example.

        Returns:
            The number of records update_method reported as changed.
        '''
        descriptor = self.query_descriptor(comparison, table_operator)
        return iterate_engine.iterate(
            self.table, type(self), self.registry, descriptor, update_method
        )

    @classmethod
    def iterate_by_elements(
        cls: Type[T],
        registry: Registry,
        elements: Optional[Sequence[T]],
        update_method: Optional[Callable[[T], bool]],
    ) -> int:
        '''
        Call update_method on fresh copies of the given records and write back the changed ones.

        Returns:
            The number of records update_method reported as changed.
        '''
        return iterate_engine.iterate_by_keys(
            registry.table(cls), cls, registry, elements, update_method
        )

    @classmethod
    def insert(
        cls,
        registry: Registry,
        elements: Iterable[TableRecord],
        duplicate_mode: DuplicatePolicy = DuplicatePolicy.FAIL,
    ) -> BatchReport:
        '''
        Insert records in single-partition atomic batches.

        Args:
            registry: The registry.
            elements: The records, in any order.
            duplicate_mode: What to do with rows that already exist.

        Returns:
            The report of the written batches.

        Raises:
            BatchFaultException: If a batch is rejected.
        '''
        return batcher.submit(registry.table(cls), elements, duplicate_mode)

    @classmethod
    def update_all(cls, registry: Registry, elements: Iterable[TableRecord]) -> int:
        '''
        Merge records into the table, best effort across partitions.

        Returns:
            The number of records written.

        Raises:
            BatchFaultException: If any batch failed, after all were attempted.
        '''
        return batcher.update(registry.table(cls), elements)

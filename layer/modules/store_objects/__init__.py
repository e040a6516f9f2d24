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
Data-access package mapping typed records onto DynamoDB tables and SQS queues.

Records declare their string fields once; the package derives a schema per
record type and handles serialization, query-by-example filters, paginated
reads and partition-aware atomic batch writes.

Record Hierarchy:
    Record - field accessor, defaults and text codecs
    ├── TableRecord - one row of a partitioned table (PartitionKey/RowKey)
    └── QueueRecord - one message of a queue, with a lease when popped

Batch Engine:
    filters  - builds filters from example records
    query    - follows continuation tokens, materializing records
    batcher  - cuts record sets into single-partition atomic batches
    iterate  - streams query results through an update callback

Usage:
    >>> from store_objects import Field, Registry, TableRecord
    >>> class Customer(TableRecord):
    ...     name = Field(default='anonymous')
    ...     email = Field()
    >>> registry = Registry()
    >>> Customer.insert(registry, [
    ...     Customer(registry, 'eu', 'c-1', email='c1@example.com'),
    ...     Customer(registry, 'us', 'c-2', email='c2@example.com'),
    ... ]).written
    2
    >>> def rename(customer):
    ...     customer.name = customer.name.upper()
    ...     return True
    >>> Customer(registry, partition_key='eu').iterate_by_values(rename)
    1

Error Handling:
    - Point operations (load, save, replace, delete, peek, pop, push, remove)
      return False or None and keep the message in ``record.error``
    - Bulk operations (query, iterate, insert, update_all) raise
      StoreFaultException or BatchFaultException

See Also:
    - registry.Registry: Schema and store handle caches
    - batcher.submit: Partition-aware batch writer
'''

from .batcher import BatchReport, BatchSlice, DuplicatePolicy
from .exceptions import (
    BatchFaultException,
    ConcurrencyConflictException,
    NotFoundException,
    StoreFaultException,
)
from .filters import Comparison, Operator, combine_filters, generate_condition
from .query import QueryDescriptor
from .queue_record import QueueRecord
from .record import Record
from .registry import Registry
from .schema import Field, IdentityField, Schema, derive_schema, resolve_value
from .table_record import TableRecord

__all__ = [
    'BatchFaultException',
    'BatchReport',
    'BatchSlice',
    'Comparison',
    'ConcurrencyConflictException',
    'DuplicatePolicy',
    'Field',
    'IdentityField',
    'NotFoundException',
    'Operator',
    'QueryDescriptor',
    'QueueRecord',
    'Record',
    'Registry',
    'Schema',
    'StoreFaultException',
    'TableRecord',
    'combine_filters',
    'derive_schema',
    'generate_condition',
    'resolve_value',
]

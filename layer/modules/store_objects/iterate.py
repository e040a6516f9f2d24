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
Iterate module streaming query results through an update callback.

Records for which the callback reports a change are merged back into the
table in single-partition batches while the query is still being read.
'''

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional, Sequence, Type, TypeVar

from .batcher import PartitionWriter, plan_slices
from .config import MAX_BATCH_SIZE
from .filters import build_row_key_filter
from .query import QueryDescriptor, execute_query

if TYPE_CHECKING:
    from dynamodb_wrapper import DynamoDbWrapper

    from .registry import Registry
    from .table_record import TableRecord

logger = logging.getLogger()

T = TypeVar('T', bound='TableRecord')
UpdateMethod = Callable[[T], bool]


def iterate(
    table: DynamoDbWrapper,
    record_type: Type[T],
    registry: Registry,
    descriptor: QueryDescriptor,
    update_method: Optional[UpdateMethod],
    max_batch_size: int = MAX_BATCH_SIZE,
) -> int:
    '''
    Call update_method on every queried record and write back the changed ones.

    Changed records are buffered per partition and merged into the table
    whenever the buffer is full or the partition changes. A failed batch does
    not stop the iteration.

    Args:
        table: The table to read and write.
        record_type: The record class to materialize.
        registry: The registry given to the materialized records.
        descriptor: The filter and column selection.
        update_method: Callback returning True if it changed the record.
        max_batch_size: The maximum number of records per batch.

    Returns:
        The number of records update_method reported as changed.

    Raises:
        StoreFaultException: If a page cannot be read.
        BatchFaultException: If any write-back batch failed.
    '''
    if update_method is None:
        logger.info('No update method given, nothing to iterate')
        return 0

    writer = PartitionWriter(table, max_batch_size)
    update_count = 0
    for record in execute_query(table, record_type, registry, descriptor):
        if update_method(record):
            update_count += 1
            writer.add(record)

    writer.close()
    return update_count


def iterate_by_keys(
    table: DynamoDbWrapper,
    record_type: Type[T],
    registry: Registry,
    records: Optional[Sequence[T]],
    update_method: Optional[UpdateMethod],
    max_batch_size: int = MAX_BATCH_SIZE,
) -> int:
    '''
    Call update_method on fresh copies of the given records.

    The records only provide keys. For each partition, up to max_batch_size
    row keys at a time are re-read with one query, so update_method always
    works on the stored state and not on a possibly stale in-memory copy.
    Keys without a stored row are skipped.

    Args:
        table: The table to read and write.
        record_type: The record class to materialize.
        registry: The registry given to the materialized records.
        records: The records whose keys are iterated.
        update_method: Callback returning True if it changed the record.
        max_batch_size: The maximum number of keys per query and records per batch.

    Returns:
        The number of records update_method reported as changed.

    Raises:
        StoreFaultException: If a query fails.
        BatchFaultException: If any write-back batch failed.
    '''
    if not records or update_method is None:
        logger.info('No records or no update method given, nothing to iterate')
        return 0

    writer = PartitionWriter(table, max_batch_size)
    updates = 0
    for group in plan_slices(records, max_batch_size):
        query_filter = build_row_key_filter(group.partition_key or '', group.row_keys)
        for fresh in execute_query(table, record_type, registry, QueryDescriptor(query_filter)):
            if update_method(fresh):
                updates += 1
                writer.add(fresh)

    writer.close()
    return updates

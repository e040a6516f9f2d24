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
Batcher module grouping records into single-partition atomic batches.

The table store only accepts atomic batches whose operations share one
partition key, and at most MAX_BATCH_SIZE operations per batch. Records are
stable-sorted by partition key and cut into slices at every partition change
and at the size cap. Each slice is written as one transaction.

A partition holding more than MAX_BATCH_SIZE records is written as several
slices. Each slice is atomic but the partition as a whole is not; such
partitions are logged and listed in BatchReport.non_atomic_partitions.
'''

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from .config import MAX_BATCH_SIZE
from .exceptions import BatchFaultException, StoreFaultException, store_faults

if TYPE_CHECKING:
    from dynamodb_wrapper import DynamoDbWrapper

    from .table_record import TableRecord

logger = logging.getLogger()


class DuplicatePolicy(str, Enum):
    '''
    What a batch write does when a row with the same keys already exists.

    FAIL rejects the whole slice, REPLACE overwrites every column and MERGE
    overwrites only the fields the record provides.
    '''

    FAIL = 'fail'
    REPLACE = 'replace'
    MERGE = 'merge'


@dataclass
class BatchSlice:
    '''
    Records of one partition written in one atomic batch.
    '''

    partition_key: Optional[str]
    records: List[TableRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def row_keys(self) -> list[str]:
        return [record.row_key for record in self.records]  # type: ignore[misc]


@dataclass
class BatchReport:
    '''
    The slices written by a batch operation.

    Attributes:
        slices: The slices written, in submission order.
    '''

    slices: List[BatchSlice] = field(default_factory=list)

    @property
    def written(self) -> int:
        return sum(len(batch_slice) for batch_slice in self.slices)

    @property
    def non_atomic_partitions(self) -> list[Optional[str]]:
        '''
        Partition keys whose records were split over more than one slice.
        '''
        counts = Counter(batch_slice.partition_key for batch_slice in self.slices)
        return [partition_key for partition_key, count in counts.items() if count > 1]


def plan_slices(
    records: Iterable[TableRecord], max_batch_size: int = MAX_BATCH_SIZE
) -> list[BatchSlice]:
    '''
    Cut records into single-partition slices.

    Records are stable-sorted by partition key, so records of one partition
    keep their relative order. A new slice starts when the partition key
    changes or the current slice holds max_batch_size records.

    Args:
        records: The records, in any order.
        max_batch_size: The maximum number of records per slice.

    Returns:
        The slices in submission order.
    '''
    slices: list[BatchSlice] = []
    current: Optional[BatchSlice] = None

    for record in sorted(records, key=lambda r: r.partition_key or ''):
        if (
            current is None
            or current.partition_key != record.partition_key
            or len(current) >= max_batch_size
        ):
            current = BatchSlice(record.partition_key)
            slices.append(current)
        current.records.append(record)

    return slices


def _warn_non_atomic(slices: Sequence[BatchSlice]) -> None:
    for partition_key in BatchReport(list(slices)).non_atomic_partitions:
        logger.warning(
            f'Partition {partition_key} spans several batches, '
            'its records are not written atomically'
        )


def write_slice(
    table: DynamoDbWrapper, batch_slice: BatchSlice, policy: DuplicatePolicy
) -> None:
    '''
    Write one slice as a single atomic batch.

    Every written row gets a new version token. The records' tokens are only
    updated once the batch succeeded.

    Args:
        table: The table to write to.
        batch_slice: The slice to write.
        policy: The duplicate policy.

    Raises:
        StoreFaultException: If the batch is rejected. Nothing of the slice is written.
    '''
    versions = [record.new_version() for record in batch_slice.records]
    operations = []
    for record, version in zip(batch_slice.records, versions):
        if policy is DuplicatePolicy.MERGE:
            operations.append(
                table.update_operation(record.key(), record.to_merge_values(*version))
            )
        else:
            operations.append(
                table.put_operation(
                    record.to_row(*version),
                    must_not_exist=policy is DuplicatePolicy.FAIL,
                )
            )

    logger.info(
        f'Writing {len(operations)} rows to partition {batch_slice.partition_key} '
        f'of {table.table_name} ({policy.value})'
    )
    with store_faults(f'batch {table.table_name}/{batch_slice.partition_key}'):
        table.write_batch(operations)

    for record, (etag, timestamp) in zip(batch_slice.records, versions):
        record.etag = etag
        record.timestamp = timestamp


def submit(
    table: DynamoDbWrapper,
    records: Iterable[TableRecord],
    policy: DuplicatePolicy = DuplicatePolicy.FAIL,
    max_batch_size: int = MAX_BATCH_SIZE,
) -> BatchReport:
    '''
    Write records in single-partition atomic batches.

    Slices are written in order. The first failing slice stops the
    submission; slices written before it stay written.

    Args:
        table: The table to write to.
        records: The records, in any order.
        policy: The duplicate policy.
        max_batch_size: The maximum number of records per batch.

    Returns:
        The report of the written slices.

    Raises:
        BatchFaultException: If a slice is rejected. Carries the report of
                             the slices written before it.
    '''
    policy = DuplicatePolicy(policy)
    report = BatchReport()
    slices = plan_slices(records, max_batch_size)
    if not slices:
        return report

    _warn_non_atomic(slices)
    for batch_slice in slices:
        try:
            write_slice(table, batch_slice, policy)
        except StoreFaultException as e:
            raise BatchFaultException(
                f'Batch for partition {batch_slice.partition_key} failed after '
                f'{report.written} records: {e}',
                report,
                [(batch_slice, e)],
            ) from e
        report.slices.append(batch_slice)

    return report


class PartitionWriter:
    '''
    Rolling merge writer for records arriving grouped by partition.

    Records are buffered until the partition key changes or the buffer holds
    max_batch_size records, then written as one slice. A failing slice is
    logged and collected, and later slices are still written.

    Attributes:
        report: The slices written so far.
        failures: (slice, exception) pairs of the slices that failed.
    '''

    def __init__(self, table: DynamoDbWrapper, max_batch_size: int = MAX_BATCH_SIZE) -> None:
        self.table = table
        self.max_batch_size = max_batch_size
        self.report = BatchReport()
        self.failures: list[tuple[BatchSlice, Exception]] = []
        self._pending: Optional[BatchSlice] = None

    def add(self, record: TableRecord) -> None:
        if self._pending is not None and self._pending.partition_key != record.partition_key:
            self.flush()
        if self._pending is None:
            self._pending = BatchSlice(record.partition_key)

        self._pending.records.append(record)
        if len(self._pending) >= self.max_batch_size:
            self.flush()

    def flush(self) -> None:
        batch_slice, self._pending = self._pending, None
        if not batch_slice:
            return

        try:
            write_slice(self.table, batch_slice, DuplicatePolicy.MERGE)
        except StoreFaultException as e:
            logger.error(f'Failed to write partition {batch_slice.partition_key}: {e}')
            self.failures.append((batch_slice, e))
        else:
            self.report.slices.append(batch_slice)

    def close(self) -> BatchReport:
        '''
        Write the remaining records.

        Returns:
            The report of the written slices.

        Raises:
            BatchFaultException: If any slice failed.
        '''
        self.flush()
        if self.failures:
            raise BatchFaultException(
                f'{len(self.failures)} batches failed, {self.report.written} records written',
                self.report,
                self.failures,
            )
        return self.report


def update(
    table: DynamoDbWrapper,
    records: Iterable[TableRecord],
    max_batch_size: int = MAX_BATCH_SIZE,
) -> int:
    '''
    Merge records into the table, best effort across partitions.

    Every slice is attempted even when an earlier one failed.

    Args:
        table: The table to write to.
        records: The records, in any order.
        max_batch_size: The maximum number of records per batch.

    Returns:
        The number of records written.

    Raises:
        BatchFaultException: If any slice failed, after all slices were attempted.
    '''
    slices = plan_slices(records, max_batch_size)
    _warn_non_atomic(slices)

    writer = PartitionWriter(table, max_batch_size)
    for batch_slice in slices:
        for record in batch_slice.records:
            writer.add(record)
        writer.flush()

    return writer.close().written

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
Query module executing paginated range reads against a table.

The executor follows DynamoDB continuation tokens (LastEvaluatedKey) until a
page comes back without one, materializing one record per returned row. Rows
are produced lazily and in store order.
'''

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Iterator, List, Optional, Type, TypeVar

from dynamodb_wrapper import SYSTEM_COLUMNS

from .exceptions import store_faults
from .filters import Filter, compile_filter, render

if TYPE_CHECKING:
    from dynamodb_wrapper import DynamoDbWrapper

    from .registry import Registry
    from .table_record import TableRecord

logger = logging.getLogger()

T = TypeVar('T', bound='TableRecord')


@dataclass
class QueryDescriptor:
    '''
    A filter and an optional column selection.

    Attributes:
        query_filter: The filter, or None to read every row.
        selection: Columns to return. None or empty returns all columns.
    '''

    query_filter: Optional[Filter] = None
    selection: Optional[List[str]] = field(default=None)

    def columns(self) -> Optional[List[str]]:
        '''
        Get the projected columns, including the key and version columns.
        '''
        if not self.selection:
            return None
        return list(dict.fromkeys([*SYSTEM_COLUMNS, *self.selection]))

    def __str__(self) -> str:
        return f'filter="{render(self.query_filter)}" selection={self.selection}'


def read_pages(table: DynamoDbWrapper, descriptor: QueryDescriptor) -> Iterator[list[dict]]:
    '''
    Read the rows matching a descriptor, one page at a time.

    Args:
        table: The table to read.
        descriptor: The filter and column selection.

    Yields:
        The rows of each page, possibly empty, in store order.

    Raises:
        StoreFaultException: If a page cannot be read. Pages already yielded stay yielded.
    '''
    compiled = compile_filter(descriptor.query_filter)
    columns = descriptor.columns()
    read_columns = columns
    if columns is not None and compiled.local_filter is not None:
        # Local clauses may test columns outside the selection.
        read_columns = list(dict.fromkeys([*columns, *sorted(compiled.local_filter.columns())]))
    start_key: Optional[dict] = None
    page = 0

    while True:
        with store_faults(f'query {table.table_name}'):
            rows, start_key = table.read_segment(
                compiled.key_condition,
                compiled.filter_condition,
                read_columns,
                start_key,
            )

        page += 1
        if compiled.local_filter is not None:
            rows = [row for row in rows if compiled.local_filter.matches(row)]
            if read_columns != columns:
                rows = [_project(row, columns or []) for row in rows]
        logger.info(f'Read page {page} of {table.table_name} ({len(rows)} rows): {descriptor}')

        yield rows

        if not start_key:
            return


def _project(row: dict, columns: List[str]) -> dict:
    return {column: row[column] for column in columns if column in row}


def execute_query(
    table: DynamoDbWrapper,
    record_type: Type[T],
    registry: Registry,
    descriptor: QueryDescriptor,
) -> Iterator[T]:
    '''
    Run a query and materialize one record per returned row.

    The result is a lazy, finite generator that cannot be restarted. Fields
    missing from a row stay unset and read as their defaults.

    Args:
        table: The table to read.
        record_type: The record class to materialize.
        registry: The registry given to the materialized records.
        descriptor: The filter and column selection.

    Yields:
        Records in store order.
    '''
    for rows in read_pages(table, descriptor):
        for row in rows:
            record = record_type(registry)
            record.copy_from_row(row)
            yield record

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
Filter module for building table queries from example records.

A filter is a small predicate tree of Condition leaves joined by Combined
nodes. It renders to a flat boolean string for logging and comparison:

    >>> str(build_filter(Customer(registry, partition_key='A', name='x')))
    "(PartitionKey eq 'A') and (name eq 'x')"

and compiles to boto3 conditions for DynamoDB. A filter whose outermost left
operand is a partition key equality is split off into a key condition so the
read is a single-partition query instead of a table scan.
'''

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import operator
from typing import TYPE_CHECKING, Optional, Union

from boto3.dynamodb.conditions import Attr, ConditionBase, Key

from dynamodb_wrapper import PARTITION_KEY, ROW_KEY

if TYPE_CHECKING:
    from .table_record import TableRecord

logger = logging.getLogger()


class Comparison(str, Enum):
    '''
    Comparison operators of a filter condition.
    '''

    EQUAL = 'eq'
    NOT_EQUAL = 'ne'
    GREATER_THAN = 'gt'
    GREATER_THAN_OR_EQUAL = 'ge'
    LESS_THAN = 'lt'
    LESS_THAN_OR_EQUAL = 'le'


class Operator(str, Enum):
    '''
    Logical operators joining filter conditions.
    '''

    AND = 'and'
    OR = 'or'


_ATTR_METHODS = {
    Comparison.EQUAL: 'eq',
    Comparison.NOT_EQUAL: 'ne',
    Comparison.GREATER_THAN: 'gt',
    Comparison.GREATER_THAN_OR_EQUAL: 'gte',
    Comparison.LESS_THAN: 'lt',
    Comparison.LESS_THAN_OR_EQUAL: 'lte',
}

_COMPARE = {
    Comparison.EQUAL: operator.eq,
    Comparison.NOT_EQUAL: operator.ne,
    Comparison.GREATER_THAN: operator.gt,
    Comparison.GREATER_THAN_OR_EQUAL: operator.ge,
    Comparison.LESS_THAN: operator.lt,
    Comparison.LESS_THAN_OR_EQUAL: operator.le,
}


@dataclass(frozen=True)
class Condition:
    '''
    A single column comparison, e.g. ``name eq 'x'``.
    '''

    column: str
    comparison: Comparison
    value: str

    def __str__(self) -> str:
        quoted = self.value.replace("'", "''")
        return f"{self.column} {self.comparison.value} '{quoted}'"

    def to_condition(self) -> ConditionBase:
        return getattr(Attr(self.column), _ATTR_METHODS[self.comparison])(self.value)

    def columns(self) -> set[str]:
        return {self.column}

    def matches(self, row: dict) -> bool:
        value = row.get(self.column)
        if value is None:
            return self.comparison is Comparison.NOT_EQUAL
        return _COMPARE[self.comparison](str(value), self.value)


@dataclass(frozen=True)
class Combined:
    '''
    Two filters joined by a logical operator.
    '''

    left: Filter
    operator: Operator
    right: Filter

    def __str__(self) -> str:
        return f'({self.left}) {self.operator.value} ({self.right})'

    def to_condition(self) -> ConditionBase:
        if self.operator is Operator.AND:
            return self.left.to_condition() & self.right.to_condition()
        return self.left.to_condition() | self.right.to_condition()

    def columns(self) -> set[str]:
        return self.left.columns() | self.right.columns()

    def matches(self, row: dict) -> bool:
        if self.operator is Operator.AND:
            return self.left.matches(row) and self.right.matches(row)
        return self.left.matches(row) or self.right.matches(row)


Filter = Union[Condition, Combined]


def generate_condition(
    column: str, comparison: Comparison = Comparison.EQUAL, value: str = ''
) -> Condition:
    return Condition(column, Comparison(comparison), value)


def combine_filters(
    left: Optional[Filter], table_operator: Operator, right: Optional[Filter]
) -> Optional[Filter]:
    '''
    Join two filters, treating None as "no filter".
    '''
    if left is None:
        return right
    if right is None:
        return left
    return Combined(left, Operator(table_operator), right)


def render(query_filter: Optional[Filter]) -> str:
    return '' if query_filter is None else str(query_filter)


def build_filter(
    record: TableRecord,
    comparison: Comparison = Comparison.EQUAL,
    table_operator: Operator = Operator.AND,
) -> Optional[Filter]:
    '''
    Build a filter matching the non-empty field values of an example record.

    Fields are visited in schema order; empty or unset values do not filter.
    The first matching field starts the expression and the following ones are
    joined with the given operator. A non-empty partition key is AND-ed in as
    the outermost left operand, whatever the operator.

    Args:
        record: The example record.
        comparison: The comparison applied to every field.
        table_operator: The operator joining the field conditions.

    Returns:
        The filter, or None if the record has no values and no partition key.
    '''
    query_filter: Optional[Filter] = None
    for schema_field in record.schema.fields:
        value = record.get_field(schema_field.name)  # type: ignore[arg-type]
        if not value:
            continue
        condition = generate_condition(
            schema_field.column, comparison, value  # type: ignore[arg-type]
        )
        query_filter = combine_filters(query_filter, table_operator, condition)

    if record.partition_key:
        partition = generate_condition(PARTITION_KEY, Comparison.EQUAL, record.partition_key)
        query_filter = combine_filters(partition, Operator.AND, query_filter)
    else:
        logger.debug(
            f'Filter for {type(record).__name__} has no partition key, reads scan the table'
        )

    return query_filter


def build_selection(record: TableRecord) -> list[str]:
    '''
    List the columns of every field whose value is not None.

    Empty values are selected even though they do not filter.
    '''
    return [
        schema_field.column  # type: ignore[misc]
        for schema_field in record.schema.fields
        if record.get_field(schema_field.name) is not None  # type: ignore[arg-type]
    ]


def build_row_key_filter(partition_key: str, row_keys: list[str]) -> Filter:
    '''
    Build ``PartitionKey eq pk and (RowKey eq r1 or RowKey eq r2 ...)``.
    '''
    row_filter: Optional[Filter] = None
    for row_key in row_keys:
        condition = generate_condition(ROW_KEY, Comparison.EQUAL, row_key)
        row_filter = combine_filters(row_filter, Operator.OR, condition)

    partition = generate_condition(PARTITION_KEY, Comparison.EQUAL, partition_key)
    return combine_filters(partition, Operator.AND, row_filter)  # type: ignore[return-value]


@dataclass(frozen=True)
class CompiledFilter:
    '''
    A filter compiled for one DynamoDB read.

    Attributes:
        key_condition: Partition key condition, turning the read into a query.
        filter_condition: Condition evaluated by DynamoDB on the rows read.
        local_filter: Filter evaluated on the returned rows. Used for row key
                      clauses under a partition key condition, which a
                      DynamoDB query does not accept as a filter.
    '''

    key_condition: Optional[ConditionBase] = None
    filter_condition: Optional[ConditionBase] = None
    local_filter: Optional[Filter] = None


def compile_filter(query_filter: Optional[Filter]) -> CompiledFilter:
    '''
    Compile a filter for a DynamoDB read.

    When the filter is a partition key equality, or its outermost operator is
    AND with a partition key equality on the left, that equality becomes the
    key condition and the rest stays a filter. Any other filter is evaluated
    by a table scan.

    Args:
        query_filter: The filter to compile.

    Returns:
        The compiled filter.
    '''
    if query_filter is None:
        return CompiledFilter()

    if _is_partition_equality(query_filter):
        return CompiledFilter(Key(PARTITION_KEY).eq(query_filter.value))  # type: ignore[union-attr]

    if (
        isinstance(query_filter, Combined)
        and query_filter.operator is Operator.AND
        and _is_partition_equality(query_filter.left)
    ):
        key_condition = Key(PARTITION_KEY).eq(query_filter.left.value)  # type: ignore[union-attr]
        rest = query_filter.right
        if rest.columns() & {PARTITION_KEY, ROW_KEY}:
            return CompiledFilter(key_condition, local_filter=rest)
        return CompiledFilter(key_condition, rest.to_condition())

    return CompiledFilter(filter_condition=query_filter.to_condition())


def _is_partition_equality(query_filter: Filter) -> bool:
    return (
        isinstance(query_filter, Condition)
        and query_filter.column == PARTITION_KEY
        and query_filter.comparison is Comparison.EQUAL
    )

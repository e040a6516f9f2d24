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

# pylint: disable=missing-function-docstring, missing-module-docstring
# mypy: disable-error-code=no-untyped-def

from unittest.mock import Mock

from botocore.exceptions import ClientError
import pytest

from dynamodb_wrapper import DynamoDbWrapper
from store_objects import BatchFaultException, QueryDescriptor
from store_objects.iterate import iterate, iterate_by_keys
from sample_records import Customer


def make_table(*pages):
    table = DynamoDbWrapper('customers', dynamodb=Mock())
    table.read_segment = Mock(side_effect=list(pages))
    table.write_batch = Mock()
    return table


def row(partition_key, row_key, **values):
    return {'PartitionKey': partition_key, 'RowKey': row_key, 'ETag': 'e', **values}


def written_row_keys(table):
    return [
        [operation['Update']['Key']['RowKey'] for operation in call.args[0]]
        for call in table.write_batch.call_args_list
    ]


def test_iterate_writes_back_changed_rows_only(offline_registry):
    table = make_table(([row('A', '1'), row('A', '2'), row('A', '3')], None))

    def touch_second(record):
        if record.row_key != '2':
            return False
        record.email = 'two@example.com'
        return True

    count = iterate(table, Customer, offline_registry, QueryDescriptor(), touch_second)

    assert count == 1
    assert written_row_keys(table) == [['2']]
    update_operation = table.write_batch.call_args.args[0][0]['Update']
    assert 'two@example.com' in update_operation['ExpressionAttributeValues'].values()


def test_iterate_flushes_on_partition_change(offline_registry):
    table = make_table(
        ([row('A', '1'), row('A', '2')], {'RowKey': '2'}),
        ([row('B', '1')], None),
    )

    count = iterate(table, Customer, offline_registry, QueryDescriptor(), lambda record: True)

    assert count == 3
    assert written_row_keys(table) == [['1', '2'], ['1']]


def test_iterate_flushes_at_batch_size(offline_registry):
    rows = [row('A', f'{index:02d}') for index in range(5)]
    table = make_table((rows, None))

    count = iterate(
        table, Customer, offline_registry, QueryDescriptor(), lambda record: True, max_batch_size=2
    )

    assert count == 5
    assert [len(keys) for keys in written_row_keys(table)] == [2, 2, 1]


def test_iterate_without_update_method(offline_registry):
    table = make_table(([row('A', '1')], None))

    assert iterate(table, Customer, offline_registry, QueryDescriptor(), None) == 0
    table.read_segment.assert_not_called()
    table.write_batch.assert_not_called()


def test_iterate_continues_after_failed_batch(offline_registry):
    table = make_table(([row('A', '1'), row('B', '1'), row('C', '1')], None))
    table.write_batch.side_effect = [
        None,
        ClientError({'Error': {'Code': 'InternalServerError'}}, 'TransactWriteItems'),
        None,
    ]

    with pytest.raises(BatchFaultException) as exc_info:
        iterate(table, Customer, offline_registry, QueryDescriptor(), lambda record: True)

    assert table.write_batch.call_count == 3
    assert exc_info.value.report.written == 2


def test_iterate_by_keys_rereads_stored_rows(offline_registry):
    table = make_table(
        ([row('A', '1', email='stored@example.com'), row('A', '2')], None),
        ([row('B', '7')], None),
    )
    stale = [
        Customer(offline_registry, 'B', '7'),
        Customer(offline_registry, 'A', '1', email='stale@example.com'),
        Customer(offline_registry, 'A', '2'),
    ]
    seen = []

    def collect(record):
        seen.append((record.partition_key, record.row_key, record.email))
        return record.row_key == '1'

    count = iterate_by_keys(table, Customer, offline_registry, stale, collect)

    assert count == 1
    assert seen == [('A', '1', 'stored@example.com'), ('A', '2', None), ('B', '7', None)]
    assert table.read_segment.call_count == 2
    assert written_row_keys(table) == [['1']]


def test_iterate_by_keys_splits_large_partition(offline_registry):
    table = make_table(
        ([row('A', '0'), row('A', '1')], None),
        ([row('A', '2'), row('A', '3')], None),
        ([row('A', '4')], None),
    )
    records = [Customer(offline_registry, 'A', str(index)) for index in range(5)]

    count = iterate_by_keys(
        table, Customer, offline_registry, records, lambda record: True, max_batch_size=2
    )

    assert count == 5
    assert table.read_segment.call_count == 3
    assert all(len(keys) <= 2 for keys in written_row_keys(table))
    assert sorted(sum(written_row_keys(table), [])) == ['0', '1', '2', '3', '4']


def test_iterate_by_keys_without_records(offline_registry):
    table = make_table()

    assert iterate_by_keys(table, Customer, offline_registry, [], lambda record: True) == 0
    assert iterate_by_keys(table, Customer, offline_registry, None, lambda record: True) == 0
    table.read_segment.assert_not_called()

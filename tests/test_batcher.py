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

# pylint: disable=missing-class-docstring, missing-function-docstring, missing-module-docstring, protected-access
# mypy: disable-error-code=no-untyped-def

from dataclasses import dataclass
import math
from typing import Dict
from unittest.mock import Mock

from botocore.exceptions import ClientError
import pytest

from dynamodb_wrapper import DynamoDbWrapper
from store_objects import BatchFaultException, DuplicatePolicy
from store_objects.batcher import plan_slices, submit, update
from sample_records import Customer


@pytest.fixture
def table():
    '''
    Table wrapper recording write_batch calls instead of sending them.
    '''
    wrapper = DynamoDbWrapper('customers', dynamodb=Mock())
    wrapper.write_batch = Mock()
    return wrapper


def batch_keys(table):
    '''
    (partition keys, row keys) of every write_batch call, in call order.
    '''
    batches = []
    for call in table.write_batch.call_args_list:
        operations = call.args[0]
        keys = [
            operation['Put']['Item'] if 'Put' in operation else operation['Update']['Key']
            for operation in operations
        ]
        batches.append(
            ({key['PartitionKey'] for key in keys}, [key['RowKey'] for key in keys])
        )
    return batches


def make_records(registry, counts: Dict[str, int]):
    return [
        Customer(registry, partition_key, f'{partition_key}-{index}')
        for partition_key, count in counts.items()
        for index in range(count)
    ]


def test_submit_groups_by_partition(offline_registry, table):
    records = [
        Customer(offline_registry, 'A', '1'),
        Customer(offline_registry, 'B', '1'),
        Customer(offline_registry, 'A', '2'),
    ]

    report = submit(table, records, DuplicatePolicy.REPLACE)

    assert batch_keys(table) == [({'A'}, ['1', '2']), ({'B'}, ['1'])]
    assert report.written == 3
    assert report.non_atomic_partitions == []
    operation = table.write_batch.call_args_list[0].args[0][0]
    assert 'ConditionExpression' not in operation['Put']


@dataclass
class BatchCountScenario:
    name: str
    counts: Dict[str, int]

    def __str__(self):
        return self.name


BATCH_COUNT_SCENARIOS = [
    BatchCountScenario(name='single_partition_under_cap', counts={'A': 99}),
    BatchCountScenario(name='single_partition_at_cap', counts={'A': 100}),
    BatchCountScenario(name='single_partition_over_cap', counts={'A': 101}),
    BatchCountScenario(name='many_partitions', counts={'A': 250, 'B': 1, 'C': 100, 'D': 7}),
]


@pytest.mark.parametrize('test_case', BATCH_COUNT_SCENARIOS, ids=str)
@pytest.mark.parametrize('operation', ['submit', 'update'])
def test_batch_call_count(offline_registry, table, test_case: BatchCountScenario, operation):
    records = make_records(offline_registry, test_case.counts)

    if operation == 'submit':
        submit(table, records, DuplicatePolicy.REPLACE)
    else:
        update(table, records)

    expected = sum(math.ceil(count / 100) for count in test_case.counts.values())
    assert table.write_batch.call_count == expected
    for partition_keys, row_keys in batch_keys(table):
        assert len(partition_keys) == 1
        assert len(row_keys) <= 100


def test_plan_slices_keeps_order_within_partition(offline_registry):
    records = [
        Customer(offline_registry, 'B', 'b1'),
        Customer(offline_registry, 'A', 'a2'),
        Customer(offline_registry, 'B', 'b0'),
        Customer(offline_registry, 'A', 'a1'),
    ]

    slices = plan_slices(records, max_batch_size=100)

    assert [(s.partition_key, s.row_keys) for s in slices] == [
        ('A', ['a2', 'a1']),
        ('B', ['b1', 'b0']),
    ]


def test_non_atomic_partition_is_reported(offline_registry, table, caplog):
    records = make_records(offline_registry, {'A': 150, 'B': 2})

    report = submit(table, records, DuplicatePolicy.REPLACE)

    assert report.non_atomic_partitions == ['A']
    assert 'Partition A spans several batches' in caplog.text


def test_submit_fail_policy_requires_new_rows(offline_registry, table):
    submit(table, [Customer(offline_registry, 'A', '1')], DuplicatePolicy.FAIL)

    put = table.write_batch.call_args.args[0][0]['Put']
    assert put['ConditionExpression'] == 'attribute_not_exists(#pk)'


def test_submit_merge_policy_updates_set_fields(offline_registry, table):
    record = Customer(offline_registry, 'A', '1', email='a@example.com')

    submit(table, [record], DuplicatePolicy.MERGE)

    update_operation = table.write_batch.call_args.args[0][0]['Update']
    assert update_operation['Key'] == {'PartitionKey': 'A', 'RowKey': '1'}
    assert set(update_operation['ExpressionAttributeNames'].values()) == {
        'email',
        'ETag',
        'Timestamp',
    }


def test_submit_sets_version_tokens(offline_registry, table):
    record = Customer(offline_registry, 'A', '1')

    submit(table, [record], DuplicatePolicy.REPLACE)

    item = table.write_batch.call_args.args[0][0]['Put']['Item']
    assert record.etag == item['ETag']
    assert record.timestamp == item['Timestamp']


def conflict():
    return ClientError(
        {'Error': {'Code': 'TransactionCanceledException', 'Message': 'cancelled'}},
        'TransactWriteItems',
    )


def test_submit_stops_at_first_failed_slice(offline_registry, table):
    table.write_batch.side_effect = [None, conflict(), None]
    records = make_records(offline_registry, {'A': 1, 'B': 1, 'C': 1})

    with pytest.raises(BatchFaultException) as exc_info:
        submit(table, records, DuplicatePolicy.FAIL)

    assert table.write_batch.call_count == 2
    assert exc_info.value.report.written == 1
    assert [s.partition_key for s, _ in exc_info.value.failures] == ['B']
    assert records[1].etag is None


def test_update_is_best_effort(offline_registry, table):
    table.write_batch.side_effect = [None, conflict(), None]
    records = make_records(offline_registry, {'A': 1, 'B': 1, 'C': 1})

    with pytest.raises(BatchFaultException) as exc_info:
        update(table, records)

    assert table.write_batch.call_count == 3
    assert exc_info.value.report.written == 2
    assert [s.partition_key for s, _ in exc_info.value.failures] == ['B']


def test_empty_record_set_is_a_no_op(table):
    assert submit(table, []).written == 0
    assert update(table, []) == 0
    table.write_batch.assert_not_called()

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
DynamoDB wrapper module for partitioned table operations.

This module provides a simplified interface over a DynamoDB table laid out as
a partitioned key-value store: every row has a ``PartitionKey`` hash key and a
``RowKey`` range key, an ``ETag`` version token and a ``Timestamp``. It covers
point reads and writes, segmented range reads with a server-side filter and
single-partition atomic batches (DynamoDB transactions).
'''

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import boto3
from boto3.dynamodb.conditions import ConditionBase
from botocore.exceptions import ClientError

PARTITION_KEY = 'PartitionKey'
ROW_KEY = 'RowKey'
ETAG = 'ETag'
TIMESTAMP = 'Timestamp'
SYSTEM_COLUMNS = (PARTITION_KEY, ROW_KEY, ETAG, TIMESTAMP)

logger = logging.getLogger()


class DynamoDbWrapper:
    '''
    A wrapper class for DynamoDB operations on a partitioned table.

    This class provides a simplified interface for point reads and writes,
    paginated range reads and atomic batch writes. Store errors are not
    translated here: boto3 ``ClientError`` propagates to the caller, which
    decides whether to report or raise it.

    Attributes:
        dynamodb: The boto3 DynamoDB resource instance.
        table_name: The name of the DynamoDB table.
        table: The DynamoDB table instance for the specified table name.
    '''

    ClientException = ClientError

    def __init__(self, table_name: str, dynamodb: Optional[Any] = None) -> None:
        '''
        Initialize the DynamoDB wrapper with a specific table.

        Args:
            table_name: The name of the DynamoDB table to interact with.
            dynamodb: An existing boto3 DynamoDB resource to share. A new one is
                      created when omitted.
        '''
        self.dynamodb = dynamodb if dynamodb is not None else boto3.resource('dynamodb')
        self.table_name = table_name
        self.table = self.dynamodb.Table(table_name)

    def create_if_not_exists(self) -> None:
        '''
        Create the table with the partition/row key schema if it does not exist.

        Raises:
            ClientError: If the table cannot be described or created.
        '''
        try:
            self.table.load()
            return
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != 'ResourceNotFoundException':
                raise

        logger.info(f'Creating table {self.table_name}')
        self.table = self.dynamodb.create_table(
            TableName=self.table_name,
            KeySchema=[
                {'AttributeName': PARTITION_KEY, 'KeyType': 'HASH'},
                {'AttributeName': ROW_KEY, 'KeyType': 'RANGE'},
            ],
            AttributeDefinitions=[
                {'AttributeName': PARTITION_KEY, 'AttributeType': 'S'},
                {'AttributeName': ROW_KEY, 'AttributeType': 'S'},
            ],
            BillingMode='PAY_PER_REQUEST',
        )
        self.table.wait_until_exists()

    def put_item(self, item: dict, condition: Optional[ConditionBase] = None) -> None:
        '''
        Put an item into the DynamoDB table.

        Args:
            item: The item to store in the table. Must contain the
                  primary key attributes and any other attributes to store.
            condition: Optional condition the stored row must satisfy for the
                       write to succeed (e.g. a version token match).
        '''
        if condition is None:
            self.table.put_item(Item=item)
        else:
            self.table.put_item(Item=item, ConditionExpression=condition)

    def get_item(self, key: dict) -> dict:
        '''
        Retrieve an item from the DynamoDB table.

        Args:
            key: The primary key of the item to retrieve.

        Returns:
            The item if found, empty dictionary if the item doesn't exist.
        '''
        response = self.table.get_item(
            Key=key,
            ConsistentRead=True,
        )
        return response.get('Item', {})

    def delete_item(self, key: dict, condition: Optional[ConditionBase] = None) -> None:
        '''
        Delete an item from the DynamoDB table.

        Args:
            key: The primary key of the item to delete.
            condition: Optional condition the stored row must satisfy for the
                       delete to succeed.
        '''
        if condition is None:
            self.table.delete_item(Key=key)
        else:
            self.table.delete_item(Key=key, ConditionExpression=condition)

    def read_segment(
        self,
        key_condition: Optional[ConditionBase] = None,
        filter_condition: Optional[ConditionBase] = None,
        columns: Optional[Iterable[str]] = None,
        start_key: Optional[dict] = None,
    ) -> tuple[list[dict], Optional[dict]]:
        '''
        Read one page of rows from the table.

        A key condition turns the read into a DynamoDB query scoped to one
        partition, otherwise the whole table is scanned. The filter is applied
        server side to the rows read.

        Args:
            key_condition: Optional key condition on the partition key.
            filter_condition: Optional filter applied to every row read.
            columns: Optional list of attribute names to return.
            start_key: The continuation token returned by the previous page.

        Returns:
            A tuple of (rows, next_start_key). next_start_key is None when
            there are no more pages.
        '''
        kwargs: dict[str, Any] = {}
        if filter_condition is not None:
            kwargs['FilterExpression'] = filter_condition
        if columns:
            names = {f'#c{index}': column for index, column in enumerate(columns)}
            kwargs['ProjectionExpression'] = ', '.join(names)
            kwargs['ExpressionAttributeNames'] = names
        if start_key:
            kwargs['ExclusiveStartKey'] = start_key

        if key_condition is not None:
            response = self.table.query(KeyConditionExpression=key_condition, **kwargs)
        else:
            response = self.table.scan(**kwargs)

        return response.get('Items', []), response.get('LastEvaluatedKey')

    def put_operation(self, item: dict, must_not_exist: bool = False) -> dict:
        '''
        Build a put operation for write_batch.

        Args:
            item: The full item to store.
            must_not_exist: Whether the put is rejected when the row already exists.

        Returns:
            A TransactWriteItems operation.
        '''
        put: dict[str, Any] = {'TableName': self.table_name, 'Item': item}
        if must_not_exist:
            put['ConditionExpression'] = 'attribute_not_exists(#pk)'
            put['ExpressionAttributeNames'] = {'#pk': PARTITION_KEY}
        return {'Put': put}

    def update_operation(self, key: dict, values: dict) -> dict:
        '''
        Build an update operation for write_batch that sets only the given attributes.

        The row is created when it does not exist yet.

        Args:
            key: The primary key of the row.
            values: The attributes to set. Attributes not listed keep their stored value.

        Returns:
            A TransactWriteItems operation.
        '''
        names = {}
        placeholders = {}
        assignments = []
        for index, (name, value) in enumerate(values.items()):
            names[f'#a{index}'] = name
            placeholders[f':v{index}'] = value
            assignments.append(f'#a{index} = :v{index}')

        update: dict[str, Any] = {'TableName': self.table_name, 'Key': key}
        if assignments:
            update['UpdateExpression'] = 'SET ' + ', '.join(assignments)
            update['ExpressionAttributeNames'] = names
            update['ExpressionAttributeValues'] = placeholders
        return {'Update': update}

    def write_batch(self, operations: list[dict]) -> None:
        '''
        Execute a list of operations as one atomic transaction.

        Either every operation is applied or none is. DynamoDB limits a
        transaction to 100 operations and rejects two operations on the same row.

        Args:
            operations: Operations built with put_operation or update_operation.
        '''
        self.dynamodb.meta.client.transact_write_items(TransactItems=operations)

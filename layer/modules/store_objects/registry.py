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
Registry module holding the process-wide caches of the data-access layer.

A Registry is created once at process start and passed to every record and
bulk operation. It owns the boto3 resources, one schema per record type and
one store wrapper per table or queue name. All caches are populated lazily on
first use and are safe to populate from several threads at once.
'''

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

import boto3

from dynamodb_wrapper import DynamoDbWrapper
from sqs_wrapper import SqsWrapper

from .config import CONFIG
from .exceptions import store_faults
from .schema import Schema, derive_schema

logger = logging.getLogger()


class Registry:
    '''
    Registry of schemas and store handles.

    Attributes:
        config: Configuration dictionary (see store_objects.config).
    '''

    def __init__(
        self,
        config: Optional[dict] = None,
        dynamodb: Optional[Any] = None,
        sqs_client: Optional[Any] = None,
    ) -> None:
        '''
        Initialize the registry.

        Args:
            config: Configuration dictionary. Defaults to the loaded CONFIG.
            dynamodb: An existing boto3 DynamoDB resource. Created lazily when omitted.
            sqs_client: An existing boto3 SQS client. Created lazily when omitted.
        '''
        self.config = config if config is not None else CONFIG
        self._lock = threading.RLock()
        self._dynamodb = dynamodb
        self._sqs_client = sqs_client
        self._schemas: Dict[type, Schema] = {}
        self._tables: Dict[str, DynamoDbWrapper] = {}
        self._queues: Dict[str, SqsWrapper] = {}

    def _boto3_kwargs(self) -> dict:
        kwargs = {}
        if self.config.get('region_name'):
            kwargs['region_name'] = self.config['region_name']
        if self.config.get('endpoint_url'):
            kwargs['endpoint_url'] = self.config['endpoint_url']
        return kwargs

    @property
    def dynamodb(self) -> Any:
        if self._dynamodb is None:
            with self._lock:
                if self._dynamodb is None:
                    self._dynamodb = boto3.resource('dynamodb', **self._boto3_kwargs())
        return self._dynamodb

    @property
    def sqs_client(self) -> Any:
        if self._sqs_client is None:
            with self._lock:
                if self._sqs_client is None:
                    self._sqs_client = boto3.client('sqs', **self._boto3_kwargs())
        return self._sqs_client

    def schema(self, record_type: type) -> Schema:
        '''
        Get the schema of a record type, deriving it on first use.

        Args:
            record_type: The record class.

        Returns:
            The cached schema.
        '''
        schema = self._schemas.get(record_type)
        if schema is None:
            with self._lock:
                schema = self._schemas.get(record_type)
                if schema is None:
                    schema = derive_schema(record_type)
                    self._schemas[record_type] = schema
        return schema

    @staticmethod
    def store_name(record_type: type) -> str:
        '''
        Get the unprefixed table or queue name of a record type.

        The name is the record type's ``store_name`` attribute when set,
        otherwise the lower-cased class name.
        '''
        return getattr(record_type, 'store_name', None) or record_type.__name__.lower()

    def table(self, record_type: type) -> DynamoDbWrapper:
        '''
        Get the table wrapper of a record type, creating the table on first use if configured.

        Args:
            record_type: The table record class.

        Returns:
            The cached DynamoDbWrapper.

        Raises:
            StoreFaultException: If the table cannot be created.
        '''
        name = f"{self.config.get('table_prefix') or ''}{self.store_name(record_type)}"
        table = self._tables.get(name)
        if table is None:
            with self._lock:
                table = self._tables.get(name)
                if table is None:
                    table = DynamoDbWrapper(name, self.dynamodb)
                    if self.config.get('create_missing'):
                        with store_faults(f'Registry.table({name})'):
                            table.create_if_not_exists()
                    self._tables[name] = table
        return table

    def queue(self, record_type: type) -> SqsWrapper:
        '''
        Get the queue wrapper of a record type, creating the queue on first use if configured.

        Args:
            record_type: The queue record class.

        Returns:
            The cached SqsWrapper.

        Raises:
            StoreFaultException: If the queue cannot be created.
        '''
        name = f"{self.config.get('queue_prefix') or ''}{self.store_name(record_type)}"
        queue = self._queues.get(name)
        if queue is None:
            with self._lock:
                queue = self._queues.get(name)
                if queue is None:
                    queue = SqsWrapper(name, self.sqs_client)
                    if self.config.get('create_missing'):
                        with store_faults(f'Registry.queue({name})'):
                            queue.create_if_not_exists()
                    self._queues[name] = queue
        return queue

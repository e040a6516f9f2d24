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

# pylint: disable=missing-function-docstring, unused-argument, missing-module-docstring, redefined-outer-name
# mypy: disable-error-code=no-untyped-def

import os

from moto import mock_aws
import pytest

os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'
os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
os.environ['STORE_OBJECTS_REGION'] = 'us-east-1'
os.environ['STORE_OBJECTS_TABLE_PREFIX'] = 'test-'
os.environ['STORE_OBJECTS_QUEUE_PREFIX'] = 'test-'

# pylint:disable=wrong-import-position
from store_objects import Registry

TEST_CONFIG = {
    'region_name': 'us-east-1',
    'endpoint_url': None,
    'table_prefix': 'test-',
    'queue_prefix': 'test-',
    'create_missing': True,
    'visibility_timeout': 30,
}


@pytest.fixture()
def aws_setup():
    with mock_aws():
        os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'
        yield


@pytest.fixture
def registry(aws_setup):
    '''
    Registry backed by mocked DynamoDB and SQS, creating tables and queues on first use.
    '''
    return Registry(config=dict(TEST_CONFIG))


@pytest.fixture
def offline_registry():
    '''
    Registry for tests that never reach a store.
    '''
    return Registry(config=dict(TEST_CONFIG, create_missing=False))

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
Configuration module for the store objects data-access layer.

This module loads configuration from either a JSON file or environment variables,
providing fallback behavior for different deployment environments. The configuration
describes how tables and queues are located and how queue leases behave.

Configuration Keys:
    region_name: AWS region used for DynamoDB and SQS (None uses the boto3 default)
    endpoint_url: Custom endpoint URL (e.g. a local DynamoDB/SQS emulator)
    table_prefix: Prefix prepended to every table name
    queue_prefix: Prefix prepended to every queue name
    create_missing: Whether tables and queues are created on first use
    visibility_timeout: Lease duration in seconds for popped queue messages

Loading Strategy:
    1. Attempts to load from config.json in the same directory
    2. Falls back to environment variables if JSON file fails
    3. Logs error if JSON loading fails but continues with env vars

Environment Variables (fallback):
    STORE_OBJECTS_REGION: AWS region
    STORE_OBJECTS_ENDPOINT_URL: Custom endpoint URL
    STORE_OBJECTS_TABLE_PREFIX: Table name prefix
    STORE_OBJECTS_QUEUE_PREFIX: Queue name prefix
    STORE_OBJECTS_CREATE_MISSING: 'true' or 'false'
    STORE_OBJECTS_VISIBILITY_TIMEOUT: Lease duration in seconds

Usage:
    >>> from store_objects.config import CONFIG
    >>> CONFIG['visibility_timeout']
    30

Attributes:
    CONFIG_FILE: Path to the config.json file
    CONFIG: Dictionary containing all configuration values
    MAX_BATCH_SIZE: Maximum number of operations in one atomic table batch
    DEFAULT_EXPIRATION_TIME: Default queue message time-to-live in seconds
'''

from pathlib import Path
import json
import logging
import os

# Path to configuration file in the same directory as this module
CONFIG_FILE = Path(Path(__file__).parent, 'config.json')
logger = logging.getLogger()

MAX_BATCH_SIZE = 100
DEFAULT_EXPIRATION_TIME = 30 * 24 * 60 * 60
DEFAULT_VISIBILITY_TIMEOUT = 30


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


try:
    # Attempt to load configuration from JSON file
    with CONFIG_FILE.open(encoding='utf-8') as config_file:
        CONFIG = json.load(config_file)
except Exception as e:  # pylint: disable=broad-except
    # Fallback to environment variables if JSON file is missing or invalid
    logger.error(f'Error loading config file: {CONFIG_FILE}: {e}')
    CONFIG = {
        'region_name': os.getenv('STORE_OBJECTS_REGION'),
        'endpoint_url': os.getenv('STORE_OBJECTS_ENDPOINT_URL'),
        'table_prefix': os.getenv('STORE_OBJECTS_TABLE_PREFIX', ''),
        'queue_prefix': os.getenv('STORE_OBJECTS_QUEUE_PREFIX', ''),
        'create_missing': _env_flag('STORE_OBJECTS_CREATE_MISSING', True),
        'visibility_timeout': int(
            os.getenv('STORE_OBJECTS_VISIBILITY_TIMEOUT', DEFAULT_VISIBILITY_TIMEOUT)
        ),
    }

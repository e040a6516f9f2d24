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
Custom exceptions for table and queue store access.

This module defines the exception types raised by the store wrappers and the
batch engine. Point operations on records catch these and report them through
the record's error message; bulk operations let them propagate so that partial
completion is visible to the caller.
'''

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    from .batcher import BatchReport, BatchSlice


class NotFoundException(Exception):
    '''
    Exception raised when a point read finds no row for the given keys.

    Example:
        >>> if not item:
        ...     raise NotFoundException(f'No row for {partition_key}/{row_key}')
    '''


class StoreFaultException(Exception):
    '''
    Exception raised when a table or queue store call fails.

    This wraps botocore client errors and transport failures so callers do not
    need to depend on botocore exception types. The original exception is kept
    as ``__cause__``.
    '''


class ConcurrencyConflictException(StoreFaultException):
    '''
    Exception raised when a write is rejected by its optimistic-concurrency check.

    This happens when the version token carried by a record no longer matches
    the stored row (another writer updated or deleted it), or when a row that
    was required to exist is gone. A wildcard token ('*') bypasses the check.
    '''


class BatchFaultException(StoreFaultException):
    '''
    Exception raised when one or more batch slices could not be written.

    Slices are atomic individually but not collectively, so some slices may
    already be stored when this is raised. The report lists the slices that
    were written and ``failures`` lists the slices that were not, together with
    the error each one hit. Nothing is retried or rolled back.

    Attributes:
        report: The batch report of the slices that were written.
        failures: (slice, exception) pairs for the slices that failed.
    '''

    def __init__(
        self,
        message: str,
        report: Optional[BatchReport] = None,
        failures: Optional[List[tuple[BatchSlice, Exception]]] = None,
    ) -> None:
        super().__init__(message)
        self.report = report
        self.failures = failures or []


CONFLICT_ERROR_CODES = ('ConditionalCheckFailedException',)


@contextmanager
def store_faults(operation: str) -> Iterator[None]:
    '''
    Translate botocore errors raised inside the block into store exceptions.

    Args:
        operation: Name of the operation, used as the message prefix.

    Raises:
        ConcurrencyConflictException: If a conditional write was rejected.
        StoreFaultException: For any other client or transport error.
    '''
    try:
        yield
    except ClientError as e:
        code = e.response.get('Error', {}).get('Code')
        if code in CONFLICT_ERROR_CODES:
            raise ConcurrencyConflictException(f'{operation}: version conflict ({code})') from e
        raise StoreFaultException(f'{operation}: {e}') from e
    except BotoCoreError as e:
        raise StoreFaultException(f'{operation}: {e}') from e

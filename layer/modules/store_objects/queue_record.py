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
Queue record module carrying typed records through a message queue.

A QueueRecord subclass is sent to its own queue, serialized as ``name=value``
lines. A popped record holds the lease of its message until it is removed or
pushed again.

Example:
    >>> class Job(QueueRecord):
    ...     command = Field()
    >>> Job(registry, id='1', command='resize').push()
    True
    >>> job = Job(registry)
    >>> if job.pop():
    ...     run(job.command)
    ...     job.remove()
'''

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping, Optional

from sqs_wrapper import SqsMessage

from .config import DEFAULT_EXPIRATION_TIME, DEFAULT_VISIBILITY_TIMEOUT
from .exceptions import NotFoundException, StoreFaultException, store_faults
from .record import Record
from .schema import IdentityField

if TYPE_CHECKING:
    from sqs_wrapper import SqsWrapper

    from .registry import Registry

logger = logging.getLogger()


class QueueRecord(Record):
    '''
    Base class for records sent through a queue.

    Point operations never raise store errors: peek, pop and push return False
    and remove returns None, leaving the message in ``error``.

    Attributes:
        id: The identity field, carried in the message like any other field.
    '''

    id = IdentityField()

    def __init__(self, registry: Registry, **values: Optional[str]) -> None:
        super().__init__(registry, **values)
        self._message: Optional[SqsMessage] = None

    @property
    def queue(self) -> SqsWrapper:
        return self.registry.queue(type(self))

    @property
    def leased(self) -> bool:
        '''
        Whether the record holds the lease of a popped message.
        '''
        return self._message is not None and self._message.receipt_handle is not None

    def _receive(self, operation: str, visibility_timeout: int) -> Optional[SqsMessage]:
        self.error = ''
        try:
            with store_faults(f'{type(self).__name__}.{operation}'):
                message = self.queue.receive_message(visibility_timeout)
            if message is None:
                raise NotFoundException(f'{type(self).__name__}.{operation}: queue is empty')
        except (NotFoundException, StoreFaultException) as e:
            self._fail(e)
            return None

        self.copy_from_ini(message.body)
        self._mark_loaded()
        return message

    def peek(self) -> bool:
        '''
        Read the next message without taking it off the queue.

        The message stays visible to other receivers and no lease is held.

        Returns:
            True if a message was read. Otherwise False, with the reason in error.
        '''
        message = self._receive('peek', 0)
        if message is None:
            return False

        self._message = SqsMessage(message.message_id, message.body, expires_at=message.expires_at)
        return True

    def pop(self) -> bool:
        '''
        Read the next message and lease it.

        The message is hidden from other receivers for the configured
        visibility timeout and comes back unless it is removed in time.

        Returns:
            True if a message was read. Otherwise False, with the reason in error.
        '''
        visibility_timeout = int(
            self.registry.config.get('visibility_timeout') or DEFAULT_VISIBILITY_TIMEOUT
        )
        message = self._receive('pop', visibility_timeout)
        if message is None:
            return False

        self._message = message
        return True

    def push(
        self, expiration_time: int = DEFAULT_EXPIRATION_TIME, visibility_delay: int = 0
    ) -> bool:
        '''
        Send the record to its queue.

        Without a lease a new message is sent. With a lease the leased message
        is replaced by the current content and becomes visible again after
        visibility_delay seconds; the lease ends unless the content is unchanged.

        Args:
            expiration_time: Seconds after which a new message is discarded.
            visibility_delay: Seconds before the message becomes visible.

        Returns:
            True if sent. Otherwise False, with the reason in error.
        '''
        self.error = ''
        body = self.export_as_ini()
        try:
            with store_faults(f'{type(self).__name__}.push'):
                if not self.leased:
                    self._message = self.queue.send_message(body, expiration_time, visibility_delay)
                elif body == self._message.body:  # type: ignore[union-attr]
                    self.queue.change_visibility(
                        self._message, visibility_delay  # type: ignore[arg-type]
                    )
                else:
                    self._message = self.queue.update_message(
                        self._message, body, visibility_delay  # type: ignore[arg-type]
                    )
        except StoreFaultException as e:
            return self._fail(e)

        return True

    @classmethod
    def push_values(
        cls,
        registry: Registry,
        values: Optional[Mapping[str, Optional[str]]],
        expiration_time: int = DEFAULT_EXPIRATION_TIME,
        visibility_delay: int = 0,
    ) -> bool:
        '''
        Build a record from a mapping of field values and push it.
        '''
        record = cls(registry)
        record.copy_from_dict(dict(values or {}))
        return record.push(expiration_time, visibility_delay)

    def remove(self) -> None:
        '''
        Delete the popped message from the queue and drop the lease.

        A message that is already gone (lease expired and redelivered) is not an error.
        '''
        if self._message is None:
            return

        self.error = ''
        message, self._message = self._message, None
        if message.receipt_handle is None:
            self.error = (
                f'{type(self).__name__}.remove: message {message.message_id} was not popped'
            )
            logger.error(self.error)
            return

        try:
            with store_faults(f'{type(self).__name__}.remove'):
                if not self.queue.delete_message(message):
                    logger.info(f'Message {message.message_id} was already removed')
        except StoreFaultException as e:
            self._message = message
            self._fail(e)

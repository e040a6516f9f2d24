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
SQS wrapper module for leased queue operations.

This module provides a simplified interface for common SQS operations on a
single named queue: sending messages with a time-to-live and an initial delay,
receiving them with a lease (visibility timeout), replacing a leased message
and deleting it by its lease token (receipt handle).
'''

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

EXPIRES_AT = 'ExpiresAt'
MAX_DELAY_SECONDS = 900
MAX_EXPIRED_SKIPS = 10

logger = logging.getLogger()


@dataclass
class SqsMessage:
    '''
    A queue message as seen by one receiver.

    Attributes:
        message_id: The SQS message ID.
        body: The message payload.
        receipt_handle: The lease token, set only when the message was received.
        expires_at: Epoch seconds after which the message is discarded.
    '''

    message_id: str
    body: str
    receipt_handle: Optional[str] = None
    expires_at: Optional[float] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now if now is not None else time.time())


class SqsWrapper:
    '''
    A wrapper class for SQS operations on one queue.

    SQS has no per-message time-to-live, so the expiration is carried as a
    message attribute and expired messages are deleted when they are received.

    Attributes:
        sqs_client: The boto3 SQS client.
        queue_name: The name of the queue.
        queue_url: The URL of the queue, resolved lazily.
    '''

    ClientException = ClientError

    def __init__(self, queue_name: str, sqs_client: Optional[Any] = None) -> None:
        self.sqs_client = sqs_client if sqs_client is not None else boto3.client('sqs')
        self.queue_name = queue_name
        self.queue_url: Optional[str] = None

    def create_if_not_exists(self) -> None:
        '''
        Create the queue if it does not exist and remember its URL.
        '''
        self.queue_url = self.sqs_client.create_queue(QueueName=self.queue_name)['QueueUrl']

    def _get_queue_url(self) -> str:
        if self.queue_url is None:
            self.queue_url = self.sqs_client.get_queue_url(QueueName=self.queue_name)['QueueUrl']
        return self.queue_url

    def send_message(
        self, message: str, expiration_time: Optional[int] = None, delay_seconds: int = 0
    ) -> SqsMessage:
        '''
        Send a message to the queue.

        Args:
            message: The message body.
            expiration_time: Seconds after which the message is discarded.
            delay_seconds: Seconds before the message becomes visible. Clamped
                           to the SQS maximum of 900 seconds.

        Returns:
            The sent message, without a lease token.
        '''
        if delay_seconds > MAX_DELAY_SECONDS:
            logger.warning(
                f'Delay of {delay_seconds}s exceeds the SQS maximum, using {MAX_DELAY_SECONDS}s'
            )
            delay_seconds = MAX_DELAY_SECONDS

        expires_at = time.time() + expiration_time if expiration_time else None
        kwargs: dict[str, Any] = {}
        if expires_at is not None:
            kwargs['MessageAttributes'] = {
                EXPIRES_AT: {'DataType': 'Number', 'StringValue': str(int(expires_at))},
            }

        response = self.sqs_client.send_message(
            QueueUrl=self._get_queue_url(),
            MessageBody=message,
            DelaySeconds=max(delay_seconds, 0),
            **kwargs,
        )
        return SqsMessage(response['MessageId'], message, expires_at=expires_at)

    def receive_message(self, visibility_timeout: int) -> Optional[SqsMessage]:
        '''
        Receive one message and lease it for the given number of seconds.

        A visibility timeout of 0 leaves the message visible to other
        receivers, which makes the receive a non-destructive peek.

        Args:
            visibility_timeout: Lease duration in seconds.

        Returns:
            The received message with its lease token, or None if the queue is empty.
        '''
        for _ in range(MAX_EXPIRED_SKIPS):
            response = self.sqs_client.receive_message(
                QueueUrl=self._get_queue_url(),
                MaxNumberOfMessages=1,
                VisibilityTimeout=visibility_timeout,
                MessageAttributeNames=[EXPIRES_AT],
                WaitTimeSeconds=0,
            )
            messages: list[dict] = response.get('Messages', [])
            if not messages:
                return None

            raw = messages[0]
            expires_at = raw.get('MessageAttributes', {}).get(EXPIRES_AT, {}).get('StringValue')
            message = SqsMessage(
                raw['MessageId'],
                raw['Body'],
                receipt_handle=raw['ReceiptHandle'],
                expires_at=float(expires_at) if expires_at else None,
            )
            if not message.is_expired():
                return message

            logger.warning(
                f'Discarding expired message {message.message_id} from {self.queue_name}'
            )
            self.delete_message(message)

        return None

    def update_message(self, message: SqsMessage, body: str, delay_seconds: int = 0) -> SqsMessage:
        '''
        Replace the content of a leased message.

        SQS cannot rewrite a message body in place, so the new content is sent
        as a new message (keeping the original expiration) and the leased one
        is deleted.

        Args:
            message: The leased message to replace.
            body: The new message body.
            delay_seconds: Seconds before the new content becomes visible.

        Returns:
            The replacement message, without a lease token.
        '''
        remaining = None
        if message.expires_at is not None:
            remaining = max(int(message.expires_at - time.time()), 1)

        replacement = self.send_message(body, remaining, delay_seconds)
        self.delete_message(message)
        return replacement

    def change_visibility(self, message: SqsMessage, visibility_timeout: int) -> None:
        '''
        Extend or shorten the lease of a received message.

        Args:
            message: The leased message.
            visibility_timeout: New lease duration in seconds from now.
        '''
        self.sqs_client.change_message_visibility(
            QueueUrl=self._get_queue_url(),
            ReceiptHandle=message.receipt_handle,
            VisibilityTimeout=visibility_timeout,
        )

    def delete_message(self, message: SqsMessage) -> bool:
        '''
        Delete a received message by its lease token.

        Args:
            message: The leased message.

        Returns:
            True if deleted, False if the lease token is no longer valid.
        '''
        try:
            self.sqs_client.delete_message(
                QueueUrl=self._get_queue_url(),
                ReceiptHandle=message.receipt_handle,
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != 'ReceiptHandleIsInvalid':
                raise
            return False

        return True

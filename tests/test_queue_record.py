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

# pylint: disable=missing-function-docstring, missing-module-docstring, protected-access
# mypy: disable-error-code=no-untyped-def

import time
from unittest.mock import patch

from store_objects import Registry
from sample_records import Job


def test_push_pop_remove(registry):
    assert Job(registry, id='1', command='run').push()

    job = Job(registry)
    assert job.pop()
    assert job.error == ''
    assert job.leased
    assert job.is_loaded()
    assert job.export_as_dict() == {'id': '1', 'command': 'run', 'attempts': '0'}

    assert job.remove() is None
    assert job.error == ''
    assert not job.leased

    assert not Job(registry).pop()


def test_pop_empty_queue(registry):
    job = Job(registry)

    assert not job.pop()
    assert job.error == 'Job.pop: queue is empty'
    assert not job.is_loaded()


def test_queue_name_uses_prefix(registry):
    assert registry.queue(Job).queue_name == 'test-job'


def test_peek_leaves_message_visible(registry):
    Job(registry, id='1', command='run').push()

    first = Job(registry)
    assert first.peek()
    assert not first.leased
    assert first.command == 'run'

    second = Job(registry)
    assert second.peek()
    assert second.command == 'run'

    assert Job(registry).pop()


def test_remove_after_peek_is_reported(registry):
    Job(registry, id='1', command='run').push()
    job = Job(registry)
    job.peek()

    job.remove()

    assert 'was not popped' in job.error
    assert Job(registry).pop()


def test_remove_without_message(registry):
    job = Job(registry)

    assert job.remove() is None
    assert job.error == ''


def test_push_leased_message_replaces_content(registry):
    Job(registry, id='1', command='run', attempts='0').push()
    job = Job(registry)
    job.pop()

    job.attempts = '1'
    assert job.push()
    assert not job.leased

    retry = Job(registry)
    assert retry.pop()
    assert retry.attempts == '1'
    retry.remove()
    assert not Job(registry).pop()


def test_push_leased_message_unchanged_releases_lease(registry):
    Job(registry, id='1', command='run').push()
    job = Job(registry)
    job.pop()
    assert not Job(registry).pop()

    assert job.push(visibility_delay=0)
    assert job.leased

    again = Job(registry)
    assert again.pop()
    assert again.command == 'run'


def test_push_values(registry):
    assert Job.push_values(registry, {'id': '9', 'command': 'resize', 'unknown': 'x'})

    job = Job(registry)
    assert job.pop()
    assert job.export_as_dict() == {'id': '9', 'command': 'resize', 'attempts': '0'}


def test_expired_message_is_discarded(registry, caplog):
    Job(registry, id='1', command='run').push(expiration_time=5)

    with patch('sqs_wrapper.time') as mock_time:
        mock_time.time.return_value = time.time() + 60
        job = Job(registry)
        assert not job.pop()

    assert 'Discarding expired message' in caplog.text
    assert not Job(registry).peek()


def test_delay_is_clamped(registry, caplog):
    assert Job(registry, id='1', command='later').push(visibility_delay=3600)

    assert 'exceeds the SQS maximum' in caplog.text


def test_queue_operations_do_not_raise(aws_setup):
    registry = Registry(config={'region_name': 'us-east-1', 'create_missing': False})
    job = Job(registry, id='1')

    assert not job.push()
    assert job.error.startswith('Job.push:')
    assert not job.pop()
    assert job.error.startswith('Job.pop:')
    assert not job.peek()
    assert job.error.startswith('Job.peek:')

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

# pylint: disable=missing-class-docstring, missing-function-docstring, missing-module-docstring
# mypy: disable-error-code=no-untyped-def

from dataclasses import dataclass
import json
from typing import List, Tuple

import pytest

from store_objects.codec import parse_ini
from sample_records import Customer, Job


def test_export_as_ini(offline_registry):
    customer = Customer(offline_registry, 'eu', 'c-1', email='ada@example.com')

    assert customer.export_as_ini() == (
        'id=c-1\n'
        'name=anonymous\n'
        'email=ada@example.com\n'
        'tier=\n'
    )


def test_ini_round_trip(offline_registry):
    job = Job(offline_registry, id='7', command='resize --width=10', attempts='2')

    copy = Job(offline_registry)
    copy.copy_from_ini(job.export_as_ini())

    assert copy.export_as_dict() == job.export_as_dict()
    assert copy.command == 'resize --width=10'


def test_ini_multi_line_value_is_cut_at_line_break(offline_registry):
    job = Job(offline_registry, id='7', command='first\r\nsecond=part', attempts='2')

    copy = Job(offline_registry)
    copy.copy_from_ini(job.export_as_ini())

    assert copy.command == 'first'
    assert copy.attempts == '2'


@dataclass
class ParseScenario:
    name: str
    text: str
    expected: List[Tuple[str, str]]

    def __str__(self):
        return self.name


PARSE_SCENARIOS = [
    ParseScenario(name='lf', text='a=1\nb=2\n', expected=[('a', '1'), ('b', '2')]),
    ParseScenario(name='crlf', text='a=1\r\nb=2', expected=[('a', '1'), ('b', '2')]),
    ParseScenario(name='cr', text='a=1\rb=2\r', expected=[('a', '1'), ('b', '2')]),
    ParseScenario(name='split_on_first_equals', text='a=x=y', expected=[('a', 'x=y')]),
    ParseScenario(name='empty_value', text='a=', expected=[('a', '')]),
    ParseScenario(name='malformed_lines_skipped', text='junk\n=1\na=1', expected=[('a', '1')]),
]


@pytest.mark.parametrize('test_case', PARSE_SCENARIOS, ids=str)
def test_parse_ini(test_case: ParseScenario):
    assert list(parse_ini(test_case.text)) == test_case.expected


def test_export_as_json(offline_registry):
    customer = Customer(offline_registry, 'eu', 'c-1', tier='silver')

    assert json.loads(customer.export_as_json()) == {
        'id': 'c-1',
        'name': 'anonymous',
        'email': '',
        'tier': 'silver',
    }
    assert json.loads(customer.export_as_json(['tier'])) == {'tier': 'silver'}


def test_copy_from_json_resets_missing_fields(offline_registry):
    customer = Customer(offline_registry, 'eu', 'c-1', name='Ada', tier='silver')

    customer.copy_from_json('{"id": "c-2", "email": "x@example.com", "tier": 3}')

    assert customer.id == 'c-2'
    assert customer.name == 'anonymous'
    assert customer.email == 'x@example.com'
    assert customer.tier == '3'


def test_export_as_html(offline_registry):
    job = Job(offline_registry, id='1', command='<b>&</b>')

    assert job.export_as_html('<td>', '<td>', '', '') == (
        '<td>id</td><td>1</td>\n'
        '<td>command</td><td>&lt;b&gt;&amp;&lt;/b&gt;</td>\n'
        '<td>attempts</td><td>0</td>\n'
    )


def test_export_as_html_defaults(offline_registry):
    job = Job(offline_registry, id='1', command='run')

    assert job.export_as_html() == 'id=1<br />\ncommand=run<br />\nattempts=0<br />\n'


def test_copy_from_dict(offline_registry):
    job = Job(offline_registry, command='old')

    job.copy_from_dict({'command': 'new', 'attempts': None, 'unknown': 'x'})

    assert job.export_as_dict() == {'id': None, 'command': 'new', 'attempts': '0'}

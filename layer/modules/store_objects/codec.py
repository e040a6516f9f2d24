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
Text export and import of record fields.

The INI form (one ``name=value`` line per schema field) is the queue payload
and the canonical text export. JSON and HTML forms are provided for display
and interchange.
'''

from __future__ import annotations

import html
import json
import re
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

if TYPE_CHECKING:
    from .record import Record

_LINE_BREAK = re.compile(r'\r\n|\r|\n')


def _value(record: Record, name: str) -> str:
    value = record.get_field(name)
    return '' if value is None else value


def export_as_ini(record: Record) -> str:
    '''
    Export the schema fields as ``name=value`` lines in schema order.

    Values are written verbatim. Multi-line values are not supported: a CR or
    LF inside a value starts a new line when the text is parsed back.
    '''
    return ''.join(f'{name}={_value(record, name)}\n' for name in record.schema.names)


def parse_ini(ini_data: str) -> Iterator[tuple[str, str]]:
    '''
    Parse ``name=value`` lines.

    Lines may end with CR, LF or CRLF. Each line is split on its first '='.
    Lines without a name before the '=' are skipped.

    Args:
        ini_data: The text to parse.

    Yields:
        (name, value) pairs in text order.
    '''
    for line in _LINE_BREAK.split(ini_data):
        separator = line.find('=')
        if separator > 0:
            yield line[:separator], line[separator + 1:]


def copy_from_ini(record: Record, ini_data: Optional[str]) -> None:
    if ini_data is None:
        return
    for name, value in parse_ini(ini_data):
        record.set_field(name, value)


def export_as_json(record: Record, keys: Optional[Iterable[str]] = None) -> str:
    '''
    Export fields as a flat JSON object of strings.

    Args:
        record: The record to export.
        keys: Field names to export. Defaults to every schema field.

    Returns:
        The JSON text.
    '''
    names = list(keys) if keys is not None else record.schema.names
    return json.dumps({name: _value(record, name) for name in names})


def copy_from_json(record: Record, json_data: Optional[str]) -> None:
    '''
    Set every schema field from a JSON object.

    Fields missing from the object are reset to their defaults. Non-string
    values are stored in their JSON text form.
    '''
    if json_data is None:
        return

    data = json.loads(json_data)
    for name in record.schema.names:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            value = json.dumps(value)
        record.set_field(name, value)


def _closing(tag: str) -> str:
    return tag.replace('<', '</')


def export_as_html(
    record: Record,
    name_tag: str = '',
    value_tag: str = '',
    value_delimiter: str = '=',
    property_delimiter: str = '<br />',
) -> str:
    '''
    Export the schema fields as HTML, one field per line.

    Each line is ``<name_tag>name</name_tag>`` followed by the value
    delimiter, ``<value_tag>value</value_tag>`` and the property delimiter.
    Closing tags are derived from the opening tags. Values are HTML-escaped.

    Example:
        >>> export_as_html(record, '<td>', '<td>', '', '')
        '<td>id</td><td>42</td>\\n...'
    '''
    return ''.join(
        f'{name_tag}{name}{_closing(name_tag)}{value_delimiter}'
        f'{value_tag}{html.escape(_value(record, name))}{_closing(value_tag)}'
        f'{property_delimiter}\n'
        for name in record.schema.names
    )


def export_as_dict(record: Record) -> dict[str, Optional[str]]:
    return {name: record.get_field(name) for name in record.schema.names}


def copy_from_dict(record: Record, data: Optional[dict]) -> None:
    if data is None:
        return
    for name, value in data.items():
        record.set_field(name, value)

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
Record module providing the field accessor shared by table and queue records.

This module provides the Record base class: generic get/set of a named field
as a string with default resolution, the load time bookkeeping and the text
export and import helpers.
'''

from __future__ import annotations

from datetime import datetime, timedelta, UTC
import logging
from typing import TYPE_CHECKING, Any, ClassVar, Iterable, Mapping, Optional

from . import codec
from .schema import Field, Schema, resolve_value

if TYPE_CHECKING:
    from .registry import Registry

logger = logging.getLogger()

DEFAULT_LOAD_TIME = datetime(1900, 1, 1, tzinfo=UTC)


class Record:
    '''
    Base class for typed records stored as string fields.

    Subclasses declare their fields with Field descriptors and may provide a
    ``defaults`` mapping used for fields that are unset.

    Attributes:
        defaults: Per-type default values by field name.
        store_name: Optional table or queue name. Defaults to the lower-cased class name.
        registry: The registry the record resolves its schema and store through.
        error: The message of the last failed point operation, or ''.
        load_time: When the record was last loaded, DEFAULT_LOAD_TIME if never.
    '''

    defaults: ClassVar[Mapping[str, str]] = {}
    store_name: ClassVar[Optional[str]] = None

    def __init__(self, registry: Registry, **values: Optional[str]) -> None:
        self.registry = registry
        self._values: dict[str, Optional[str]] = {}
        self.error = ''
        self.load_time = DEFAULT_LOAD_TIME
        for name, value in values.items():
            self.set_field(name, value)

    @property
    def schema(self) -> Schema:
        return self.registry.schema(type(self))

    def _field(self, name: str) -> Optional[Field]:
        schema_field = self.schema.field(name)
        if schema_field is None:
            # Fields declared with persisted=False are reachable by attribute only.
            attribute = getattr(type(self), name, None)
            if isinstance(attribute, Field):
                return attribute
        return schema_field

    def get_field(self, name: str) -> Optional[str]:
        '''
        Get the effective value of a field.

        Args:
            name: The field name.

        Returns:
            The stored value, else the field default, else None. Unknown
            names return None.
        '''
        schema_field = self._field(name)
        if schema_field is None:
            return None

        return resolve_value(schema_field.get_raw(self), self.schema.defaults, name)

    def set_field(self, name: str, value: Any) -> None:
        '''
        Set a field from a string value.

        Setting None resets the field to its default rather than clearing it.
        Non-string values are stored as their string form. Unknown names are
        ignored.

        Args:
            name: The field name.
            value: The new value, or None to reset to the default.
        '''
        schema_field = self._field(name)
        if schema_field is None:
            logger.debug(f'Ignoring unknown field {name} for {type(self).__name__}')
            return

        if value is None:
            value = self.schema.defaults.get(name)
        elif not isinstance(value, str):
            value = str(value)
        schema_field.set_raw(self, value)

    def add_collection(self, collection: Optional[Mapping[str, Optional[str]]]) -> None:
        '''
        Set the schema fields present in a mapping with a non-None value.
        '''
        if collection is None:
            return
        for name in self.schema.names:
            value = collection.get(name)
            if value is not None:
                self.set_field(name, value)

    def is_loaded(self) -> bool:
        return self.is_loaded_since(DEFAULT_LOAD_TIME)

    def is_loaded_since(self, time: datetime) -> bool:
        return self.load_time > time

    def _mark_loaded(self) -> None:
        self.load_time = datetime.now(UTC)

    def _loaded_within(self, period: float) -> bool:
        return self.is_loaded_since(datetime.now(UTC) - timedelta(seconds=period))

    def _fail(self, e: Exception) -> bool:
        self.error = str(e)
        logger.error(self.error)
        return False

    def export_as_ini(self) -> str:
        return codec.export_as_ini(self)

    def export_as_json(self, keys: Optional[Iterable[str]] = None) -> str:
        return codec.export_as_json(self, keys)

    def export_as_html(
        self,
        name_tag: str = '',
        value_tag: str = '',
        value_delimiter: str = '=',
        property_delimiter: str = '<br />',
    ) -> str:
        return codec.export_as_html(self, name_tag, value_tag, value_delimiter, property_delimiter)

    def export_as_dict(self) -> dict[str, Optional[str]]:
        return codec.export_as_dict(self)

    def copy_from_ini(self, ini_data: Optional[str]) -> None:
        codec.copy_from_ini(self, ini_data)

    def copy_from_json(self, json_data: Optional[str]) -> None:
        codec.copy_from_json(self, json_data)

    def copy_from_dict(self, data: Optional[dict]) -> None:
        codec.copy_from_dict(self, data)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.export_as_dict()!r})'

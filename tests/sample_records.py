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

# pylint: disable=missing-class-docstring, missing-module-docstring

from store_objects import Field, QueueRecord, TableRecord


class Customer(TableRecord):
    store_name = 'customers'

    name = Field(default='anonymous')
    email = Field()
    tier = Field(column='Tier')
    note = Field(persisted=False)


class VipCustomer(Customer):
    store_name = 'vip_customers'
    defaults = {'tier': 'gold'}

    level = Field(default='1')


class Reordered(Customer):
    email = Field()


class Plain(TableRecord):
    a = Field()
    b = Field()


class Empty(TableRecord):
    hidden = Field(persisted=False)


class Job(QueueRecord):
    command = Field()
    attempts = Field(default='0')

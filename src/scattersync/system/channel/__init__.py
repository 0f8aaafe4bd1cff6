# Copyright (C) 2024 Josua Krause
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Channels are the only shared state between the processes of scattersync
apart from the filesystem. A channel multiplexes three bounded message types:
`push` and `pull` tasks are sent by the scheduler and consumed by the
respective workers while `result` messages travel the other way. Additionally,
a channel provides one exclusive lock per node. The control process creates
the channel before starting any worker and closes it exactly once on
shutdown."""

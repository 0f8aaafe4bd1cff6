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
"""Event types for the logging system."""
import datetime
from typing import Literal, NotRequired, TypedDict

from scattersync.system.base import ResultStatus, TransferMode
from scattersync.system.logger.context import ContextInfo
from scattersync.system.logger.error import ErrorCode
from scattersync.system.node.readiness import NodeState


ErrorEvent = TypedDict('ErrorEvent', {
    "name": Literal["error"],
    "message": str,
    "traceback": list[str],
    "code": ErrorCode,
})
"""An event to report errors."""


WarningEvent = TypedDict('WarningEvent', {
    "name": Literal["warning"],
    "message": str,
})
"""A event to report warnings."""


NoticeEvent = TypedDict('NoticeEvent', {
    "name": Literal["notice"],
    "message": str,
})
"""A normal but significant condition (e.g., startup or configuration
reloads)."""


TaskEvent = TypedDict('TaskEvent', {
    "name": Literal["task"],
    "action": Literal["schedule", "complete", "process", "done"],
    "node": str,
    "mode": NotRequired[TransferMode],
    "batches": NotRequired[list[str]],
    "result": NotRequired[ResultStatus],
})
"""Event to report tasks being scheduled, processed, or completed."""


BatchEvent = TypedDict('BatchEvent', {
    "name": Literal["batch"],
    "action": Literal["link", "backup", "unlink", "move", "delete"],
    "batch": str,
    "target": NotRequired[str],
})
"""Event to report filesystem operations on batch files."""


CommandEvent = TypedDict('CommandEvent', {
    "name": Literal["command"],
    "command": str,
    "input_size": int,
    "status": NotRequired[int],
    "stderr": NotRequired[str],
    "dry_run": NotRequired[bool],
})
"""Event to report the execution of an external command."""


NodeEvent = TypedDict('NodeEvent', {
    "name": Literal["node"],
    "node": str,
    "state": NodeState,
    "until": float,
})
"""Event to indicate that a node changed its readiness state."""


ProcessEvent = TypedDict('ProcessEvent', {
    "name": Literal["process"],
    "action": Literal["start", "stop", "shutdown"],
    "ident": str,
    "pid": NotRequired[int],
})
"""Event to indicate that a worker process has been started or stopped."""


AnyEvent = (
    ErrorEvent
    | WarningEvent
    | NoticeEvent
    | TaskEvent
    | BatchEvent
    | CommandEvent
    | NodeEvent
    | ProcessEvent
)
"""An event that can be logged to the event stream."""


EventInfo = TypedDict('EventInfo', {
    "when": datetime.datetime,
    "name": str,
    "ctx": ContextInfo,
    "event": AnyEvent,
})
"""Full information and context for events that can be logged to the event
stream."""

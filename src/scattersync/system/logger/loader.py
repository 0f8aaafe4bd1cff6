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
"""Loads event stream listeners, i.e., logging backends."""
from typing import Literal, TypedDict

from typing_extensions import NotRequired

from scattersync.system.logger.log import EventListener, EventStream
from scattersync.system.plugins import create_plugin, is_plugin_name


StdoutListenerDef = TypedDict('StdoutListenerDef', {
    "name": Literal["stdout"],
    "show_debug": NotRequired[bool],
})
"""Listens to (almost) all events and prints them to stdout. If `show_debug`
is not set the `log_debug` setting of the configuration decides."""


EventListenerDef = StdoutListenerDef
"""Event listener configurations."""


LoggerDef = TypedDict('LoggerDef', {
    "listeners": list[EventListenerDef],
    "disable_events": NotRequired[list[str]],
})
"""Define the logger. `listeners` is a list of all listeners that process the
logs. `disable_events` is list of patterns to filter or include certain log
types."""


DEFAULT_LOGGER: LoggerDef = {
    "listeners": [{"name": "stdout"}],
}
"""The logger used if the configuration does not specify one."""


def load_event_listener(
        eldef: EventListenerDef,
        disable_events: list[str],
        *,
        log_debug: bool) -> EventListener:
    """
    Load the event listener for the given configuration. If `name` is set to
    a fully qualified python module the listener is loaded as plugin.

    Args:
        eldef (EventListenerDef): The configuration.
        disable_events (list[str]): Which events to ignore.
        log_debug (bool): Whether debug events are shown by default.

    Raises:
        ValueError: If the configuration is invalid.

    Returns:
        EventListener: The event listener.
    """
    # pylint: disable=import-outside-toplevel
    if is_plugin_name(eldef["name"]):
        return create_plugin(
            EventListener, dict(eldef), disable_events=disable_events)
    if eldef["name"] == "stdout":
        from scattersync.system.logger.listeners.stdout import StdoutListener
        return StdoutListener(
            disable_events=disable_events,
            show_debug=eldef.get("show_debug", log_debug))
    raise ValueError(f"unknown event listener: {eldef['name']}")


def setup_event_stream(
        logger: EventStream,
        logger_def: LoggerDef,
        *,
        log_debug: bool) -> EventStream:
    """
    (Re-)Installs all listeners of the logger definition.

    Args:
        logger (EventStream): The event stream.
        logger_def (LoggerDef): The logger definition.
        log_debug (bool): Whether debug events are shown by default.

    Returns:
        EventStream: The event stream.
    """
    disable_events = logger_def.get("disable_events", [])
    listeners = [
        load_event_listener(eldef, disable_events, log_debug=log_debug)
        for eldef in logger_def["listeners"]
    ]
    logger.clear_listeners()
    for listener in listeners:
        logger.add_listener(listener)
    return logger

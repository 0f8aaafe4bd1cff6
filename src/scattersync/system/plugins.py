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
"""Allows replacing channels or log listeners with custom implementations.
A module definition whose `name` contains a `.` is interpreted as python module
holding the implementation."""
import importlib
from typing import Any, TypeVar

from scattersync.system.util import full_name


T = TypeVar('T')


PLUGIN_CACHE: dict[tuple[str, str], type] = {}
"""Previously resolved plugins by base type name and module name."""


def is_plugin_name(name: str) -> bool:
    """
    Whether a module name refers to a plugin instead of a builtin
    implementation.

    Args:
        name (str): The name from the module definition.

    Returns:
        bool: True, if the name is a fully qualified python module.
    """
    return "." in name


def load_plugin(base: type[T], name: str) -> type[T]:
    """
    Resolves the implementation of a plugin. The python module must be
    importable from the current process and must define exactly one
    sub-class of the base class. Imported classes do not count.

    Args:
        base (type[T]): The expected base type.
        name (str): The fully qualified name of the python module.

    Raises:
        ValueError: If there is no or more than one candidate in the module.

    Returns:
        type[T]: The implementation.
    """
    key = (full_name(base), name)
    res = PLUGIN_CACHE.get(key)
    if res is not None:
        return res
    mod = importlib.import_module(name)
    candidates = [
        cls
        for cls in vars(mod).values()
        if isinstance(cls, type)
        and cls.__module__ == name
        and issubclass(cls, base)
    ]
    if len(candidates) != 1:
        names = sorted(cand.__name__ for cand in candidates)
        raise ValueError(
            f"ambiguous or missing plugin for {key[0]} in {name}: {names}")
    res = candidates[0]
    PLUGIN_CACHE[key] = res
    return res


def create_plugin(base: type[T], module: dict[str, Any], **kwargs: Any) -> T:
    """
    Instantiates a plugin from its module definition. All fields of the
    definition except `name` are passed as keyword arguments.

    Args:
        base (type[T]): The expected base type.
        module (dict[str, Any]): The module definition.
        **kwargs (Any): Additional keyword arguments.

    Returns:
        T: The plugin instance.
    """
    args = dict(module)
    plugin = load_plugin(base, f"{args.pop('name')}")
    args.update(kwargs)
    return plugin(**args)

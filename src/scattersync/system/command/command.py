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
"""Runs external commands. Placeholders in the command are replaced with
shell quoted values. Input is fed through stdin in chunks while stderr is
drained without blocking so that neither pipe can fill up and stall the
command."""
import os
import re
import shlex
import subprocess
import time
from typing import IO

from scattersync.system.config.config import Config


PH_BATCH = "%b"
"""The batch file or `-` if the batch is provided through stdin."""
PH_SOURCE = "%s"
"""The source location."""
PH_DEST = "%d"
"""The destination location."""


WRITE_CHUNK = 8192
"""The maximum number of bytes written to stdin per iteration."""
READ_CHUNK = 1024
"""The maximum number of bytes read from stderr per iteration."""
IDLE_WAIT = 0.1
"""The wait time in seconds if an iteration had no activity."""


def substitute(command: str, subst: dict[str, str]) -> str:
    """
    Replaces placeholders with shell quoted values. Replacements happen in a
    single pass, i.e., placeholders in values are not replaced.

    Args:
        command (str): The command.
        subst (dict[str, str]): Maps placeholders to their values.

    Returns:
        str: The final command.
    """
    if not subst:
        return command
    keys = sorted(subst, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(key) for key in keys))
    return pattern.sub(
        lambda match: shlex.quote(subst[match.group(0)]), command)


def _read_available(fd: int) -> bytes | None:
    try:
        return os.read(fd, READ_CHUNK)
    except BlockingIOError:
        return None


def _close_quietly(stream: IO[bytes] | None) -> None:
    if stream is None:
        return
    try:
        stream.close()
    except BrokenPipeError:
        pass


def _communicate(
        proc: subprocess.Popen[bytes], input_data: bytes) -> tuple[int, bytes]:
    """
    Feeds input to the process and collects its stderr until it exits.

    Args:
        proc (subprocess.Popen[bytes]): The running process.
        input_data (bytes): The input.

    Returns:
        tuple[int, bytes]: The number of bytes written and the content of
            stderr.
    """
    assert proc.stderr is not None
    err_fd = proc.stderr.fileno()
    os.set_blocking(err_fd, False)
    stdin = proc.stdin
    if stdin is not None:
        os.set_blocking(stdin.fileno(), False)
    view = memoryview(input_data)
    pos = 0
    err = bytearray()
    while proc.poll() is None:
        active = False
        if stdin is not None and pos < len(view):
            try:
                written = os.write(
                    stdin.fileno(), view[pos:pos + WRITE_CHUNK])
                pos += written
                active = written > 0
            except BlockingIOError:
                pass
            except BrokenPipeError:
                _close_quietly(stdin)
                stdin = None
        if stdin is not None and pos >= len(view):
            _close_quietly(stdin)
            stdin = None
        chunk = _read_available(err_fd)
        if chunk:
            err.extend(chunk)
            active = True
        if not active:
            time.sleep(IDLE_WAIT)
    _close_quietly(stdin)
    while True:
        chunk = _read_available(err_fd)
        if not chunk:
            break
        err.extend(chunk)
    proc.stderr.close()
    return pos, bytes(err)


def execute_command(
        config: Config,
        command: str,
        subst: dict[str, str],
        input_data: bytes = b"") -> bool:
    """
    Executes a command through the shell. The checkfile has to exist. In
    dry-run mode the command is only logged.

    Args:
        config (Config): The configuration.
        command (str): The command with placeholders.
        subst (dict[str, str]): Maps placeholders to their values.
        input_data (bytes, optional): The input for the command. If empty,
            the command gets no stdin pipe. Defaults to b"".

    Returns:
        bool: Whether the command consumed all of its input and exited with
            an accepted status.
    """
    if not config.check_file():
        return False
    logger = config.get_logger()
    final_cmd = substitute(command, subst)
    is_dry_run = config.is_dry_run()
    logger.log_lazy(
        "debug.command.execute",
        lambda: {
            "name": "command",
            "command": final_cmd,
            "input_size": len(input_data),
            "dry_run": is_dry_run,
        })
    if is_dry_run:
        return True
    try:
        proc = subprocess.Popen(  # pylint: disable=consider-using-with
            final_cmd,
            shell=True,
            stdin=subprocess.PIPE if input_data else subprocess.DEVNULL,
            stdout=None if config.is_log_debug() else subprocess.DEVNULL,
            stderr=subprocess.PIPE)
    except OSError:
        logger.log_error(
            "error.command.spawn",
            "spawn",
            message=f"unable to execute {final_cmd}")
        return False
    written, err = _communicate(proc, input_data)
    status = proc.wait()
    err_str = err.decode("utf-8", errors="replace")
    if written != len(input_data):
        logger.log_error(
            "error.command.length",
            "length_mismatch",
            message=(
                f"length mismatch {len(input_data)} -> {written} "
                f"for {final_cmd}, status {status} stderr: {err_str}"))
        return False
    logger.log_lazy(
        "debug.command.exit",
        lambda: {
            "name": "command",
            "command": final_cmd,
            "input_size": len(input_data),
            "status": status,
            "stderr": err_str,
        })
    if status in config.get_accept_status():
        return True
    logger.log_error(
        "error.command.status",
        "transfer",
        message=(
            f"command '{final_cmd}', status {status}, "
            f"inputsize: {len(input_data)} stderr: {err_str}"))
    return False

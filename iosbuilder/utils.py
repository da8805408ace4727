#!/usr/bin/env python3
"""
Utility functions for process execution, environment expansion and file operations.

This module contains the helpers shared by every build stage: launching the
external tools with their output streamed to the build listener, expanding
`$VAR` placeholders against the build environment, and zipping directories.
"""

import secrets
import shutil
import string
import subprocess
import sys
from pathlib import Path
from typing import Any, List, Mapping, Optional, TextIO, Union

StrPath = Union[str, Path]


class BuildError(Exception):
    """Base error raised by the build pipeline."""


class SetupError(BuildError):
    """The workspace or a required tool is unusable; the pipeline cannot start."""


class ConfigError(BuildError):
    """Invalid or incomplete build configuration."""


class SigningError(BuildError):
    """Signing material could not be parsed or installed."""


def launch(
    cmd: List[str],
    cwd: Optional[StrPath] = None,
    env: Optional[Mapping[str, str]] = None,
    listener: Optional[TextIO] = None,
) -> int:
    """Run a command, streaming its merged stdout/stderr to the listener.

    Blocks until the process exits and returns its exit code. There is no
    timeout; a hung tool hangs the build.
    """
    listener = listener or sys.stdout
    pipe = subprocess.Popen(
        [str(c) for c in cmd],
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    with pipe:
        for line in pipe.stdout:
            listener.write(line.decode("utf-8", errors="replace"))
        listener.flush()
    return pipe.returncode


def rand_str(len: int):
    """Generate a random string of specified length."""
    return "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(len))


def expand_vars(value: Optional[str], env: Mapping[str, str]) -> Optional[str]:
    """Expand `$VAR` and `${VAR}` against env; unknown variables are kept as-is."""
    if value is None:
        return None
    return string.Template(value).safe_substitute(env)


def optional(value: Any) -> Optional[str]:
    """Normalize a configured string: blank means not supplied."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def list_dirs(dir: Path):
    """Yield the top-level subdirectories of dir, sorted by name."""
    for entry in sorted(dir.iterdir()):
        if entry.is_dir():
            yield entry


def archive_zip(root_dir: Path, base_dir: str, dest_file: Path):
    """Zip root_dir/base_dir into dest_file, keeping base_dir as the top-level entry."""
    dest_file = Path(dest_file)
    if dest_file.suffix != ".zip":
        raise ValueError(f"{dest_file} is not a .zip destination")
    return shutil.make_archive(
        str(dest_file.with_suffix("")), "zip", root_dir=str(root_dir), base_dir=base_dir
    )

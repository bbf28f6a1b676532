"""
Process snapshot providers.

Each platform gets a native lister that shells out to the OS tool with the
richest command-line data (PowerShell on Windows, ``ps`` elsewhere). psutil
is the cross-platform fallback when the native command is missing, times
out or emits something we cannot decode. All listers raise
ProcessEnumerationError on failure; the composite provider only raises when
every strategy failed.
"""

from __future__ import annotations

import csv
import io
import locale
import logging
import posixpath
import subprocess
import sys
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import psutil

from .matcher import normalize_path, normalize_text
from .types import ProcessRecord

log = logging.getLogger(__name__)

WINDOWS_EXE_SUFFIX = ".exe"

# ps truncates comm to the kernel's TASK_COMM_LEN - 1
_COMM_MAX = 15

_POWERSHELL_SCRIPT = (
    "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8; "
    "Get-Process | Select-Object ProcessName, Id, Path | ConvertTo-Csv -NoTypeInformation"
)


class ProcessEnumerationError(RuntimeError):
    pass


def decode_output(raw: bytes) -> str:
    """Decode native tool output, falling back to the legacy codepage."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        encoding = locale.getpreferredencoding(False) or "latin-1"
        log.debug(f"Process list is not UTF-8, decoding as {encoding}")
        return raw.decode(encoding, errors="replace")


def with_default_suffix(name: str, suffix: str) -> str:
    if not suffix or posixpath.splitext(name)[1]:
        return name
    return name + suffix


def make_record(name: str, pid: int, command_line: Optional[str], suffix: str = "") -> ProcessRecord:
    return ProcessRecord(
        name=with_default_suffix(normalize_text(name.strip()), suffix),
        pid=pid,
        command_line=normalize_path(command_line or ""),
    )


def _no_window_flags() -> int:
    return subprocess.CREATE_NO_WINDOW if hasattr(subprocess, "CREATE_NO_WINDOW") else 0


class ProcessLister(ABC):
    """One way of enumerating OS processes."""

    name: str = "lister"

    @abstractmethod
    def list_processes(self) -> list[ProcessRecord]:
        ...


class _CommandLister(ProcessLister):
    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    def _run(self, args: Sequence[str]) -> str:
        try:
            result = subprocess.run(
                list(args),
                capture_output=True,
                timeout=self._timeout,
                creationflags=_no_window_flags(),
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
            raise ProcessEnumerationError(f"{self.name} failed: {e}") from e

        if result.returncode != 0:
            stderr = decode_output(result.stderr or b"")[:200]
            raise ProcessEnumerationError(f"{self.name} exited with {result.returncode}: {stderr}")
        return decode_output(result.stdout or b"")


class PowerShellProcessLister(_CommandLister):
    """Windows: Get-Process exported as CSV (ProcessName, Id, Path)."""

    name = "powershell"

    def list_processes(self) -> list[ProcessRecord]:
        output = self._run(["powershell", "-NoProfile", "-NonInteractive", "-Command", _POWERSHELL_SCRIPT])
        return self.parse(output)

    @staticmethod
    def parse(output: str) -> list[ProcessRecord]:
        records: list[ProcessRecord] = []
        reader = csv.DictReader(io.StringIO(output.lstrip("\ufeff")))
        for row in reader:
            name = (row.get("ProcessName") or "").strip()
            path = (row.get("Path") or "").strip()
            try:
                pid = int(row.get("Id") or "")
            except ValueError:
                continue
            # Processes without a Path are system or access-denied entries
            if not name or not path:
                continue
            records.append(make_record(name, pid, path, WINDOWS_EXE_SUFFIX))
        return records


class PsProcessLister(_CommandLister):
    """macOS and Linux: ``ps`` listings.

    Linux prints pid, comm and the full arguments under a header; rows are
    split at the header's column offsets because comm may contain spaces.
    macOS prints pid and ``comm`` only, which there is the full executable
    path and, as the last column, keeps its spaces.
    """

    name = "ps"

    def __init__(self, timeout: float = 10.0, platform: Optional[str] = None) -> None:
        super().__init__(timeout)
        self._platform = platform or sys.platform

    def _args(self) -> list[str]:
        if self._platform == "darwin":
            return ["ps", "-axo", "pid=,comm="]
        return ["ps", "-eo", "pid,comm,args"]

    def list_processes(self) -> list[ProcessRecord]:
        return self.parse(self._run(self._args()))

    def parse(self, output: str) -> list[ProcessRecord]:
        if self._platform == "darwin":
            return self.parse_paths(output)
        return self.parse_columns(output)

    @staticmethod
    def parse_columns(output: str) -> list[ProcessRecord]:
        lines = output.splitlines()
        if not lines:
            return []
        header = lines[0]
        name_at = header.find("COMMAND")
        args_at = header.rfind("COMMAND")
        if name_at < 0 or args_at <= name_at:
            raise ProcessEnumerationError(f"ps: unexpected header {header!r}")

        records: list[ProcessRecord] = []
        for line in lines[1:]:
            try:
                pid = int(line[:name_at])
            except ValueError:
                continue
            comm = line[name_at:args_at].strip()
            if pid <= 0 or not comm:
                continue
            args = line[args_at:].strip()
            records.append(make_record(_full_name(comm, args), pid, args))
        return records

    @staticmethod
    def parse_paths(output: str) -> list[ProcessRecord]:
        records: list[ProcessRecord] = []
        for line in output.splitlines():
            pid_text, _, path = line.strip().partition(" ")
            try:
                pid = int(pid_text)
            except ValueError:
                continue
            path = path.strip()
            if pid <= 0 or not path:
                continue
            records.append(make_record(posixpath.basename(path), pid, path))
        return records


def _full_name(comm: str, args: str) -> str:
    # Linux cuts comm at 15 chars; recover the real name from argv[0]
    if len(comm) < _COMM_MAX or not args:
        return comm
    argv0 = posixpath.basename(args.split(" ", 1)[0])
    return argv0 if argv0.startswith(comm) else comm


class PsutilProcessLister(ProcessLister):
    """Cross-platform fallback backed by psutil."""

    name = "psutil"

    def __init__(self, suffix: str = "") -> None:
        self._suffix = suffix

    def list_processes(self) -> list[ProcessRecord]:
        records: list[ProcessRecord] = []
        try:
            for p in psutil.process_iter(attrs=["pid", "name", "exe", "cmdline"]):
                try:
                    info = p.info
                    name = info.get("name")
                    if not name:
                        continue
                    cmdline = info.get("cmdline") or []
                    command_line = " ".join(cmdline) if cmdline else (info.get("exe") or "")
                    records.append(make_record(str(name), int(info["pid"]), command_line, self._suffix))
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    continue
        except psutil.Error as e:
            raise ProcessEnumerationError(f"psutil failed: {e}") from e
        return records


class ProcessSnapshotProvider:
    """Tries each lister in order and returns the first successful list."""

    def __init__(self, listers: Sequence[ProcessLister]) -> None:
        if not listers:
            raise ValueError("at least one process lister is required")
        self._listers = list(listers)

    @property
    def listers(self) -> list[ProcessLister]:
        return list(self._listers)

    def list_processes(self) -> list[ProcessRecord]:
        errors: list[str] = []
        for idx, lister in enumerate(self._listers):
            try:
                records = lister.list_processes()
            except ProcessEnumerationError as e:
                errors.append(str(e))
                if idx + 1 < len(self._listers):
                    log.warning(f"{lister.name} process listing failed, falling back: {e}")
                continue
            with_cmd = sum(1 for r in records if r.command_line)
            log.debug(f"{lister.name}: {len(records)} processes ({with_cmd} with command line)")
            return records

        log.error(f"All process listers failed: {'; '.join(errors)}")
        raise ProcessEnumerationError("; ".join(errors))


def default_provider(platform: Optional[str] = None, timeout: float = 10.0) -> ProcessSnapshotProvider:
    """Pick the native lister for this OS with psutil behind it."""
    platform = platform or sys.platform
    if platform == "win32":
        return ProcessSnapshotProvider([
            PowerShellProcessLister(timeout=timeout),
            PsutilProcessLister(suffix=WINDOWS_EXE_SUFFIX),
        ])
    return ProcessSnapshotProvider([
        PsProcessLister(timeout=timeout, platform=platform),
        PsutilProcessLister(),
    ])

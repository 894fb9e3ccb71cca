"""
Media engine boundary.

The engine owns a working storage of named files and executes a
``RemuxPlan`` against it, producing the plan's output file. ``MediaEngine``
is the protocol the gateway drives (and what test doubles implement);
``FFmpegEngine`` backs it with the ``ffmpeg`` binary and a private temporary
directory.

The ffmpeg process is run out-of-process so a native crash in libav* fails
one invocation instead of the server.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from trackmux.const import FFMPEG_BASE_ARGS
from trackmux.remuxer.remux_plan import RemuxPlan

logger = logging.getLogger(__name__)

# How much of ffmpeg's stderr is kept in exceptions and logs
_STDERR_TAIL = 2000


class EngineError(Exception):
    """Base exception for media engine failures."""


class EngineInitFailure(EngineError):
    """The engine could not be loaded. Not cached: the next call retries."""


class EngineInvocationFailure(EngineError):
    """An invocation failed; no partial output is returned."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class EngineOutputMissing(EngineInvocationFailure):
    """The expected output artifact was not produced."""


class EngineBusyError(EngineError):
    """Another engine session is in flight and the gateway rejects instead of queueing."""


@dataclass(slots=True)
class EngineResult:
    returncode: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class MediaEngine(Protocol):
    """
    Protocol for the external media-processing engine.

    Implementations must provide:
    - load(): one-time initialization, raising EngineInitFailure on failure
    - write_file/read_file/delete_file: access to the engine's working storage
    - run(plan): execute a plan against staged files
    - close(): release the working storage
    """

    async def load(self) -> None: ...

    async def write_file(self, name: str, data: bytes) -> None: ...

    async def read_file(self, name: str) -> bytes:
        """Return the content of ``name``; raise FileNotFoundError if absent."""
        ...

    async def delete_file(self, name: str) -> None: ...

    async def run(self, plan: RemuxPlan) -> EngineResult: ...

    async def close(self) -> None: ...


def _storage_path(root: Path, name: str) -> Path:
    """Resolve a storage name inside ``root``, refusing anything that escapes it."""
    if not name or os.path.basename(name) != name or name in (".", ".."):
        raise ValueError(f"Invalid engine file name: {name!r}")
    return root / name


class FFmpegEngine:
    """
    ``MediaEngine`` backed by the ffmpeg command line tool.

    Storage is a temporary directory created by ``load()`` and removed by
    ``close()``; ffmpeg runs with it as working directory so plan names are
    plain relative file names.
    """

    def __init__(self, binary: str = "ffmpeg", workdir_parent: str | None = None) -> None:
        self._binary = binary
        self._workdir_parent = workdir_parent
        self._executable: str | None = None
        self._workdir: Path | None = None

    @property
    def workdir(self) -> Path | None:
        return self._workdir

    async def load(self) -> None:
        executable = shutil.which(self._binary)
        if executable is None:
            raise EngineInitFailure(f"ffmpeg binary not found: {self._binary}")

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise EngineInitFailure(f"Failed to start {executable}: {e}") from e

        if process.returncode != 0:
            raise EngineInitFailure(
                f"{executable} -version exited with {process.returncode}: "
                f"{stderr.decode(errors='replace')[-_STDERR_TAIL:]}"
            )

        self._executable = executable
        self._workdir = Path(tempfile.mkdtemp(prefix="trackmux-", dir=self._workdir_parent))
        version_line = stdout.decode(errors="replace").splitlines()[0] if stdout else "unknown version"
        logger.info("[ffmpeg_engine] Loaded %s (%s), storage at %s", executable, version_line, self._workdir)

    def _require_workdir(self) -> Path:
        if self._workdir is None:
            raise EngineInitFailure("ffmpeg engine is not loaded")
        return self._workdir

    async def write_file(self, name: str, data: bytes) -> None:
        path = _storage_path(self._require_workdir(), name)
        await asyncio.get_running_loop().run_in_executor(None, path.write_bytes, data)

    async def read_file(self, name: str) -> bytes:
        path = _storage_path(self._require_workdir(), name)
        return await asyncio.get_running_loop().run_in_executor(None, path.read_bytes)

    async def delete_file(self, name: str) -> None:
        path = _storage_path(self._require_workdir(), name)
        path.unlink(missing_ok=True)

    async def run(self, plan: RemuxPlan) -> EngineResult:
        workdir = self._require_workdir()
        args = [*FFMPEG_BASE_ARGS, *plan.to_ffmpeg_args()]
        logger.debug("[ffmpeg_engine] Running: ffmpeg %s", " ".join(args))

        process = await asyncio.create_subprocess_exec(
            self._executable,
            *args,
            cwd=workdir,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        stderr_text = stderr.decode(errors="replace")[-_STDERR_TAIL:]
        if stderr_text:
            logger.debug("[ffmpeg_engine] stderr: %s", stderr_text)
        return EngineResult(returncode=process.returncode, stderr=stderr_text)

    async def close(self) -> None:
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            logger.info("[ffmpeg_engine] Removed storage %s", self._workdir)
        self._workdir = None
        self._executable = None

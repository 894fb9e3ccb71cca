"""
Single-flight gateway to the media engine.

The engine keeps one shared working storage, so two invocations running at
once could read each other's inputs. The gateway serializes all engine work
into sessions: a session holds the invocation lock from its first staged
input to its last retrieved output, names every file with a session-unique
prefix, and deletes what it created on exit.

Usage:
    gateway = MediaEngineGateway(FFmpegEngine())
    async with gateway.session() as session:
        plan = plan_subtitle_extraction(PlanInput(session.name_for("in.mkv"), "media", data), ...)
        await session.stage_inputs(plan)
        await session.invoke(plan)
        content = await session.retrieve(plan.output)
"""

import asyncio
import logging
import re
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import PurePath
from typing import Literal

from trackmux.remuxer.engine import (
    EngineBusyError,
    EngineInitFailure,
    EngineInvocationFailure,
    EngineOutputMissing,
    EngineResult,
    MediaEngine,
)
from trackmux.remuxer.remux_plan import RemuxPlan

logger = logging.getLogger(__name__)

BusyPolicy = Literal["queue", "reject"]

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_filename(filename: str) -> str:
    """Reduce a caller-supplied filename to a storage-safe basename, keeping its extension."""
    base = PurePath(filename.replace("\\", "/")).name
    base = _UNSAFE_NAME_CHARS.sub("_", base).lstrip(".")
    return base or "file"


async def _run_to_completion(coro) -> EngineResult:
    """
    Await an engine run that must not be interrupted once dispatched.

    If the caller is cancelled while the engine is working, the run is still
    awaited to its end before the cancellation propagates, so the session
    lock is never released under a running invocation.
    """
    task = asyncio.ensure_future(coro)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        logger.info("[gateway] Caller cancelled during invocation; waiting for the engine to finish")
        while not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                continue
            except Exception:
                break
        raise


class EngineSession:
    """Engine access for one pipeline operation. Obtain via ``MediaEngineGateway.session()``."""

    def __init__(self, engine: MediaEngine, prefix: str) -> None:
        self._engine = engine
        self.prefix = prefix
        self._created: list[str] = []

    def name_for(self, filename: str, role: str = "") -> str:
        """Return a storage name for ``filename`` unique to this session (and to ``role`` within it)."""
        if role:
            return f"{self.prefix}_{role}_{_safe_filename(filename)}"
        return f"{self.prefix}_{_safe_filename(filename)}"

    async def stage(self, name: str, data: bytes) -> None:
        if name in self._created:
            raise ValueError(f"Input {name!r} already staged in this session")
        self._created.append(name)
        await self._engine.write_file(name, data)
        logger.debug("[gateway] Staged %s (%d bytes)", name, len(data))

    async def stage_inputs(self, plan: RemuxPlan) -> None:
        """
        Stage every input of ``plan`` concurrently.

        All writes settle before a failure is raised, so cleanup never runs
        while a sibling write can still land in the engine storage.
        """
        results = await asyncio.gather(
            *(self.stage(plan_input.name, plan_input.data) for plan_input in plan.inputs),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def invoke(self, plan: RemuxPlan) -> None:
        """Execute ``plan`` against the staged inputs; raise EngineInvocationFailure on failure."""
        self._created.append(plan.output)
        try:
            result = await _run_to_completion(self._engine.run(plan))
        except (EngineInvocationFailure, asyncio.CancelledError):
            raise
        except Exception as e:
            raise EngineInvocationFailure(f"Engine invocation for {plan.output} failed: {e}") from e

        if not result.ok:
            logger.warning("[gateway] Invocation for %s exited with %d", plan.output, result.returncode)
            raise EngineInvocationFailure(
                f"Engine invocation for {plan.output} exited with {result.returncode}: {result.stderr.strip()}",
                returncode=result.returncode,
                stderr=result.stderr,
            )
        logger.info("[gateway] Invocation produced %s (%d inputs)", plan.output, len(plan.inputs))

    async def retrieve(self, name: str) -> bytes:
        try:
            return await self._engine.read_file(name)
        except FileNotFoundError as e:
            raise EngineOutputMissing(f"Engine output {name} was not produced") from e

    async def cleanup(self) -> None:
        for name in self._created:
            try:
                await self._engine.delete_file(name)
            except Exception as e:
                logger.warning("[gateway] Failed to delete %s: %s", name, e)
        self._created.clear()


class MediaEngineGateway:
    """
    Owns one media engine: lazy one-time initialization and single-flight
    sessions.

    ``busy_policy="queue"`` makes a second concurrent session wait for the
    first; ``"reject"`` makes it fail with ``EngineBusyError``.
    """

    def __init__(self, engine: MediaEngine, busy_policy: BusyPolicy = "queue") -> None:
        self._engine = engine
        self._busy_policy = busy_policy
        self._ready = False
        self._init_lock = asyncio.Lock()
        self._flight_lock = asyncio.Lock()

    @property
    def engine(self) -> MediaEngine:
        return self._engine

    def is_ready(self) -> bool:
        return self._ready

    def is_busy(self) -> bool:
        return self._flight_lock.locked()

    async def init(self) -> None:
        """Load the engine once. A failed load is not remembered; the next call tries again."""
        if self._ready:
            return
        async with self._init_lock:
            if self._ready:
                return
            try:
                await self._engine.load()
            except EngineInitFailure:
                logger.error("[gateway] Engine initialization failed")
                raise
            except Exception as e:
                logger.exception("[gateway] Engine initialization failed")
                raise EngineInitFailure(f"Engine initialization failed: {e}") from e
            self._ready = True

    async def reset(self) -> None:
        """Close the engine and drop its storage; the next session re-initializes."""
        async with self._flight_lock:
            async with self._init_lock:
                if self._ready:
                    await self._engine.close()
                self._ready = False

    @asynccontextmanager
    async def session(self) -> AsyncIterator[EngineSession]:
        if self._busy_policy == "reject" and self._flight_lock.locked():
            raise EngineBusyError("Media engine is busy with another operation")

        async with self._flight_lock:
            await self.init()
            session = EngineSession(self._engine, uuid.uuid4().hex[:12])
            try:
                yield session
            finally:
                await session.cleanup()

    async def close(self) -> None:
        await self.reset()

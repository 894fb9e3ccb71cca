"""
Pytest configuration and media engine test double.

``FakeEngine`` implements the MediaEngine protocol in memory: staged files
live in a dict and ``run`` records the plan it receives, then writes the
output produced by ``output_factory``.
"""

import asyncio
from pathlib import Path

import pytest
from dotenv import load_dotenv
from tenacity import wait_none

from trackmux.remuxer.engine import EngineInitFailure, EngineResult
from trackmux.remuxer.gateway import MediaEngineGateway
from trackmux.remuxer.pipeline import TrackPipeline
from trackmux.utils.http_utils import fetch_with_retry

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


def echo_media_output(plan, files):
    """Default output: the bytes of the plan's first input."""
    return files[plan.inputs[0].name]


class FakeEngine:
    def __init__(self, output_factory=echo_media_output, returncode: int = 0, delay: float = 0.0):
        self.output_factory = output_factory
        self.returncode = returncode
        self.delay = delay
        self.files: dict[str, bytes] = {}
        self.plans = []
        self.load_calls = 0
        self.load_failures = 0
        self.load_exception: Exception | None = None
        self.close_calls = 0
        self.active = 0
        self.max_active = 0
        self.completed_runs = 0
        self.run_started = asyncio.Event()

    async def load(self) -> None:
        self.load_calls += 1
        await asyncio.sleep(0)
        if self.load_exception is not None:
            raise self.load_exception
        if self.load_failures:
            self.load_failures -= 1
            raise EngineInitFailure("fake engine failed to load")

    async def write_file(self, name: str, data: bytes) -> None:
        self.files[name] = data

    async def read_file(self, name: str) -> bytes:
        if name not in self.files:
            raise FileNotFoundError(name)
        return self.files[name]

    async def delete_file(self, name: str) -> None:
        self.files.pop(name, None)

    async def run(self, plan) -> EngineResult:
        self.plans.append(plan)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.run_started.set()
        try:
            for plan_input in plan.inputs:
                assert self.files.get(plan_input.name) == plan_input.data, f"{plan_input.name} not staged"
            await asyncio.sleep(self.delay)
            if self.returncode != 0:
                return EngineResult(returncode=self.returncode, stderr="fake engine failure")
            output = self.output_factory(plan, self.files)
            if output is not None:
                self.files[plan.output] = output
            return EngineResult(returncode=0)
        finally:
            self.active -= 1
            self.completed_runs += 1

    async def close(self) -> None:
        self.close_calls += 1
        self.files.clear()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def gateway(fake_engine):
    return MediaEngineGateway(fake_engine)


@pytest.fixture
def pipeline(gateway):
    return TrackPipeline(gateway)


@pytest.fixture
def no_retry_wait(monkeypatch):
    """Keep the HTTP retry policy but drop its backoff sleeps."""
    monkeypatch.setattr(fetch_with_retry.retry, "wait", wait_none())

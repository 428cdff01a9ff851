from __future__ import annotations

import asyncio
import socket
import sys
import threading
import time
from collections import deque
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pytest
from aiohttp import web

from phileas_launcher.config import LauncherConfig

FAKE_SERVER = Path(__file__).with_name('fake_server.py')


def free_port() -> int:
  with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
    sock.bind(('127.0.0.1', 0))
    return sock.getsockname()[1]


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
  deadline = time.monotonic() + timeout
  while time.monotonic() < deadline:
    if predicate():
      return True
    time.sleep(interval)
  return predicate()


class RecordingSink:
  """Collects sink events from any thread."""

  def __init__(self) -> None:
    self._lock = threading.Lock()
    self.lines: List[str] = []
    self.titles: List[str] = []
    self.ready_urls: List[str] = []

  def log_line(self, text: str) -> None:
    with self._lock:
      self.lines.append(text)

  def set_title(self, name: str) -> None:
    with self._lock:
      self.titles.append(name)

  def ready(self, base_url: str) -> None:
    with self._lock:
      self.ready_urls.append(base_url)

  def snapshot_lines(self) -> List[str]:
    with self._lock:
      return list(self.lines)

  def has_line(self, text: str) -> bool:
    return any(text in line for line in self.snapshot_lines())


class MockService:
  """A real aiohttp app on an ephemeral loopback port, served from its own thread."""

  def __init__(self, version_statuses: Iterable[int] = (), default_status: int = 200) -> None:
    self._statuses = deque(version_statuses)
    self.default_status = default_status
    self.version_hits = 0
    self.shutdown_hits = 0
    self._lock = threading.Lock()
    self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    self._sock.bind(('127.0.0.1', 0))
    self.address = f'127.0.0.1:{self._sock.getsockname()[1]}'
    self._loop: Optional[asyncio.AbstractEventLoop] = None
    self._thread: Optional[threading.Thread] = None

  async def _version(self, request: web.Request) -> web.Response:
    with self._lock:
      self.version_hits += 1
      status = self._statuses.popleft() if self._statuses else self.default_status
    return web.Response(status=status, text='0.1.0')

  async def _shutdown(self, request: web.Request) -> web.Response:
    with self._lock:
      self.shutdown_hits += 1
    return web.Response(text='bye')

  def start(self) -> 'MockService':
    started = threading.Event()

    def runner() -> None:
      loop = asyncio.new_event_loop()
      asyncio.set_event_loop(loop)
      self._loop = loop
      app = web.Application()
      app.router.add_get('/api/version', self._version)
      app.router.add_post('/api/shutdown', self._shutdown)
      app_runner = web.AppRunner(app)
      loop.run_until_complete(app_runner.setup())
      loop.run_until_complete(web.SockSite(app_runner, self._sock).start())
      started.set()
      try:
        loop.run_forever()
      finally:
        loop.run_until_complete(app_runner.cleanup())
        loop.close()

    self._thread = threading.Thread(target=runner, daemon=True)
    self._thread.start()
    assert started.wait(5), 'mock service did not start'
    return self

  def stop(self) -> None:
    if self._loop and self._thread and self._thread.is_alive():
      self._loop.call_soon_threadsafe(self._loop.stop)
      self._thread.join(timeout=5)


@pytest.fixture
def mock_service():
  services: List[MockService] = []

  def factory(version_statuses: Iterable[int] = (), default_status: int = 200) -> MockService:
    service = MockService(version_statuses, default_status).start()
    services.append(service)
    return service

  yield factory
  for service in services:
    service.stop()


@pytest.fixture
def sink() -> RecordingSink:
  return RecordingSink()


@pytest.fixture
def prepared_dir(tmp_path: Path) -> Path:
  """A work dir that already satisfies the prerequisites."""
  (tmp_path / 'data').mkdir()
  (tmp_path / '.env').write_text('', encoding='utf-8')
  return tmp_path


def python_command(code: str) -> List[str]:
  return [sys.executable, '-c', code]


def fake_server_command(port: int, marker: Path, *, status: int = 200, exit_on_shutdown: bool = False) -> List[str]:
  command = [sys.executable, str(FAKE_SERVER), '--port', str(port), '--marker', str(marker), '--status', str(status)]
  if exit_on_shutdown:
    command.append('--exit-on-shutdown')
  return command


@pytest.fixture
def make_config():
  def factory(work_dir: Path, **overrides) -> LauncherConfig:
    values = dict(
      work_dir=work_dir,
      server_addr='127.0.0.1:1',
      installer_command=python_command('print("nothing to install")'),
      server_command=python_command('import time; time.sleep(30)'),
      ready_attempts=100,
      ready_interval_seconds=0.1,
      probe_timeout_seconds=0.5,
      shutdown_timeout_seconds=1.0,
      shutdown_grace_seconds=0.2,
      tail_poll_interval_seconds=0.05
    )
    values.update(overrides)
    return LauncherConfig(**values)

  return factory

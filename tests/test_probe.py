import asyncio

from phileas_launcher.probe import (
  create_probe_session,
  fetch_version_status,
  is_server_ready,
  is_server_running,
  request_shutdown
)

UNREACHABLE = '127.0.0.1:1'


def _run(coro_factory):
  async def runner():
    async with create_probe_session() as session:
      return await coro_factory(session)
  return asyncio.run(runner())


def test_ready_service_is_running_and_ready(mock_service):
  service = mock_service()

  assert _run(lambda s: is_server_running(s, service.address))
  assert _run(lambda s: is_server_ready(s, service.address))


def test_initializing_service_is_running_but_not_ready(mock_service):
  service = mock_service(default_status=503)

  assert _run(lambda s: is_server_running(s, service.address))
  assert not _run(lambda s: is_server_ready(s, service.address))


def test_unreachable_endpoint_is_neither_running_nor_ready():
  assert not _run(lambda s: is_server_running(s, UNREACHABLE, timeout=0.5))
  assert not _run(lambda s: is_server_ready(s, UNREACHABLE, timeout=0.5))
  assert _run(lambda s: fetch_version_status(s, UNREACHABLE, timeout=0.5)) is None


def test_unresolvable_host_is_not_running():
  assert not _run(lambda s: is_server_running(s, 'does-not-exist.invalid:1920', timeout=0.5))


def test_each_probe_is_a_single_request(mock_service):
  service = mock_service(version_statuses=[503])

  assert not _run(lambda s: is_server_ready(s, service.address))
  assert _run(lambda s: is_server_ready(s, service.address))
  assert service.version_hits == 2


def test_request_shutdown(mock_service):
  service = mock_service()

  assert _run(lambda s: request_shutdown(s, service.address))
  assert service.shutdown_hits == 1
  assert not _run(lambda s: request_shutdown(s, UNREACHABLE, timeout=0.5))

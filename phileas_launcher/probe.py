"""
就绪探测：通过 /api/version 判断服务是否在监听、是否已经可用。

所有传输层错误（连接被拒、DNS 失败、超时）统一折叠为 False，不向调用方抛出。
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

VERSION_PATH = '/api/version'
SHUTDOWN_PATH = '/api/shutdown'
DEFAULT_PROBE_TIMEOUT = 1.0
DEFAULT_SHUTDOWN_TIMEOUT = 2.0

PROBE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)


def create_probe_session() -> aiohttp.ClientSession:
  """构造探测用的会话：每次请求独立建连并在结束后关闭。"""
  return aiohttp.ClientSession(connector=aiohttp.TCPConnector(force_close=True))


def _build_timeout(seconds: float) -> aiohttp.ClientTimeout:
  return aiohttp.ClientTimeout(total=seconds if seconds and seconds > 0 else DEFAULT_PROBE_TIMEOUT)


async def fetch_version_status(
  session: aiohttp.ClientSession,
  endpoint: str,
  *,
  timeout: float = DEFAULT_PROBE_TIMEOUT
) -> Optional[int]:
  """请求版本接口并返回 HTTP 状态码；无响应时返回 None。"""
  url = f'http://{endpoint}{VERSION_PATH}'
  try:
    async with session.get(url, timeout=_build_timeout(timeout), allow_redirects=False) as response:
      await response.read()
      return response.status
  except PROBE_ERRORS as exc:
    logging.debug('version probe %s failed: %s', url, exc)
    return None


async def is_server_running(
  session: aiohttp.ClientSession,
  endpoint: str,
  *,
  timeout: float = DEFAULT_PROBE_TIMEOUT
) -> bool:
  """只要有 HTTP 响应（任意状态码）即视为服务在运行。"""
  return await fetch_version_status(session, endpoint, timeout=timeout) is not None


async def is_server_ready(
  session: aiohttp.ClientSession,
  endpoint: str,
  *,
  timeout: float = DEFAULT_PROBE_TIMEOUT
) -> bool:
  """版本接口返回 HTTP 200 才视为就绪。"""
  return await fetch_version_status(session, endpoint, timeout=timeout) == 200


async def request_shutdown(
  session: aiohttp.ClientSession,
  endpoint: str,
  *,
  timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
) -> bool:
  """尽力请求服务优雅退出，返回请求是否得到了响应。"""
  url = f'http://{endpoint}{SHUTDOWN_PATH}'
  try:
    async with session.post(url, timeout=_build_timeout(timeout), allow_redirects=False) as response:
      await response.read()
      logging.info('shutdown request answered with HTTP %s', response.status)
      return True
  except PROBE_ERRORS as exc:
    logging.info('shutdown request failed: %s', exc)
    return False


__all__ = [
  'VERSION_PATH',
  'SHUTDOWN_PATH',
  'create_probe_session',
  'fetch_version_status',
  'is_server_running',
  'is_server_ready',
  'request_shutdown'
]

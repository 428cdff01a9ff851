"""
WebSocket 事件推送：把编排器的三种事件以 JSON 消息广播给浏览器外壳。
"""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import threading
from typing import Any, Dict, Optional, Set

import websockets

from .monitor import LaunchMonitor
from .sink import classify_line

DEFAULT_EVENT_HOST = '127.0.0.1'
DEFAULT_EVENT_PORT = 1921

LOG_LINE_TYPE = 'log_line'
SET_TITLE_TYPE = 'set_title'
READY_TYPE = 'ready'


def encode_event(event_type: str, data: Dict[str, Any]) -> str:
  """序列化单条事件。"""
  return json.dumps({'type': event_type, 'data': data}, ensure_ascii=False)


class EventFeedServer:
  """在后台线程中托管 WebSocket 服务，并实现输出接口向所有客户端广播。

  新连接会先收到当前标题、回滚日志与就绪地址，再接收实时事件。
  """

  def __init__(
    self,
    monitor: LaunchMonitor,
    host: str = DEFAULT_EVENT_HOST,
    port: int = DEFAULT_EVENT_PORT
  ) -> None:
    """记录配置并初始化内部状态。"""
    self.monitor = monitor
    self.host = host
    self.port = port
    self._loop: Optional[asyncio.AbstractEventLoop] = None
    self._thread: Optional[threading.Thread] = None
    self._stop_event: Optional[asyncio.Event] = None
    self._started = threading.Event()
    self._clients: Set[Any] = set()
    self.bound_port: Optional[int] = None

  @property
  def is_running(self) -> bool:
    """返回当前服务是否处于运行状态。"""
    return bool(self._thread and self._thread.is_alive())

  def start(self, timeout: float = 5.0) -> None:
    """在后台线程中启动 WebSocket 服务，等待端口绑定完成。"""
    if self.is_running:
      raise RuntimeError('event feed is already running')
    self._started.clear()

    def runner() -> None:
      """在线程中启动事件循环。"""
      self._loop = asyncio.new_event_loop()
      asyncio.set_event_loop(self._loop)
      self._stop_event = asyncio.Event()
      task = self._loop.create_task(self._serve_until_stopped(self._stop_event))
      try:
        self._loop.run_until_complete(task)
      except OSError as exc:
        logging.error('event feed failed to bind %s:%s: %s', self.host, self.port, exc)
      finally:
        pending = asyncio.all_tasks(loop=self._loop)
        for pending_task in pending:
          pending_task.cancel()
        with contextlib.suppress(Exception):
          self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        self._loop.close()
        self._started.set()

    self._thread = threading.Thread(target=runner, name='event-feed', daemon=True)
    self._thread.start()
    self._started.wait(timeout)

  async def _serve_until_stopped(self, stop_event: asyncio.Event) -> None:
    """运行 WebSocket 服务直到 stop_event 被设置。"""
    async with websockets.serve(self.handle_connection, self.host, self.port) as server:
      sockets = list(getattr(server, 'sockets', None) or [])
      if sockets:
        self.bound_port = sockets[0].getsockname()[1]
      logging.info('event feed listening at ws://%s:%s', self.host, self.bound_port or self.port)
      self._started.set()
      await stop_event.wait()
    logging.info('event feed stopped')

  def stop(self) -> None:
    """请求后台线程停止，并等待其退出。"""
    if not self.is_running or not self._loop or not self._stop_event:
      return
    future = asyncio.run_coroutine_threadsafe(self._signal_stop(), self._loop)
    future.result(timeout=5)
    if self._thread:
      self._thread.join(timeout=5)
    self._thread = None
    self._loop = None
    self._stop_event = None

  async def _signal_stop(self) -> None:
    """在事件循环中设置停止事件。"""
    if self._stop_event and not self._stop_event.is_set():
      self._stop_event.set()

  async def handle_connection(self, websocket, path=None) -> None:
    """推送当前快照后保持连接，客户端发来的消息一律忽略。"""
    peer = getattr(websocket, 'remote_address', ('unknown', ''))
    logging.info('event client connected %s:%s', peer[0], peer[1])
    snapshot = self.monitor.snapshot()
    try:
      if snapshot['title']:
        await websocket.send(encode_event(SET_TITLE_TYPE, {'name': snapshot['title']}))
      for line in snapshot['lines']:  # type: ignore[union-attr]
        await websocket.send(encode_event(LOG_LINE_TYPE, line))
      if snapshot['readyUrl']:
        await websocket.send(encode_event(READY_TYPE, {'url': snapshot['readyUrl']}))
      self._clients.add(websocket)
      async for _message in websocket:
        pass
    except websockets.ConnectionClosedOK:
      logging.info('event client closed the connection normally')
    except websockets.ConnectionClosedError as exc:
      logging.warning('event connection closed with error: %s', exc)
    finally:
      self._clients.discard(websocket)

  def _publish(self, message: str) -> None:
    """从任意线程把消息投递到事件循环中广播。"""
    loop = self._loop
    if loop is None or loop.is_closed():
      return
    try:
      loop.call_soon_threadsafe(self._broadcast, message)
    except RuntimeError:
      logging.debug('event loop closed, dropping event')

  def _broadcast(self, message: str) -> None:
    if self._clients:
      websockets.broadcast(set(self._clients), message)

  def log_line(self, text: str) -> None:
    self._publish(encode_event(LOG_LINE_TYPE, {'text': text, 'kind': classify_line(text).value}))

  def set_title(self, name: str) -> None:
    self._publish(encode_event(SET_TITLE_TYPE, {'name': name}))

  def ready(self, base_url: str) -> None:
    self._publish(encode_event(READY_TYPE, {'url': base_url}))


__all__ = ['EventFeedServer', 'encode_event', 'DEFAULT_EVENT_HOST', 'DEFAULT_EVENT_PORT']

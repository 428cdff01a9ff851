"""
启动编排：检查前置条件、按需安装、启动或附着服务、等待就绪，并在退出时清理子进程。

整个流程运行在后台线程自带的事件循环中；start() 立即返回，进度通过输出接口上报。
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from typing import Awaitable, Optional, Set

import aiohttp

from .config import LauncherConfig
from .errors import (
  InstallerFailed,
  LauncherError,
  ProcessExitedWithError,
  ReadinessTimeout
)
from .prerequisites import check_prerequisites
from .probe import create_probe_session, fetch_version_status, is_server_running, request_shutdown
from .process import ProcessSupervisor
from .sink import GuardedSink, LauncherSink
from .states import LauncherState, ReadinessState
from .tailer import tail_log_file

STOP_TIMEOUT_SECONDS = 10.0


class LauncherManager:
  """后台服务的生命周期编排器，对宿主程序只暴露 start() / stop()。"""

  def __init__(self, config: LauncherConfig, sink: LauncherSink) -> None:
    """记录配置并初始化内部状态；服务地址在此解析一次后不再改变。"""
    self.config = config
    self.sink = GuardedSink(sink)
    self.endpoint = config.endpoint
    self.app_url = config.app_url
    self._lock = threading.Lock()
    self._state = LauncherState.INIT
    self._readiness = ReadinessState.UNKNOWN
    self._settled = threading.Event()
    self._stop_requested = False
    self._loop: Optional[asyncio.AbstractEventLoop] = None
    self._thread: Optional[threading.Thread] = None
    self._stop_event: Optional[asyncio.Event] = None
    self._session: Optional[aiohttp.ClientSession] = None
    self._supervisor = ProcessSupervisor(self.sink)
    self._server_task: Optional[asyncio.Task] = None
    self._background: Set[asyncio.Task] = set()
    self._owns_server = False

  @property
  def state(self) -> LauncherState:
    """返回编排器当前阶段。"""
    with self._lock:
      return self._state

  @property
  def readiness(self) -> ReadinessState:
    """返回最近一次探测的结论。"""
    with self._lock:
      return self._readiness

  @property
  def is_running(self) -> bool:
    """返回后台线程是否仍在运行。"""
    return bool(self._thread and self._thread.is_alive())

  @property
  def owns_server(self) -> bool:
    """服务进程是否由本编排器启动。"""
    return self._owns_server

  @property
  def supervisor(self) -> ProcessSupervisor:
    return self._supervisor

  def start(self) -> None:
    """在后台线程中启动编排流程，立即返回。"""
    with self._lock:
      if self._thread is not None:
        raise RuntimeError('launcher has already been started')
      self._loop = asyncio.new_event_loop()
      self._thread = threading.Thread(target=self._runner, name='launcher-manager', daemon=True)
    self._thread.start()

  def _runner(self) -> None:
    """在线程中运行事件循环，直到会话结束。"""
    loop = self._loop
    if loop is None:
      raise RuntimeError('launcher event loop is not created')
    asyncio.set_event_loop(loop)
    try:
      loop.run_until_complete(self._run_session())
    except Exception:  # noqa: BLE001
      logging.exception('launcher session crashed')
      self._set_state(LauncherState.FAILED)
    finally:
      pending = asyncio.all_tasks(loop=loop)
      for task in pending:
        task.cancel()
      with contextlib.suppress(Exception):
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
      loop.close()
      self._settled.set()

  async def _run_session(self) -> None:
    """运行启动序列，然后保持后台任务直到收到停止信号。"""
    stop_event = asyncio.Event()
    self._stop_event = stop_event
    with self._lock:
      if self._stop_requested:
        stop_event.set()
    async with create_probe_session() as session:
      self._session = session
      startup = asyncio.ensure_future(self._startup_sequence())
      try:
        await stop_event.wait()
      finally:
        await self._teardown(startup)
        self._session = None

  def stop(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
    """请求停止：优雅关闭自己启动的服务，必要时强杀，并等待后台线程退出。

    从未启动、重复调用或与启动过程并发调用都是安全的。
    """
    with self._lock:
      if self._thread is None or self._stop_requested:
        return
      self._stop_requested = True
      thread = self._thread
      loop = self._loop
    if not thread.is_alive() or loop is None:
      return
    try:
      future = asyncio.run_coroutine_threadsafe(self._signal_stop(), loop)
      future.result(timeout=timeout)
    except RuntimeError:
      # 事件循环已经关闭，线程正在退出。
      pass
    thread.join(timeout=timeout)
    if thread.is_alive():
      logging.warning('launcher thread did not exit within %.1fs', timeout)

  async def _signal_stop(self) -> None:
    """在事件循环中设置停止事件。"""
    if self._stop_event and not self._stop_event.is_set():
      self._stop_event.set()

  def wait(self, timeout: Optional[float] = None) -> LauncherState:
    """阻塞到启动序列有结论（就绪、超时、失败或停止），返回当时的状态。"""
    self._settled.wait(timeout)
    return self.state

  def _set_state(self, state: LauncherState) -> None:
    with self._lock:
      previous = self._state
      self._state = state
    if previous != state:
      logging.debug('launcher state %s -> %s', previous.value, state.value)
    if state.is_settled:
      self._settled.set()

  def _set_readiness(self, readiness: ReadinessState) -> None:
    with self._lock:
      self._readiness = readiness

  def _log(self, message: str) -> None:
    logging.info('%s', message)
    self.sink.log_line(message)

  def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
    """登记后台任务，停止时统一取消并等待。"""
    task = asyncio.ensure_future(coro)
    self._background.add(task)
    task.add_done_callback(self._background.discard)
    return task

  async def _startup_sequence(self) -> None:
    """依次执行前置检查、安装、服务检查与就绪等待。"""
    self._set_readiness(ReadinessState.UNKNOWN)
    try:
      await self._ensure_prerequisites()
      await self._start_or_attach()
      self._set_state(LauncherState.WAITING_READY)
      self._log('> Waiting for server...')
      await self._wait_until_ready()
    except ReadinessTimeout as exc:
      logging.warning('readiness timeout: %s', exc)
      self._set_readiness(ReadinessState.TIMED_OUT)
      self._set_state(LauncherState.TIMED_OUT)
      self._log('> Error: Server timed out.')
      return
    except ProcessExitedWithError as exc:
      self._set_state(LauncherState.FAILED)
      self._log(f'> Error: Server stopped before becoming ready ({exc}).')
      return
    except InstallerFailed as exc:
      self._set_state(LauncherState.FAILED)
      self._log(f'> Installer failed: {exc}')
      return
    except LauncherError as exc:
      self._set_state(LauncherState.FAILED)
      self._log(f'> Error: {exc}')
      return
    self._set_state(LauncherState.READY)
    self._log('> Server ready!')
    self.sink.ready(self.app_url)

  async def _ensure_prerequisites(self) -> None:
    """前置条件缺失时运行安装程序，安装失败即终止本次启动。"""
    self._set_state(LauncherState.CHECKING_PREREQUISITES)
    config = self.config
    if check_prerequisites(config.resolved_data_dir(), config.resolved_env_files()):
      return
    self._set_state(LauncherState.INSTALLING)
    self.sink.set_title(config.installer_title)
    self._log('> Prerequisites missing. Running installer...')
    try:
      await self._supervisor.run_with_output(
        config.resolved_command(config.installer_command),
        cwd=config.work_dir,
        timeout=config.normalized_installer_timeout()
      )
    except LauncherError as exc:
      raise InstallerFailed(exc) from exc
    self._log('> Installation complete.')

  async def _start_or_attach(self) -> None:
    """服务未运行则启动自己的进程；已运行则只跟踪其日志文件。"""
    self._set_state(LauncherState.CHECKING_SERVER)
    config = self.config
    self.sink.set_title(config.server_title)
    if not await is_server_running(self._require_session(), self.endpoint, timeout=config.normalized_probe_timeout()):
      self._set_readiness(ReadinessState.NOT_RUNNING)
      self._set_state(LauncherState.STARTING_SERVER)
      self._log(f'> Server not running. Starting {config.server_title}...')
      self._owns_server = True
      self._server_task = self._spawn(self._run_server())
      return
    self._set_readiness(ReadinessState.RUNNING)
    self._set_state(LauncherState.ATTACHING_TO_RUNNING)
    self._log('> Server already active.')
    self.sink.set_title(config.log_title)
    self._spawn(tail_log_file(
      config.resolved_server_log(),
      self.sink,
      poll_interval=config.normalized_tail_poll_interval()
    ))

  async def _run_server(self) -> None:
    """托管服务进程直到其退出；错误写入日志后继续抛出，供就绪等待判断。"""
    config = self.config
    try:
      await self._supervisor.run_with_output(config.resolved_command(config.server_command), cwd=config.work_dir)
    except ProcessExitedWithError as exc:
      if self.state is not LauncherState.STOPPING:
        self._log(f'Server exited with error: {exc}')
      raise

  async def _wait_until_ready(self) -> int:
    """固定间隔轮询就绪接口，返回成功时的尝试次数。"""
    config = self.config
    attempts = config.normalized_ready_attempts()
    interval = config.normalized_ready_interval()
    timeout = config.normalized_probe_timeout()
    last_status: Optional[int] = None
    for attempt in range(1, attempts + 1):
      last_status = await fetch_version_status(self._require_session(), self.endpoint, timeout=timeout)
      if last_status == 200:
        self._set_readiness(ReadinessState.READY)
        logging.info('server ready after %d attempt(s)', attempt)
        return attempt
      self._set_readiness(ReadinessState.NOT_RUNNING if last_status is None else ReadinessState.RUNNING)
      self._raise_if_server_failed()
      await asyncio.sleep(interval)
    raise ReadinessTimeout(attempts, last_status)

  def _raise_if_server_failed(self) -> None:
    """服务进程在就绪前异常结束时，本次启动视为失败。"""
    task = self._server_task
    if task is None or not task.done() or task.cancelled():
      return
    exc = task.exception()
    if isinstance(exc, LauncherError):
      raise exc

  def _require_session(self) -> aiohttp.ClientSession:
    if self._session is None:
      raise RuntimeError('probe session is not open')
    return self._session

  async def _teardown(self, startup: asyncio.Future) -> None:
    """停止启动序列，关闭自己启动的服务，再回收所有后台任务。"""
    self._set_state(LauncherState.STOPPING)
    startup.cancel()
    await asyncio.gather(startup, return_exceptions=True)
    if self._owns_server:
      await self._shutdown_server()
    tasks = list(self._background)
    for task in tasks:
      task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    self._set_state(LauncherState.STOPPED)

  async def _shutdown_server(self) -> None:
    """先请求 /api/shutdown，再强杀仍存活的子进程；附着的外部服务不受影响。"""
    config = self.config
    self._log('> Sending shutdown signal to server...')
    session = self._session
    answered = False
    if session is not None:
      answered = await request_shutdown(session, self.endpoint, timeout=config.normalized_shutdown_timeout())
    if answered:
      await self._supervisor.wait_exit(config.normalized_shutdown_grace())
    if self._supervisor.is_alive:
      self._supervisor.kill()
      await self._supervisor.wait_exit(config.normalized_shutdown_timeout())


__all__ = ['LauncherManager', 'STOP_TIMEOUT_SECONDS']

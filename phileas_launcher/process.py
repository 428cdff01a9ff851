"""
子进程托管：启动安装程序或服务进程，实时转发 stdout/stderr 的每一行。
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .errors import ProcessExitedWithError, ProcessStartFailed, ProcessTimedOut
from .sink import LauncherSink

STREAM_LIMIT = 1024 * 1024
READER_DRAIN_SECONDS = 2.0


def hidden_window_kwargs() -> Dict[str, Any]:
  """返回隐藏控制台窗口、并让子进程自成进程组的平台参数。"""
  if os.name == 'nt':
    kwargs: Dict[str, Any] = {}
    creationflags = getattr(subprocess, 'CREATE_NO_WINDOW', None)
    if isinstance(creationflags, int):
      kwargs['creationflags'] = creationflags
    startupinfo_cls = getattr(subprocess, 'STARTUPINFO', None)
    if startupinfo_cls is not None:
      startupinfo = startupinfo_cls()
      startupinfo.dwFlags |= getattr(subprocess, 'STARTF_USESHOWWINDOW', 0)
      startupinfo.wShowWindow = 0  # SW_HIDE
      kwargs['startupinfo'] = startupinfo
    return kwargs
  return {'start_new_session': True}


class ProcessSupervisor:
  """持有当前唯一的子进程句柄，负责启动、输出转发与强制终止。

  所有方法都必须在同一个事件循环线程中调用。
  """

  def __init__(self, sink: LauncherSink) -> None:
    self.sink = sink
    self._process: Optional[asyncio.subprocess.Process] = None
    self._command: List[str] = []

  @property
  def process(self) -> Optional[asyncio.subprocess.Process]:
    """最近一次启动的进程（可能已经退出）。"""
    return self._process

  @property
  def is_alive(self) -> bool:
    """返回子进程是否仍在运行。"""
    return self._process is not None and self._process.returncode is None

  async def run_with_output(
    self,
    command: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None
  ) -> int:
    """启动进程并阻塞到其退出；非零退出码以 ProcessExitedWithError 抛出。"""
    if self.is_alive:
      raise RuntimeError('a supervised process is already running')
    argv = [str(part) for part in command]
    if not argv:
      raise ProcessStartFailed(argv, FileNotFoundError('empty command'))
    try:
      process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd) if cwd else None,
        limit=STREAM_LIMIT,
        **hidden_window_kwargs()
      )
    except OSError as exc:
      raise ProcessStartFailed(argv, exc) from exc

    self._process = process
    self._command = argv
    logging.info('started %s (pid %s)', ' '.join(argv), process.pid)
    readers = [
      asyncio.ensure_future(self._stream_reader(process.stdout)),
      asyncio.ensure_future(self._stream_reader(process.stderr))
    ]
    try:
      if timeout is not None and timeout > 0:
        try:
          returncode = await asyncio.wait_for(process.wait(), timeout)
        except asyncio.TimeoutError:
          self.kill()
          await process.wait()
          raise ProcessTimedOut(argv, timeout) from None
      else:
        returncode = await process.wait()
      # 进程退出后管道随即 EOF；孙进程可能仍持有管道，所以只等待有限时间。
      await asyncio.wait(readers, timeout=READER_DRAIN_SECONDS)
    finally:
      for reader in readers:
        reader.cancel()
      await asyncio.gather(*readers, return_exceptions=True)
      if self.is_alive:
        self.kill()
        with contextlib.suppress(ProcessLookupError):
          await process.wait()

    logging.info('%s exited with code %s', argv[0], returncode)
    if returncode != 0:
      raise ProcessExitedWithError(argv, returncode)
    return returncode

  async def _stream_reader(self, stream: Optional[asyncio.StreamReader]) -> None:
    """逐行读取管道并立即转发给输出接口。"""
    if stream is None:
      return
    while True:
      try:
        raw = await stream.readline()
      except (ValueError, asyncio.LimitOverrunError) as exc:
        logging.warning('dropping oversized output from child: %s', exc)
        continue
      if not raw:
        return
      self.sink.log_line(raw.decode('utf-8', errors='replace').rstrip('\r\n'))

  def kill(self) -> None:
    """强制结束子进程；进程已退出时不做任何事。"""
    process = self._process
    if process is None or process.returncode is not None:
      return
    logging.info('killing %s (pid %s)', self._command[0] if self._command else 'process', process.pid)
    if os.name != 'nt':
      try:
        os.killpg(process.pid, signal.SIGKILL)
        return
      except OSError:
        pass
    with contextlib.suppress(ProcessLookupError):
      process.kill()

  async def wait_exit(self, timeout: float) -> bool:
    """等待子进程自行退出，返回是否在时限内退出。"""
    process = self._process
    if process is None or process.returncode is not None:
      return True
    try:
      await asyncio.wait_for(asyncio.shield(process.wait()), timeout)
    except asyncio.TimeoutError:
      return False
    return True


__all__ = ['ProcessSupervisor', 'hidden_window_kwargs']

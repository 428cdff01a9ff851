"""
日志跟踪：附着到已在运行的外部服务时，轮询读取其日志文件新增的行。

只输出附着之后追加的内容；到达文件末尾时按固定间隔轮询，兼容各种文件系统。
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Union

from .sink import LauncherSink

DEFAULT_POLL_INTERVAL = 0.5


async def tail_log_file(
  path: Union[str, Path],
  sink: LauncherSink,
  *,
  poll_interval: float = DEFAULT_POLL_INTERVAL
) -> None:
  """持续跟踪日志文件直到任务被取消；打开失败只报告一次。"""
  try:
    file_obj = open(path, 'r', encoding='utf-8', errors='replace', newline='')
  except OSError as exc:
    sink.log_line(f'Could not open log file: {exc}')
    return

  with file_obj:
    try:
      file_obj.seek(0, os.SEEK_END)
    except OSError as exc:
      sink.log_line(f'Could not seek log file: {exc}')
      return
    logging.info('tailing %s', path)
    pending = ''
    while True:
      try:
        chunk = file_obj.readline()
      except (OSError, ValueError) as exc:
        logging.debug('stopped tailing %s: %s', path, exc)
        return
      if not chunk:
        await asyncio.sleep(poll_interval)
        continue
      pending += chunk
      # 写入方可能只写了半行，留到下一轮补齐。
      if not pending.endswith('\n'):
        continue
      sink.log_line(pending.strip())
      pending = ''


__all__ = ['tail_log_file', 'DEFAULT_POLL_INTERVAL']

"""
事件出口：编排器只向外发送三种事件（日志行、终端标题、就绪 URL）。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol


class LineKind(str, Enum):
  """日志行的展示类别。"""

  INFO = 'info'
  WARN = 'warn'
  ERROR = 'error'
  SYSTEM = 'system'
  PLAIN = 'plain'


def classify_line(text: str) -> LineKind:
  """按关键字给日志行分类，顺序与终端配色规则一致。"""
  if 'INFO' in text:
    return LineKind.INFO
  if 'WARN' in text:
    return LineKind.WARN
  if 'ERROR' in text or 'FAIL' in text:
    return LineKind.ERROR
  if text.startswith('>'):
    return LineKind.SYSTEM
  return LineKind.PLAIN


class LauncherSink(Protocol):
  """编排器、子进程读取器与日志跟踪器共享的输出接口。"""

  def log_line(self, text: str) -> None:
    ...

  def set_title(self, name: str) -> None:
    ...

  def ready(self, base_url: str) -> None:
    ...


@dataclass
class CallbackSink:
  """把三种事件分别转交给可选的回调函数。"""

  on_log: Optional[Callable[[str], None]] = None
  on_title: Optional[Callable[[str], None]] = None
  on_ready: Optional[Callable[[str], None]] = None

  def log_line(self, text: str) -> None:
    if self.on_log:
      self.on_log(text)

  def set_title(self, name: str) -> None:
    if self.on_title:
      self.on_title(name)

  def ready(self, base_url: str) -> None:
    if self.on_ready:
      self.on_ready(base_url)


class FanoutSink:
  """将事件依次转发给多个下游。"""

  def __init__(self, *sinks: LauncherSink) -> None:
    self.sinks = list(sinks)

  def log_line(self, text: str) -> None:
    for sink in self.sinks:
      sink.log_line(text)

  def set_title(self, name: str) -> None:
    for sink in self.sinks:
      sink.set_title(name)

  def ready(self, base_url: str) -> None:
    for sink in self.sinks:
      sink.ready(base_url)


class GuardedSink:
  """隔离下游异常：界面已关闭等情况不能打断后台任务。"""

  def __init__(self, inner: LauncherSink) -> None:
    self.inner = inner

  def log_line(self, text: str) -> None:
    try:
      self.inner.log_line(text)
    except Exception as exc:  # noqa: BLE001
      logging.warning('sink rejected log line: %s', exc)

  def set_title(self, name: str) -> None:
    try:
      self.inner.set_title(name)
    except Exception as exc:  # noqa: BLE001
      logging.warning('sink rejected title %r: %s', name, exc)

  def ready(self, base_url: str) -> None:
    try:
      self.inner.ready(base_url)
    except Exception as exc:  # noqa: BLE001
      logging.warning('sink rejected ready event: %s', exc)


__all__ = ['LineKind', 'classify_line', 'LauncherSink', 'CallbackSink', 'FanoutSink', 'GuardedSink']

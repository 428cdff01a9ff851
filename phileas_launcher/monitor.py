"""线程安全的启动状态监控，既是编排器的输出接口，也供桌面端轮询展示。"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Deque, Dict, List, Optional

from .sink import LineKind, classify_line
from .user_config import DEFAULT_SCROLLBACK_LIMIT


@dataclass
class LogEntry:
  """单条日志及其展示类别。"""

  text: str
  kind: LineKind

  def as_dict(self) -> Dict[str, str]:
    """将条目转换为界面/网络友好的字典。"""
    return {'text': self.text, 'kind': self.kind.value}


@dataclass
class LaunchMonitor:
  """记录终端标题、就绪地址与最近的日志行。

  后台线程写入，界面线程通过 drain_new_entries() 与 snapshot() 读取。
  """

  scrollback_limit: int = DEFAULT_SCROLLBACK_LIMIT
  _lock: Lock = field(default_factory=Lock, init=False, repr=False)
  _title: str = field(default='', init=False)
  _ready_url: Optional[str] = field(default=None, init=False)
  _scrollback: Deque[LogEntry] = field(default_factory=deque, init=False, repr=False)
  _unread: Deque[LogEntry] = field(default_factory=deque, init=False, repr=False)

  def __post_init__(self) -> None:
    limit = max(int(self.scrollback_limit or DEFAULT_SCROLLBACK_LIMIT), 1)
    self.scrollback_limit = limit
    self._scrollback = deque(maxlen=limit)
    self._unread = deque(maxlen=limit)

  def log_line(self, text: str) -> None:
    """追加一行日志，超过回滚上限时丢弃最旧的行。"""
    entry = LogEntry(text=text, kind=classify_line(text))
    with self._lock:
      self._scrollback.append(entry)
      self._unread.append(entry)

  def set_title(self, name: str) -> None:
    """记录当前终端标签。"""
    with self._lock:
      self._title = name

  def ready(self, base_url: str) -> None:
    """记录服务就绪地址。"""
    with self._lock:
      self._ready_url = base_url

  def drain_new_entries(self) -> List[LogEntry]:
    """取出自上次调用以来新增的日志。"""
    with self._lock:
      entries = list(self._unread)
      self._unread.clear()
    return entries

  @property
  def title(self) -> str:
    with self._lock:
      return self._title

  @property
  def ready_url(self) -> Optional[str]:
    with self._lock:
      return self._ready_url

  def snapshot(self) -> Dict[str, object]:
    """生成当前状态的浅拷贝，供界面或新连接的客户端渲染。"""
    with self._lock:
      return {
        'title': self._title,
        'readyUrl': self._ready_url,
        'lines': [entry.as_dict() for entry in self._scrollback]
      }


__all__ = ['LaunchMonitor', 'LogEntry', 'DEFAULT_SCROLLBACK_LIMIT']

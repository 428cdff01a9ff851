"""启动流程的状态枚举，供界面与测试观察。"""
from __future__ import annotations

from enum import Enum


class LauncherState(str, Enum):
  """编排器所处的阶段。"""

  INIT = 'init'
  CHECKING_PREREQUISITES = 'checking_prerequisites'
  INSTALLING = 'installing'
  CHECKING_SERVER = 'checking_server'
  STARTING_SERVER = 'starting_server'
  ATTACHING_TO_RUNNING = 'attaching_to_running'
  WAITING_READY = 'waiting_ready'
  READY = 'ready'
  TIMED_OUT = 'timed_out'
  FAILED = 'failed'
  STOPPING = 'stopping'
  STOPPED = 'stopped'

  @property
  def is_settled(self) -> bool:
    """启动序列已经有了结论（成功、失败或被停止）。"""
    return self in SETTLED_STATES


SETTLED_STATES = frozenset({
  LauncherState.READY,
  LauncherState.TIMED_OUT,
  LauncherState.FAILED,
  LauncherState.STOPPED
})


class ReadinessState(str, Enum):
  """对服务的最近一次探测结论，只在当前启动尝试内有效。"""

  UNKNOWN = 'unknown'
  NOT_RUNNING = 'not_running'
  RUNNING = 'running'
  READY = 'ready'
  TIMED_OUT = 'timed_out'


__all__ = ['LauncherState', 'ReadinessState', 'SETTLED_STATES']

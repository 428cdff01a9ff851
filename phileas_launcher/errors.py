"""
启动器的异常体系：只有安装失败与就绪超时会作为整次启动的终态暴露给界面。
"""
from __future__ import annotations

from typing import Optional, Sequence


class LauncherError(Exception):
  """启动流程中所有可预期错误的基类。"""


class PrerequisiteMissing(LauncherError):
  """数据目录或环境文件缺失，需要先运行安装程序。"""


class ProcessStartFailed(LauncherError):
  """子进程无法启动（可执行文件不存在、无权限等）。"""

  def __init__(self, command: Sequence[str], cause: OSError) -> None:
    self.command = list(command)
    self.cause = cause
    super().__init__(f'failed to start {_display(command)}: {cause}')


class ProcessExitedWithError(LauncherError):
  """子进程以非零退出码结束。"""

  def __init__(self, command: Sequence[str], returncode: int) -> None:
    self.command = list(command)
    self.returncode = returncode
    super().__init__(f'exit status {returncode}')


class ProcessTimedOut(LauncherError):
  """子进程在限定时间内没有结束，已被强制终止。"""

  def __init__(self, command: Sequence[str], timeout: float) -> None:
    self.command = list(command)
    self.timeout = timeout
    super().__init__(f'{_display(command)} did not finish within {timeout:g}s')


class InstallerFailed(LauncherError):
  """安装程序失败，本次启动直接终止。"""

  def __init__(self, cause: LauncherError) -> None:
    self.cause = cause
    super().__init__(str(cause))


class ReadinessTimeout(LauncherError):
  """在允许的探测次数内服务始终未返回 HTTP 200。"""

  def __init__(self, attempts: int, last_status: Optional[int] = None) -> None:
    self.attempts = attempts
    self.last_status = last_status
    super().__init__(f'server not ready after {attempts} attempts')


def _display(command: Sequence[str]) -> str:
  return ' '.join(str(part) for part in command) or '<empty command>'


__all__ = [
  'LauncherError',
  'PrerequisiteMissing',
  'ProcessStartFailed',
  'ProcessExitedWithError',
  'ProcessTimedOut',
  'InstallerFailed',
  'ReadinessTimeout'
]

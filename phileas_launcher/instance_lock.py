"""
单实例保护：桌面端启动时独占一个锁文件，第二个实例直接退出。
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import IO, Optional

from .user_config import CONFIG_DIR

LOCK_FILE = CONFIG_DIR / 'launcher.lock'

if os.name == 'nt':
  import msvcrt
else:
  import fcntl


class InstanceLock:
  """基于文件锁的单实例互斥，进程退出时由操作系统自动释放。"""

  def __init__(self, lock_file: Path = LOCK_FILE) -> None:
    self.lock_file = lock_file
    self._file: Optional[IO[str]] = None

  @property
  def held(self) -> bool:
    return self._file is not None

  def acquire(self) -> bool:
    """尝试获取锁；已被其他实例持有时返回 False。"""
    if self._file is not None:
      return True
    self.lock_file.parent.mkdir(parents=True, exist_ok=True)
    file_obj = open(self.lock_file, 'a+', encoding='utf-8')
    try:
      if os.name == 'nt':
        file_obj.seek(0)
        msvcrt.locking(file_obj.fileno(), msvcrt.LK_NBLCK, 1)
      else:
        fcntl.flock(file_obj.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
      file_obj.close()
      logging.info('another launcher instance holds %s', self.lock_file)
      return False
    file_obj.seek(0)
    file_obj.truncate()
    file_obj.write(str(os.getpid()))
    file_obj.flush()
    self._file = file_obj
    return True

  def release(self) -> None:
    """释放锁，可重复调用。"""
    file_obj = self._file
    if file_obj is None:
      return
    self._file = None
    try:
      if os.name == 'nt':
        file_obj.seek(0)
        msvcrt.locking(file_obj.fileno(), msvcrt.LK_UNLCK, 1)
      else:
        fcntl.flock(file_obj.fileno(), fcntl.LOCK_UN)
    except OSError as exc:
      logging.warning('failed to release instance lock: %s', exc)
    finally:
      file_obj.close()

  def __enter__(self) -> 'InstanceLock':
    return self

  def __exit__(self, exc_type, exc_val, exc_tb) -> None:
    self.release()


__all__ = ['InstanceLock', 'LOCK_FILE']

"""运行前置条件检查：只判断数据目录与环境文件是否存在，不校验内容。"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable


def check_prerequisites(data_dir: Path, env_files: Iterable[Path]) -> bool:
  """数据目录存在且至少一个环境文件存在时返回 True。"""
  if not data_dir.is_dir():
    return False
  return any(Path(env_file).exists() for env_file in env_files)


__all__ = ['check_prerequisites']

"""
统一的日志配置工具，供 CLI 与桌面端共同调用。
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'


def configure_logging(level: str, log_file: Optional[Path] = None) -> None:
  """使用统一格式配置日志输出，可选同时写入文件。"""
  handlers: List[logging.Handler] = [logging.StreamHandler()]
  if log_file is not None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
  logging.basicConfig(
    level=getattr(logging, level.upper(), logging.INFO),
    format=LOG_FORMAT,
    handlers=handlers
  )


__all__ = ['configure_logging', 'LOG_FORMAT']

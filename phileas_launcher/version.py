"""启动器版本号：构建时注入的 APP_VERSION > 打包写入的 _version.txt > 已安装包的元数据。"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Mapping, Optional

DISTRIBUTION_NAME = 'phileas-launcher'
VERSION_FILE = Path(__file__).resolve().with_name('_version.txt')
FALLBACK_VERSION = '0.0.0'


def _read_version_file(path: Path = VERSION_FILE) -> Optional[str]:
  try:
    value = path.read_text(encoding='utf-8').strip()
  except OSError:
    return None
  return value or None


def _distribution_version() -> Optional[str]:
  try:
    return metadata.version(DISTRIBUTION_NAME)
  except metadata.PackageNotFoundError:
    return None


def resolve_version(
  environ: Optional[Mapping[str, str]] = None,
  version_file: Path = VERSION_FILE
) -> str:
  env = os.environ if environ is None else environ
  injected = (env.get('APP_VERSION') or '').strip()
  if injected:
    return injected
  return _read_version_file(version_file) or _distribution_version() or FALLBACK_VERSION


@lru_cache()
def get_app_version() -> str:
  return resolve_version()


APP_VERSION = get_app_version()

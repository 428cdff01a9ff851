"""
界面偏好配置，负责将窗口位置、尺寸与日志回滚上限持久化到 JSON 文件。
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_DIR = Path.home() / '.phileas_launcher'
CONFIG_FILE = CONFIG_DIR / 'gui_settings.json'
DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 768
DEFAULT_SCROLLBACK_LIMIT = 1000
UNSET_POSITION = -1


@dataclass
class GuiPreferences:
  """记录需要持久化的窗口状态；x 为 -1 表示交给窗口管理器决定位置。"""

  width: int = DEFAULT_WIDTH
  height: int = DEFAULT_HEIGHT
  x: int = UNSET_POSITION
  y: int = UNSET_POSITION
  maximized: bool = False
  scrollback_limit: int = DEFAULT_SCROLLBACK_LIMIT

  @property
  def has_position(self) -> bool:
    return self.x != UNSET_POSITION

  def geometry(self) -> str:
    """生成 Tk geometry 字符串。"""
    size = f'{self.width}x{self.height}'
    if not self.has_position:
      return size
    return f'{size}+{self.x}+{self.y}'


def _coerce_int(value: Any, default: int, minimum: Optional[int] = None) -> int:
  """将 JSON 中的数值转换为整数，非法时回退默认值。"""
  try:
    parsed = int(value)
  except (TypeError, ValueError):
    return default
  if minimum is not None and parsed < minimum:
    return default
  return parsed


def _coerce_scrollback(value: Any) -> int:
  """将日志回滚上限限制在合理范围内。"""
  parsed = _coerce_int(value, DEFAULT_SCROLLBACK_LIMIT)
  if parsed < 100:
    return 100
  if parsed > 5000:
    return 5000
  return parsed


def load_gui_preferences(path: Path = CONFIG_FILE) -> GuiPreferences:
  """从 JSON 文件加载界面配置，若不存在或损坏则返回默认配置。"""
  try:
    raw = path.read_text(encoding='utf-8')
    data: Dict[str, Any] = json.loads(raw)
  except FileNotFoundError:
    return GuiPreferences()
  except (OSError, json.JSONDecodeError) as exc:
    logging.warning('ignoring unreadable gui settings %s: %s', path, exc)
    return GuiPreferences()
  if not isinstance(data, dict):
    return GuiPreferences()
  return GuiPreferences(
    width=_coerce_int(data.get('width'), DEFAULT_WIDTH, minimum=200),
    height=_coerce_int(data.get('height'), DEFAULT_HEIGHT, minimum=150),
    x=_coerce_int(data.get('x'), UNSET_POSITION),
    y=_coerce_int(data.get('y'), UNSET_POSITION),
    maximized=bool(data.get('maximized', False)),
    scrollback_limit=_coerce_scrollback(data.get('scrollback_limit'))
  )


def save_gui_preferences(preferences: GuiPreferences, path: Path = CONFIG_FILE) -> None:
  """将界面配置写入 JSON 文件。"""
  path.parent.mkdir(parents=True, exist_ok=True)
  payload = asdict(preferences)
  path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding='utf-8')


__all__ = ['GuiPreferences', 'load_gui_preferences', 'save_gui_preferences', 'CONFIG_DIR', 'CONFIG_FILE']

"""
桌面外壳：终端风格的日志视图、当前进程标签，以及服务就绪后打开应用的入口。
"""
from __future__ import annotations

import logging
import tkinter as tk
import webbrowser
from tkinter import ttk
from typing import Dict, List, Optional

from dotenv import load_dotenv, find_dotenv

from .config import LauncherConfig, load_config_from_env
from .instance_lock import InstanceLock
from .logging_utils import LOG_FORMAT, configure_logging
from .monitor import LaunchMonitor, LogEntry
from .orchestrator import LauncherManager
from .paths import get_public_asset
from .sink import LineKind
from .user_config import GuiPreferences, load_gui_preferences, save_gui_preferences
from .version import APP_VERSION

WINDOW_TITLE = 'PhileasGUI'
LOG_POLL_INTERVAL_MS = 200
LINE_COLOURS: Dict[LineKind, str] = {
  LineKind.INFO: '#6ccf8e',
  LineKind.WARN: '#e5c07b',
  LineKind.ERROR: '#e06c75',
  LineKind.SYSTEM: '#61afef',
  LineKind.PLAIN: '#d4d4d4'
}


class GuiLogHandler(logging.Handler):
  """将启动器自身的告警日志转发到界面日志视图。"""

  def __init__(self, monitor: LaunchMonitor) -> None:
    """记录监控对象引用并配置格式。"""
    super().__init__(level=logging.WARNING)
    self.monitor = monitor
    self.setFormatter(logging.Formatter(LOG_FORMAT))

  def emit(self, record: logging.LogRecord) -> None:
    """将格式化后的日志写入监控对象。"""
    try:
      self.monitor.log_line(self.format(record))
    except Exception:  # noqa: BLE001
      self.handleError(record)


class LauncherDesktopApp:
  """桌面程序主体，封装界面与后台编排器控制。"""

  def __init__(self, config: Optional[LauncherConfig] = None, *, auto_open: bool = True) -> None:
    """初始化 Tk 根窗口、控件、日志管道，并立即开始启动流程。"""
    self.config = config or load_config_from_env()
    configure_logging(self.config.log_level)
    self.preferences: GuiPreferences = load_gui_preferences()
    self.auto_open = auto_open
    self.root = tk.Tk()
    self.root.title(self._window_title())
    self._apply_window_icon()
    self.root.minsize(640, 420)
    self._restore_window_placement()
    self.monitor = LaunchMonitor(scrollback_limit=self.preferences.scrollback_limit)
    self.log_handler = GuiLogHandler(self.monitor)
    logging.getLogger().addHandler(self.log_handler)
    self.manager = LauncherManager(self.config, self.monitor)
    self._shown_url: Optional[str] = None
    self._build_widgets()
    self._schedule_log_polling()
    self.manager.start()

  def _window_title(self) -> str:
    """根据版本号生成程序标题。"""
    version = (APP_VERSION or '').strip()
    if version and version != '0.0.0':
      return f'{WINDOW_TITLE} {version}'
    return WINDOW_TITLE

  def _build_widgets(self) -> None:
    """创建并布局所有 UI 控件。"""
    main_frame = ttk.Frame(self.root, padding=8)
    main_frame.pack(fill=tk.BOTH, expand=True)

    header = ttk.Frame(main_frame)
    header.pack(fill=tk.X, pady=(0, 6))
    self.title_var = tk.StringVar(value='')
    ttk.Label(header, textvariable=self.title_var, font=('TkDefaultFont', 10, 'bold')).pack(side=tk.LEFT)
    self.open_button = ttk.Button(header, text='Open app', command=self._open_app, state=tk.DISABLED)
    self.open_button.pack(side=tk.RIGHT)
    self.status_var = tk.StringVar(value='Starting...')
    ttk.Label(header, textvariable=self.status_var, foreground='#666666').pack(side=tk.RIGHT, padx=8)

    log_container = ttk.Frame(main_frame)
    log_container.pack(fill=tk.BOTH, expand=True)
    self.log_text = tk.Text(
      log_container,
      state=tk.DISABLED,
      wrap=tk.WORD,
      background='#1e1e1e',
      foreground=LINE_COLOURS[LineKind.PLAIN],
      insertbackground='#d4d4d4',
      font=('Consolas', 10)
    )
    for kind, colour in LINE_COLOURS.items():
      self.log_text.tag_configure(kind.value, foreground=colour)
    scrollbar = ttk.Scrollbar(log_container, orient=tk.VERTICAL, command=self.log_text.yview)
    self.log_text.configure(yscrollcommand=scrollbar.set)
    self.log_text.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
    scrollbar.pack(side=tk.RIGHT, fill=tk.Y)

  def _apply_window_icon(self) -> None:
    """加载并应用窗口图标，仅使用 public/app.ico。"""
    icon_file = get_public_asset('app.ico')
    if not icon_file.exists():
      logging.debug('icon file not found: %s', icon_file)
      return
    try:
      self.root.iconbitmap(default=str(icon_file))
    except tk.TclError as exc:
      logging.warning('failed to apply ICO icon: %s', exc)

  def _restore_window_placement(self) -> None:
    """恢复上次关闭时的窗口位置与尺寸。"""
    self.root.geometry(self.preferences.geometry())
    if self.preferences.maximized:
      try:
        self.root.state('zoomed')
      except tk.TclError:
        self.root.attributes('-zoomed', True)

  def _save_window_placement(self) -> None:
    """记录当前窗口状态，失败时只写日志。"""
    prefs = self.preferences
    try:
      prefs.maximized = self.root.state() == 'zoomed'
      if not prefs.maximized:
        prefs.width = self.root.winfo_width()
        prefs.height = self.root.winfo_height()
        prefs.x = self.root.winfo_x()
        prefs.y = self.root.winfo_y()
      save_gui_preferences(prefs)
    except (tk.TclError, OSError) as exc:
      logging.warning('failed to save window placement: %s', exc)

  def _schedule_log_polling(self) -> None:
    """启动循环任务，从监控对象读取日志与事件到界面。"""
    self._drain_monitor()
    self.root.after(LOG_POLL_INTERVAL_MS, self._schedule_log_polling)

  def _drain_monitor(self) -> None:
    """写入新日志，并同步标题、状态与就绪地址。"""
    entries = self.monitor.drain_new_entries()
    if entries:
      self._append_entries(entries)
    title = self.monitor.title
    if title and self.title_var.get() != title.upper():
      self.title_var.set(title.upper())
    self.status_var.set(self.manager.state.value.replace('_', ' ').capitalize())
    ready_url = self.monitor.ready_url
    if ready_url and ready_url != self._shown_url:
      self._shown_url = ready_url
      self.open_button.config(state=tk.NORMAL)
      if self.auto_open:
        self._open_app()

  def _append_entries(self, entries: List[LogEntry]) -> None:
    """按类别着色追加日志，超过回滚上限时删除最旧的行；仅在视图位于底部时自动滚动。"""
    sticky = self.log_text.yview()[1] >= 0.999
    self.log_text.configure(state=tk.NORMAL)
    for entry in entries:
      self.log_text.insert(tk.END, entry.text + '\n', entry.kind.value)
    line_count = int(self.log_text.index('end-1c').split('.')[0])
    overflow = line_count - self.monitor.scrollback_limit
    if overflow > 0:
      self.log_text.delete('1.0', f'{overflow + 1}.0')
    self.log_text.configure(state=tk.DISABLED)
    if sticky:
      self.log_text.see(tk.END)

  def _open_app(self) -> None:
    """在系统浏览器中打开服务页面。"""
    if self._shown_url:
      webbrowser.open(self._shown_url)

  def run(self) -> None:
    """进入 Tkinter 主循环。"""
    self.root.protocol('WM_DELETE_WINDOW', self._on_close)
    self.root.mainloop()

  def _on_close(self) -> None:
    """在窗口关闭时保存窗口状态、停止服务并销毁 GUI。"""
    self._save_window_placement()
    self.status_var.set('Stopping...')
    self.root.update_idletasks()
    try:
      self.manager.stop()
    except Exception:  # noqa: BLE001
      logging.exception('failed to stop launcher cleanly')
    logging.getLogger().removeHandler(self.log_handler)
    self.root.destroy()


def launch_desktop_app() -> None:
  """启动桌面程序入口；已有实例运行时直接返回。"""
  load_dotenv(find_dotenv(usecwd=True), override=False)
  lock = InstanceLock()
  if not lock.acquire():
    return
  try:
    app = LauncherDesktopApp()
    app.run()
  finally:
    lock.release()

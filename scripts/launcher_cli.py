#!/usr/bin/env python3
"""
命令行入口：无窗口运行启动器，日志打印到终端，可选通过 WebSocket 推送事件。
"""
import argparse
import signal
import sys
import threading
from pathlib import Path

from dotenv import load_dotenv, find_dotenv


def _resolve_base_dir() -> Path:
  """返回当前运行环境中的项目根目录，兼容 PyInstaller。"""
  if getattr(sys, 'frozen', False):
    return Path(getattr(sys, '_MEIPASS'))  # type: ignore[attr-defined]
  return Path(__file__).resolve().parents[1]


ROOT_DIR = _resolve_base_dir()
if str(ROOT_DIR) not in sys.path:
  sys.path.insert(0, str(ROOT_DIR))

load_dotenv(find_dotenv(usecwd=True), override=False)

from phileas_launcher.config import load_config_from_env
from phileas_launcher.event_server import DEFAULT_EVENT_PORT, EventFeedServer
from phileas_launcher.logging_utils import configure_logging
from phileas_launcher.monitor import LaunchMonitor
from phileas_launcher.orchestrator import LauncherManager
from phileas_launcher.sink import CallbackSink, FanoutSink
from phileas_launcher.version import APP_VERSION


def parse_args() -> argparse.Namespace:
  """解析 CLI 参数，允许覆盖服务地址、工作目录与事件端口。"""
  parser = argparse.ArgumentParser(description='启动并托管 Phileas 服务。')
  parser.add_argument('--version', action='version', version=APP_VERSION)
  parser.add_argument('--server-addr', default=None, help='服务地址 (默认: localhost:1920)')
  parser.add_argument('--work-dir', default=None, help='工作目录，data/ 与 .env 所在位置')
  parser.add_argument(
    '--log-level',
    choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
    default=None,
    help='日志级别 (默认: INFO)'
  )
  parser.add_argument('--log-file', default=None, help='同时写入的日志文件路径')
  parser.add_argument(
    '--installer-timeout',
    type=float,
    default=None,
    help='安装程序最长运行秒数 (默认: 不限)'
  )
  parser.add_argument(
    '--event-port',
    type=int,
    default=None,
    help=f'开启 WebSocket 事件推送的端口 (例如 {DEFAULT_EVENT_PORT})'
  )
  return parser.parse_args()


def main() -> None:
  """脚本入口：配置日志、构建配置并运行到 Ctrl+C。"""
  args = parse_args()
  overrides = {}
  if args.work_dir:
    overrides['work_dir'] = Path(args.work_dir).resolve()
  config = load_config_from_env(**overrides)
  if args.server_addr:
    config.server_addr = args.server_addr
  if args.log_level:
    config.log_level = args.log_level
  if args.installer_timeout is not None:
    config.installer_timeout_seconds = args.installer_timeout
  configure_logging(config.log_level, Path(args.log_file) if args.log_file else None)

  monitor = LaunchMonitor()
  sinks = [monitor, CallbackSink(on_log=print, on_ready=lambda url: print(f'> App available at {url}'))]
  feed = None
  if args.event_port is not None:
    feed = EventFeedServer(monitor, port=args.event_port)
    feed.start()
    sinks.append(feed)
  manager = LauncherManager(config, FanoutSink(*sinks))

  interrupted = threading.Event()
  signal.signal(signal.SIGINT, lambda *_: interrupted.set())
  if hasattr(signal, 'SIGTERM'):
    signal.signal(signal.SIGTERM, lambda *_: interrupted.set())

  manager.start()
  try:
    while not interrupted.wait(0.5):
      pass
  finally:
    print('\nstopping launcher...')
    manager.stop()
    if feed:
      feed.stop()


if __name__ == '__main__':
  main()

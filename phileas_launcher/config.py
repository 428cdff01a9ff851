"""
配置对象定义，集中管理启动器的路径、命令与各项时限。
"""
from __future__ import annotations

import logging
import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

import yaml

from .address import base_url, resolve_addr
from .paths import get_app_dir

DEFAULT_SERVER_ADDR = 'localhost:1920'
DEFAULT_READY_ATTEMPTS = 30
DEFAULT_READY_INTERVAL_SECONDS = 1.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 1.0
DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 2.0
DEFAULT_SHUTDOWN_GRACE_SECONDS = 0.5
DEFAULT_TAIL_POLL_INTERVAL_SECONDS = 0.5
DEFAULT_ENV_FILES: Tuple[str, ...] = ('.env', '.env.local')
SERVICE_CONFIG_FILE = Path('configs') / 'phileas.yaml'


def default_installer_command() -> List[str]:
  """返回当前平台的安装脚本调用方式。"""
  if sys.platform.startswith('win'):
    return ['powershell', '-ExecutionPolicy', 'Bypass', '-File', 'install.ps1']
  return ['sh', 'install.sh']


def default_server_command() -> List[str]:
  """返回当前平台的服务可执行文件。"""
  if sys.platform.startswith('win'):
    return ['./phileasgo.exe']
  return ['./phileasgo']


def _positive_float(value: object, default: float) -> float:
  try:
    parsed = float(value)  # type: ignore[arg-type]
  except (TypeError, ValueError):
    return default
  return parsed if parsed > 0 else default


@dataclass
class LauncherConfig:
  """封装启动器的可配置项。"""

  server_addr: str = DEFAULT_SERVER_ADDR
  work_dir: Path = field(default_factory=get_app_dir)
  data_dir: Path = Path('data')
  env_files: Tuple[str, ...] = DEFAULT_ENV_FILES
  installer_command: List[str] = field(default_factory=default_installer_command)
  server_command: List[str] = field(default_factory=default_server_command)
  server_log_file: Path = Path('logs') / 'server.log'
  ready_attempts: int = DEFAULT_READY_ATTEMPTS
  ready_interval_seconds: float = DEFAULT_READY_INTERVAL_SECONDS
  probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
  shutdown_timeout_seconds: float = DEFAULT_SHUTDOWN_TIMEOUT_SECONDS
  shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS
  installer_timeout_seconds: Optional[float] = None
  tail_poll_interval_seconds: float = DEFAULT_TAIL_POLL_INTERVAL_SECONDS
  log_level: str = 'INFO'

  @property
  def endpoint(self) -> str:
    """探测与关闭请求使用的回环地址。"""
    return resolve_addr(self.server_addr)

  @property
  def app_url(self) -> str:
    """就绪后交给界面加载的地址，与探测使用同一个回环地址。"""
    return base_url(self.endpoint)

  def resolve_path(self, path: Path) -> Path:
    """相对路径一律以工作目录为基准。"""
    path = Path(path).expanduser()
    if path.is_absolute():
      return path
    return Path(self.work_dir) / path

  def resolved_data_dir(self) -> Path:
    return self.resolve_path(self.data_dir)

  def resolved_env_files(self) -> List[Path]:
    return [self.resolve_path(Path(name)) for name in self.env_files]

  def resolved_server_log(self) -> Path:
    return self.resolve_path(self.server_log_file)

  def resolved_command(self, command: List[str]) -> List[str]:
    """把 ./xxx 形式的程序路径解析到工作目录下，Windows 不会按 cwd 查找它们。"""
    if not command:
      return []
    program = command[0]
    if program.startswith(('./', '.\\')):
      program = str(self.resolve_path(Path(program)))
    return [program, *command[1:]]

  @property
  def installer_title(self) -> str:
    """安装阶段终端标签，显示脚本文件名。"""
    if not self.installer_command:
      return 'installer'
    return Path(self.installer_command[-1]).name

  @property
  def server_title(self) -> str:
    """服务进程终端标签。"""
    if not self.server_command:
      return 'server'
    return Path(self.server_command[0]).name

  @property
  def log_title(self) -> str:
    """附着模式下的终端标签。"""
    return Path(self.server_log_file).name

  def normalized_ready_attempts(self) -> int:
    """返回合法的就绪探测次数（非法值回退到 30 次）。"""
    try:
      attempts = int(self.ready_attempts)
    except (TypeError, ValueError):
      return DEFAULT_READY_ATTEMPTS
    return attempts if attempts > 0 else DEFAULT_READY_ATTEMPTS

  def normalized_ready_interval(self) -> float:
    return _positive_float(self.ready_interval_seconds, DEFAULT_READY_INTERVAL_SECONDS)

  def normalized_probe_timeout(self) -> float:
    return _positive_float(self.probe_timeout_seconds, DEFAULT_PROBE_TIMEOUT_SECONDS)

  def normalized_shutdown_timeout(self) -> float:
    return _positive_float(self.shutdown_timeout_seconds, DEFAULT_SHUTDOWN_TIMEOUT_SECONDS)

  def normalized_shutdown_grace(self) -> float:
    return _positive_float(self.shutdown_grace_seconds, DEFAULT_SHUTDOWN_GRACE_SECONDS)

  def normalized_tail_poll_interval(self) -> float:
    return _positive_float(self.tail_poll_interval_seconds, DEFAULT_TAIL_POLL_INTERVAL_SECONDS)

  def normalized_installer_timeout(self) -> Optional[float]:
    """返回安装程序超时秒数（<=0 或未设置表示不限时）。"""
    if self.installer_timeout_seconds is None:
      return None
    try:
      value = float(self.installer_timeout_seconds)
    except (TypeError, ValueError):
      return None
    return value if value > 0 else None


def _split_command(raw: str) -> List[str]:
  return shlex.split(raw, posix=not sys.platform.startswith('win'))


def load_service_address(path: Path) -> Optional[str]:
  """从服务自己的 phileas.yaml 读取 server.address；文件缺失或无法解析时返回 None。"""
  try:
    with open(path, 'r', encoding='utf-8') as file_obj:
      data = yaml.safe_load(file_obj)
  except FileNotFoundError:
    return None
  except (OSError, yaml.YAMLError) as exc:
    logging.warning('failed to read service config %s: %s', path, exc)
    return None
  server = data.get('server') if isinstance(data, dict) else None
  address = server.get('address') if isinstance(server, dict) else None
  if isinstance(address, str) and address.strip():
    return address.strip()
  return None


def load_config_from_env(environ: Optional[Mapping[str, str]] = None, **overrides) -> LauncherConfig:
  """依次用服务配置文件与 PHILEAS_* 环境变量覆盖默认配置，调用方需先执行 load_dotenv。"""
  env = os.environ if environ is None else environ
  config = LauncherConfig(**overrides)
  if 'server_addr' not in overrides:
    service_addr = load_service_address(config.resolve_path(SERVICE_CONFIG_FILE))
    if service_addr:
      config.server_addr = service_addr
  if env.get('PHILEAS_SERVER_ADDR'):
    config.server_addr = env['PHILEAS_SERVER_ADDR'].strip()
  if env.get('PHILEAS_SERVER_COMMAND'):
    config.server_command = _split_command(env['PHILEAS_SERVER_COMMAND'])
  if env.get('PHILEAS_INSTALLER_COMMAND'):
    config.installer_command = _split_command(env['PHILEAS_INSTALLER_COMMAND'])
  if env.get('PHILEAS_SERVER_LOG'):
    config.server_log_file = Path(env['PHILEAS_SERVER_LOG'])
  if env.get('PHILEAS_INSTALLER_TIMEOUT'):
    try:
      config.installer_timeout_seconds = float(env['PHILEAS_INSTALLER_TIMEOUT'])
    except ValueError:
      logging.warning('ignoring invalid PHILEAS_INSTALLER_TIMEOUT=%r', env['PHILEAS_INSTALLER_TIMEOUT'])
  if env.get('PHILEAS_LOG_LEVEL'):
    config.log_level = env['PHILEAS_LOG_LEVEL'].strip().upper()
  return config


__all__ = [
  'LauncherConfig',
  'load_config_from_env',
  'load_service_address',
  'SERVICE_CONFIG_FILE',
  'default_installer_command',
  'default_server_command',
  'DEFAULT_SERVER_ADDR',
  'DEFAULT_READY_ATTEMPTS',
  'DEFAULT_READY_INTERVAL_SECONDS'
]

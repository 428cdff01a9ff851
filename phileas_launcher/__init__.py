"""Desktop launcher that boots, supervises and exposes the Phileas server."""

from .config import LauncherConfig, load_config_from_env
from .logging_utils import configure_logging
from .monitor import LaunchMonitor
from .orchestrator import LauncherManager
from .sink import CallbackSink, LauncherSink, classify_line
from .states import LauncherState, ReadinessState

__all__ = [
  "LauncherConfig",
  "LauncherManager",
  "LauncherSink",
  "LauncherState",
  "LaunchMonitor",
  "ReadinessState",
  "CallbackSink",
  "classify_line",
  "configure_logging",
  "load_config_from_env",
]

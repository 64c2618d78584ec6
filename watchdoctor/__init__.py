"""Watch doctor: TCP liveness watching for backend servers with HTTP down alerts."""

from .config import ConfigurationError, WatchDoctorConfig, load_config, normalize_target, parse_directive
from .module import WatchDoctor, WatchDoctorMiddleware
from .notifier import DownNotifier, Notification
from .prober import ProbeResult, probe
from .supervisor import Supervisor

__all__ = [
    "ConfigurationError",
    "DownNotifier",
    "Notification",
    "ProbeResult",
    "Supervisor",
    "WatchDoctor",
    "WatchDoctorConfig",
    "WatchDoctorMiddleware",
    "load_config",
    "normalize_target",
    "parse_directive",
    "probe",
]

from dataclasses import dataclass, field

from .state import DeviceStateMirror, MetricsSnapshot
from .tasks import BackgroundTaskRunner


@dataclass(slots=True)
class ControllerContext:
    """Process-scoped shared state handed to every component."""

    mirror: DeviceStateMirror = field(default_factory=DeviceStateMirror)
    metrics: MetricsSnapshot = field(default_factory=MetricsSnapshot)
    tasks: BackgroundTaskRunner = field(default_factory=BackgroundTaskRunner)

"""Host capabilities: foreground processes and device power"""

from .activities import ProcessActivityController
from .power import HostDeviceController

__all__ = ["ProcessActivityController", "HostDeviceController"]

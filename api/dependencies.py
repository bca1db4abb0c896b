from core.pipeline import ThumbnailMonitor, VideoRegistrar
from workers.runtime import build_monitor, build_registrar


def get_monitor() -> ThumbnailMonitor:
    return build_monitor()


def get_registrar() -> VideoRegistrar:
    return build_registrar()

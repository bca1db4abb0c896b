"""Wires the monitor to its production collaborators."""
from connectors.web.http_connector import HttpConnector
from connectors.youtube import OEmbedClient
from core.config import get_settings
from core.db import VideoStore
from core.imaging import ThumbnailDecorator
from core.pipeline import ThumbnailMonitor, VideoRegistrar
from core.storage import LocalObjectStore
from workers.celery_app import celery_app
from workers.scheduler import CeleryTaskScheduler


def build_monitor() -> ThumbnailMonitor:
    settings = get_settings()
    return ThumbnailMonitor(
        store=VideoStore(),
        scheduler=CeleryTaskScheduler(celery_app),
        object_store=LocalObjectStore.from_settings(),
        connector=HttpConnector(),
        decorator=ThumbnailDecorator.from_settings(),
        ceiling_days=settings.check_interval_ceiling_days,
    )


def build_registrar() -> VideoRegistrar:
    return VideoRegistrar(build_monitor(), OEmbedClient())

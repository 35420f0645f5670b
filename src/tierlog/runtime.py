"""
Pipeline wiring and process lifecycle.

`build_pipeline` turns settings into a ready PipelineLogger; `pipeline_lifespan`
is the hook an application entry point (or a web framework lifespan) wraps its
work in, guaranteeing that every tier is drained before the process exits.

    async def main() -> None:
        async with pipeline_lifespan() as log:
            log.info("service started")
            await log.wait_closed()   # returns after SIGINT/SIGTERM
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from tierlog.config import Settings, get_settings
from tierlog.db import create_engine
from tierlog.logging import configure_logging_from_settings
from tierlog.pipeline import PipelineLogger, RedisLogBuffer, SqlLogSink


def build_pipeline(settings: Optional[Settings] = None) -> PipelineLogger:
    """Create the buffer, sink and orchestrator described by `settings`."""
    settings = settings or get_settings()
    buffer = RedisLogBuffer(settings.redis)
    sink = SqlLogSink(create_engine(settings.database), environment=settings.env)
    return PipelineLogger(
        buffer,
        sink,
        settings=settings.pipeline,
        app_name=settings.app_name,
        environment=settings.env,
        hostname=settings.app.resolved_hostname,
    )


@asynccontextmanager
async def pipeline_lifespan(
    settings: Optional[Settings] = None,
    *,
    configure_logging: bool = True,
    install_signal_handlers: bool = True,
) -> AsyncIterator[PipelineLogger]:
    """Configure logging, build and initialize the pipeline; always shut it down."""
    settings = settings or get_settings()
    if configure_logging:
        configure_logging_from_settings(settings.logging)

    pipeline = build_pipeline(settings)
    await pipeline.initialize(install_signal_handlers=install_signal_handlers)
    try:
        yield pipeline
    finally:
        await pipeline.shutdown()

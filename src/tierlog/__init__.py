"""
tierlog: a three-tier log pipeline (memory -> Redis -> SQL).
"""

from tierlog.pipeline import BoundLogger, LogLevel, LogMetadata, LogType, PipelineLogger
from tierlog.runtime import build_pipeline, pipeline_lifespan

__all__ = [
    "PipelineLogger",
    "BoundLogger",
    "LogLevel",
    "LogType",
    "LogMetadata",
    "build_pipeline",
    "pipeline_lifespan",
]

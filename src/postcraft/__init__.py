from .config import PostCraftConfig
from .errors import (
    ConfigurationError,
    EmptyCompletionError,
    PostCraftError,
    RequestTimeoutError,
    UpstreamError,
    UpstreamProtocolError,
)
from .models import CapturedContent, PipelineSettings, StructuredPost
from .pipeline import PostPipeline, process_content

__all__ = [
    "CapturedContent",
    "ConfigurationError",
    "EmptyCompletionError",
    "PipelineSettings",
    "PostCraftConfig",
    "PostCraftError",
    "PostPipeline",
    "RequestTimeoutError",
    "StructuredPost",
    "UpstreamError",
    "UpstreamProtocolError",
    "process_content",
]

"""
Configuration and constants for the PDF math extraction pipeline.

This module provides:
- Global logging setup
- Processing parameters (line reconstruction, streaming, rendering)
- Server and export settings
- Environment overrides
"""

import os
from dataclasses import dataclass, field
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT
)
logger = logging.getLogger("pdfmath")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class LayoutConfig:
    """Line reconstruction configuration."""
    # Baseline delta (PDF units) above which a new line starts
    line_break_threshold: float = 5.0


@dataclass
class StreamConfig:
    """Event stream configuration."""
    # Bound of the producer/consumer channel (0 = unbounded)
    channel_maxsize: int = 16
    loading_message: str = "Loading PDF..."
    complete_message: str = "Processing complete!"
    no_file_message: str = "No file provided"
    fallback_error_message: str = "Failed to process PDF"


@dataclass
class RenderConfig:
    """Math rendering configuration."""
    backend: str = "latex2mathml"  # latex2mathml, none


@dataclass
class ExportConfig:
    """Export configuration."""
    text_filename: str = "extracted-math-content.txt"
    json_filename: str = "pages.json"


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "127.0.0.1"
    port: int = 8000
    endpoint: str = "/api/process-pdf"
    form_field: str = "pdf"
    max_upload_bytes: int = 100 * 1024 * 1024


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    # Global settings
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if os.environ.get("PDFMATH_DEBUG", "").lower() == "true":
        config.debug_mode = True
        logger.setLevel(logging.DEBUG)

    threshold = os.environ.get("PDFMATH_LINE_THRESHOLD")
    if threshold:
        try:
            config.layout.line_break_threshold = float(threshold)
        except ValueError:
            logger.warning(f"Ignoring invalid PDFMATH_LINE_THRESHOLD: {threshold!r}")

    if os.environ.get("PDFMATH_HOST"):
        config.server.host = os.environ["PDFMATH_HOST"]

    port = os.environ.get("PDFMATH_PORT")
    if port:
        try:
            config.server.port = int(port)
        except ValueError:
            logger.warning(f"Ignoring invalid PDFMATH_PORT: {port!r}")

    return config


# ============================================================================
# Event Types Enumeration
# ============================================================================

class EventType:
    """Stream event type identifiers."""
    PROGRESS = "progress"
    PAGE = "page"
    COMPLETE = "complete"
    ERROR = "error"

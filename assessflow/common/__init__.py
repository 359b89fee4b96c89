"""
Common Components for AssessFlow

Shared infrastructure used by the assessment, dashboard and reporting packages:
logging, error handling and bearer-token authentication.
"""

from assessflow.common.logger import app_logger

__all__ = ["app_logger"]

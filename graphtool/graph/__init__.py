"""
Microsoft Graph integration package.

All Graph calls go through OperationPipeline, which applies exponential
backoff retry to transient failures and enriches throttling errors.
See pipeline.py and base.py for details.
"""

from .base import enrich_graph_error, find_graph_error
from .client import GraphClient, user_path
from .pipeline import OperationPipeline, build_pipeline

__all__ = [
    "GraphClient",
    "OperationPipeline",
    "build_pipeline",
    "enrich_graph_error",
    "find_graph_error",
    "user_path",
]

"""
Observability Package — logging setup + span timing

Provides:
  configure_logging — root logging handler from Settings
  traced            — decorator for instrumenting async pipeline steps
"""

from content_index.observability.tracing import configure_logging, traced

__all__ = ["configure_logging", "traced"]

"""
SLA Interfaces Layer
====================

Interface adapters (controllers) for the SLA evaluator.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from slawatch.sla.interfaces.controllers import sla_router

__all__ = ["sla_router"]

"""
app/diagnostics package marker.
"""

from app.diagnostics.engine import DiagnosticsEngine

__all__ = [
    "DiagnosticsEngine",
]

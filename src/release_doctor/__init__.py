"""Release readiness diagnostics: endpoint sentinel, schema drift and log triage."""

from __future__ import annotations

__version__ = "0.1.0"

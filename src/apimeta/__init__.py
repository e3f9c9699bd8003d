"""
apimeta — package root

File: src/apimeta/__init__.py
Last updated: 2026-10-18

Purpose
- Package root for the API-client metadata auditor. Static endpoint extraction lives in
  ``apimeta.extraction``; the layered metadata document lives in ``apimeta.metadata``.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.3.0"

__all__ = ["__version__"]

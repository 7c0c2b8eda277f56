"""Local-first phase engine components.

Provides:
- Settings loaded from .env
- Structured logging
- The workflow domain (`engine.workflow`)
- A small CLI surface
"""

"""
Core package for waitscope.
Lightweight package init to avoid import cycles.

Consumers should import submodules directly, e.g.:
  from waitscope.core.scope import BrowserSession
  from waitscope.core.retry import RetryEngine
  from waitscope.core.options import Options
"""

__all__: list[str] = []

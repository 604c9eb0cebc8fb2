"""Public entry points for the bridge engine.

Re-exports ``toolbridge.engine.api`` so callers can import from the
package directly.
"""

from toolbridge.engine import api as _api

for _name in _api.__all__:
    globals()[_name] = getattr(_api, _name)

__all__ = list(_api.__all__)

"""
Collaboration contract feature package.

This vertical slice keeps the contract templating engine, its stores,
services and HTTP routers together: templates are resolved against the
collaboration's related records, rendered, saved under one collaboration
key with a share token, and tracked through an action record and timeline.
"""

# Re-export the primary building blocks for easy access.
from .api.router import router as collaboration_router  # noqa: F401
from .api.router import share_router as contract_share_router  # noqa: F401
from .services import action_service, contract_service, timeline_service  # noqa: F401

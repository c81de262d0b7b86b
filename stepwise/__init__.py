"""
Bootstrap multi-step form services on FastAPI.

    from stepwise import bootstrap, configure

    configure("app_name", "apply")
    app = bootstrap({"routes": [{"steps": {"/name": {"fields": ["name"]}}}]})
"""

from stepwise.core.config import ConfigProvider, configure, get_effective_config
from stepwise.main import Bootstrap, ServerState, bootstrap
from stepwise.services.themes import Theme, register_theme

__all__ = [
    "Bootstrap",
    "ConfigProvider",
    "ServerState",
    "Theme",
    "bootstrap",
    "configure",
    "get_effective_config",
    "register_theme",
]

"""API routers."""

from .bot import create_bot_router
from .diagnostics import create_diagnostics_router
from .nudges import create_nudges_router
from .settings import create_settings_router
from .smart_groups import create_smart_groups_router
from .statistics import create_statistics_router
from .templates import create_templates_router
from .users import create_users_router

__all__ = [
    "create_bot_router",
    "create_diagnostics_router",
    "create_nudges_router",
    "create_settings_router",
    "create_smart_groups_router",
    "create_statistics_router",
    "create_templates_router",
    "create_users_router",
]

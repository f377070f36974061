"""
OpsReport — Main Reflex application entry point.

Boot sequence:
    1. _init_platform()  — config, runtime.startup()
    2. Create rx.App() and register the gated index page
"""

import logging

import reflex as rx

from opsreport.console.pages.dashboard import index_page
from opsreport.console.state import DashboardState
from opsreport.engine.config import PlatformConfig, get_config
from opsreport.engine.runtime import get_runtime, init_runtime

logger = logging.getLogger("opsreport.startup")


def _init_platform() -> PlatformConfig:
    """Load config and start the runtime once, even if the module is re-imported."""
    config = get_config()
    if get_runtime() is None:
        runtime = init_runtime(config)
        runtime.startup()
        logger.info("OpsReport runtime initialized (%s)", config.name)
    return config


_config = _init_platform()

app = rx.App()
app.add_page(
    lambda: index_page(_config.ui.title, _config.ui.confirm_delete_message),
    route="/",
    title=_config.ui.title,
    on_load=DashboardState.on_load,
)

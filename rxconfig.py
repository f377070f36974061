"""
OpsReport — Reflex configuration.

Single page at / gated on the sign-in session.
"""

import reflex as rx

config = rx.Config(
    app_name="opsreport",
    # Frontend port for dev server
    frontend_port=3000,
    # API / backend port
    backend_port=8000,
    # Telemetry
    telemetry_enabled=False,
    # Disable unused default plugins
    disable_plugins=["reflex.plugins.sitemap.SitemapPlugin"],
)

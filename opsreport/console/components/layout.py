"""
OpsReport Console — Layout component (navbar + content).
"""

import reflex as rx

from opsreport.console.state import DashboardState


def dashboard_layout(title: str, content: rx.Component) -> rx.Component:
    """Wrap content with the top navigation bar."""
    return rx.box(
        _navbar(title),
        rx.divider(),
        rx.box(content, max_width="1100px", margin_x="auto", padding="6"),
        width="100%",
        min_height="100vh",
        background="var(--gray-2)",
    )


def _navbar(title: str) -> rx.Component:
    return rx.hstack(
        rx.icon("send", size=20),
        rx.heading(title, size="4"),
        rx.spacer(),
        rx.text(DashboardState.user_email, size="2", color="gray"),
        rx.button(
            rx.icon("log-out", size=14),
            "Logout",
            size="1",
            variant="ghost",
            on_click=DashboardState.logout,
        ),
        padding="3",
        width="100%",
        align="center",
        background="white",
    )

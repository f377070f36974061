"""
OpsReport Console — Entry form shown while no session exists.
"""

import reflex as rx

from opsreport.console.state import DashboardState


def _field(label: str, **input_props) -> rx.Component:
    return rx.vstack(
        rx.text(label, size="2", weight="bold"),
        rx.input(required=True, size="3", width="100%", **input_props),
        spacing="1",
        width="100%",
    )


def _login_error() -> rx.Component:
    return rx.cond(
        DashboardState.login_error != "",
        rx.callout(
            DashboardState.login_error,
            icon="triangle_alert",
            color_scheme="red",
            size="1",
        ),
    )


def login_form(title: str) -> rx.Component:
    """Email + password sign-in card."""
    form = rx.form(
        rx.vstack(
            _field("Email", name="email", type="email", placeholder="you@example.com"),
            _field("Password", name="password", type="password", placeholder="••••••••"),
            _login_error(),
            rx.button(
                "Sign In",
                type="submit",
                size="3",
                width="100%",
                loading=DashboardState.is_signing_in,
            ),
            spacing="3",
            width="100%",
        ),
        on_submit=DashboardState.login,
        reset_on_submit=False,
        width="100%",
    )
    return rx.center(
        rx.card(
            rx.vstack(
                rx.hstack(rx.icon("clipboard-list", size=24), rx.heading(title, size="6"), align="center"),
                rx.text("Sign in with your operator account", color="gray", size="2"),
                rx.divider(),
                form,
                spacing="4",
                align="center",
                width="100%",
                padding="6",
            ),
            width="400px",
        ),
        min_height="100vh",
        background="var(--gray-2)",
    )

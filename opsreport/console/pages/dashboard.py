"""
OpsReport Console — Dashboard page and the session-gated index.

Route: /
"""

import reflex as rx

from opsreport.console.components.layout import dashboard_layout
from opsreport.console.pages.login import login_form
from opsreport.console.state import DashboardState


def index_page(title: str, confirm_message: str) -> rx.Component:
    """Exactly one of spinner / entry form / dashboard, decided by the gate."""
    return rx.match(
        DashboardState.gate_view,
        ("dashboard", dashboard_view(title, confirm_message)),
        ("login", login_form(title)),
        rx.center(rx.spinner(size="3"), min_height="100vh"),
    )


def dashboard_view(title: str, confirm_message: str) -> rx.Component:
    return dashboard_layout(
        title,
        rx.vstack(
            rx.hstack(
                rx.vstack(
                    rx.heading("Reports", size="7"),
                    rx.text("Operational progress at a glance.", color="gray"),
                    spacing="1",
                ),
                rx.spacer(),
                rx.button(
                    rx.icon("plus", size=16),
                    "New Report",
                    size="3",
                    on_click=DashboardState.open_create,
                ),
                width="100%",
                align="end",
            ),
            rx.grid(
                _stat_card("Total Reports", DashboardState.total, "clipboard-list", "sky"),
                _stat_card("Pending", DashboardState.pending_count, "clock", "amber"),
                _stat_card("Done", DashboardState.done_count, "circle-check", "grass"),
                columns="3",
                spacing="4",
                width="100%",
            ),
            _error_banner(),
            _reports_table(),
            _report_dialog(),
            _delete_dialog(confirm_message),
            spacing="5",
            width="100%",
        ),
    )


def _stat_card(label: str, value, icon: str, color: str) -> rx.Component:
    return rx.card(
        rx.hstack(
            rx.icon(icon, size=22, color=f"var(--{color}-9)"),
            rx.vstack(
                rx.text(value, size="6", weight="bold"),
                rx.text(label, size="1", color="gray", weight="bold"),
                spacing="0",
            ),
            spacing="3",
            align="center",
        ),
    )


def _error_banner() -> rx.Component:
    return rx.cond(
        DashboardState.error_message != "",
        rx.callout.root(
            rx.callout.icon(rx.icon("triangle_alert")),
            rx.hstack(
                rx.callout.text(DashboardState.error_message),
                rx.spacer(),
                rx.icon_button(
                    rx.icon("x", size=14),
                    size="1",
                    variant="ghost",
                    on_click=DashboardState.dismiss_error,
                ),
                width="100%",
                align="center",
            ),
            color_scheme="red",
            width="100%",
        ),
    )


def _reports_table() -> rx.Component:
    return rx.card(
        rx.table.root(
            rx.table.header(
                rx.table.row(
                    rx.table.column_header_cell("Date"),
                    rx.table.column_header_cell("Project"),
                    rx.table.column_header_cell("Status"),
                    rx.table.column_header_cell("Actions", justify="end"),
                ),
            ),
            rx.table.body(
                rx.match(
                    DashboardState.render_state,
                    ("loading", _placeholder_row(rx.spinner(size="3"), "Fetching reports...")),
                    ("empty", _placeholder_row(
                        rx.icon("clipboard-list", size=36, color="var(--gray-8)"),
                        "No reports yet. Reports you create will appear here.",
                    )),
                    rx.foreach(DashboardState.reports, _report_row),
                ),
            ),
            width="100%",
        ),
        width="100%",
    )


def _placeholder_row(icon: rx.Component, message: str) -> rx.Component:
    return rx.table.row(
        rx.table.cell(
            rx.vstack(icon, rx.text(message, color="gray"), align="center", padding_y="8"),
            col_span=4,
        ),
    )


def _report_row(report: dict) -> rx.Component:
    return rx.table.row(
        rx.table.cell(report["date"]),
        rx.table.cell(
            rx.vstack(
                rx.text(report["name"], weight="bold"),
                rx.text(report["description"], size="1", color="gray", trim="both"),
                spacing="0",
            ),
        ),
        rx.table.cell(
            rx.badge(
                report["status"],
                color_scheme=rx.cond(report["status"] == "Done", "grass", "amber"),
                variant="soft",
            ),
        ),
        rx.table.cell(
            rx.hstack(
                rx.icon_button(
                    rx.icon("pencil", size=14),
                    size="1",
                    variant="ghost",
                    on_click=DashboardState.open_edit(report["id"]),
                ),
                rx.icon_button(
                    rx.icon("trash-2", size=14),
                    size="1",
                    variant="ghost",
                    color_scheme="red",
                    on_click=DashboardState.request_delete(report["id"]),
                ),
                justify="end",
            ),
        ),
    )


def _report_dialog() -> rx.Component:
    return rx.dialog.root(
        rx.dialog.content(
            rx.dialog.title(rx.cond(DashboardState.is_editing, "Edit Report", "New Report")),
            rx.form(
                rx.vstack(
                    rx.text("Date", size="2", weight="bold"),
                    rx.input(
                        type="date",
                        value=DashboardState.draft_date,
                        on_change=lambda v: DashboardState.update_draft("date", v),
                        required=True,
                    ),
                    rx.text("Project / Order", size="2", weight="bold"),
                    rx.input(
                        placeholder="Project name...",
                        value=DashboardState.draft_name,
                        on_change=lambda v: DashboardState.update_draft("name", v),
                        required=True,
                    ),
                    rx.text("Activity Description", size="2", weight="bold"),
                    rx.text_area(
                        placeholder="What was done today...",
                        value=DashboardState.draft_description,
                        on_change=lambda v: DashboardState.update_draft("description", v),
                        rows="4",
                        required=True,
                    ),
                    rx.text("Status", size="2", weight="bold"),
                    rx.segmented_control.root(
                        rx.segmented_control.item("Pending", value="Pending"),
                        rx.segmented_control.item("Done", value="Done"),
                        value=DashboardState.draft_status,
                        on_change=lambda v: DashboardState.update_draft("status", v),
                        width="100%",
                    ),
                    rx.cond(
                        (DashboardState.error_message != "") & (DashboardState.error_source == "form"),
                        rx.callout(DashboardState.error_message, icon="triangle_alert", color_scheme="red", size="1"),
                    ),
                    rx.hstack(
                        rx.dialog.close(rx.button("Cancel", variant="outline", type="button")),
                        rx.button(
                            rx.cond(DashboardState.is_editing, "Save Changes", "Submit Report"),
                            type="submit",
                            loading=DashboardState.submitting,
                        ),
                        spacing="3",
                        justify="end",
                        width="100%",
                    ),
                    spacing="3",
                    width="100%",
                ),
                on_submit=DashboardState.submit,
            ),
        ),
        open=DashboardState.dialog_open,
        on_open_change=DashboardState.set_dialog_open,
    )


def _delete_dialog(confirm_message: str) -> rx.Component:
    return rx.alert_dialog.root(
        rx.alert_dialog.content(
            rx.alert_dialog.title("Delete report"),
            rx.alert_dialog.description(confirm_message),
            rx.hstack(
                rx.alert_dialog.cancel(
                    rx.button("Cancel", variant="soft", color_scheme="gray",
                              on_click=DashboardState.cancel_delete),
                ),
                rx.alert_dialog.action(
                    rx.button("Delete", color_scheme="red", on_click=DashboardState.confirm_delete),
                ),
                spacing="3",
                justify="end",
            ),
        ),
        open=DashboardState.pending_delete != "",
    )

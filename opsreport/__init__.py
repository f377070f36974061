"""
OpsReport — operational progress reports dashboard.

Signed-in users record daily work items (date, project, description,
status), edit and delete them, and see totals by status. Creating a report
posts a best-effort message to a chat channel.
"""

__version__ = "1.0.0"
__all__ = ["engine", "records", "security", "dashboard", "integrations", "db", "console"]

"""Session gate and dashboard controller."""

from opsreport.dashboard.controller import DashboardController, ErrorBanner, RenderState
from opsreport.dashboard.gate import GateView, SessionGate

__all__ = ["DashboardController", "ErrorBanner", "GateView", "RenderState", "SessionGate"]

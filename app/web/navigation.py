"""Sidebar navigation and the layout-shell rule for hiding it."""

from dataclasses import dataclass


@dataclass(frozen=True)
class NavItem:
    id: str
    label: str
    href: str
    icon: str  # icon name rendered by the sidebar template


NAV_ITEMS = [
    NavItem("dashboard", "Dashboard", "/dashboard", "layout-dashboard"),
    NavItem("timeline", "Timeline", "/dashboard/newtimeline", "briefcase-business"),
    NavItem("teams", "Teams", "/settings", "users"),
    NavItem("billings", "Billings", "/", "indian-rupee"),
]

NAV_BELOW = [
    NavItem("settings", "Settings", "/settings", "settings"),
    NavItem("help", "Help", "/help", "help-circle"),
    NavItem("logout", "Log Out", "/logout", "log-out"),
]


def show_chrome(path: str, signin_path: str) -> bool:
    """Sidebar and dashboard chrome are hidden on the sign-in page only (exact match)."""
    return path != signin_path


def active_item(path: str) -> str | None:
    """Id of the nav item whose href is the longest prefix of ``path``."""
    best = None
    for item in NAV_ITEMS + NAV_BELOW:
        if item.href == "/":
            continue
        if path == item.href or path.startswith(item.href + "/"):
            if best is None or len(item.href) > len(best.href):
                best = item
    return best.id if best else None

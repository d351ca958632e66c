# router.py
import logging
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

HOME = "home"
DASHBOARD = "dashboard"
REGISTER = "register"
USER_LOGIN = "user_login"
ADMIN_LOGIN = "admin_login"
SUBMIT = "submit"
USER_DASHBOARD = "user_dashboard"
ADMIN_DASHBOARD = "admin_dashboard"

SECTIONS = (
    HOME,
    DASHBOARD,
    REGISTER,
    USER_LOGIN,
    ADMIN_LOGIN,
    SUBMIT,
    USER_DASHBOARD,
    ADMIN_DASHBOARD,
)


class Section:
    def __init__(self, name: str, on_show: Optional[Callable[[], None]] = None,
                 on_hide: Optional[Callable[[], None]] = None,
                 refresh: Optional[Callable[[], None]] = None,
                 on_leave: Optional[Callable[[], None]] = None):
        self.name = name
        self.on_show = on_show
        self.on_hide = on_hide
        self.refresh = refresh
        self.on_leave = on_leave


class ViewRouter:
    """
    Direct-jump section switcher. One section is active at a time, there is
    no history. Moving to a section closes the navigation menu and refreshes
    that section's data; leaving a section runs its leave hook.
    """

    def __init__(self, on_menu_change: Optional[Callable[[bool], None]] = None):
        self._sections: Dict[str, Section] = {}
        self.active: Optional[str] = None
        self.menu_open = False
        self._on_menu_change = on_menu_change

    def register(self, name: str, **hooks) -> Section:
        section = Section(name, **hooks)
        self._sections[name] = section
        return section

    def show(self, name: str):
        if name not in self._sections:
            raise KeyError(f"Unknown section: {name}")

        previous = self._sections.get(self.active) if self.active else None
        if previous is not None and previous.name != name:
            if previous.on_leave:
                previous.on_leave()
        for section in self._sections.values():
            if section.name != name and section.on_hide:
                section.on_hide()

        target = self._sections[name]
        self.active = name
        if target.on_show:
            target.on_show()
        self.close_menu()
        logger.debug("Showing section %s", name)
        if target.refresh:
            target.refresh()

    def toggle_menu(self):
        self._set_menu(not self.menu_open)

    def close_menu(self):
        self._set_menu(False)

    def _set_menu(self, value: bool):
        changed = value != self.menu_open
        self.menu_open = value
        if changed and self._on_menu_change:
            self._on_menu_change(value)

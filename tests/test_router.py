import pytest

import router as views
from router import ViewRouter


@pytest.fixture
def events():
    return []


@pytest.fixture
def nav(events):
    r = ViewRouter(on_menu_change=lambda is_open: events.append(("menu", is_open)))
    for name in views.SECTIONS:
        r.register(
            name,
            on_show=lambda n=name: events.append(("show", n)),
            on_hide=lambda n=name: events.append(("hide", n)),
            refresh=lambda n=name: events.append(("refresh", n)),
            on_leave=lambda n=name: events.append(("leave", n)),
        )
    return r


def test_show_activates_one_section_and_refreshes(nav, events):
    nav.show(views.DASHBOARD)
    assert nav.active == views.DASHBOARD
    shown = [e for e in events if e[0] == "show"]
    assert shown == [("show", views.DASHBOARD)]
    hidden = {e[1] for e in events if e[0] == "hide"}
    assert hidden == set(views.SECTIONS) - {views.DASHBOARD}
    assert events[-1] == ("refresh", views.DASHBOARD)


def test_leaving_a_section_runs_its_leave_hook(nav, events):
    nav.show(views.USER_DASHBOARD)
    events.clear()
    nav.show(views.HOME)
    assert events[0] == ("leave", views.USER_DASHBOARD)
    assert nav.active == views.HOME


def test_reshowing_same_section_refreshes_without_leaving(nav, events):
    nav.show(views.ADMIN_DASHBOARD)
    events.clear()
    nav.show(views.ADMIN_DASHBOARD)
    assert ("leave", views.ADMIN_DASHBOARD) not in events
    assert events[-1] == ("refresh", views.ADMIN_DASHBOARD)


def test_navigation_closes_menu(nav, events):
    nav.toggle_menu()
    assert nav.menu_open
    nav.show(views.REGISTER)
    assert not nav.menu_open
    assert [e for e in events if e[0] == "menu"] == [("menu", True), ("menu", False)]


def test_menu_toggle(nav):
    nav.toggle_menu()
    nav.toggle_menu()
    assert not nav.menu_open


def test_unknown_section(nav):
    with pytest.raises(KeyError):
        nav.show("settings")
    assert nav.active is None


def test_sections_without_hooks():
    r = ViewRouter()
    r.register(views.HOME)
    r.register(views.SUBMIT)
    r.show(views.HOME)
    r.show(views.SUBMIT)
    assert r.active == views.SUBMIT

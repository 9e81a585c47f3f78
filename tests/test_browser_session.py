# tests/test_browser_session.py
from unittest.mock import MagicMock

from browser.browser_session import WebBrowserSession, create_browser_session


def test_open_uses_new_tab_and_refresh_reuses_window():
    controller = MagicMock()
    controller.open.return_value = True
    session = WebBrowserSession(controller)
    session.open("http://localhost:8080/shop")
    session.refresh()
    assert controller.open.call_args_list[0].kwargs == {"new": 2}
    assert controller.open.call_args_list[1].kwargs == {"new": 0}
    assert session.current_url == "http://localhost:8080/shop"


def test_refresh_after_close_is_a_no_op():
    controller = MagicMock()
    session = WebBrowserSession(controller)
    session.open("http://x")
    session.close()
    session.refresh()
    assert controller.open.call_count == 1


def test_refresh_swallows_controller_errors():
    controller = MagicMock()
    session = WebBrowserSession(controller)
    session.open("http://x")
    controller.open.side_effect = RuntimeError("no display")
    session.refresh()


def test_disabled_factory():
    assert create_browser_session(enabled=False) is None
    assert isinstance(create_browser_session(), WebBrowserSession)

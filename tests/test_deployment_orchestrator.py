# tests/test_deployment_orchestrator.py
from unittest.mock import MagicMock, call

import pytest

from browser.last_page import LastPageStore
from connectors.errors import NetworkError
from connectors.schema import ApplicationResource
from orchestrator.deployment_orchestrator import (
    DeploymentOrchestrator,
    EMPTY_REPRESENTATION_WARNING,
    NO_RESOURCE_WARNING,
)

RUNNING = ApplicationResource("shop", {"status": "RUNNING", "applicationEndpoint": "http://localhost:8080/shop"})


@pytest.fixture
def browser():
    return MagicMock()


@pytest.fixture
def orchestrator(fake_manager, descriptor, browser):
    return DeploymentOrchestrator(
        fake_manager,
        descriptor,
        app_name="shop",
        artifact_path="/build/shop.war",
        instance_id="server",
        context_root="shop",
        browser_factory=lambda: browser,
    )


def test_undeploy_always_precedes_deploy(orchestrator, fake_manager):
    fake_manager.deploy.return_value = RUNNING
    orchestrator.deploy_application()
    assert fake_manager.mock_calls[:2] == [
        call.undeploy("shop", "server"),
        call.deploy(
            "shop",
            "/build/shop.war",
            instance_id="server",
            context_root="shop",
            exploded=False,
            hot_deploy=False,
        ),
    ]


def test_running_result_opens_once_then_refreshes(orchestrator, fake_manager, browser):
    fake_manager.deploy.return_value = RUNNING
    orchestrator.deploy_application()
    orchestrator.deploy_application()
    browser.open.assert_called_once_with("http://localhost:8080/shop")
    browser.refresh.assert_called_once_with()
    assert orchestrator.application_url == "http://localhost:8080/shop"


@pytest.mark.parametrize("resource, message", [
    (None, NO_RESOURCE_WARNING),
    (ApplicationResource("shop", None), EMPTY_REPRESENTATION_WARNING),
    (ApplicationResource("shop", {"status": "FAILED"}), "The application is not running. Current status: FAILED"),
])
def test_unusable_results_warn_and_leave_browser_alone(orchestrator, fake_manager, browser, caplog, resource, message):
    fake_manager.deploy.return_value = resource
    assert orchestrator.deploy_application() is resource
    assert message in [r.getMessage() for r in caplog.records]
    browser.open.assert_not_called()
    assert orchestrator.application_url is None


def test_manager_errors_are_logged_not_raised(orchestrator, fake_manager):
    fake_manager.deploy.side_effect = NetworkError("admin down")
    assert orchestrator.deploy_application() is None


def test_open_if_already_running(orchestrator, fake_manager, browser):
    fake_manager.list_applications.return_value = {"shop": RUNNING}
    assert orchestrator.open_if_already_running() is True
    assert orchestrator.app_already_running
    browser.open.assert_called_once_with("http://localhost:8080/shop")


def test_not_running_application_is_not_opened(orchestrator, fake_manager, browser):
    fake_manager.list_applications.return_value = {"other": RUNNING}
    assert orchestrator.open_if_already_running() is False
    browser.open.assert_not_called()


def test_open_application_falls_back_to_descriptor_url(orchestrator, browser):
    assert orchestrator.open_application() == "http://localhost:8080/shop"
    browser.open.assert_called_once_with("http://localhost:8080/shop")


def test_no_browser_factory_means_no_browser(fake_manager, descriptor):
    fake_manager.deploy.return_value = RUNNING
    orchestrator = DeploymentOrchestrator(fake_manager, descriptor, app_name="shop", artifact_path="shop.war")
    orchestrator.deploy_application()
    assert orchestrator.browser is None
    assert orchestrator.application_url == "http://localhost:8080/shop"


def test_log_triggers(orchestrator, fake_manager, browser):
    fake_manager.deploy.return_value = RUNNING
    orchestrator.deploy_application()
    orchestrator.on_deployment_failed("Exception while deploying the app [shop]")
    orchestrator.on_deployed("shop was successfully deployed")
    browser.update_title.assert_called_once_with("Deployment failed")
    browser.refresh.assert_called_once_with()

    orchestrator.close_browser()
    orchestrator.close_browser()
    browser.close.assert_called_once_with()


def test_close_remembers_page_and_next_open_restores_it(fake_manager, descriptor, browser, tmp_path):
    store = LastPageStore(str(tmp_path / "pages.yaml"))
    first = DeploymentOrchestrator(
        fake_manager, descriptor, app_name="shop", artifact_path="/build/shop.war",
        browser_factory=lambda: browser, page_store=store,
    )
    fake_manager.deploy.return_value = RUNNING
    first.deploy_application()
    browser.open.assert_called_once_with("http://localhost:8080/shop")

    browser.current_url = "http://localhost:8080/shop/orders?id=7"
    first.close_browser()
    browser.close.assert_called_once_with()

    second = DeploymentOrchestrator(
        fake_manager, descriptor, app_name="shop", artifact_path="/build/shop.war",
        browser_factory=lambda: browser, page_store=store,
    )
    browser.open.reset_mock()
    second.deploy_application()
    browser.open.assert_called_once_with("http://localhost:8080/shop/orders?id=7")


def test_close_without_url_saves_nothing(orchestrator, browser, tmp_path):
    orchestrator.page_store = LastPageStore(str(tmp_path / "pages.yaml"))
    orchestrator.browser = browser
    orchestrator.close_browser()
    assert not (tmp_path / "pages.yaml").exists()

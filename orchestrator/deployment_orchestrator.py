# orchestrator/deployment_orchestrator.py
"""
Deployment Orchestrator.

Every deployment is an undeploy followed by a deploy of the same name, so
redeploying is always safe. The outcome decides what happens in the
browser:

  - RUNNING with an endpoint: the URL is recorded and the browser is
    opened (first time) or refreshed (afterwards)
  - any other status: "not running" warning, browser untouched
  - resource without representation: "empty representation" warning
  - no resource at all: "no application resource" warning

With a page store, the first open goes to the page remembered for that
application URL, and closing the browser remembers the current one.
"""

import logging
import threading
from typing import Callable, Optional

from connectors.errors import ServerPilotError
from connectors.schema import ApplicationResource, DeploymentRecord, InstanceDescriptor
from browser.browser_session import BrowserSession
from browser.last_page import LastPageStore

logger = logging.getLogger("serverpilot.orchestrator")

NOT_RUNNING_WARNING = "The application is not running. Current status: {status}"
EMPTY_REPRESENTATION_WARNING = "The application resource is present but its representation is empty."
NO_RESOURCE_WARNING = "No application resource present."
DEPLOYMENT_FAILED_TITLE = "Deployment failed"


class DeploymentOrchestrator:
    def __init__(
        self,
        manager,
        descriptor: InstanceDescriptor,
        app_name: str,
        artifact_path: str,
        instance_id: Optional[str] = None,
        context_root: Optional[str] = None,
        exploded: bool = False,
        hot_deploy: bool = False,
        browser_factory: Optional[Callable[[], Optional[BrowserSession]]] = None,
        page_store: Optional[LastPageStore] = None,
    ):
        self.manager = manager
        self.descriptor = descriptor
        self.instance_id = instance_id
        self.browser_factory = browser_factory
        self.page_store = page_store
        self.browser: Optional[BrowserSession] = None
        self.app_already_running = False
        self.record = DeploymentRecord(
            artifact_path=str(artifact_path),
            application_name=app_name,
            context_root=context_root,
            exploded=exploded,
            hot_deploy=hot_deploy,
        )
        self._lock = threading.RLock()

    @property
    def application_url(self) -> Optional[str]:
        return self.record.result_url

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------
    def deploy_application(self) -> Optional[ApplicationResource]:
        """Undeploy then deploy. Manager failures are logged, never raised."""
        record = self.record
        with self._lock:
            try:
                self.manager.undeploy(record.application_name, self.instance_id)
                resource = self.manager.deploy(
                    record.application_name,
                    record.artifact_path,
                    instance_id=self.instance_id,
                    context_root=record.context_root,
                    exploded=record.exploded,
                    hot_deploy=record.hot_deploy,
                )
            except (ServerPilotError, OSError) as e:
                logger.error("Deployment failed with an exception: %s", e)
                return None

            self._handle_outcome(resource)
            return resource

    def _handle_outcome(self, resource: Optional[ApplicationResource]) -> None:
        if resource is None:
            logger.warning(NO_RESOURCE_WARNING)
            return
        if not resource.representation:
            logger.warning(EMPTY_REPRESENTATION_WARNING)
            return
        if resource.url is None:
            logger.warning(NOT_RUNNING_WARNING.format(status=resource.status))
            return

        self.record.result_url = resource.url
        logger.info("Application %s available at %s", resource.name, resource.url)
        if self.browser is None:
            self.open_application()
        else:
            self._refresh()

    # ------------------------------------------------------------------
    # Already-running detection
    # ------------------------------------------------------------------
    def open_if_already_running(self) -> bool:
        """Open the browser on the application if the server already runs it."""
        try:
            applications = self.manager.list_applications()
        except (ServerPilotError, OSError) as e:
            logger.error("Failed to list applications and open in browser: %s", e)
            return False

        resource = applications.get(self.record.application_name)
        if resource is None or resource.url is None:
            return False
        self.record.result_url = resource.url
        self.app_already_running = True
        self.open_application()
        return True

    # ------------------------------------------------------------------
    # Browser
    # ------------------------------------------------------------------
    def fallback_url(self) -> str:
        url = self.descriptor.application_base_url
        if self.record.context_root:
            url = f"{url}/{self.record.context_root.strip('/')}"
        return url

    def open_application(self) -> Optional[str]:
        """Open the recorded URL (or one derived from the descriptor) once."""
        with self._lock:
            if self.browser_factory is None:
                return None
            url = self.record.result_url
            if not url:
                url = self.fallback_url()
                self.record.result_url = url
            if self.browser is None:
                try:
                    self.browser = self.browser_factory()
                except Exception as e:
                    logger.error("Error in starting browser: %s", e)
                    return None
                if self.browser is None:
                    return None
                self.browser.open(self._last_page(url))
            return url

    def _last_page(self, url: str) -> str:
        if self.page_store is None:
            return url
        return self.page_store.get(url, url)

    def _remember_page(self, browser: BrowserSession) -> None:
        app_url = self.record.result_url
        if self.page_store is None or not app_url:
            return
        try:
            page = browser.current_url
        except Exception as e:
            logger.debug("Error in reading the browser location: %s", e)
            return
        if page:
            self.page_store.save(app_url, page)

    def _refresh(self) -> None:
        try:
            self.browser.refresh()
        except Exception as e:
            logger.debug("Error in refreshing browser: %s", e)

    # ------------------------------------------------------------------
    # Log triggers
    # ------------------------------------------------------------------
    def on_deployment_failed(self, line: str) -> None:
        logger.warning("Application deployment failed: %s", line.strip())
        if self.browser is not None:
            try:
                self.browser.update_title(DEPLOYMENT_FAILED_TITLE)
            except Exception as e:
                logger.debug("Error in updating browser title: %s", e)

    def on_deployed(self, line: str) -> None:
        if self.browser is not None and self.record.result_url:
            self._refresh()

    def close_browser(self) -> None:
        with self._lock:
            browser, self.browser = self.browser, None
        if browser is None:
            return
        self._remember_page(browser)
        try:
            browser.close()
        except Exception as e:
            logger.debug("Error in closing browser: %s", e)

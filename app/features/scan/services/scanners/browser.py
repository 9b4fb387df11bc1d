import logging
from typing import Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from app.platform.config import settings

logger = logging.getLogger(__name__)

VIEWPORT_WIDTH = 1280
VIEWPORT_HEIGHT = 800


class BrowserSession:
    """
    One headless Chrome session. Never shared: each scan opens its own and
    closes it on every exit path (use as a context manager).
    """

    def __init__(self, navigation_timeout_ms: Optional[int] = None, script_timeout_s: Optional[int] = None):
        self.navigation_timeout_ms = navigation_timeout_ms or settings.SCAN_NAVIGATION_TIMEOUT_MS
        self.script_timeout_s = script_timeout_s or settings.SCAN_ANALYSIS_TIMEOUT_SECONDS
        self.driver: Optional[webdriver.Chrome] = None

    @staticmethod
    def build_driver() -> webdriver.Chrome:
        chrome_options = Options()
        chrome_options.add_argument('--headless=new')
        chrome_options.add_argument('--no-sandbox')
        chrome_options.add_argument('--disable-gpu')
        chrome_options.add_argument('--disable-dev-shm-usage')
        chrome_options.add_argument(f'--window-size={VIEWPORT_WIDTH},{VIEWPORT_HEIGHT}')

        if settings.CHROMEDRIVER_PATH:
            driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
        else:
            driver_service = Service(ChromeDriverManager().install())

        return webdriver.Chrome(service=driver_service, options=chrome_options)

    def __enter__(self) -> "BrowserSession":
        self.driver = self.build_driver()
        try:
            self.driver.set_window_size(VIEWPORT_WIDTH, VIEWPORT_HEIGHT)
            self.driver.set_page_load_timeout(self.navigation_timeout_ms / 1000)
            self.driver.set_script_timeout(self.script_timeout_s)
        except WebDriverException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self.driver is None:
            return
        try:
            self.driver.quit()
        except WebDriverException as e:
            logger.warning(f"Failed to quit browser session cleanly: {e}")
        finally:
            self.driver = None

    def load_page(self, url: str) -> None:
        """Navigate and wait for the document to finish loading."""
        timeout_s = self.navigation_timeout_ms / 1000
        self.driver.get(url)
        try:
            WebDriverWait(self.driver, timeout_s).until(
                lambda d: d.execute_script("return document.readyState") == "complete"
            )
        except TimeoutException:
            logger.warning(f"Document at {url} not complete after {timeout_s}s; analysing anyway")

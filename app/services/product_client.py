# app/services/product_client.py
import requests

from app.domain.errors import ServiceUnavailableError
from app.utils.retry import http_retry
from app.utils.settings import PRODUCT_SERVICE_URL, HTTP_TIMEOUT_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """Read-only view of the product catalog: price and stock by id."""

    def __init__(self, base_url: str | None = None, timeout: int = HTTP_TIMEOUT_SECONDS):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    def fetch_product(self, product_id: str) -> dict | None:
        """Returns the product document, or None when the catalog does not know the id."""
        try:
            return self._get_product(product_id)
        except requests.RequestException as e:
            logger.error(f"Product catalog unavailable for {product_id}: {e}")
            raise ServiceUnavailableError("Product catalog unavailable") from e

    @http_retry()
    def _get_product(self, product_id: str) -> dict | None:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

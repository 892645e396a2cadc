"""
Thin Salesforce REST client used by the worker.

Wraps a requests.Session authorized with a stashed session token. Every
call goes through _request(), which turns HTTP, timeout and decoding
problems into SalesforceError so callers only deal with one type.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import requests
from requests.adapters import HTTPAdapter

from .config import MAX_CHUNK_SIZE
from .errors import SalesforceError
from .logger import get_logger
from .models import CreateRequest, CreateResult

logger = get_logger()


def _error_details(resp: requests.Response):
    """Pull (errorCode, message) out of a Salesforce error body."""
    try:
        body = resp.json()
    except ValueError:
        return None, resp.text[:200]
    if isinstance(body, list) and body and isinstance(body[0], dict):
        return body[0].get("errorCode"), body[0].get("message")
    if isinstance(body, dict):
        return body.get("errorCode") or body.get("error"), body.get("message") or body.get("error_description")
    return None, str(body)[:200]


class SalesforceConnection:
    """Authorized handle on one org. Safe to share across threads for stateless calls."""

    def __init__(
        self,
        instance_url: str,
        session_token: str,
        api_version: str = "62.0",
        timeout: float = 30.0,
        pool_size: int = 20,
        session: Optional[requests.Session] = None,
    ):
        self.instance_url = instance_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout

        self.session = session or requests.Session()
        # One pooled connection per batch worker
        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=pool_size)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.session.headers.update({
            "Authorization": f"Bearer {session_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    @classmethod
    def from_endpoint(cls, endpoint: str, session_token: str, **kwargs) -> "SalesforceConnection":
        """
        Build a connection from a service endpoint.

        The endpoint may be a bare instance URL or a full API endpoint
        (e.g. a SOAP service URL); only scheme and host are kept.

        Raises:
            ValueError: If the endpoint is not an absolute URL
        """
        parsed = urlparse(endpoint or "")
        if not (parsed.scheme and parsed.netloc):
            raise ValueError(f"Service endpoint must be an absolute URL: {endpoint!r}")
        return cls(f"{parsed.scheme}://{parsed.netloc}", session_token, **kwargs)

    @property
    def base_url(self) -> str:
        return f"{self.instance_url}/services/data/v{self.api_version}"

    def _request(self, method: str, url: str, **kwargs) -> Any:
        logger.record_api_call()
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            code, message = _error_details(e.response) if e.response is not None else (None, str(e))
            logger.error("Salesforce request failed", method=method, url=url, status=status, error_code=code)
            raise SalesforceError(f"Salesforce request failed ({status}): {message}", status=status, error_code=code)
        except requests.exceptions.Timeout:
            logger.warning("Salesforce request timed out", method=method, url=url)
            raise SalesforceError(f"Salesforce request timed out: {method} {url}")
        except requests.exceptions.RequestException as e:
            logger.error("Salesforce request error", method=method, url=url, error=str(e))
            raise SalesforceError(f"Salesforce request error: {e}")

        if not resp.content:
            return None
        try:
            # Keep prices exact
            return resp.json(parse_float=Decimal)
        except ValueError as e:
            raise SalesforceError(f"Salesforce returned invalid JSON for {method} {url}: {e}")

    def describe(self, sobject: str) -> Dict[str, Any]:
        """Describe an sObject type. Raises SalesforceError if it is unknown or inaccessible."""
        return self._request("GET", f"{self.base_url}/sobjects/{sobject}/describe")

    def query(self, soql: str) -> Dict[str, Any]:
        """Run a SOQL query and return the first page."""
        return self._request("GET", f"{self.base_url}/query", params={"q": soql})

    def query_more(self, next_records_url: str) -> Dict[str, Any]:
        """Fetch the page behind a nextRecordsUrl."""
        return self._request("GET", urljoin(self.instance_url + "/", next_records_url))

    def create(self, records: Sequence[CreateRequest]) -> List[CreateResult]:
        """
        Create up to 200 records in one sObject Collections call.

        allOrNone is off, so each record succeeds or fails on its own and
        results come back in request order.

        Raises:
            ValueError: If more than 200 records are passed
            SalesforceError: If the call itself fails
        """
        if len(records) > MAX_CHUNK_SIZE:
            raise ValueError(f"At most {MAX_CHUNK_SIZE} records per create call, got {len(records)}")
        if not records:
            return []

        body = {"allOrNone": False, "records": [r.to_payload() for r in records]}
        data = self._request("POST", f"{self.base_url}/composite/sobjects", json=body)
        if not isinstance(data, list):
            raise SalesforceError(f"Unexpected create response: {str(data)[:200]}")

        results = []
        for item in data:
            if item.get("success"):
                results.append(CreateResult.ok(item.get("id")))
            else:
                errors = item.get("errors") or [{}]
                message = errors[0].get("message") or "Unknown error"
                code = errors[0].get("statusCode")
                results.append(CreateResult.failed(f"{code}: {message}" if code else message))
        return results

    def close(self):
        self.session.close()

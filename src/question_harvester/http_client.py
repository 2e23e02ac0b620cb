"""
HTTPClient module for authenticated catalog API calls with retry and response normalisation
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
import requests_cache

from .config_loader import HarvestConfig
from .retry_policy import RetryPolicy, linear_backoff

logger = logging.getLogger(__name__)

# Metadata modes selected through the ?get= query parameter
MODE_EXAMS = 'exam'
MODE_YEARS = 'exam_year_id'
MODE_SUBJECTS = 'subject'
MODE_QUESTIONS = None

# Candidate payload locations per mode, probed in order; () means the top-level body
PAYLOAD_PATHS: Dict[Optional[str], Tuple[Tuple[str, ...], ...]] = {
    MODE_EXAMS: (('data',), ('exams',), ()),
    MODE_YEARS: (('data',), ('exam_years',), ('years',), ()),
    MODE_SUBJECTS: (('data',), ('subjects',), ()),
    MODE_QUESTIONS: (('data', 'questions'), ('questions',), ('data',), ()),
}


class ProtocolError(Exception):
    """Raised for a non-success HTTP status; never retried by the client"""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP {status_code} {body}")
        self.status_code = status_code
        self.body = body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or 'not found' in (self.body or '').lower()


@dataclass
class APIResponse:
    """Standardised API response wrapper"""
    raw_data: Any
    items: List[Any]
    status_code: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    request_timestamp: datetime = field(default_factory=datetime.now)


def _lookup(data: Any, path: Sequence[str]) -> Any:
    for part in path:
        if not isinstance(data, dict) or part not in data:
            return None
        data = data[part]
    return data


def normalise_payload(raw_data: Any, mode: Optional[str]) -> List[Any]:
    """
    Map any known response envelope onto a plain item list

    The catalog puts its payload under 'data', under a mode-specific key,
    or returns it as the top-level body. The first candidate that is
    present wins; a present value that is not a list yields no items.

    Args:
        raw_data: Parsed JSON body (or raw-text envelope)
        mode: Metadata mode, or None for question listing

    Returns:
        List of items, empty when the shape is not recognised
    """
    if raw_data is None:
        return []

    for path in PAYLOAD_PATHS.get(mode, ((),)):
        candidate = _lookup(raw_data, path) if path else raw_data
        if candidate is None:
            continue
        return list(candidate) if isinstance(candidate, list) else []
    return []


class CatalogClient:
    """HTTP client for the catalog endpoint with bearer authentication and retry policy"""

    def __init__(self, base_url: str, token: str, retry_policy: Optional[RetryPolicy] = None,
                 timeout: Optional[float] = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.headers: Dict[str, str] = {
            'Authorization': f"Bearer {token}",
            'Content-Type': 'application/json'
        }
        self.session = session
        self.request_count = 0

    @classmethod
    def from_config(cls, config: HarvestConfig) -> 'CatalogClient':
        """Build a client from the run configuration, with the optional development cache"""
        retry_policy = RetryPolicy(
            max_attempts=config.retry_max_attempts,
            backoff=linear_backoff(config.retry_backoff_ms / 1000.0)
        )
        session = None
        if config.cache_enabled:
            config.cache_path.parent.mkdir(parents=True, exist_ok=True)
            session = requests_cache.CachedSession(
                str(config.cache_path),
                expire_after=config.cache_expiration_seconds,
                allowable_methods=('GET', 'POST')
            )
            logger.info(f"Request caching enabled with expiration of {config.cache_expiration_seconds} seconds")
        return cls(
            base_url=config.base_url,
            token=config.token,
            retry_policy=retry_policy,
            timeout=config.request_timeout_seconds,
            session=session
        )

    def call(self, mode: Optional[str], body: Optional[Dict[str, Any]] = None) -> APIResponse:
        """
        POST a request body to the catalog endpoint

        Args:
            mode: Metadata mode ('exam', 'exam_year_id', 'subject') or None for questions
            body: JSON request body

        Returns:
            APIResponse with the parsed body and the normalised item list

        Raises:
            ProtocolError: For non-success HTTP status codes
            PermanentAPIError: If transient failures persist past the retry ceiling
        """
        body = body or {}
        request_timestamp = datetime.now()
        status_code, raw_data = self.retry_policy.execute(lambda: self._post(mode, body))

        return APIResponse(
            raw_data=raw_data,
            items=normalise_payload(raw_data, mode),
            status_code=status_code,
            metadata={'url': self.base_url, 'mode': mode, 'body': body},
            request_timestamp=request_timestamp
        )

    def _post(self, mode: Optional[str], body: Dict[str, Any]) -> Tuple[int, Any]:
        """Single attempt; parses JSON and falls back to a raw-text envelope"""
        if self.session is None:
            self.session = requests.Session()

        params = {'get': mode} if mode else None
        self.request_count += 1
        response = self.session.post(
            self.base_url,
            params=params,
            json=body,
            headers=self.headers,
            timeout=self.timeout
        )

        text = response.text or ''
        if not response.ok:
            raise ProtocolError(response.status_code, text)

        if not text:
            return response.status_code, None
        try:
            raw_data = response.json()
        except ValueError:
            # Handle non-JSON responses
            raw_data = {'raw_text': text}
        return response.status_code, raw_data

    def close_connection(self) -> None:
        """
        Close HTTP session and release resources
        """
        if self.session:
            self.session.close()
            self.session = None

"""HTTP utilities with retry logic and structured indexer errors."""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429


class IndexerError(Exception):
  """Upstream indexer failure (network, HTTP status, bad payload)."""

  def __init__(self, message, status=None):
    super().__init__(message)
    self.status = status


class RateLimitedError(IndexerError):
  """Indexer rejected the request with HTTP 429."""

  def __init__(self, message, retry_after=None):
    super().__init__(message, status=RATE_LIMIT_STATUS)
    self.retry_after = retry_after


def make_session(
  max_retries=3,
  backoff_factor=0.5,
  status_forcelist=(500, 502, 503, 504),
) -> requests.Session:
  """
  Create a requests Session with retry logic for server errors.

  429 is left out of the retried statuses; rate limiting is handled
  by the cache layer's backoff instead.

  Args:
    max_retries: Maximum number of retries
    backoff_factor: Backoff factor for exponential retry
    status_forcelist: HTTP status codes to retry on

  Returns:
    Configured requests.Session
  """
  session = requests.Session()

  retry_strategy = Retry(
    total=max_retries,
    backoff_factor=backoff_factor,
    status_forcelist=list(status_forcelist),
    allowed_methods=["GET", "POST"],
    respect_retry_after_header=False,
  )

  adapter = HTTPAdapter(max_retries=retry_strategy)
  session.mount("http://", adapter)
  session.mount("https://", adapter)

  return session


def _parse_retry_after(value):
  try:
    return float(value) if value is not None else None
  except (TypeError, ValueError):
    return None


def post_graphql(session: requests.Session, url: str, query: str, variables=None, timeout=30):
  """
  POST a GraphQL query and return its `data` object.

  Args:
    session: requests.Session to use
    url: GraphQL endpoint
    query: Query document
    variables: Query variables
    timeout: Request timeout

  Returns:
    The `data` dict of the response (empty dict when null)

  Raises:
    RateLimitedError: the endpoint answered 429
    IndexerError: any other transport, status, JSON or GraphQL error
  """
  payload = {"query": query, "variables": variables or {}}

  try:
    response = session.post(url, json=payload, timeout=timeout)
  except requests.exceptions.RequestException as e:
    raise IndexerError(f"Request error posting to {url}: {e}") from e

  if response.status_code == RATE_LIMIT_STATUS:
    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
    logger.debug(f"Rate limited by {url}, retry after {retry_after}")
    raise RateLimitedError(f"Rate limited by {url} (429)", retry_after=retry_after)

  try:
    response.raise_for_status()
  except requests.exceptions.HTTPError as e:
    raise IndexerError(f"HTTP error from {url}: {e}", status=response.status_code) from e

  try:
    body = response.json()
  except ValueError as e:
    raise IndexerError(f"JSON parse error for {url}: {e}", status=response.status_code) from e

  if not isinstance(body, dict):
    raise IndexerError(f"Unexpected response shape from {url}", status=response.status_code)

  errors = body.get("errors")
  if errors:
    messages = "; ".join(str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors)
    raise IndexerError(f"GraphQL error from {url}: {messages}", status=response.status_code)

  return body.get("data") or {}


def is_rate_limited(error):
  """
  Check whether an exception signals upstream rate limiting.

  Structured RateLimitedError first; errors from foreign fetchers are
  recognised by a 429 status attribute or "429" in their message.
  """
  if isinstance(error, RateLimitedError):
    return True
  if isinstance(error, IndexerError):
    return error.status == RATE_LIMIT_STATUS

  for attr in ("status", "status_code"):
    if getattr(error, attr, None) == RATE_LIMIT_STATUS:
      return True

  response = getattr(error, "response", None)
  if response is not None and getattr(response, "status_code", None) == RATE_LIMIT_STATUS:
    return True

  return str(RATE_LIMIT_STATUS) in str(error)

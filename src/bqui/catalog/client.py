"""BigQuery REST API client.

Talks to the v2 REST API with httpx. Credentials come from google-auth:
either a service account key file or Application Default Credentials. An
alternate endpoint (such as a local BigQuery emulator) is used without
credentials.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx

from ..errors import CatalogError, StartupError, TransportError
from ..models import (
    Column,
    ColumnMode,
    Dataset,
    Project,
    QueryResult,
    Table,
    TablePreview,
    TableSchema,
)

logger = logging.getLogger(__name__)

SCOPES = (
    "https://www.googleapis.com/auth/bigquery",
    "https://www.googleapis.com/auth/cloud-platform.read-only",
)

DEFAULT_PREVIEW_LIMIT = 100
QUERY_POLL_TIMEOUT_MS = 10_000


def load_credentials(credentials_file: Optional[str] = None) -> Any:
    """Load Google credentials.

    Args:
        credentials_file: Path to a service account JSON key. When omitted,
            Application Default Credentials are used.

    Returns:
        A google-auth credentials object

    Raises:
        StartupError: If no usable credentials are found
    """
    import google.auth
    from google.auth.exceptions import DefaultCredentialsError
    from google.oauth2 import service_account

    if credentials_file:
        try:
            return service_account.Credentials.from_service_account_file(
                credentials_file, scopes=list(SCOPES)
            )
        except (OSError, ValueError) as e:
            raise StartupError(f"Cannot read credentials file {credentials_file}: {e}") from e
    try:
        credentials, _ = google.auth.default(scopes=list(SCOPES))
    except DefaultCredentialsError as e:
        raise StartupError(
            "No credentials found. Run 'gcloud auth application-default login' "
            "or use --credentials"
        ) from e
    return credentials


def _parse_millis(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError):
        return None


def _parse_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_column(field: Dict[str, Any]) -> Column:
    """Convert a REST ``TableFieldSchema`` into a ``Column``."""
    mode = field.get("mode") or "NULLABLE"
    return Column(
        name=field["name"],
        type=field.get("type", "STRING"),
        mode=ColumnMode(mode.upper()),
        description=field.get("description") or "",
        fields=tuple(parse_column(child) for child in field.get("fields", [])),
    )


def decode_cell(column: Optional[Column], cell: Any) -> Any:
    """Decode a ``{"v": ...}`` cell according to its column.

    Records become dicts keyed by field name and repeated fields become
    lists. Scalars are left as the strings the API returns.
    """
    value = cell.get("v") if isinstance(cell, dict) else cell
    if value is None or column is None:
        return value
    if column.repeated and isinstance(value, list):
        item = column.model_copy(update={"mode": ColumnMode.NULLABLE})
        return [decode_cell(item, entry) for entry in value]
    if column.fields and isinstance(value, dict):
        return {
            child.name: decode_cell(child, entry)
            for child, entry in zip(column.fields, value.get("f", []))
        }
    return value


def decode_rows(fields: Sequence[Column], rows: Sequence[Dict[str, Any]]) -> List[tuple]:
    decoded = []
    for row in rows:
        cells = row.get("f", [])
        decoded.append(
            tuple(
                decode_cell(fields[index] if index < len(fields) else None, cell)
                for index, cell in enumerate(cells)
            )
        )
    return decoded


class CatalogClient:
    """Client for the BigQuery v2 REST API."""

    BASE_URL = "https://bigquery.googleapis.com/bigquery/v2"

    def __init__(
        self,
        project_id: str,
        credentials: Any = None,
        endpoint: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 0,
        retry_delay: float = 1.0,
    ):
        """Initialize the client.

        Args:
            project_id: Project that queries are billed to and listed first.
            credentials: google-auth credentials. None sends no Authorization
                header, which is what an emulator expects.
            endpoint: Alternate API root, e.g. ``http://localhost:9050``.
            timeout: Per-request timeout in seconds.
            max_retries: Retries for connection failures and 5xx responses.
            retry_delay: Base delay between retries (exponential backoff).
        """
        self.project_id = project_id
        self.credentials = credentials
        self.base_url = self._api_root(endpoint) if endpoint else self.BASE_URL
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client: Optional[httpx.Client] = None
        self._auth_lock = threading.Lock()

    @staticmethod
    def _api_root(endpoint: str) -> str:
        endpoint = endpoint.rstrip("/")
        if endpoint.endswith("/bigquery/v2"):
            return endpoint
        return f"{endpoint}/bigquery/v2"

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={
                    "Accept": "application/json",
                    "User-Agent": "bqui",
                },
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "CatalogClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _auth_headers(self) -> Dict[str, str]:
        if self.credentials is None:
            return {}
        with self._auth_lock:
            if not self.credentials.valid:
                from google.auth.exceptions import RefreshError
                from google.auth.transport.requests import Request

                try:
                    self.credentials.refresh(Request())
                except RefreshError as e:
                    raise CatalogError(f"Cannot refresh credentials: {e}") from e
            return {"Authorization": f"Bearer {self.credentials.token}"}

    def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make a request, retrying connection failures and server errors.

        Args:
            method: HTTP method
            url: Request URL, relative to the API root
            **kwargs: Additional arguments for httpx

        Returns:
            HTTP response

        Raises:
            CatalogError: If the API answers with an error
            TransportError: If the API cannot be reached
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                headers = {**kwargs.pop("headers", {}), **self._auth_headers()}
                response = self.client.request(method, url, headers=headers, **kwargs)
                if response.status_code >= 500:
                    response.raise_for_status()
                return response
            except (httpx.ConnectError, httpx.ReadTimeout, httpx.HTTPStatusError) as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.info("Retrying %s %s in %.1fs: %s", method, url, delay, e)
                    time.sleep(delay)
                    continue

        if isinstance(last_error, httpx.HTTPStatusError):
            raise self._error(last_error.response) from last_error
        raise TransportError(f"Cannot reach {self.base_url}: {last_error}") from last_error

    def _error(self, response: httpx.Response) -> CatalogError:
        message = response.reason_phrase or "request failed"
        try:
            message = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            pass
        return CatalogError(f"{response.status_code}: {message}", status_code=response.status_code)

    def _call(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self._request_with_retry(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(str(e)) from e
        if response.is_error:
            raise self._error(response)
        if not response.content:
            return {}
        return response.json()

    def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a JSON resource."""
        return self._call("GET", url, params=params)

    def post(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON body and return the JSON answer."""
        return self._call("POST", url, json=body)

    def _paginate(self, url: str, key: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        params = dict(params or {})
        while True:
            data = self.get(url, params=params)
            yield from data.get(key, [])
            token = data.get("nextPageToken")
            if not token:
                return
            params["pageToken"] = token

    # Catalog

    def list_projects(self) -> List[Project]:
        """Projects visible to the credentials, sorted by id."""
        projects = [
            Project(
                id=item.get("projectReference", {}).get("projectId") or item.get("id", ""),
                name=item.get("friendlyName") or "",
            )
            for item in self._paginate("/projects", "projects", {"maxResults": 1000})
        ]
        return sorted(projects, key=lambda p: p.id)

    def list_datasets(self, project_id: Optional[str] = None) -> List[Dataset]:
        project_id = project_id or self.project_id
        datasets = []
        for item in self._paginate(f"/projects/{project_id}/datasets", "datasets", {"all": "true"}):
            reference = item.get("datasetReference", {})
            datasets.append(
                Dataset(
                    id=reference.get("datasetId", ""),
                    project_id=reference.get("projectId", project_id),
                    location=item.get("location") or "",
                    labels=item.get("labels") or {},
                )
            )
        return datasets

    def list_tables(self, project_id: Optional[str], dataset_id: str) -> List[Table]:
        project_id = project_id or self.project_id
        tables = []
        url = f"/projects/{project_id}/datasets/{dataset_id}/tables"
        for item in self._paginate(url, "tables", {"maxResults": 1000}):
            reference = item.get("tableReference", {})
            tables.append(
                Table(
                    id=reference.get("tableId", ""),
                    dataset_id=reference.get("datasetId", dataset_id),
                    project_id=reference.get("projectId", project_id),
                    created_at=_parse_millis(item.get("creationTime")),
                    type=item.get("type") or "TABLE",
                    labels=item.get("labels") or {},
                )
            )
        return tables

    def get_table(self, project_id: Optional[str], dataset_id: str, table_id: str) -> Dict[str, Any]:
        project_id = project_id or self.project_id
        return self.get(f"/projects/{project_id}/datasets/{dataset_id}/tables/{table_id}")

    def get_schema(self, project_id: Optional[str], dataset_id: str, table_id: str) -> TableSchema:
        data = self.get_table(project_id, dataset_id, table_id)
        fields = data.get("schema", {}).get("fields", [])
        return TableSchema(fields=tuple(parse_column(field) for field in fields))

    def preview_rows(
        self,
        project_id: Optional[str],
        dataset_id: str,
        table_id: str,
        limit: int = DEFAULT_PREVIEW_LIMIT,
        schema: Optional[TableSchema] = None,
    ) -> TablePreview:
        """First ``limit`` rows, read with tabledata.list (no query cost).

        The rows carry no field names, so they are decoded against ``schema``.
        It is fetched when not given.
        """
        project_id = project_id or self.project_id
        if schema is None:
            schema = self.get_schema(project_id, dataset_id, table_id)
        url = f"/projects/{project_id}/datasets/{dataset_id}/tables/{table_id}/data"
        data = self.get(url, params={"maxResults": limit})
        rows = decode_rows(schema.fields, data.get("rows", []))[:limit]
        return TablePreview(
            headers=tuple(column.name for column in schema.fields),
            rows=tuple(rows),
        )

    def run_query(self, project_id: Optional[str], text: str, max_results: int = 1000) -> QueryResult:
        """Run a standard SQL query and wait for its first page of rows."""
        project_id = project_id or self.project_id
        data = self.post(
            f"/projects/{project_id}/queries",
            {
                "query": text,
                "useLegacySql": False,
                "maxResults": max_results,
                "timeoutMs": QUERY_POLL_TIMEOUT_MS,
            },
        )
        job = data.get("jobReference", {})
        job_id = job.get("jobId", "")
        while not data.get("jobComplete", True):
            logger.debug("Waiting for query job %s", job_id)
            params = {"maxResults": max_results, "timeoutMs": QUERY_POLL_TIMEOUT_MS}
            if job.get("location"):
                params["location"] = job["location"]
            data = self.get(f"/projects/{project_id}/queries/{job_id}", params=params)
        fields = tuple(parse_column(field) for field in data.get("schema", {}).get("fields", []))
        return QueryResult(
            columns=tuple(column.name for column in fields),
            rows=tuple(decode_rows(fields, data.get("rows", []))),
            job_id=job_id,
        )

    def switch_project(self, project_id: str) -> str:
        """Point the client at another project after checking it is readable."""
        self.get(f"/projects/{project_id}/datasets", params={"maxResults": 1})
        self.project_id = project_id
        logger.info("Switched to project %s", project_id)
        return project_id

# ============================================================================
#  File:    graphql_client.py
#  Purpose: HTTP session for API tests and a GraphQL helper that never raises
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from loguru import logger

from reporting.snippets import GRAPHQL_ERROR_LIMIT, REASON_LIMIT

DEFAULT_GRAPHQL_PATH = "/api/v1/pharmaserv/graphql"
DEFAULT_TIMEOUT = 30.0
#
# ============================================================================
# SECTION 2: Data Structures
# ============================================================================
#
@dataclass
class GraphQLResponse:
    response: requests.Response
    body: Optional[Dict[str, Any]]


@dataclass
class GraphQLResult:
    """ok is True only for an HTTP success with no GraphQL errors."""
    ok: bool
    body: Optional[Dict[str, Any]]
    error: Optional[str] = None
#
# ============================================================================
# SECTION 3: ApiSession
# ============================================================================
# Class 3.1: ApiSession
# Purpose: requests.Session bound to the API base URL with JSON headers.
#          One per test; closed by the fixture.
# ============================================================================
#
class ApiSession(requests.Session):

    def __init__(self, base_url: str, graphql_path: str = DEFAULT_GRAPHQL_PATH,
                 timeout: float = DEFAULT_TIMEOUT):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.graphql_path = graphql_path
        self.timeout = timeout
        self.headers.update({"Content-Type": "application/json"})

    def request(self, method, url, *args, **kwargs):
        if not url.startswith(("http://", "https://")):
            url = f"{self.base_url}/{url.lstrip('/')}"
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, *args, **kwargs)

    # ========================================================================
    # Method 3.1.1: graphql
    # Purpose: POST a GraphQL operation. Body is None when the response is
    #          not JSON; HTTP errors are left for the caller to inspect.
    # ========================================================================
    def graphql(self, query: str, operation_name: Optional[str] = None,
                variables: Optional[Dict[str, Any]] = None,
                path: Optional[str] = None) -> GraphQLResponse:
        payload = {"query": query, "operationName": operation_name, "variables": variables}
        response = self.post(path or self.graphql_path, json=payload)
        try:
            body = response.json()
        except ValueError:
            body = None
        return GraphQLResponse(response=response, body=body)

    # ========================================================================
    # Method 3.1.2: safe_graphql
    # ========================================================================
    def safe_graphql(self, query: str, operation_name: Optional[str] = None,
                     variables: Optional[Dict[str, Any]] = None,
                     path: Optional[str] = None) -> GraphQLResult:
        try:
            result = self.graphql(query, operation_name, variables, path)
        except requests.RequestException as e:
            logger.debug(f"GraphQL {operation_name or 'request'} failed: {e}")
            return GraphQLResult(ok=False, body=None, error=str(e)[:REASON_LIMIT])

        response, body = result.response, result.body
        if not response.ok:
            return GraphQLResult(
                ok=False, body=body,
                error=f"HTTP {response.status_code} {(response.text or '')[:REASON_LIMIT]}",
            )

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            dumped = json.dumps(errors, separators=(",", ":"))
            return GraphQLResult(ok=False, body=body, error=dumped[:GRAPHQL_ERROR_LIMIT])
        return GraphQLResult(ok=True, body=body)
#
#
## End of graphql_client.py

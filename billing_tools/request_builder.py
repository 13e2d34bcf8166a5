"""Request Builder - Maps logical tool arguments onto an HTTP request.

Path-position arguments are substituted into the URL template, query
arguments (and any undeclared ones) become the query string, and body
arguments form the JSON body of mutating requests. Two tools get bespoke
body normalization for the usage-metering backend:

- ``ingestRawMetricEvent``: timestamps reformatted, event flattened
- ``createRawMetric``: connector/api_type/dataschema defaults, type
  vocabulary normalized, ``column_order`` pinned to ``["timestamp"]``
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from .types import (
    ArgumentPosition,
    InvocationContext,
    PreparedRequest,
    ResolvedCredentials,
    ToolSpec,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.zenskar.com"
BODY_METHODS = ("POST", "PUT", "PATCH")
CREDENTIAL_HEADER_KEYS = {"authorization", "organisation", "organization", "x-api-key"}

# encodeURIComponent leaves these unescaped
_PATH_SAFE = "-_.!~*'()"

USAGE_EVENT_TOOL = "ingestRawMetricEvent"
USAGE_EVENT_ARGUMENT = "event"
RAW_METRIC_TOOL = "createRawMetric"
CONTRACT_EXTRACTION_TOOL = "extractContractFromRaw"

DATETIME_DATA_KEYS = ("DateTime64", "DateTime", "DateTime32")

DEFAULT_CONNECTOR = "push_to_zenskar"
DEFAULT_API_TYPE = "PUSH"
DEFAULT_DATASCHEMA: Dict[str, Any] = {
    "customer_id": "string",
    "timestamp": "timestamp",
    "data": {
        "usage_amount": "decimal",
        "feature_id": "string",
    },
}
# The ingestion pipeline only accepts this ordering
FORCED_COLUMN_ORDER = ["timestamp"]

CLICKHOUSE_TYPES: Dict[str, str] = {
    "boolean": "Bool",
    "string": "String",
    "int": "Int64",
    "int64": "Int64",
    "float": "Float64",
    "float64": "Float64",
    "double": "Float64",
    "date": "Date32",
    "date32": "Date32",
    "datetime": "DateTime64",
    "datetime64": "DateTime64",
    "uuid": "UUID",
}


# =============================================================================
# Usage-metering normalization
# =============================================================================

def format_clickhouse_datetime(value: Any) -> Any:
    """Turn ``2024-01-01T10:00:00Z`` into ``2024-01-01 10:00:00``."""
    if not isinstance(value, str):
        return value
    formatted = value.replace("T", " ", 1).replace("t", " ", 1)
    return re.sub(r"[zZ]$", "", formatted).strip()


def normalize_usage_event_payload(event: Any) -> Any:
    """Reformat the timestamp fields of a usage event. Returns a new object."""
    if not isinstance(event, dict):
        return event

    normalized = dict(event)
    if isinstance(normalized.get("timestamp"), str):
        normalized["timestamp"] = format_clickhouse_datetime(normalized["timestamp"])

    data = normalized.get("data")
    if isinstance(data, dict):
        data = dict(data)
        for key in DATETIME_DATA_KEYS:
            if isinstance(data.get(key), str):
                data[key] = format_clickhouse_datetime(data[key])
        normalized["data"] = data

    return normalized


def normalize_clickhouse_type(type_name: Any) -> Any:
    """Map a loose type name onto the backend's canonical vocabulary."""
    if not isinstance(type_name, str):
        return type_name
    trimmed = type_name.strip()
    if not trimmed:
        return type_name
    return CLICKHOUSE_TYPES.get(trimmed.lower(), trimmed)


def normalize_raw_metric_dataschema(schema: Any) -> Any:
    """Normalize the type names of a raw metric dataschema. Returns a new object."""
    if not isinstance(schema, dict):
        return schema

    normalized = dict(schema)
    for key in ("customer_id", "timestamp"):
        if normalized.get(key):
            normalized[key] = normalize_clickhouse_type(normalized[key])

    if isinstance(normalized.get("data"), dict):
        normalized["data"] = {
            key: normalize_clickhouse_type(value)
            for key, value in normalized["data"].items()
        }

    return normalized


def _apply_raw_metric_defaults(body: Dict[str, Any], credentials: ResolvedCredentials) -> Dict[str, Any]:
    if not body.get("connector"):
        body["connector"] = DEFAULT_CONNECTOR
    if not body.get("api_type"):
        body["api_type"] = DEFAULT_API_TYPE
    if not body.get("dataschema"):
        body["dataschema"] = json.loads(json.dumps(DEFAULT_DATASCHEMA))
    body["dataschema"] = normalize_raw_metric_dataschema(body["dataschema"])
    body["column_order"] = list(FORCED_COLUMN_ORDER)
    return body


def _apply_contract_extraction_defaults(body: Dict[str, Any], credentials: ResolvedCredentials) -> Dict[str, Any]:
    if not body.get("organization_id"):
        body["organization_id"] = credentials.organization
        logger.debug(f"[{CONTRACT_EXTRACTION_TOOL}] Auto-populated organization_id")
    return body


BodyTransform = Callable[[Dict[str, Any], ResolvedCredentials], Dict[str, Any]]

BODY_TRANSFORMS: Dict[str, BodyTransform] = {
    RAW_METRIC_TOOL: _apply_raw_metric_defaults,
    CONTRACT_EXTRACTION_TOOL: _apply_contract_extraction_defaults,
}


# =============================================================================
# Builder
# =============================================================================

def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


class RequestBuilder:
    """
    Assemble outbound requests from tool specs and validated arguments.

    Header precedence (later wins): defaults, tenant/auth headers, caller
    extra headers not already set, static template headers.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: Optional[str] = "Zenskar-MCP-Server/1.0.0",
        api_version: Optional[str] = "20230501",
    ):
        self.base_url = base_url.rstrip("/")
        self._default_headers: Dict[str, str] = {"Content-Type": "application/json"}
        if user_agent:
            self._default_headers["User-Agent"] = user_agent
        if api_version:
            self._default_headers["apiversion"] = api_version

    @classmethod
    def from_settings(cls, settings, base_url: Optional[str] = None) -> "RequestBuilder":
        return cls(
            base_url=settings.zenskar_api_base_url or base_url or DEFAULT_BASE_URL,
            user_agent=settings.user_agent,
            api_version=settings.zenskar_api_version,
        )

    def build(
        self,
        spec: ToolSpec,
        arguments: Dict[str, Any],
        credentials: ResolvedCredentials,
        context: Optional[InvocationContext] = None,
    ) -> PreparedRequest:
        """
        Build the complete request for one invocation.

        Args:
            spec: Tool being invoked
            arguments: Domain arguments after approval and limit enforcement
            credentials: Resolved tenant identity and auth headers
            context: Internal context (for caller-supplied extra headers)

        Returns:
            PreparedRequest ready for the executor
        """
        method = spec.request_template.method
        url = self.build_url(spec, arguments)
        body = self.build_body(spec, arguments, credentials)
        headers = self.build_headers(spec, credentials, context)

        logger.debug(f"[{spec.name}] Prepared {method} {url}")
        return PreparedRequest(url=url, method=method, headers=headers, body=body)

    def build_url(self, spec: ToolSpec, arguments: Dict[str, Any]) -> str:
        url = spec.request_template.url or "/"

        for name in spec.argument_names(ArgumentPosition.PATH):
            if arguments.get(name) is not None:
                url = url.replace("{" + name + "}", quote(_to_text(arguments[name]), safe=_PATH_SAFE))

        query = self.build_query(spec, arguments)
        if query:
            url += ("&" if "?" in url else "?") + str(httpx.QueryParams(query))

        if url.startswith("http://") or url.startswith("https://"):
            return url
        if not url.startswith("/"):
            url = "/" + url
        return self.base_url + url

    def build_query(self, spec: ToolSpec, arguments: Dict[str, Any]) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        seen = set()

        def append(key: str, value: Any) -> None:
            seen.add(key)
            if isinstance(value, list):
                for item in value:
                    pairs.append((key, _to_text(item)))
            else:
                pairs.append((key, _to_text(value)))

        for name in spec.argument_names(ArgumentPosition.QUERY):
            if _is_present(arguments.get(name)):
                append(name, arguments[name])

        # Loosely specified catalogs: anything not routed elsewhere is a query parameter
        routed = set(spec.argument_names(ArgumentPosition.PATH)) | set(spec.argument_names(ArgumentPosition.BODY))
        for key, value in arguments.items():
            if key in seen or key in routed or not _is_present(value):
                continue
            append(key, value)

        return pairs

    def build_body(
        self,
        spec: ToolSpec,
        arguments: Dict[str, Any],
        credentials: ResolvedCredentials,
    ) -> Optional[Dict[str, Any]]:
        if spec.request_template.method not in BODY_METHODS:
            return None

        body: Dict[str, Any] = {}
        for name in spec.argument_names(ArgumentPosition.BODY):
            if name not in arguments:
                continue
            value = arguments[name]
            if spec.name == USAGE_EVENT_TOOL and name == USAGE_EVENT_ARGUMENT:
                event = normalize_usage_event_payload(value)
                if isinstance(event, dict):
                    # The ingestion endpoint expects the event's fields at top level
                    body.update(event)
                    continue
                value = event
            body[name] = value

        transform = BODY_TRANSFORMS.get(spec.name)
        if transform is not None:
            body = transform(body, credentials)

        return body or None

    def build_headers(
        self,
        spec: ToolSpec,
        credentials: ResolvedCredentials,
        context: Optional[InvocationContext] = None,
    ) -> Dict[str, str]:
        headers: Dict[str, str] = dict(self._default_headers)
        headers.update(credentials.headers)

        if context and context.headers:
            # Credential-bearing headers were already consumed by the resolver
            present = {k.lower() for k in headers} | CREDENTIAL_HEADER_KEYS
            for key, value in context.headers.items():
                if value and key.lower() not in present:
                    headers[key] = value
                    present.add(key.lower())

        for key, value in spec.request_template.headers.items():
            for existing in [k for k in headers if k.lower() == key.lower()]:
                del headers[existing]
            headers[key] = value

        return headers

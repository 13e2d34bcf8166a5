"""Credential Resolver - Multi-tenant identity and auth header resolution.

Determines the tenant organization and the credential for every call from
an explicit, ordered chain of sources. Zero-trust by default: a request is
never assembled without both values.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Tuple

from .errors import AuthError
from .types import InvocationContext, ResolvedCredentials

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
API_KEY_HEADER = "x-api-key"
ORGANIZATION_HEADER = "organisation"

# header.payload.signature
_TOKEN_SHAPE = re.compile(r"^[^.\s]+\.[^.\s]+\.[^.\s]+$")


def is_bearer_token(credential: str) -> bool:
    """Check whether a credential has the three-segment token shape."""
    token = credential.strip()
    if token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):].strip()
    return bool(_TOKEN_SHAPE.match(token))


def mask_secret(value: Optional[str], visible: int = 8) -> str:
    """Shorten a secret for log output."""
    if not value:
        return "none"
    return value[:visible] + "..."


# =============================================================================
# Credential Sources
# =============================================================================

class CredentialSource(ABC):
    """One link of the credential resolution chain."""

    name: str = "base"

    @abstractmethod
    def organization(self, context: Optional[InvocationContext]) -> Optional[str]:
        """Organization id offered by this source, if any."""
        pass

    @abstractmethod
    def credential(self, context: Optional[InvocationContext]) -> Optional[str]:
        """Primary credential offered by this source, if any."""
        pass

    def legacy_api_key(self, context: Optional[InvocationContext]) -> Optional[str]:
        """Separately supplied API key, if any."""
        return None


class ContextCredentialSource(CredentialSource):
    """Values set explicitly on the call's internal context."""

    name = "context"

    def organization(self, context: Optional[InvocationContext]) -> Optional[str]:
        return context.organization if context else None

    def credential(self, context: Optional[InvocationContext]) -> Optional[str]:
        return context.authorization if context else None

    def legacy_api_key(self, context: Optional[InvocationContext]) -> Optional[str]:
        return context.api_key if context else None


class HeaderCredentialSource(CredentialSource):
    """Header-map equivalents carried on the internal context."""

    name = "headers"

    ORGANIZATION_KEYS = ("organisation", "organization")
    CREDENTIAL_KEYS = ("authorization",)

    def _lookup(self, context: Optional[InvocationContext], keys: Tuple[str, ...]) -> Optional[str]:
        if not context or not context.headers:
            return None
        lowered = {k.lower(): v for k, v in context.headers.items()}
        for key in keys:
            if lowered.get(key):
                return lowered[key]
        return None

    def organization(self, context: Optional[InvocationContext]) -> Optional[str]:
        return self._lookup(context, self.ORGANIZATION_KEYS)

    def credential(self, context: Optional[InvocationContext]) -> Optional[str]:
        return self._lookup(context, self.CREDENTIAL_KEYS)

    def legacy_api_key(self, context: Optional[InvocationContext]) -> Optional[str]:
        return self._lookup(context, (API_KEY_HEADER,))


class EnvironmentCredentialSource(CredentialSource):
    """Process-level fallback values (ZENSKAR_ORGANIZATION / ZENSKAR_AUTH_TOKEN)."""

    name = "env"

    def __init__(self, organization: Optional[str] = None, auth_token: Optional[str] = None):
        self._organization = organization
        self._auth_token = auth_token

    def organization(self, context: Optional[InvocationContext]) -> Optional[str]:
        return self._organization

    def credential(self, context: Optional[InvocationContext]) -> Optional[str]:
        return self._auth_token


# =============================================================================
# Resolver
# =============================================================================

class CredentialResolver:
    """
    Resolve tenant identity and auth transport for a call.

    Resolution order is the order of ``sources``; the first non-empty
    organization id and the first non-empty credential win independently.

    Principles:
    - Both checks are mandatory and independent
    - Fail fast with clear errors
    - Never log full secrets
    """

    def __init__(self, sources: Optional[List[CredentialSource]] = None):
        self._sources: List[CredentialSource] = sources if sources is not None else [
            ContextCredentialSource(),
            HeaderCredentialSource(),
        ]

    @classmethod
    def from_settings(cls, settings) -> "CredentialResolver":
        """Build the default chain, with the environment fallback if allowed."""
        sources: List[CredentialSource] = [ContextCredentialSource(), HeaderCredentialSource()]
        if settings.allow_environment_credentials:
            sources.append(EnvironmentCredentialSource(
                organization=settings.zenskar_organization,
                auth_token=settings.zenskar_auth_token,
            ))
        return cls(sources)

    @property
    def source_names(self) -> List[str]:
        return [source.name for source in self._sources]

    def resolve(self, tool_name: str, context: Optional[InvocationContext]) -> ResolvedCredentials:
        """
        Resolve organization id and auth headers.

        Args:
            tool_name: Tool being invoked (for error context)
            context: Internal context of the call, if any

        Returns:
            ResolvedCredentials with the outbound auth headers

        Raises:
            AuthError: If no organization id or no credential resolves
        """
        organization, organization_source = self._first(lambda s: s.organization(context))
        credential, credential_source = self._first(lambda s: s.credential(context))
        legacy_key, _ = self._first(lambda s: s.legacy_api_key(context))

        missing = []
        if not organization:
            logger.error(f"[{tool_name}] SECURITY ERROR: No organization ID provided")
            missing.append(
                "Organization ID is required for API access. "
                "Set ZENSKAR_ORGANIZATION env var or provide in user context."
            )
        if not credential:
            logger.error(f"[{tool_name}] SECURITY ERROR: No authorization token provided")
            missing.append(
                "Authorization token is required for API access. "
                "Set ZENSKAR_AUTH_TOKEN env var or provide in user context."
            )
        if missing:
            raise AuthError(" ".join(missing), tool_name=tool_name)

        headers = {ORGANIZATION_HEADER: organization}
        headers.update(self.credential_headers(credential, legacy_key))

        logger.debug(
            f"[{tool_name}] Resolved credentials: organization from {organization_source}, "
            f"credential from {credential_source} ({mask_secret(credential)})"
        )

        return ResolvedCredentials(
            organization=organization,
            headers=headers,
            organization_source=organization_source,
            credential_source=credential_source,
        )

    @staticmethod
    def credential_headers(credential: str, legacy_api_key: Optional[str] = None) -> Dict[str, str]:
        """
        Classify a credential into its transport header(s).

        A three-segment token goes out as ``Authorization: Bearer``; any
        other shape as ``x-api-key``. A separately supplied API key is
        always forwarded and occupies ``x-api-key``.
        """
        headers: Dict[str, str] = {}
        credential = credential.strip()

        if is_bearer_token(credential):
            if credential.startswith(BEARER_PREFIX):
                headers["Authorization"] = credential
            else:
                headers["Authorization"] = f"{BEARER_PREFIX}{credential}"
        elif credential.startswith(BEARER_PREFIX):
            headers[API_KEY_HEADER] = credential[len(BEARER_PREFIX):].strip()
        else:
            headers[API_KEY_HEADER] = credential

        if legacy_api_key:
            if headers.get(API_KEY_HEADER, legacy_api_key) != legacy_api_key:
                logger.warning(
                    f"Legacy API key replaces the primary credential in {API_KEY_HEADER} "
                    f"({mask_secret(headers[API_KEY_HEADER])} -> {mask_secret(legacy_api_key)})"
                )
            headers[API_KEY_HEADER] = legacy_api_key

        return headers

    def _first(self, getter) -> Tuple[Optional[str], Optional[str]]:
        for source in self._sources:
            value = getter(source)
            if value:
                return value, source.name
        return None, None

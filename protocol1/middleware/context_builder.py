"""
Builds a ValidationContext from a framework-neutral request description.

The HTTP framework adapts its request object into a GatewayRequest; the
rules here infer who is acting, what they are doing and which company
and record they are doing it to.
"""

import re
from typing import Any, Callable

from pydantic import BaseModel, Field, field_validator

from protocol1.core.models import ActorType, RequestMetadata, ResourceRefs, ValidationContext
from protocol1.observability.logger import get_logger

logger = get_logger(__name__)

# Path prefix -> actor type, checked in order
ACTOR_PATH_PREFIXES = (
    ("api/admin/", ActorType.ADMIN_JUDGMENT),
    ("api/issuer/", ActorType.ISSUER),
    ("api/company/", ActorType.ISSUER),
    ("api/investor/", ActorType.INVESTOR),
    ("api/user/", ActorType.INVESTOR),
)

ADMIN_ROLES = frozenset({"admin", "super_admin"})
ISSUER_ROLES = frozenset({"company_user", "issuer"})

# (path regex, required method or None, action), first match wins
ACTION_PATTERNS = (
    (re.compile(r"disclosures/\d+/submit"), None, "submit_disclosure"),
    (re.compile(r"disclosures/\d+/approve"), None, "approve_disclosure"),
    (re.compile(r"disclosures/\d+/edit"), None, "edit_disclosure"),
    (re.compile(r"disclosures"), "PUT", "edit_disclosure"),
    (re.compile(r"clarifications/\d+/answer"), None, "answer_clarification"),
    (re.compile(r"companies/\d+/suspend"), None, "suspend_company"),
    (re.compile(r"companies/\d+/visibility"), None, "change_visibility"),
    (re.compile(r"companies/\d+/platform-context"), None, "update_platform_context"),
    (re.compile(r"investments"), "POST", "create_investment"),
    (re.compile(r"wallet/allocate"), None, "allocate_wallet"),
)

METHOD_ACTIONS = {
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
    "GET": "read",
}

# (path regex capturing the record id, target model), first match wins
TARGET_PATTERNS = (
    (re.compile(r"platform-context-snapshots/(\d+)"), "platform_context_snapshot"),
    (re.compile(r"snapshots/(\d+)"), "investment_snapshot"),
    (re.compile(r"disclosures/(\d+)"), "disclosure"),
    (re.compile(r"acknowledgements/(\d+)"), "acknowledgement"),
)


def _as_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class GatewayUser(BaseModel):
    """The authenticated user behind a request."""

    user_id: str | None = None
    roles: frozenset[str] = frozenset()
    company_id: str | None = None

    @field_validator("user_id", "company_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _as_str(v)

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)


class GatewayRequest(BaseModel):
    """
    Framework-neutral description of an inbound request.

    Attributes:
        path: Request path ("api/issuer/disclosures/12/submit")
        method: HTTP method
        input: Merged query and body parameters
        route_params: Named route parameters (company, company_id, id, slug)
        user: Authenticated user, if any
        headers: Request headers
        ip_address: Client address
        full_url: Full request URL, for the audit trail
    """

    path: str
    method: str = "GET"
    input: dict[str, Any] = Field(default_factory=dict)
    route_params: dict[str, Any] = Field(default_factory=dict)
    user: GatewayUser | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    ip_address: str | None = None
    full_url: str | None = None

    @field_validator("method")
    @classmethod
    def uppercase_method(cls, v: str) -> str:
        return v.upper()

    @property
    def normalized_path(self) -> str:
        return self.path.lstrip("/")

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


class ContextBuilder:
    """
    Infers a ValidationContext from a GatewayRequest.

    Args:
        slug_resolver: Maps a company slug to its id (None if unknown)
    """

    def __init__(self, slug_resolver: Callable[[str], str | None] | None = None):
        self.slug_resolver = slug_resolver

    def build(
        self,
        request: GatewayRequest,
        actor_type_override: str | None = None,
        action_override: str | None = None,
    ) -> ValidationContext:
        """
        Build the context for one request.

        Args:
            request: Inbound request
            actor_type_override: Actor type declared by the route
            action_override: Action declared by the route

        Returns:
            ValidationContext
        """
        actor_type = self._coerce_actor_type(actor_type_override) or self.infer_actor_type(request)
        action = action_override or self.infer_action(request)
        target_model, target_id = self.infer_target(request)

        payload = dict(request.input)
        if "actor_type" not in payload:
            payload["actor_type"] = actor_type.value

        return ValidationContext(
            actor_type=actor_type,
            action=action,
            resource_refs=ResourceRefs(
                company_id=self.extract_company_id(request),
                target_model=target_model,
                target_id=target_id,
            ),
            actor_id=request.user.user_id if request.user else None,
            payload=payload,
            request_metadata=RequestMetadata(
                ip_address=request.ip_address,
                user_agent=request.header("User-Agent"),
                url=request.full_url or request.path,
                method=request.method,
            ),
        )

    def infer_actor_type(self, request: GatewayRequest) -> ActorType:
        """
        Actor type, in order: explicit actor_type input, path prefix,
        no user (system_enforcement), user role, then investor.
        """
        explicit = self._coerce_actor_type(request.input.get("actor_type"))
        if explicit is not None:
            return explicit

        path = request.normalized_path
        for prefix, actor_type in ACTOR_PATH_PREFIXES:
            if path.startswith(prefix):
                return actor_type

        user = request.user
        if user is None:
            return ActorType.SYSTEM_ENFORCEMENT

        if user.has_role(*ADMIN_ROLES):
            return ActorType.ADMIN_JUDGMENT

        if user.has_role(*ISSUER_ROLES):
            return ActorType.ISSUER

        return ActorType.INVESTOR

    def infer_action(self, request: GatewayRequest) -> str:
        """Action, in order: explicit action input, URL pattern, HTTP method."""
        explicit = request.input.get("action")
        if isinstance(explicit, str) and explicit:
            return explicit

        path = request.normalized_path
        for pattern, method, action in ACTION_PATTERNS:
            if pattern.search(path) and (method is None or method == request.method):
                return action

        return METHOD_ACTIONS.get(request.method, "unknown")

    def extract_company_id(self, request: GatewayRequest) -> str | None:
        """
        Company, in order: route company, route company_id, input
        company_id, route id, route slug (resolved), the user's own company.
        """
        params = request.route_params

        for candidate in (params.get("company"), params.get("company_id"), request.input.get("company_id"), params.get("id")):
            if candidate not in (None, ""):
                return str(candidate)

        slug = params.get("slug")
        if slug and self.slug_resolver is not None:
            company_id = self.slug_resolver(slug)
            if company_id is not None:
                return str(company_id)
            logger.debug(f"Unknown company slug: {slug}")

        if request.user and request.user.company_id:
            return request.user.company_id

        return None

    def infer_target(self, request: GatewayRequest) -> tuple[str | None, str | None]:
        """Target record: explicit target_model/target_id input, else the URL."""
        target_model = request.input.get("target_model")
        target_id = _as_str(request.input.get("target_id"))
        if target_model:
            return target_model, target_id

        path = request.normalized_path
        for pattern, model in TARGET_PATTERNS:
            match = pattern.search(path)
            if match:
                return model, match.group(1)

        return None, None

    @staticmethod
    def _coerce_actor_type(value: Any) -> ActorType | None:
        if not value:
            return None
        if not isinstance(value, str):
            logger.debug(f"Ignoring non-string actor type: {value!r}")
            return None
        try:
            return ActorType(value)
        except ValueError:
            # Left in the payload so attribution rules report it
            logger.debug(f"Ignoring undeclared actor type: {value}")
            return None

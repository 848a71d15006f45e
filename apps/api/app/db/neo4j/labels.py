from __future__ import annotations

import re

TENANT = "Tenant"
WORKSPACE = "Workspace"
ORGANIZATION = "Organization"
ARCHIVED_ORGANIZATION = "ArchivedOrganization"
CONTACT = "Contact"
CONTRACT = "Contract"
DELETED_CONTRACT = "DeletedContract"
EMAIL = "Email"
DOMAIN = "Domain"
USER = "User"
PHONE_NUMBER = "PhoneNumber"
LOCATION = "Location"
SOCIAL = "Social"
TAG = "Tag"
JOB_ROLE = "JobRole"
EXTERNAL_SYSTEM = "ExternalSystem"
OPPORTUNITY = "Opportunity"
RENEWAL_OPPORTUNITY = "RenewalOpportunity"
TIMELINE_EVENT = "TimelineEvent"
FLOW = "Flow"
FLOW_ACTION = "FlowAction"
FLOW_SENDER = "FlowSender"
FLOW_PARTICIPANT = "FlowParticipant"
FLOW_ACTION_EXECUTION = "FlowActionExecution"
FLOW_EXECUTION_SETTINGS = "FlowExecutionSettings"

# Edge from each tenant-scoped label to its Tenant node.
TENANT_EDGES = {
    ORGANIZATION: "ORGANIZATION_BELONGS_TO_TENANT",
    CONTACT: "CONTACT_BELONGS_TO_TENANT",
    CONTRACT: "CONTRACT_BELONGS_TO_TENANT",
    EMAIL: "EMAIL_ADDRESS_BELONGS_TO_TENANT",
    PHONE_NUMBER: "PHONE_NUMBER_BELONGS_TO_TENANT",
    LOCATION: "LOCATION_BELONGS_TO_TENANT",
    USER: "USER_BELONGS_TO_TENANT",
    TAG: "TAG_BELONGS_TO_TENANT",
}
DEFAULT_TENANT_EDGE = "BELONGS_TO_TENANT"

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def tenant_edge(label: str) -> str:
    return TENANT_EDGES.get(label, DEFAULT_TENANT_EDGE)


def tenant_label(label: str, tenant: str) -> str:
    """Composite ``<Label>_<tenant>`` label, backtick-quoted when the tenant is not a plain identifier."""
    composite = f"{label}_{tenant}"
    if _PLAIN_IDENTIFIER.match(composite):
        return composite
    escaped = composite.replace("`", "``")
    return f"`{escaped}`"


def entity_label(label: str, tenant: str) -> str:
    """Generic label plus tenant label, ready to follow a variable (``n:Organization:Organization_t``)."""
    return f"{label}:{tenant_label(label, tenant)}"

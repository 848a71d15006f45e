from __future__ import annotations

import logging
from typing import Any

from app.db.neo4j.labels import (
    CONTACT,
    CONTRACT,
    DELETED_CONTRACT,
    EMAIL,
    EXTERNAL_SYSTEM,
    FLOW,
    FLOW_ACTION,
    FLOW_ACTION_EXECUTION,
    FLOW_EXECUTION_SETTINGS,
    FLOW_PARTICIPANT,
    FLOW_SENDER,
    JOB_ROLE,
    LOCATION,
    OPPORTUNITY,
    ORGANIZATION,
    PHONE_NUMBER,
    SOCIAL,
    TAG,
    USER,
)

logger = logging.getLogger(__name__)

ID_LABELS = (
    ORGANIZATION,
    CONTACT,
    CONTRACT,
    DELETED_CONTRACT,
    EMAIL,
    PHONE_NUMBER,
    LOCATION,
    SOCIAL,
    TAG,
    JOB_ROLE,
    USER,
    OPPORTUNITY,
    EXTERNAL_SYSTEM,
    FLOW,
    FLOW_ACTION,
    FLOW_SENDER,
    FLOW_PARTICIPANT,
    FLOW_ACTION_EXECUTION,
    FLOW_EXECUTION_SETTINGS,
)


def _snake(label: str) -> str:
    return "".join(f"_{ch.lower()}" if ch.isupper() else ch for ch in label).lstrip("_")


SCHEMA_STATEMENTS = [
    "CREATE CONSTRAINT tenant_name_unique IF NOT EXISTS FOR (t:Tenant) REQUIRE t.name IS UNIQUE",
    "CREATE CONSTRAINT domain_domain_unique IF NOT EXISTS FOR (d:Domain) REQUIRE d.domain IS UNIQUE",
    *[
        f"CREATE CONSTRAINT {_snake(label)}_id_unique IF NOT EXISTS FOR (n:{label}) REQUIRE n.id IS UNIQUE"
        for label in ID_LABELS
    ],
    "CREATE INDEX flow_action_execution_mailbox_idx IF NOT EXISTS FOR (f:FlowActionExecution) ON (f.mailbox, f.scheduledAt)",
    "CREATE INDEX email_raw_email_idx IF NOT EXISTS FOR (e:Email) ON (e.rawEmail)",
]


def apply_schema(session: Any) -> int:
    for statement in SCHEMA_STATEMENTS:
        session.run(statement).consume()
        logger.info("graph_schema_statement_applied", extra={"statement": statement})
    return len(SCHEMA_STATEMENTS)

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.core.constants import SOURCE_OPENLINE, source_or_default
from app.core.errors import InvalidArgumentError
from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_write_in_transaction, run_query
from app.db.neo4j.labels import CONTACT, EMAIL, ORGANIZATION, USER, entity_label, tenant_edge, tenant_label

logger = logging.getLogger(__name__)

# Entity types that may own an email through a HAS edge.
EMAIL_OWNER_LABELS = {
    "CONTACT": CONTACT,
    "ORGANIZATION": ORGANIZATION,
    "USER": USER,
}


class EmailCreateFields(BaseModel):
    raw_email: str
    source: str = ""
    app_source: str = ""
    created_at: datetime | None = None


class EmailValidatedFields(BaseModel):
    email_address: str = ""
    domain: str = ""
    is_catch_all: bool = False
    deliverable: str = ""
    is_valid_syntax: bool = False
    username: str = ""
    validated_at: datetime | None = None
    is_role_account: bool = False
    is_system_generated: bool = False
    is_risky: bool = False
    is_firewalled: bool = False
    provider: str = ""
    firewall: str = ""
    is_mailbox_full: bool = False
    is_free_account: bool = False
    smtp_success: bool = False
    response_code: str = ""
    error_code: str = ""
    description: str = ""
    is_primary_domain: bool = False
    primary_domain: str = ""
    alternate_email: str = ""
    retry_validation: bool = False


# Properties written by validation and cleared by clean_email_validation.
VALIDATION_PROPERTIES = (
    "isCatchAll",
    "deliverable",
    "isValidSyntax",
    "username",
    "isRoleAccount",
    "isSystemGenerated",
    "techValidatedAt",
    "isRisky",
    "isFirewalled",
    "provider",
    "firewall",
    "isMailboxFull",
    "isFreeAccount",
    "smtpSuccess",
    "verifyResponseCode",
    "verifyErrorCode",
    "verifyDescription",
    "isPrimaryDomain",
    "primaryDomain",
    "alternateEmail",
    "retryValidation",
    "work",
)


def _owner_label(entity_type: str) -> str:
    label = EMAIL_OWNER_LABELS.get(entity_type.upper())
    if label is None:
        raise InvalidArgumentError(f"unsupported email owner type: {entity_type}")
    return label


def create_email(tenant: str, email_id: str, data: EmailCreateFields, tx: Any | None = None) -> None:
    created_at = data.created_at or utc_now()
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})
        MERGE (e:{entity_label(EMAIL, tenant)} {{id:$emailId}})
        ON CREATE SET
            e.rawEmail = $rawEmail,
            e.source = $source,
            e.sourceOfTruth = $source,
            e.appSource = $appSource,
            e.createdAt = $createdAt
        SET e.updatedAt = $createdAt
        MERGE (t)<-[:{tenant_edge(EMAIL)}]-(e)
    """
    params = {
        "tenant": tenant,
        "emailId": email_id,
        "rawEmail": data.raw_email.strip(),
        "source": source_or_default(data.source),
        "appSource": data.app_source,
        "createdAt": created_at,
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "email_create", query, params).consume(), tx)


def email_validated(tenant: str, email_id: str, data: EmailValidatedFields, tx: Any | None = None) -> None:
    """Store the validation bundle and attach the global Domain node when a domain is known.

    ``work`` is derived from the free-account flag only on the first validation.
    """
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:EMAIL_ADDRESS_BELONGS_TO_TENANT]-(e:{entity_label(EMAIL, tenant)} {{id:$emailId}})
        SET e.email = CASE WHEN $email <> '' THEN $email ELSE e.email END,
            e.isCatchAll = $isCatchAll,
            e.deliverable = $deliverable,
            e.isValidSyntax = $isValidSyntax,
            e.username = $username,
            e.isRoleAccount = $isRoleAccount,
            e.isSystemGenerated = $isSystemGenerated,
            e.techValidatedAt = $validatedAt,
            e.isRisky = $isRisky,
            e.isFirewalled = $isFirewalled,
            e.provider = $provider,
            e.firewall = $firewall,
            e.isMailboxFull = $isMailboxFull,
            e.isFreeAccount = $isFreeAccount,
            e.smtpSuccess = $smtpSuccess,
            e.verifyResponseCode = $verifyResponseCode,
            e.verifyErrorCode = $verifyErrorCode,
            e.verifyDescription = $verifyDescription,
            e.isPrimaryDomain = $isPrimaryDomain,
            e.primaryDomain = $primaryDomain,
            e.alternateEmail = $alternateEmail,
            e.retryValidation = $retryValidation,
            e.work = CASE WHEN e.work IS NULL THEN NOT $isFreeAccount ELSE e.work END,
            e.updatedAt = $now
        WITH e
        WHERE $domain <> ''
        MERGE (d:Domain {{domain:$domain}})
        ON CREATE SET
            d.id = randomUUID(),
            d.createdAt = $now,
            d.updatedAt = $now,
            d.source = $source
        WITH d, e
        MERGE (e)-[:HAS_DOMAIN]->(d)
    """
    params = {
        "tenant": tenant,
        "emailId": email_id,
        "email": data.email_address,
        "domain": data.domain.strip().lower(),
        "isCatchAll": data.is_catch_all,
        "deliverable": data.deliverable,
        "isValidSyntax": data.is_valid_syntax,
        "username": data.username,
        "validatedAt": data.validated_at or utc_now(),
        "isRoleAccount": data.is_role_account,
        "isSystemGenerated": data.is_system_generated,
        "isRisky": data.is_risky,
        "isFirewalled": data.is_firewalled,
        "provider": data.provider,
        "firewall": data.firewall,
        "isMailboxFull": data.is_mailbox_full,
        "isFreeAccount": data.is_free_account,
        "smtpSuccess": data.smtp_success,
        "verifyResponseCode": data.response_code,
        "verifyErrorCode": data.error_code,
        "verifyDescription": data.description,
        "isPrimaryDomain": data.is_primary_domain,
        "primaryDomain": data.primary_domain,
        "alternateEmail": data.alternate_email,
        "retryValidation": data.retry_validation,
        "now": utc_now(),
        "source": SOURCE_OPENLINE,
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "email_validated", query, params).consume(), tx)


def clean_email_validation(tenant: str, email_id: str, tx: Any | None = None) -> None:
    cleared = ",\n            ".join(f"e.{prop} = null" for prop in VALIDATION_PROPERTIES)
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:EMAIL_ADDRESS_BELONGS_TO_TENANT]-(e:{entity_label(EMAIL, tenant)} {{id:$emailId}})
        SET e.email = '',
            {cleared},
            e.updatedAt = $now
    """
    params = {"tenant": tenant, "emailId": email_id, "now": utc_now()}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "email_clean_validation", query, params).consume(), tx)


def link_with_entity(
    tenant: str, entity_type: str, entity_id: str, email_id: str, primary: bool, tx: Any | None = None
) -> None:
    label = _owner_label(entity_type)
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:{tenant_edge(label)}]-(owner:{label} {{id:$entityId}}),
              (t)<-[:EMAIL_ADDRESS_BELONGS_TO_TENANT]-(e:{EMAIL} {{id:$emailId}})
        MERGE (owner)-[rel:HAS]->(e)
        SET rel.primary = $primary,
            e.updatedAt = $now,
            owner.updatedAt = $now
        WITH owner, e
        OPTIONAL MATCH (owner)-[other:HAS]->(oe:{EMAIL})
        WHERE $primary = true AND oe.id <> e.id
        SET other.primary = false
    """
    params = {"tenant": tenant, "entityId": entity_id, "emailId": email_id, "primary": primary, "now": utc_now()}
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, f"email_link_with_{label.lower()}", query, params).consume(), tx
    )


def link_with_contact(tenant: str, contact_id: str, email_id: str, primary: bool, tx: Any | None = None) -> None:
    link_with_entity(tenant, "CONTACT", contact_id, email_id, primary, tx)


def link_with_organization(
    tenant: str, organization_id: str, email_id: str, primary: bool, tx: Any | None = None
) -> None:
    link_with_entity(tenant, "ORGANIZATION", organization_id, email_id, primary, tx)


def link_with_user(tenant: str, user_id: str, email_id: str, primary: bool, tx: Any | None = None) -> None:
    link_with_entity(tenant, "USER", user_id, email_id, primary, tx)


def unlink_from_entity(tenant: str, entity_type: str, entity_id: str, email: str, tx: Any | None = None) -> None:
    label = _owner_label(entity_type)
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:{tenant_edge(label)}]-(owner:{label} {{id:$entityId}})-[rel:HAS]->(e:{EMAIL})
        WHERE e.email = $email OR e.rawEmail = $email
        SET owner.updatedAt = $now
        DELETE rel
    """
    params = {"tenant": tenant, "entityId": entity_id, "email": email, "now": utc_now()}
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, f"email_unlink_from_{label.lower()}", query, params).consume(), tx
    )


def set_primary_for_entity(tenant: str, entity_type: str, entity_id: str, email: str, tx: Any | None = None) -> None:
    """Mark ``email`` primary for the entity and every other linked email as non-primary."""
    label = _owner_label(entity_type)
    query = f"""
        MATCH (owner:{tenant_label(label, tenant)} {{id:$entityId}})-[rel:HAS]->(e:{EMAIL})
        WHERE e.email = $email OR e.rawEmail = $email
        SET rel.primary = true,
            owner.updatedAt = $now
        WITH DISTINCT owner
        MATCH (owner)-[other:HAS]->(oe:{EMAIL})
        WHERE coalesce(oe.email, '') <> $email AND coalesce(oe.rawEmail, '') <> $email
        SET other.primary = false
    """
    params = {"entityId": entity_id, "email": email, "now": utc_now()}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "email_set_primary", query, params).consume(), tx)
    logger.info("email_primary_set", extra={"tenant": tenant, "entity_type": entity_type, "entity_id": entity_id})


def delete_email(tenant: str, email_id: str, tx: Any | None = None) -> None:
    query = """
        MATCH (:Tenant {name:$tenant})<-[:EMAIL_ADDRESS_BELONGS_TO_TENANT]-(e:Email {id:$emailId})
        DETACH DELETE e
    """
    params = {"tenant": tenant, "emailId": email_id}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "email_delete", query, params).consume(), tx)

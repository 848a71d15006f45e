from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from app.core.constants import DEFAULT_CURRENCY, OpportunityInternalStage, source_or_default
from app.core.errors import NotFoundError
from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_write_in_transaction, run_query
from app.db.neo4j.extract import extract_single_record_first_value_as_type
from app.db.neo4j.labels import CONTRACT, DELETED_CONTRACT, tenant_label

logger = logging.getLogger(__name__)

# Properties written by a sparse contract update, in SET order.
UPDATABLE_FIELDS = (
    "name",
    "contract_url",
    "status",
    "service_started_at",
    "signed_at",
    "ended_at",
    "billing_cycle_in_months",
    "currency",
    "invoicing_start_date",
    "address_line1",
    "address_line2",
    "locality",
    "country",
    "region",
    "zip",
    "organization_legal_name",
    "invoice_email",
    "invoice_email_cc",
    "invoice_email_bcc",
    "invoice_note",
    "next_invoice_date",
    "can_pay_with_card",
    "can_pay_with_direct_debit",
    "can_pay_with_bank_transfer",
    "invoicing_enabled",
    "pay_online",
    "pay_automatically",
    "auto_renew",
    "check",
    "due_days",
    "length_in_months",
    "approved",
)


class ContractSaveFields(BaseModel):
    """Contract write payload. ``None`` means "not provided" for sparse updates."""

    aggregate_version: int | None = None
    organization_id: str = ""
    created_by_user_id: str = ""
    source: str = ""
    app_source: str = ""
    created_at: datetime | None = None

    name: str | None = None
    contract_url: str | None = None
    status: str | None = None
    service_started_at: datetime | None = None
    signed_at: datetime | None = None
    ended_at: datetime | None = None
    billing_cycle_in_months: int | None = None
    currency: str | None = None
    invoicing_start_date: date | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    locality: str | None = None
    country: str | None = None
    region: str | None = None
    zip: str | None = None
    organization_legal_name: str | None = None
    invoice_email: str | None = None
    invoice_email_cc: list[str] | None = None
    invoice_email_bcc: list[str] | None = None
    invoice_note: str | None = None
    next_invoice_date: date | None = None
    can_pay_with_card: bool | None = None
    can_pay_with_direct_debit: bool | None = None
    can_pay_with_bank_transfer: bool | None = None
    invoicing_enabled: bool | None = None
    pay_online: bool | None = None
    pay_automatically: bool | None = None
    auto_renew: bool | None = None
    check: bool | None = None
    due_days: int | None = None
    length_in_months: int | None = None
    approved: bool | None = None


def create_for_organization(tenant: str, contract_id: str, data: ContractSaveFields, tx: Any | None = None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:ORGANIZATION_BELONGS_TO_TENANT]-(org:Organization {{id:$orgId}})
        MERGE (t)<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:Contract {{id:$contractId}})<-[:HAS_CONTRACT]-(org)
        ON CREATE SET
            ct:{tenant_label(CONTRACT, tenant)},
            ct.createdAt = $createdAt,
            ct.updatedAt = datetime(),
            ct.source = $source,
            ct.sourceOfTruth = $source,
            ct.appSource = $appSource,
            ct.aggregateVersion = $aggregateVersion,
            ct.name = $name,
            ct.contractUrl = $contractUrl,
            ct.status = $status,
            ct.signedAt = $signedAt,
            ct.serviceStartedAt = $serviceStartedAt,
            ct.endedAt = $endedAt,
            ct.currency = $currency,
            ct.billingCycleInMonths = $billingCycleInMonths,
            ct.invoicingStartDate = $invoicingStartDate,
            ct.invoicingEnabled = $invoicingEnabled,
            ct.payOnline = $payOnline,
            ct.payAutomatically = $payAutomatically,
            ct.canPayWithCard = $canPayWithCard,
            ct.canPayWithDirectDebit = $canPayWithDirectDebit,
            ct.canPayWithBankTransfer = $canPayWithBankTransfer,
            ct.autoRenew = $autoRenew,
            ct.check = $check,
            ct.country = $country,
            ct.dueDays = $dueDays,
            ct.lengthInMonths = $lengthInMonths,
            ct.approved = $approved,
            ct.organizationLegalName = $organizationLegalName,
            ct.invoiceEmail = $invoiceEmail,
            ct.invoiceNote = $invoiceNote,
            ct.addressLine1 = $addressLine1,
            ct.addressLine2 = $addressLine2,
            ct.locality = $locality,
            ct.region = $region,
            ct.zip = $zip,
            ct.invoiceEmailCc = $invoiceEmailCc,
            ct.invoiceEmailBcc = $invoiceEmailBcc,
            ct.nextInvoiceDate = $nextInvoiceDate,
            org.updatedAt = datetime()
        WITH ct, t
        OPTIONAL MATCH (t)<-[:USER_BELONGS_TO_TENANT]-(u:User {{id:$createdByUserId}})
        WHERE $createdByUserId <> ''
        FOREACH (ignore IN CASE WHEN u IS NOT NULL THEN [1] ELSE [] END |
            MERGE (ct)-[:CREATED_BY]->(u))
    """
    params = {
        "tenant": tenant,
        "contractId": contract_id,
        "orgId": data.organization_id,
        "createdAt": data.created_at or utc_now(),
        "source": source_or_default(data.source),
        "appSource": data.app_source,
        "aggregateVersion": data.aggregate_version,
        "name": data.name or "",
        "contractUrl": data.contract_url or "",
        "status": data.status or "",
        "signedAt": data.signed_at,
        "serviceStartedAt": data.service_started_at,
        "endedAt": data.ended_at,
        "currency": data.currency or DEFAULT_CURRENCY,
        "billingCycleInMonths": data.billing_cycle_in_months or 0,
        "invoicingStartDate": data.invoicing_start_date,
        "invoicingEnabled": bool(data.invoicing_enabled),
        "payOnline": bool(data.pay_online),
        "payAutomatically": bool(data.pay_automatically),
        "canPayWithCard": bool(data.can_pay_with_card),
        "canPayWithDirectDebit": bool(data.can_pay_with_direct_debit),
        "canPayWithBankTransfer": bool(data.can_pay_with_bank_transfer),
        "autoRenew": bool(data.auto_renew),
        "check": bool(data.check),
        "country": data.country or "",
        "dueDays": data.due_days or 0,
        "lengthInMonths": data.length_in_months or 0,
        "approved": bool(data.approved),
        "organizationLegalName": data.organization_legal_name or "",
        "invoiceEmail": data.invoice_email or "",
        "invoiceNote": data.invoice_note or "",
        "addressLine1": data.address_line1 or "",
        "addressLine2": data.address_line2 or "",
        "locality": data.locality or "",
        "region": data.region or "",
        "zip": data.zip or "",
        "invoiceEmailCc": data.invoice_email_cc or [],
        "invoiceEmailBcc": data.invoice_email_bcc or [],
        "nextInvoiceDate": data.next_invoice_date,
        "createdByUserId": data.created_by_user_id,
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "contract_create", query, params).consume(), tx)


def update_contract(tenant: str, contract_id: str, data: ContractSaveFields, tx: Any | None = None) -> bool:
    """Apply the provided fields; returns False when the version guard rejected the write."""
    params: dict[str, Any] = {
        "tenant": tenant,
        "contractId": contract_id,
        "aggregateVersion": data.aggregate_version,
    }
    clauses = ["ct.updatedAt = datetime()"]
    for field_name in UPDATABLE_FIELDS:
        value = getattr(data, field_name)
        if value is None:
            continue
        prop = to_camel(field_name)
        params[prop] = value
        clauses.append(f"ct.{prop} = ${prop}")
    if data.aggregate_version is not None:
        clauses.append("ct.aggregateVersion = $aggregateVersion")
    set_block = ",\n            ".join(clauses)
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
        WHERE $aggregateVersion IS NULL OR ct.aggregateVersion IS NULL OR ct.aggregateVersion < $aggregateVersion
        SET {set_block}
        RETURN count(ct) > 0
    """

    def _work(tx_):
        try:
            return extract_single_record_first_value_as_type(run_query(tx_, "contract_update", query, params), bool)
        except NotFoundError:
            return False

    return execute_write_in_transaction(_work, tx)


def update_status(
    tenant: str, contract_id: str, status: str, aggregate_version: int | None = None, tx: Any | None = None
) -> None:
    """Set the status; a versioned write is dropped when the stored aggregateVersion is not older."""
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
        WHERE $aggregateVersion IS NULL OR ct.aggregateVersion IS NULL OR ct.aggregateVersion < $aggregateVersion
        SET ct.status = $status,
            ct.aggregateVersion = COALESCE($aggregateVersion, ct.aggregateVersion),
            ct.updatedAt = datetime()
    """
    params = {"tenant": tenant, "contractId": contract_id, "status": status, "aggregateVersion": aggregate_version}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "contract_update_status", query, params).consume(), tx)


def suspend_active_renewal_opportunity(tenant: str, contract_id: str, tx: Any | None = None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
              -[r:ACTIVE_RENEWAL]->(op:RenewalOpportunity)
        SET op.internalStage = $suspendedStage,
            op.updatedAt = datetime()
        MERGE (ct)-[:SUSPENDED_RENEWAL]->(op)
        DELETE r
    """
    params = {
        "tenant": tenant,
        "contractId": contract_id,
        "suspendedStage": OpportunityInternalStage.SUSPENDED.value,
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "contract_suspend_renewal", query, params).consume(), tx)


def activate_suspended_renewal_opportunity(tenant: str, contract_id: str, tx: Any | None = None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
              -[r:SUSPENDED_RENEWAL]->(op:RenewalOpportunity)
        WHERE NOT (ct)-[:ACTIVE_RENEWAL]->(:Opportunity)
        SET op.internalStage = $openStage,
            op.updatedAt = datetime()
        MERGE (ct)-[:ACTIVE_RENEWAL]->(op)
        DELETE r
    """
    params = {"tenant": tenant, "contractId": contract_id, "openStage": OpportunityInternalStage.OPEN.value}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "contract_activate_renewal", query, params).consume(), tx)


def contract_caused_onboarding_status_change(tenant: str, contract_id: str, tx: Any | None = None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
        SET ct.triggeredOnboardingStatusChange = true,
            ct.updatedAt = datetime()
    """
    params = {"tenant": tenant, "contractId": contract_id}
    execute_write_in_transaction(
        lambda tx_: run_query(tx_, "contract_caused_onboarding_status_change", query, params).consume(), tx
    )


def _mark_time_property(tenant: str, contract_id: str, prop: str, query_name: str, tx: Any | None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
        SET ct.{prop} = $now
    """
    params = {"tenant": tenant, "contractId": contract_id, "now": utc_now()}
    execute_write_in_transaction(lambda tx_: run_query(tx_, query_name, query, params).consume(), tx)


def mark_cycle_invoicing_requested(tenant: str, contract_id: str, tx: Any | None = None) -> None:
    _mark_time_property(tenant, contract_id, "techInvoicingStartedAt", "contract_mark_cycle_invoicing", tx)


def mark_off_cycle_invoicing_requested(tenant: str, contract_id: str, tx: Any | None = None) -> None:
    _mark_time_property(tenant, contract_id, "techOffCycleInvoicingStartedAt", "contract_mark_off_cycle_invoicing", tx)


def mark_next_preview_invoicing_requested(tenant: str, contract_id: str, tx: Any | None = None) -> None:
    _mark_time_property(
        tenant, contract_id, "techNextPreviewInvoiceRequestedAt", "contract_mark_next_preview_invoicing", tx
    )


def mark_status_renewal_requested(tenant: str, contract_id: str, tx: Any | None = None) -> None:
    _mark_time_property(tenant, contract_id, "techStatusRenewalRequestedAt", "contract_mark_status_renewal", tx)


def mark_rollout_renewal_requested(tenant: str, contract_id: str, tx: Any | None = None) -> None:
    _mark_time_property(tenant, contract_id, "techRolloutRenewalRequestedAt", "contract_mark_rollout_renewal", tx)


def soft_delete(tenant: str, contract_id: str, deleted_at: datetime, tx: Any | None = None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
        SET ct.updatedAt = $deletedAt,
            ct:{DELETED_CONTRACT},
            ct:{tenant_label(DELETED_CONTRACT, tenant)}
        REMOVE ct:{CONTRACT}, ct:{tenant_label(CONTRACT, tenant)}
    """
    params = {"tenant": tenant, "contractId": contract_id, "deletedAt": deleted_at}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "contract_soft_delete", query, params).consume(), tx)
    logger.info("contract_soft_deleted", extra={"tenant": tenant, "contract_id": contract_id})


def set_ltv(tenant: str, contract_id: str, ltv: float, tx: Any | None = None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTRACT_BELONGS_TO_TENANT]-(ct:{tenant_label(CONTRACT, tenant)} {{id:$contractId}})
        SET ct.ltv = $ltv,
            ct.updatedAt = datetime()
    """
    params = {"tenant": tenant, "contractId": contract_id, "ltv": float(ltv)}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "contract_set_ltv", query, params).consume(), tx)

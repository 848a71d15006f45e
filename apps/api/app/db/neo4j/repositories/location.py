from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.core.constants import source_or_default
from app.core.timeutils import utc_now
from app.db.neo4j.driver import execute_write_in_transaction, run_query
from app.db.neo4j.labels import CONTACT, LOCATION, entity_label, tenant_edge, tenant_label


class LocationFields(BaseModel):
    name: str = ""
    raw_address: str = ""
    country: str = ""
    country_code_a2: str = ""
    country_code_a3: str = ""
    region: str = ""
    locality: str = ""
    address: str = ""
    zip: str = ""
    latitude: float | None = None
    longitude: float | None = None
    source: str = ""
    app_source: str = ""
    created_at: datetime | None = None


def create_location(tenant: str, location_id: str, data: LocationFields, tx: Any | None = None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})
        MERGE (t)<-[:{tenant_edge(LOCATION)}]-(l:{LOCATION} {{id:$locationId}})
        ON CREATE SET
            l:{tenant_label(LOCATION, tenant)},
            l.createdAt = $createdAt,
            l.source = $source,
            l.sourceOfTruth = $source,
            l.appSource = $appSource
        SET l.name = $name,
            l.rawAddress = $rawAddress,
            l.country = $country,
            l.countryCodeA2 = $countryCodeA2,
            l.countryCodeA3 = $countryCodeA3,
            l.region = $region,
            l.locality = $locality,
            l.address = $address,
            l.zip = $zip,
            l.latitude = $latitude,
            l.longitude = $longitude,
            l.updatedAt = $now
    """
    params = {
        "tenant": tenant,
        "locationId": location_id,
        "createdAt": data.created_at or utc_now(),
        "source": source_or_default(data.source),
        "appSource": data.app_source,
        "name": data.name,
        "rawAddress": data.raw_address,
        "country": data.country,
        "countryCodeA2": data.country_code_a2.upper(),
        "countryCodeA3": data.country_code_a3.upper(),
        "region": data.region,
        "locality": data.locality,
        "address": data.address,
        "zip": data.zip,
        "latitude": data.latitude,
        "longitude": data.longitude,
        "now": utc_now(),
    }
    execute_write_in_transaction(lambda tx_: run_query(tx_, "location_create", query, params).consume(), tx)


def link_with_contact(tenant: str, contact_id: str, location_id: str, tx: Any | None = None) -> None:
    query = f"""
        MATCH (t:Tenant {{name:$tenant}})<-[:CONTACT_BELONGS_TO_TENANT]-(c:{entity_label(CONTACT, tenant)} {{id:$contactId}}),
              (t)<-[:LOCATION_BELONGS_TO_TENANT]-(l:{LOCATION} {{id:$locationId}})
        MERGE (c)-[:ASSOCIATED_WITH]->(l)
        SET c.updatedAt = $now
    """
    params = {"tenant": tenant, "contactId": contact_id, "locationId": location_id, "now": utc_now()}
    execute_write_in_transaction(lambda tx_: run_query(tx_, "location_link_with_contact", query, params).consume(), tx)

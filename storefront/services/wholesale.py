"""Sync approved wholesale applications to Shopify B2B companies."""
import logging
from typing import Any, Dict
from sqlalchemy.orm import sessionmaker
from storefront.data.database.cache_models import WholesaleApplication
from storefront.errors import StorefrontError
from storefront.shopify import ShopifyAdminClient
from storefront.utils.llm import run_db_operation_with_timeout

logger = logging.getLogger(__name__)

SYNCED_STATUS = "synced_to_shopify"


def split_contact_name(contact_name: str) -> tuple:
    """First word is the first name, the rest the last name."""
    parts = contact_name.strip().split()
    first = parts[0] if parts else "Unknown"
    last = " ".join(parts[1:]) or "Contact"
    return first, last


def build_company_input(application: WholesaleApplication) -> Dict[str, Any]:
    """CompanyCreateInput for an application."""
    first_name, last_name = split_contact_name(application.contact_name)
    note_lines = [
        f"Application ID: {application.id}",
        f"Business Type: {application.business_type}",
        f"Website: {application.website_url}" if application.website_url else None,
        f"Locations: {application.locations_count}" if application.locations_count else None,
        f"Est. Monthly Volume: {application.estimated_monthly_volume}" if application.estimated_monthly_volume else None,
        f"Product Interests: {', '.join(application.product_interests)}" if application.product_interests else None,
        f"Tax ID: {application.tax_id}" if application.tax_id else None,
        f"Notes: {application.additional_notes}" if application.additional_notes else None,
        f"Submitted: {application.created_at}",
    ]

    contact = {"firstName": first_name, "lastName": last_name, "email": application.email}
    location = {"name": "Main Location", "billingSameAsShipping": True}
    if application.phone:
        contact["phone"] = application.phone
        location["phone"] = application.phone

    return {
        "company": {
            "name": application.company_name,
            "note": "\n".join(line for line in note_lines if line),
            "externalId": application.id,
        },
        "companyContact": contact,
        "companyLocation": location,
    }


def _load_application(session_factory: sessionmaker, application_id: str) -> WholesaleApplication:
    db = session_factory()
    try:
        application = db.get(WholesaleApplication, application_id)
        if application is None:
            raise StorefrontError(f"Application not found: {application_id}", status_code=404)
        db.expunge(application)
        return application
    finally:
        db.close()


def _mark_synced(session_factory: sessionmaker, application_id: str) -> None:
    db = session_factory()
    try:
        db.query(WholesaleApplication).filter(WholesaleApplication.id == application_id).update(
            {"status": SYNCED_STATUS}
        )
        db.commit()
    finally:
        db.close()


async def sync_application(
    session_factory: sessionmaker,
    admin_client: ShopifyAdminClient,
    application_id: str,
) -> str:
    """
    Create a Shopify company for an application and mark it synced.

    Returns:
        The Shopify company id
    """
    application = await run_db_operation_with_timeout(_load_application, session_factory, application_id)
    logger.info("Syncing application %s for %s to Shopify Companies", application.id, application.company_name)

    company_id = await admin_client.create_company(build_company_input(application))
    logger.info("Company created: %s", company_id)

    await run_db_operation_with_timeout(_mark_synced, session_factory, application_id)
    return company_id

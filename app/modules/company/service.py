from sqlalchemy.orm import Session
from app.modules.company.models import CompanySettings
from app.modules.company.schemas import CompanySettingsUpdate
from app.modules.documents.schemas import IssuerProfile
import logging

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_NAME = "Ditt Företag"
DEFAULT_COUNTRY = "Sverige"


def get_company_settings(db: Session) -> CompanySettings | None:
    return db.query(CompanySettings).order_by(CompanySettings.created_at).first()


def get_issuer_profile(db: Session) -> IssuerProfile:
    """
    Issuer block for documents and emails.

    Falls back to a placeholder profile when no settings row exists yet, so a
    fresh installation can still render and send.
    """
    row = get_company_settings(db)
    if row is None:
        logger.warning("No company settings found, using default issuer profile")
        return IssuerProfile(name=DEFAULT_COMPANY_NAME, country=DEFAULT_COUNTRY)

    return IssuerProfile(
        name=row.company_name,
        org_number=row.org_number,
        address=row.address,
        postal_code=row.postal_code,
        city=row.city,
        country=row.country,
        email=row.email,
        phone=row.phone,
        bankgiro=row.bankgiro,
        plusgiro=row.plusgiro,
        swish=row.swish,
    )


def update_company_settings(db: Session, data: CompanySettingsUpdate) -> CompanySettings:
    """Create or update the single settings row."""
    row = get_company_settings(db)
    if row is None:
        row = CompanySettings()
        db.add(row)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(row, field, value)

    db.commit()
    db.refresh(row)
    logger.info("Company settings updated")
    return row

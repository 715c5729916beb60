from fastapi import APIRouter, status
from app.modules.company import service
from app.modules.company.schemas import CompanySettingsOut, CompanySettingsUpdate
from app.dependencies.dbDependecies import db_dependency


company_router = APIRouter(prefix="/settings/company", tags=["Company settings"])


@company_router.get("", response_model=CompanySettingsOut, status_code=status.HTTP_200_OK)
def read_company_settings(db: db_dependency):
    """
    Issuer profile used on invoices, quotes and outgoing email.
    Returns an empty profile when nothing has been saved yet.
    """
    row = service.get_company_settings(db)
    return row if row is not None else CompanySettingsOut()


@company_router.put("", response_model=CompanySettingsOut, status_code=status.HTTP_200_OK)
def save_company_settings(data: CompanySettingsUpdate, db: db_dependency):
    return service.update_company_settings(db, data)

"""Tax settings API endpoints."""

from fastapi import APIRouter

from payroll_workflow.api.dependencies import ActorId, ActorRole, DbSession
from payroll_workflow.api.schemas import (
    ErrorResponse,
    TaxExemptionSummaryResponse,
    TaxSettingsResponse,
    TaxSettingsUpdate,
    TaxSettingsUpdated,
)
from payroll_workflow.config import get_settings
from payroll_workflow.errors import NotAuthorized
from payroll_workflow.services.reference_data_service import ReferenceDataService

router = APIRouter(prefix="/tax-settings", tags=["tax-settings"])


@router.get("", response_model=TaxSettingsResponse)
async def get_tax_settings(db: DbSession) -> TaxSettingsResponse:
    tax_settings = await ReferenceDataService(db).get_tax_settings()
    return TaxSettingsResponse.model_validate(tax_settings)


@router.put(
    "",
    response_model=TaxSettingsUpdated,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def update_tax_settings(
    db: DbSession,
    payload: TaxSettingsUpdate,
    actor_role: ActorRole,
    actor_id: ActorId,
) -> TaxSettingsUpdated:
    """Update the tax settings; with auto-apply on, employee exemptions are re-synced."""
    allowed = get_settings().payroll_approver_roles
    if actor_role not in allowed:
        raise NotAuthorized(actor_role, "change tax settings", allowed)

    tax_settings, changed = await ReferenceDataService(db).update_tax_settings(
        minimum_taxable_income=payload.minimum_taxable_income,
        tax_exemption_enabled=payload.tax_exemption_enabled,
        auto_apply_exemption=payload.auto_apply_exemption,
        updated_by=actor_id or actor_role,
    )
    return TaxSettingsUpdated(
        settings=TaxSettingsResponse.model_validate(tax_settings),
        employees_updated=changed,
    )


@router.get("/exemption-summary", response_model=TaxExemptionSummaryResponse)
async def get_exemption_summary(db: DbSession) -> TaxExemptionSummaryResponse:
    """Exempt and taxable head counts under the current minimum."""
    summary = await ReferenceDataService(db).exemption_summary()
    return TaxExemptionSummaryResponse.model_validate(summary)

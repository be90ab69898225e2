"""API endpoints for Inbound module."""

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import require_roles
from src.core.auth.models import User, UserRole
from src.core.config import settings
from src.core.database.session import get_db
from src.core.exceptions import AppException
from src.modules.inbound.schemas import (
    BatchResult,
    BatchSubmitRequest,
    DeletedInset,
    FailedEntriesExportRequest,
    InsetCreate,
    InsetDeleteResponse,
    InsetResponse,
    InsetUpdate,
    InventoryUpdate,
)
from src.modules.inbound.service import InboundService
from src.modules.inbound.spreadsheet import build_template_xlsx, failed_entries_to_csv
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/inbound", tags=["Inbound"])

AnyUser = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.USER))
AdminOnly = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN))

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _batch_response(result: BatchResult) -> JSONResponse:
    return JSONResponse(
        status_code=result.http_status,
        content=result.model_dump(mode="json", by_alias=True),
    )


# --- Batch and import ---


@router.post("/batch", response_model=BatchResult)
async def submit_batch(
    data: BatchSubmitRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = AnyUser,
):
    """Validate and apply a batch of movements. 200 all applied, 207 some, 400 none."""
    service = InboundService(db)
    rows = [r.to_raw_row(row=index) for index, r in enumerate(data.rows, start=1)]
    try:
        result = await service.reconcile(rows, current_user, batch_id=data.batch_id)
    except AppException as exc:
        result = BatchResult.from_error(exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=result.model_dump(mode="json", by_alias=True),
        )
    return _batch_response(result)


@router.post("/import", response_model=BatchResult)
async def import_spreadsheet(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = AnyUser,
):
    """Import movements from an .xlsx or .csv file (first sheet)."""
    # One byte past the cap is enough to tell an oversized file apart
    content = await file.read(settings.import_max_file_size_bytes + 1)
    service = InboundService(db)
    try:
        result = await service.import_spreadsheet(
            content, file.filename, file.content_type, current_user
        )
    except AppException as exc:
        result = BatchResult.from_error(exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=result.model_dump(mode="json", by_alias=True),
        )
    return _batch_response(result)


@router.get("/import/template")
async def download_import_template(current_user: User = AnyUser):
    """Empty import sheet with the SKU, BIN LOCATION, QUANTITY header row."""
    return Response(
        content=build_template_xlsx(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="inbound_template.xlsx"'},
    )


@router.post("/import/failed-entries")
async def export_failed_entries(
    data: FailedEntriesExportRequest,
    current_user: User = AnyUser,
):
    """Turn a report's failed entries into a CSV to correct and re-import."""
    return Response(
        content=failed_entries_to_csv(data.failed_entries),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="inbound_failed_entries.csv"'},
    )


# --- Movements ---


@router.post(
    "",
    response_model=ApiResponse[InsetResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_inset(
    data: InsetCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = AnyUser,
):
    """Record a single inbound movement."""
    service = InboundService(db)
    inset = await service.create_inset(data, current_user)
    return ApiResponse(
        success=True,
        message="Inbound recorded successfully",
        data=InsetResponse.model_validate(inset),
    )


@router.get(
    "",
    response_model=ApiResponse[PaginatedResponse[InsetResponse]],
)
async def list_insets(
    sku: str | None = Query(None, description="Filter by SKU"),
    bin: str | None = Query(None, description="Filter by bin"),
    batch_id: str | None = Query(None, description="Filter by import batch"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = AnyUser,
):
    """List inbound movements, newest first."""
    service = InboundService(db)
    insets, total = await service.list_insets(
        sku_id=sku,
        bin_name=bin,
        batch_id=batch_id,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[InsetResponse.model_validate(i) for i in insets],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get(
    "/{inset_id}",
    response_model=ApiResponse[InsetResponse],
)
async def get_inset(
    inset_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = AnyUser,
):
    service = InboundService(db)
    inset = await service.get_inset(inset_id)
    return ApiResponse(success=True, data=InsetResponse.model_validate(inset))


@router.put(
    "/{inset_id}",
    response_model=ApiResponse[InsetResponse],
)
async def update_inset(
    inset_id: int,
    data: InsetUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = AnyUser,
):
    """Correct a movement; the ledger follows the difference."""
    service = InboundService(db)
    inset = await service.update_inset(inset_id, data, current_user)
    return ApiResponse(
        success=True,
        message="Inbound record updated successfully",
        data=InsetResponse.model_validate(inset),
    )


@router.delete(
    "/{inset_id}",
    response_model=ApiResponse[InsetDeleteResponse],
)
async def delete_inset(
    inset_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = AdminOnly,
):
    """Delete a movement and take its quantity back out of the ledger."""
    service = InboundService(db)
    reversal = await service.reverse_movement(inset_id, current_user)
    return ApiResponse(
        success=True,
        message="Inbound record deleted and inventory reversed successfully",
        data=InsetDeleteResponse(
            deleted_inset=DeletedInset(
                id=reversal.inset_id,
                sku_id=reversal.sku_id,
                bin=reversal.bin,
                quantity=reversal.quantity,
            ),
            inventory_update=InventoryUpdate(
                sku_id=reversal.sku_id,
                bin=reversal.bin,
                old_quantity=reversal.old_quantity,
                new_quantity=reversal.new_quantity,
                reversed=reversal.quantity,
            ),
        ),
    )

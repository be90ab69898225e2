"""Service for Inbound module: movement submission, batch reconciliation, reversal."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.auth.models import User
from src.core.config import settings
from src.core.exceptions import (
    BatchTimeoutError,
    EmptyBatchError,
    FileTooLargeError,
    LedgerMissingError,
    NotFoundError,
    PersistenceError,
    RowValidationError,
    ValidationError,
    WouldGoNegativeError,
)
from src.modules.bins.service import BinRegistry
from src.modules.inbound.models import Inset, InsetSource
from src.modules.inbound.schemas import (
    BatchResult,
    BatchStats,
    FailedEntryOut,
    InsetCreate,
    InsetUpdate,
    RowErrorOut,
    SummaryRowOut,
    WarningOut,
    format_success_rate,
)
from src.modules.inbound.spreadsheet import detect_format, iter_data_rows, read_grid
from src.modules.inbound.validation import (
    NormalizedMovement,
    RawRow,
    RowError,
    RowResult,
    clean_value,
    require_headers,
    validate_row,
)
from src.modules.inventory.service import LedgerKey, LedgerService

logger = logging.getLogger(__name__)

AUDIT_ENTITY = "Inset"

_SOURCE_LABELS = {
    InsetSource.MANUAL: "Manual Entry",
    InsetSource.BATCH: "Batch Submission",
    InsetSource.EXCEL: "Excel Import",
}

# Errors after which the open transaction must be discarded as-is
_LEDGER_ERRORS = (LedgerMissingError, WouldGoNegativeError, PersistenceError)


@dataclass(frozen=True)
class ReversalResult:
    """Outcome of deleting a movement and reversing its ledger effect."""

    inset_id: int
    sku_id: str
    bin: str
    quantity: int
    old_quantity: int
    new_quantity: int


class InboundService:
    """Inbound movements and the ledger updates they imply.

    Every state change follows the same order: validate (pure), apply the
    ledger deltas and movement rows in one transaction, commit, then write
    audit entries best-effort.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.bins = BinRegistry(db)
        self.ledger = LedgerService(db)
        self.audit = AuditService(db)

    # --- Reads ---

    async def get_inset(self, inset_id: int) -> Inset:
        result = await self.db.execute(select(Inset).where(Inset.id == inset_id))
        inset = result.scalar_one_or_none()
        if not inset:
            raise NotFoundError("Inbound record", inset_id)
        return inset

    async def list_insets(
        self,
        sku_id: str | None = None,
        bin_name: str | None = None,
        batch_id: str | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[Inset], int]:
        """List movements, newest first."""
        query = select(Inset).order_by(Inset.created_at.desc(), Inset.id.desc())

        if sku_id:
            query = query.where(Inset.sku_id == sku_id.strip().upper())
        if bin_name:
            query = query.where(Inset.bin == bin_name.strip().upper())
        if batch_id:
            query = query.where(Inset.batch_id == batch_id)

        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        offset = (page - 1) * limit
        query = query.offset(offset).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    # --- Helpers ---

    def _audit_entry(self, action: AuditAction, inset_id: int, actor: User, changes: dict):
        return self.audit.entry(
            action=action,
            entity_type=AUDIT_ENTITY,
            entity_id=inset_id,
            user_id=actor.id,
            user_name=actor.full_name,
            changes=changes,
        )

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Commit failed: %s", exc)
            raise PersistenceError() from exc

    async def _validate_one(self, data: InsetCreate) -> NormalizedMovement:
        """Validate a single submission, checking only the bin it names."""
        raw = data.to_raw_row(row=1)
        bin_value = clean_value(raw.bin).upper()
        bin_names = await self.bins.load_active_bin_names(only=[bin_value] if bin_value else [])
        result = validate_row(raw, bin_names)
        if isinstance(result, RowError):
            raise RowValidationError(str(result.error_type), result.message, result.field)
        return result

    # --- Single movement ---

    async def create_inset(self, data: InsetCreate, actor: User) -> Inset:
        """Record one inbound movement and add it to the ledger."""
        movement = await self._validate_one(data)

        inset = Inset(
            sku_id=movement.sku_id,
            bin=movement.bin,
            quantity=movement.quantity,
            user_id=actor.id,
            user_name=actor.full_name,
            source=InsetSource.MANUAL.value,
        )
        try:
            self.db.add(inset)
            entry = await self.ledger.adjust_stock(movement.sku_id, movement.bin, movement.quantity)
            await self.db.flush()
        except _LEDGER_ERRORS:
            await self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceError() from exc
        new_quantity = entry.quantity
        await self._commit()

        logger.info(
            "Inbound %s: %s -> %s qty %d (ledger now %d)",
            inset.id, inset.sku_id, inset.bin, inset.quantity, new_quantity,
        )
        await self.audit.record([
            self._audit_entry(
                AuditAction.INBOUND_CREATED,
                inset.id,
                actor,
                {
                    "sku": movement.sku_id,
                    "bin": movement.bin,
                    "quantity": movement.quantity,
                    "source": _SOURCE_LABELS[InsetSource.MANUAL],
                },
            )
        ])
        await self.db.refresh(inset)
        return inset

    async def update_inset(self, inset_id: int, data: InsetUpdate, actor: User) -> Inset:
        """Correct a movement; the ledger is moved by the difference.

        Changing SKU or bin takes the old quantity out of the old key and puts
        the new quantity into the new one. Rejected with no change if the old
        key would go negative.
        """
        inset = await self.get_inset(inset_id)
        movement = await self._validate_one(data)

        before = {"sku": inset.sku_id, "bin": inset.bin, "quantity": inset.quantity}
        deltas: dict[LedgerKey, int] = defaultdict(int)
        deltas[inset.key] -= inset.quantity
        deltas[movement.key] += movement.quantity

        try:
            await self.ledger.apply_deltas(deltas)
            inset.sku_id = movement.sku_id
            inset.bin = movement.bin
            inset.quantity = movement.quantity
            await self.db.flush()
        except _LEDGER_ERRORS:
            await self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceError() from exc
        await self._commit()

        after = {"sku": movement.sku_id, "bin": movement.bin, "quantity": movement.quantity}
        logger.info("Inbound %s updated: %s -> %s", inset_id, before, after)
        await self.audit.record([
            self._audit_entry(
                AuditAction.INBOUND_UPDATED, inset_id, actor, {"before": before, "after": after}
            )
        ])
        await self.db.refresh(inset)
        return inset

    async def reverse_movement(self, inset_id: int, actor: User) -> ReversalResult:
        """Delete a movement and subtract its quantity from the ledger.

        Refused (no change) when the ledger entry is missing or holds less than
        the movement's quantity.
        """
        inset = await self.get_inset(inset_id)
        sku_id, bin_name, quantity = inset.sku_id, inset.bin, inset.quantity

        current = await self.ledger.get_quantity(sku_id, bin_name)
        if current is None:
            raise LedgerMissingError(sku_id, bin_name)
        if current - quantity < 0:
            raise WouldGoNegativeError(sku_id, bin_name, current=current, removing=quantity)

        try:
            entry = await self.ledger.adjust_stock(sku_id, bin_name, -quantity)
            new_quantity = entry.quantity
            await self.db.delete(inset)
            await self.db.flush()
        except _LEDGER_ERRORS:
            await self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceError() from exc
        await self._commit()

        logger.info(
            "Inbound %s deleted, ledger %s/%s %d -> %d",
            inset_id, sku_id, bin_name, current, new_quantity,
        )
        await self.audit.record([
            self._audit_entry(
                AuditAction.INBOUND_DELETED,
                inset_id,
                actor,
                {
                    "sku": sku_id,
                    "bin": bin_name,
                    "quantity": quantity,
                    "inventoryBefore": current,
                    "inventoryAfter": new_quantity,
                },
            )
        ])
        return ReversalResult(
            inset_id=inset_id,
            sku_id=sku_id,
            bin=bin_name,
            quantity=quantity,
            old_quantity=current,
            new_quantity=new_quantity,
        )

    # --- Batch ---

    async def _validate_all(
        self, rows: Sequence[RawRow], bin_names: frozenset[str]
    ) -> list[RowResult]:
        results: list[RowResult] = []
        chunk_size = max(1, settings.import_chunk_size)
        for start in range(0, len(rows), chunk_size):
            results.extend(validate_row(row, bin_names) for row in rows[start:start + chunk_size])
            # Yield between chunks; also a cancellation point for the deadline
            await asyncio.sleep(0)
        return results

    async def _apply_batch(
        self,
        accepted: list[NormalizedMovement],
        actor: User,
        batch_id: str,
        source: InsetSource,
    ) -> list[tuple[NormalizedMovement, Inset]]:
        """Stage movement rows and ledger deltas for all accepted rows (no commit)."""
        staged: list[tuple[NormalizedMovement, Inset]] = []
        deltas: dict[LedgerKey, int] = defaultdict(int)
        try:
            for movement in accepted:
                inset = Inset(
                    sku_id=movement.sku_id,
                    bin=movement.bin,
                    quantity=movement.quantity,
                    user_id=actor.id,
                    user_name=actor.full_name or _SOURCE_LABELS[source],
                    batch_id=batch_id,
                    source=source.value,
                )
                self.db.add(inset)
                staged.append((movement, inset))
                deltas[movement.key] += movement.quantity
            await self.ledger.apply_deltas(deltas)
            await self.db.flush()
        except PersistenceError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceError("Failed to apply batch; no rows were recorded") from exc
        return staged

    async def reconcile(
        self,
        rows: Sequence[RawRow],
        actor: User,
        *,
        batch_id: str | None = None,
        source: InsetSource = InsetSource.BATCH,
        timeout: float | None = None,
    ) -> BatchResult:
        """Validate every row, then apply all accepted rows in one transaction.

        Rejected rows are reported and do not affect accepted ones. Fatal
        errors (empty batch, bin registry unavailable, storage failure,
        deadline) raise and leave the ledger untouched. The deadline covers
        everything up to the commit; the commit itself is not interrupted.
        """
        if not rows:
            raise EmptyBatchError()
        if len(rows) > settings.import_max_rows:
            raise ValidationError(
                f"Batch has {len(rows)} rows; the maximum is {settings.import_max_rows}",
                field="rows",
            )

        batch_id = batch_id or uuid4().hex
        deadline = timeout if timeout is not None else settings.import_timeout_seconds
        staged: list[tuple[NormalizedMovement, Inset]] = []

        try:
            async with asyncio.timeout(deadline):
                bin_names = await self.bins.load_active_bin_names()
                results = await self._validate_all(rows, bin_names)
                accepted = [r for r in results if isinstance(r, NormalizedMovement)]
                if accepted:
                    staged = await self._apply_batch(accepted, actor, batch_id, source)
        except TimeoutError:
            await self.db.rollback()
            logger.error("Batch %s exceeded %ss before commit; rolled back", batch_id, deadline)
            raise BatchTimeoutError(deadline) from None

        if staged:
            await self._commit()
            entries = [
                self._audit_entry(
                    AuditAction.INBOUND_CREATED,
                    inset.id,
                    actor,
                    {
                        "sku": movement.sku_id,
                        "bin": movement.bin,
                        "quantity": movement.quantity,
                        "source": _SOURCE_LABELS[source],
                        "batchId": batch_id,
                        "row": movement.row,
                    },
                )
                for movement, inset in staged
            ]
            await self.audit.record(entries)

        result = self._build_result(len(rows), results, batch_id)
        logger.info(
            "Inbound batch %s (%s): total=%d success=%d errors=%d warnings=%d rate=%s",
            batch_id,
            source.value,
            result.total_rows,
            result.success_count,
            result.error_count,
            len(result.warnings),
            result.stats.success_rate,
        )
        return result

    @staticmethod
    def _build_result(total_rows: int, results: list[RowResult], batch_id: str) -> BatchResult:
        warnings: list[WarningOut] = []
        errors: list[RowErrorOut] = []
        failed: list[FailedEntryOut] = []
        summary: list[SummaryRowOut] = []

        for result in sorted(results, key=lambda r: r.row):
            if isinstance(result, NormalizedMovement):
                summary.append(
                    SummaryRowOut(
                        row=result.row,
                        sku=result.sku_id,
                        bin=result.bin,
                        quantity=result.quantity,
                    )
                )
                if result.quantity_adjusted:
                    warnings.append(
                        WarningOut(
                            row=result.row,
                            sku=result.sku_id,
                            bin=result.bin,
                            message=f'Quantity "{result.raw_quantity}" recorded as {result.quantity}',
                            type="QUANTITY_NORMALIZED",
                        )
                    )
            else:
                errors.append(
                    RowErrorOut(row=result.row, message=result.message, type=str(result.error_type))
                )
                failed.append(
                    FailedEntryOut(
                        row=result.row,
                        sku=result.sku,
                        bin=result.bin,
                        quantity=result.quantity,
                        reason=result.message,
                        error_type=str(result.error_type),
                    )
                )

        success_count = len(summary)
        error_count = len(errors)
        if error_count == 0:
            message = f"Import completed. {success_count} records processed successfully."
        elif success_count > 0:
            message = (
                f"Import completed with errors. {success_count} of {total_rows} "
                "records processed successfully."
            )
        else:
            message = "Import failed. No records were processed. Please check the errors and try again."

        return BatchResult(
            success=success_count > 0,
            message=message,
            batch_id=batch_id,
            total_rows=total_rows,
            processed_rows=len(results),
            success_count=success_count,
            error_count=error_count,
            warnings=warnings,
            errors=errors,
            failed_entries=failed,
            summary=summary,
            stats=BatchStats(
                success_rate=format_success_rate(success_count, total_rows),
                warning_count=len(warnings),
                failed_entries_count=len(failed),
            ),
        )

    # --- Spreadsheet ---

    async def import_spreadsheet(
        self,
        content: bytes,
        filename: str | None,
        content_type: str | None,
        actor: User,
    ) -> BatchResult:
        """Read the first sheet of an XLSX/CSV upload and reconcile its rows."""
        if len(content) > settings.import_max_file_size_bytes:
            raise FileTooLargeError(settings.import_max_file_size_mb)
        sheet_format = detect_format(filename, content_type)
        grid = await asyncio.to_thread(read_grid, content, sheet_format)

        if len(grid) < 2:
            raise EmptyBatchError("File must contain at least a header row and one data row")
        header_map = require_headers(grid[0])
        logger.info(
            "Inbound import %r: headers sku=%r bin=%r quantity=%r",
            filename,
            grid[0][header_map.sku],
            grid[0][header_map.bin],
            grid[0][header_map.quantity],
        )

        rows = [header_map.extract(cells, row_number) for row_number, cells in iter_data_rows(grid)]
        if not rows:
            raise EmptyBatchError("File must contain at least a header row and one data row")
        return await self.reconcile(rows, actor, source=InsetSource.EXCEL)

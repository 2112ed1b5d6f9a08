"""Invoice processing, review, editing and export endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ...errors import AuthenticationError, MailProviderError
from ...export import build_invoice_workbook
from ...models import InvoiceRecord, InvoiceUpdate, ProcessingReport, StatusUpdate, UserInfo
from ...pipeline import InvoicePipeline
from ...storage.database import DatabaseClient
from ..deps import get_current_user, get_db, get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invoices"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/process-emails", response_model=ProcessingReport)
def process_emails(
    request: Request,
    user: UserInfo = Depends(get_current_user),
    pipeline: InvoicePipeline = Depends(get_pipeline),
    db: DatabaseClient = Depends(get_db),
):
    """
    Pull invoice attachments from Gmail and store extracted records.

    Always answers 200 with one status entry per attachment, unless the
    mailbox itself cannot be reached (502) or rejects the credentials (401).
    """
    try:
        report = pipeline.run(user.id)
    except AuthenticationError as e:
        logger.warning(f"Gmail rejected credentials for user {user.id}: {e}")
        raise HTTPException(status_code=401, detail="Authentication error or invalid token. Please log in again.")
    except MailProviderError as e:
        logger.error(f"Mail provider unavailable for user {user.id}: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to process emails: {e}")
    finally:
        # Persist tokens refreshed by the Google client during the run
        tokens = pipeline.source.current_tokens()
        session_id = request.session.get("session_id")
        if session_id and tokens and tokens.get("access_token"):
            stored = db.get_google_tokens(session_id) or {}
            db.save_google_tokens(session_id, user.id, {**stored, **tokens})

    return report


@router.get("/invoices", response_model=list[InvoiceRecord])
def list_invoices(user: UserInfo = Depends(get_current_user), db: DatabaseClient = Depends(get_db)):
    return db.list_invoices(user.id)


@router.get("/api/invoices/{invoice_id}", response_model=InvoiceRecord)
def get_invoice(
    invoice_id: UUID,
    user: UserInfo = Depends(get_current_user),
    db: DatabaseClient = Depends(get_db),
):
    invoice = db.get_invoice(str(invoice_id), user.id)
    if invoice is None:
        raise HTTPException(status_code=404, detail="Invoice not found or access denied.")
    return invoice


@router.put("/api/invoices/{invoice_id}", response_model=InvoiceRecord)
def update_invoice(
    invoice_id: UUID,
    body: InvoiceUpdate,
    user: UserInfo = Depends(get_current_user),
    db: DatabaseClient = Depends(get_db),
):
    """Edit invoice fields. Ownership, message id and raw extraction are ignored if sent."""
    if not body.model_fields_set:
        raise HTTPException(status_code=400, detail="No editable fields provided.")

    updated = db.update_invoice(str(invoice_id), user.id, body)
    if updated is None:
        raise HTTPException(status_code=404, detail="Invoice not found, update failed, or access denied.")
    return updated


@router.put("/api/invoices/{invoice_id}/status")
def update_invoice_status(
    invoice_id: UUID,
    req: StatusUpdate,
    user: UserInfo = Depends(get_current_user),
    db: DatabaseClient = Depends(get_db),
):
    updated = db.update_invoice(str(invoice_id), user.id, InvoiceUpdate(status=req.status))
    if updated is None:
        raise HTTPException(status_code=404, detail="Invoice not found.")
    return {"message": "Invoice status updated successfully.", "invoice": updated}


@router.delete("/api/invoices/{invoice_id}", status_code=204)
def delete_invoice(
    invoice_id: UUID,
    user: UserInfo = Depends(get_current_user),
    db: DatabaseClient = Depends(get_db),
):
    if not db.delete_invoice(str(invoice_id), user.id):
        raise HTTPException(status_code=404, detail="Invoice not found or delete failed/denied.")
    return Response(status_code=204)


@router.get("/download-excel")
def download_excel(user: UserInfo = Depends(get_current_user), db: DatabaseClient = Depends(get_db)):
    content = build_invoice_workbook(db.list_invoices(user.id))
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="invoices.xlsx"'},
    )

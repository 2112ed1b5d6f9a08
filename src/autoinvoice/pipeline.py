"""Core invoice pipeline - Gmail attachments in, stored invoice records out."""

import logging
import time
from functools import reduce

from .ingestion.base import EmailSource
from .metrics import MetricsCollector
from .models import (
    AttachmentPayload,
    AttachmentStatus,
    ConsolidatedInvoice,
    ExtractionResult,
    InvoiceRecord,
    ProcessingReport,
    WorkflowStatus,
)
from .semantic.extractor import InvoiceExtractor
from .storage.attachments import S3Client
from .storage.database import DatabaseClient

logger = logging.getLogger(__name__)

FAILED_VENDOR = "Extraction Incomplete/Failed"
UNKNOWN_VENDOR = "Unknown Vendor"


def build_invoice_record(
    user_id: str,
    attachment: AttachmentPayload,
    file_url: str,
    extraction: ExtractionResult,
) -> InvoiceRecord:
    """Turn an extraction result into the row stored for an attachment.

    A failed extraction still yields a row so the user can see the attempt
    and fix it by hand.
    """
    common = dict(
        user_id=user_id,
        message_id=attachment.message_id,
        file_name=attachment.filename,
        file_url=file_url,
        extracted_data=extraction.model_dump(),
        status=WorkflowStatus.APPROVED,
    )

    if isinstance(extraction, ConsolidatedInvoice):
        return InvoiceRecord(
            **common,
            invoice_number=extraction.invoice_number,
            invoice_date=extraction.invoice_date,
            vendor=extraction.vendor_name or UNKNOWN_VENDOR,
            amount=extraction.total_amount,
            due_date=extraction.due_date,
            currency=extraction.currency,
            description=f"Invoice data extracted by LLM ({extraction.llm_model}).",
        )

    logger.warning(f"LLM extraction failed for {attachment.filename}: {extraction.message}")
    return InvoiceRecord(
        **common,
        vendor=FAILED_VENDOR,
        description=f"LLM extraction failed or not applicable for {attachment.filename}: {extraction.message}",
    )


class InvoicePipeline:
    """Fetch, extract and store invoices for one user.

    Attachments are processed one at a time in the order the mailbox returns
    them. A failure on one attachment is recorded in the report and never
    stops the others.
    """

    def __init__(
        self,
        source: EmailSource,
        extractor: InvoiceExtractor,
        storage: S3Client,
        db: DatabaseClient,
        query: str,
        max_results: int = 10,
    ):
        self.source = source
        self.extractor = extractor
        self.storage = storage
        self.db = db
        self.query = query
        self.max_results = max_results

    def run(self, user_id: str) -> ProcessingReport:
        """Process all matching attachments for a user.

        Args:
            user_id: Provider-issued id of the signed-in user

        Returns:
            ProcessingReport with one status entry per attachment

        Raises:
            MailProviderError: If the mailbox cannot be listed
            AuthenticationError: If the mailbox rejects the credentials
        """
        start_time = time.perf_counter()
        collector = MetricsCollector()

        with collector.timed("listing"):
            attachments = self.source.fetch_invoice_attachments(self.query, self.max_results)

        if not attachments:
            return ProcessingReport(
                message="No new invoices found or processed.",
                count=0,
                metrics=collector.create_run_metrics(time.perf_counter() - start_time),
            )

        results = reduce(
            lambda statuses, attachment: statuses + [self._process_safely(user_id, attachment, collector)],
            attachments,
            [],
        )

        processed = sum(1 for r in results if r.status == "Processed")
        logger.info(f"Run for user {user_id}: {processed}/{len(attachments)} attachment(s) processed")

        return ProcessingReport(
            message=f"Processed {len(attachments)} attachments.",
            count=len(attachments),
            results=results,
            metrics=collector.create_run_metrics(time.perf_counter() - start_time),
        )

    def _process_safely(
        self, user_id: str, attachment: AttachmentPayload, collector: MetricsCollector
    ) -> AttachmentStatus:
        try:
            return self.process_attachment(user_id, attachment, collector)
        except Exception as e:
            logger.exception(f"Error processing attachment {attachment.filename}")
            return AttachmentStatus(
                filename=attachment.filename,
                message_id=attachment.message_id,
                status="Error",
                reason=str(e),
            )

    def process_attachment(
        self,
        user_id: str,
        attachment: AttachmentPayload,
        collector: MetricsCollector | None = None,
    ) -> AttachmentStatus:
        """Dedup-check, upload, extract and store one attachment.

        Args:
            user_id: Owner of the resulting record
            attachment: Downloaded attachment
            collector: Run metrics collector

        Returns:
            AttachmentStatus describing the outcome
        """
        collector = collector or MetricsCollector()
        status = dict(filename=attachment.filename, message_id=attachment.message_id)

        if not attachment.message_id:
            logger.warning(f"Skipping {attachment.filename}: missing message id")
            return AttachmentStatus(**status, status="Skipped", reason="Missing messageId")

        # Dedup gate runs before any paid work
        try:
            with collector.timed("database"):
                exists = self.db.invoice_exists(user_id, attachment.message_id)
        except Exception as e:
            logger.error(f"Error checking for existing invoice (message {attachment.message_id}): {e}")
            return AttachmentStatus(**status, status="Error", reason=f"Database check failed: {e}")

        if exists:
            logger.info(f"Skipping {attachment.filename}: message {attachment.message_id} already processed")
            return AttachmentStatus(**status, status="Skipped", reason="Already processed and in database")

        try:
            with collector.timed("upload"):
                key = self.storage.generate_key(user_id, attachment.filename)
                file_url = self.storage.upload_attachment(key, attachment.data, attachment.mime_type)
        except Exception as e:
            logger.error(f"Failed to upload {attachment.filename}: {e}")
            return AttachmentStatus(**status, status="Error", reason=f"Upload to storage failed: {e}")

        with collector.timed("extraction"):
            extraction = self.extractor.extract(attachment.data, attachment.mime_type)

        record = build_invoice_record(user_id, attachment, file_url, extraction)

        try:
            with collector.timed("database"):
                stored = self.db.insert_invoice(record)
        except Exception as e:
            logger.error(f"Failed to save invoice for {attachment.filename}: {e}")
            return AttachmentStatus(
                **status, status="Error", reason=f"Saving invoice failed: {e}", file_url=file_url
            )

        if stored is None:
            # Another run stored this message between the check and the insert
            return AttachmentStatus(
                **status, status="Skipped", reason="Already processed and in database", file_url=file_url
            )

        return AttachmentStatus(**status, status="Processed", file_url=file_url, invoice=stored)

"""
Celery task: email a receipt to the booking's user and stamp is_emailed.
Without smtp_host the receipt is only marked (local and test setups).
"""
import logging
import smtplib
from email.message import EmailMessage

from settlement.core.celery_app import celery_app
from settlement.core.config import settings
from settlement.db.session import SessionLocal
from settlement.models.receipt import Receipt
from settlement.models.user import User
from settlement.services.receipts.service import ReceiptGenerator

logger = logging.getLogger(__name__)


def build_message(receipt: Receipt, recipient: str) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = f"Your receipt {receipt.receipt_number}"
    message["From"] = settings.smtp_sender
    message["To"] = recipient
    lines = [
        f"Receipt: {receipt.receipt_number}",
        f"Date: {receipt.receipt_date:%Y-%m-%d}",
        f"Amount paid: {receipt.amount} {receipt.currency}",
        f"Payment method: {receipt.payment_method}",
        f"Reference: {receipt.payment_reference}",
        "",
        f"Subtotal: {receipt.subtotal}",
    ]
    for line in receipt.tax_breakdown or []:
        lines.append(f"{line['name']} ({line['rate']}%): {line['amount']}")
    message.set_content("\n".join(lines))
    return message


def send_message(message: EmailMessage) -> None:
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
        smtp.send_message(message)


@celery_app.task(
    bind=True,
    name="settlement.workers.tasks.email_receipt.email_receipt",
    max_retries=3,
    default_retry_delay=60,
    time_limit=120,
    soft_time_limit=100,
)
def email_receipt(self, receipt_id: str) -> dict:
    db = SessionLocal()
    try:
        receipts = ReceiptGenerator(db)
        receipt = receipts.find_by_id(receipt_id)
        if receipt is None:
            return {"ok": False, "error": "receipt_not_found"}
        if receipt.is_emailed:
            return {"ok": True, "skipped": "already_emailed"}

        user = db.get(User, receipt.user_id) if receipt.user_id else None
        if user is None or not user.email:
            logger.warning("receipt_email_no_recipient", extra={"receipt_id": receipt_id})
            return {"ok": False, "error": "no_recipient"}

        if settings.smtp_host:
            try:
                send_message(build_message(receipt, user.email))
            except (smtplib.SMTPException, OSError) as e:
                logger.warning("receipt_email_failed", extra={"receipt_id": receipt_id, "error": str(e)})
                raise self.retry(exc=e)

        receipts.mark_emailed(receipt)
        db.commit()
        logger.info(
            "receipt_emailed",
            extra={"receipt_id": receipt_id, "receipt_number": receipt.receipt_number},
        )
        return {"ok": True, "receipt_number": receipt.receipt_number}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

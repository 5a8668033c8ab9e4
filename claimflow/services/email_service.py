"""
Email Service
Sends emails for claim submissions, resubmissions and review decisions
"""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from claimflow.config.settings import settings
from claimflow.utils.exceptions import NotificationError
from claimflow.utils.helpers import format_currency
from claimflow.utils.logger import setup_logger

logger = setup_logger()

STATUS_LABELS = {
    "pending": ("Pending", "#ef6c00", "#fff3e0"),
    "coordinator_approved": ("Coordinator Approved", "#1976d2", "#e3f2fd"),
    "coordinator_rejected": ("Coordinator Rejected", "#d32f2f", "#ffebee"),
    "hr_approved": ("HR Approved", "#388e3c", "#e8f5e9"),
    "hr_rejected": ("HR Rejected", "#d32f2f", "#ffebee"),
    "accounts_approved": ("Accounts Approved", "#388e3c", "#e8f5e9"),
    "accounts_rejected": ("Accounts Rejected", "#d32f2f", "#ffebee"),
}


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, STATUS_LABELS["pending"])[0]


def _status_badge(status: str) -> str:
    label, color, background = STATUS_LABELS.get(status, STATUS_LABELS["pending"])
    return (
        f'<span style="display:inline-block;padding:6px 18px;border-radius:16px;font-weight:600;'
        f'color:{color};background:{background};border:1px solid {color};">{label}</span>'
    )


def _claim_table(claim_data: dict) -> str:
    """Claim details and category totals as an HTML table"""
    totals = claim_data.get("totals", {})
    rows = [
        ("Claim ID", f"#{claim_data.get('claim_id')}"),
        ("Employee", f"{claim_data.get('employee_name', '')} ({claim_data.get('employee_code', '')})"),
        ("Department", claim_data.get("department") or "N/A"),
        ("Designation", claim_data.get("designation") or "N/A"),
        ("Project", f"{claim_data.get('project_code', 'N/A')} - {claim_data.get('project_name', 'N/A')}"),
        ("Site Location", claim_data.get("site_location") or "N/A"),
    ]
    for key, label in (("travel", "Travel Fare"), ("allowance", "DA Allowance"),
                       ("lodging", "Hotel Expenses"), ("meal", "Food Expenses")):
        if totals.get(key):
            rows.append((label, format_currency(totals[key])))
    rows.append(("Claim Amount", f"<strong>{format_currency(claim_data.get('claim_amount', 0))}</strong>"))

    body = "".join(
        f'<tr><td style="padding:8px;color:#6b7280;">{label}</td><td style="padding:8px;">{value}</td></tr>'
        for label, value in rows
    )
    return f'<table style="width:100%;border-collapse:collapse;background:#fff;">{body}</table>'


def _wrap(title: str, greeting: str, content: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family: 'Segoe UI', Arial, sans-serif; color: #333;">
    <div style="max-width: 700px; margin: 0 auto; background: #f8f9fa; border-radius: 12px; border: 1px solid #e0e0e0; padding: 32px;">
        <h2 style="color: #1976d2;">{title}</h2>
        <p>Dear {greeting},</p>
        {content}
        <p style="color: #9ca3af; font-size: 12px; margin-top: 30px;">This is an automated message from {settings.FROM_NAME}.</p>
    </div>
</body>
</html>
"""


class EmailService:
    """Email service for claim notifications"""

    def __init__(self):
        """Initialize email service with SMTP configuration"""
        self.smtp_server = settings.SMTP_SERVER
        self.smtp_port = settings.SMTP_PORT
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL or self.smtp_username
        self.from_name = settings.FROM_NAME

        # Check if email is configured
        self.is_configured = bool(self.smtp_username and self.smtp_password)

        if not self.is_configured:
            logger.warning("Email service not configured. Set SMTP credentials in .env file.")

    def _send_email(self, to_email: str, subject: str, html_content: str, text_content: str = None) -> bool:
        """
        Send email via SMTP

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML email body
            text_content: Plain text fallback (optional)

        Returns:
            bool: True if sent, False if skipped because SMTP is not configured

        Raises:
            NotificationError: If delivery fails
        """
        if not self.is_configured:
            logger.warning(f"Email not sent to {to_email} - SMTP not configured")
            return False

        if not to_email:
            raise NotificationError(f"No email address for recipient of '{subject}'")

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent to {to_email}: {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send email to {to_email}: {e}") from e

    def send_submission_notice(self, to_email: str, recipient_name: str, claim_data: dict) -> bool:
        """
        Tell a coordinator that a claim was submitted in their department

        Args:
            to_email: Coordinator email
            recipient_name: Coordinator full name
            claim_data: Claim details (see NotificationDispatcher.claim_data)
        """
        subject = f"New Expense Submitted - #{claim_data.get('claim_id')}"
        content = f"""
        <p>A new expense claim has been submitted and is awaiting your review.</p>
        {_claim_table(claim_data)}
        """
        return self._send_email(to_email, subject, _wrap("New Expense Submitted", recipient_name, content))

    def send_resubmission_notice(self, to_email: str, recipient_name: str, claim_data: dict) -> bool:
        """Tell a coordinator that a claim was edited and resubmitted"""
        subject = f"Expense Resubmission - #{claim_data.get('claim_id')}"
        comment = claim_data.get("comment")
        comment_html = f"<p><strong>Comment:</strong> {comment}</p>" if comment else ""
        content = f"""
        <p>An expense claim has been updated and resubmitted for review.</p>
        {comment_html}
        {_claim_table(claim_data)}
        """
        return self._send_email(to_email, subject, _wrap("Expense Resubmitted", recipient_name, content))

    def send_status_update(self, to_email: str, recipient_name: str, claim_data: dict) -> bool:
        """Tell the submitter their claim changed status"""
        status = claim_data.get("status", "pending")
        subject = f"Expense Status Update: {status_label(status)}"
        return self._send_email(to_email, subject, self._review_body("Expense Status Update", recipient_name, claim_data))

    def send_action_required(self, to_email: str, recipient_name: str, claim_data: dict) -> bool:
        """Ask the next stage's reviewers to act"""
        subject = "Action Required: New Expense Review"
        return self._send_email(to_email, subject, self._review_body("Expense Review Required", recipient_name, claim_data))

    def send_rejection_notice(self, to_email: str, recipient_name: str, claim_data: dict) -> bool:
        """Tell an earlier reviewer that a claim they reviewed was rejected"""
        subject = "Expense Rejected"
        return self._send_email(to_email, subject, self._review_body("Expense Rejected", recipient_name, claim_data))

    def _review_body(self, title: str, recipient_name: str, claim_data: dict) -> str:
        comment = claim_data.get("comment")
        comment_html = f"<p><strong>Comment:</strong> {comment}</p>" if comment else ""
        content = f"""
        <p>{_status_badge(claim_data.get('status', 'pending'))}</p>
        <p>Previous status: {status_label(claim_data.get('previous_status', 'pending'))}<br>
        Reviewed by: {claim_data.get('reviewer_name') or 'System'}</p>
        {comment_html}
        {_claim_table(claim_data)}
        """
        return _wrap(title, recipient_name, content)


# Create singleton instance
email_service = EmailService()

"""
Email Service for TicketOps
===========================
Outbound e-mail for:
- Ticket assignment, escalation and status changes
- SLA breach warnings and breach alerts
- Client account credentials and registration alerts
- Password resets

Every attempt, sent or not, is recorded as a NotificationLog row when a
database session is passed in.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Iterable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.config import settings
from ticketops.core.logging_config import logger
from ticketops.models.notification import (
    NotificationLog, NotificationChannel, NotificationCategory, DeliveryStatus,
)


def _layout(heading: str, body_html: str, accent: str = "#1f4e79") -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #333; line-height: 1.5;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <div style="background: {accent}; color: white; padding: 16px 24px; border-radius: 8px 8px 0 0;">
                <h2 style="margin: 0;">{heading}</h2>
            </div>
            <div style="background: #f7f9fb; padding: 24px; border-radius: 0 0 8px 8px;">
                {body_html}
            </div>
            <p style="text-align: center; font-size: 12px; color: #777;">
                &copy; {datetime.utcnow().year} {settings.APP_NAME}. This is an automated message.
            </p>
        </div>
    </body>
    </html>
    """


def _ticket_table(ticket) -> str:
    due = ticket.sla_restore_due.strftime("%d %b %Y %H:%M UTC") if ticket.sla_restore_due else "-"
    return f"""
    <table style="border-collapse: collapse; width: 100%;">
        <tr><td><b>Ticket</b></td><td>{ticket.ticket_number}</td></tr>
        <tr><td><b>Title</b></td><td>{ticket.title}</td></tr>
        <tr><td><b>Priority</b></td><td>{ticket.priority.value}</td></tr>
        <tr><td><b>Status</b></td><td>{ticket.status.value}</td></tr>
        <tr><td><b>Restore due</b></td><td>{due}</td></tr>
    </table>
    """


class EmailService:
    """Async SMTP e-mail sender"""

    @property
    def is_configured(self) -> bool:
        return settings.email_configured

    @property
    def frontend_url(self) -> str:
        return settings.FRONTEND_URL.rstrip("/")

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        db: Optional[AsyncSession] = None,
        category: NotificationCategory = NotificationCategory.OTHER,
        related_ticket_id: Optional[str] = None,
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise. Never raises.
        """
        error = None
        if not self.is_configured:
            logger.warning(f"[Email] Not configured, skipping '{subject}' to {to_email}")
            error = "Email service not configured"
        else:
            error = await self._send_via_smtp(to_email, subject, html_content, text_content)

        if db is not None:
            db.add(NotificationLog(
                recipient=to_email,
                subject=subject,
                content=text_content or html_content,
                channel=NotificationChannel.EMAIL,
                category=category,
                related_ticket_id=related_ticket_id,
                status=DeliveryStatus.FAILED if error else DeliveryStatus.SENT,
                error=error,
            ))
        return error is None

    async def _send_via_smtp(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> Optional[str]:
        """Send via SMTP; returns the error text on failure"""
        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM or settings.SMTP_USER}>"
            message["To"] = to_email
            message["Subject"] = subject

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            # Implicit TLS on 465, STARTTLS otherwise
            await aiosmtplib.send(
                message,
                hostname=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USER,
                password=settings.SMTP_PASSWORD,
                use_tls=settings.SMTP_SECURE,
                start_tls=not settings.SMTP_SECURE,
            )

            logger.info(f"[Email/SMTP] Sent '{subject}' to {to_email}")
            return None

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send '{subject}' to {to_email}: {e}")
            return str(e)

    # ==================== Ticket mails ====================

    async def send_ticket_assignment(self, ticket, assignee, db: AsyncSession = None) -> bool:
        subject = f"[{ticket.ticket_number}] Ticket assigned to you: {ticket.title}"
        link = f"{self.frontend_url}/tickets/{ticket.id}"
        html = _layout("New ticket assignment", f"""
            <p>Hi {assignee.full_name},</p>
            <p>The following ticket has been assigned to you.</p>
            {_ticket_table(ticket)}
            <p><a href="{link}">Open ticket</a></p>
        """)
        text = f"Ticket {ticket.ticket_number} ({ticket.priority.value}) has been assigned to you: {ticket.title}\n{link}"
        return await self.send_email(
            assignee.email, subject, html, text, db=db,
            category=NotificationCategory.TICKET_ASSIGNMENT, related_ticket_id=ticket.id,
        )

    async def send_ticket_escalation(self, ticket, recipient, db: AsyncSession = None) -> bool:
        subject = f"[{ticket.ticket_number}] Escalated to level {ticket.escalation_level}"
        html = _layout("Ticket escalated", f"""
            <p>Hi {recipient.full_name},</p>
            <p>Ticket {ticket.ticket_number} was escalated to level {ticket.escalation_level}.</p>
            <p><b>Reason:</b> {ticket.escalation_reason or '-'}</p>
            {_ticket_table(ticket)}
        """, accent="#b35c00")
        text = f"Ticket {ticket.ticket_number} escalated to level {ticket.escalation_level}: {ticket.escalation_reason or '-'}"
        return await self.send_email(
            recipient.email, subject, html, text, db=db,
            category=NotificationCategory.TICKET_ESCALATION, related_ticket_id=ticket.id,
        )

    async def send_ticket_status_update(self, ticket, recipient, from_status: str, db: AsyncSession = None) -> bool:
        subject = f"[{ticket.ticket_number}] Status changed to {ticket.status.value}"
        html = _layout("Ticket status update", f"""
            <p>Hi {recipient.full_name},</p>
            <p>Status changed from <b>{from_status}</b> to <b>{ticket.status.value}</b>.</p>
            {_ticket_table(ticket)}
        """)
        text = f"Ticket {ticket.ticket_number}: {from_status} -> {ticket.status.value}"
        return await self.send_email(
            recipient.email, subject, html, text, db=db,
            category=NotificationCategory.TICKET_STATUS, related_ticket_id=ticket.id,
        )

    async def send_breach_warning(self, ticket, assignee, minutes_left: int, db: AsyncSession = None) -> bool:
        hours, minutes = divmod(max(0, minutes_left), 60)
        subject = f"[SLA WARNING] {ticket.ticket_number} breaches in {hours}h {minutes}m"
        html = _layout("SLA breach warning", f"""
            <p>Hi {assignee.full_name},</p>
            <p>This ticket will breach its restore SLA in <b>{hours}h {minutes}m</b>.</p>
            {_ticket_table(ticket)}
        """, accent="#c98a00")
        text = f"Ticket {ticket.ticket_number} breaches its restore SLA in {hours}h {minutes}m."
        return await self.send_email(
            assignee.email, subject, html, text, db=db,
            category=NotificationCategory.BREACH_WARNING, related_ticket_id=ticket.id,
        )

    async def send_sla_breach(self, ticket, recipient, db: AsyncSession = None) -> bool:
        subject = f"[SLA BREACHED] {ticket.ticket_number}: {ticket.title}"
        html = _layout("SLA breached", f"""
            <p>Hi {recipient.full_name},</p>
            <p>The restore SLA for this ticket has been breached.</p>
            {_ticket_table(ticket)}
        """, accent="#a61b1b")
        text = f"Ticket {ticket.ticket_number} has breached its restore SLA."
        return await self.send_email(
            recipient.email, subject, html, text, db=db,
            category=NotificationCategory.SLA_BREACH, related_ticket_id=ticket.id,
        )

    # ==================== Account mails ====================

    async def send_account_credentials(
        self,
        to_email: str,
        full_name: str,
        username: str,
        temp_password: str,
        db: AsyncSession = None,
        reset: bool = False,
    ) -> bool:
        heading = "Your password was reset" if reset else "Your account is ready"
        subject = f"{settings.APP_NAME} - {heading}"
        html = _layout(heading, f"""
            <p>Hi {full_name},</p>
            <p>Use the following credentials to sign in and change your password after the first login.</p>
            <p><b>Username:</b> {username}<br><b>Temporary password:</b> {temp_password}</p>
            <p><a href="{self.frontend_url}/login">Sign in</a></p>
        """)
        text = f"Username: {username}\nTemporary password: {temp_password}\nSign in: {self.frontend_url}/login"
        category = NotificationCategory.PASSWORD_RESET if reset else NotificationCategory.ACCOUNT
        return await self.send_email(to_email, subject, html, text, db=db, category=category)

    async def send_registration_alert(self, registration, admins: Iterable, db: AsyncSession = None) -> int:
        """Tell every admin about a new client registration; returns the number sent"""
        subject = f"New client registration: {registration.full_name} ({registration.site_name})"
        html = _layout("New client registration", f"""
            <p><b>Name:</b> {registration.full_name}<br>
               <b>E-mail:</b> {registration.email}<br>
               <b>Phone:</b> {registration.phone}<br>
               <b>Site:</b> {registration.site_name}</p>
            <p>{registration.message or ''}</p>
            <p><a href="{self.frontend_url}/admin/client-registrations">Review registrations</a></p>
        """)
        sent = 0
        for admin in admins:
            if await self.send_email(admin.email, subject, html, db=db, category=NotificationCategory.ACCOUNT):
                sent += 1
        return sent

    async def send_test_email(self, to_email: str) -> bool:
        subject = f"{settings.APP_NAME} SMTP test"
        html = _layout("SMTP test", f"<p>SMTP settings work. Sent at {datetime.utcnow().isoformat()} UTC.</p>")
        return await self.send_email(to_email, subject, html, "SMTP settings work.")


# Singleton instance
email_service = EmailService()

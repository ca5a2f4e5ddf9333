import logging

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from coursehub.config import Settings, get_settings

logger = logging.getLogger(__name__)


def connection_config(settings: Settings) -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=settings.mail_username,
        MAIL_PASSWORD=settings.mail_password,
        MAIL_FROM=settings.mail_from,
        MAIL_PORT=settings.mail_port,
        MAIL_SERVER=settings.mail_server,
        MAIL_STARTTLS=True,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=bool(settings.mail_username),
        VALIDATE_CERTS=True,
    )

# --- TEMPLATES ---

TEMPLATES = {
    "welcome": (
        "Welcome to CourseHub!",
        """
        <div style="font-family: Arial, sans-serif; padding: 20px;">
            <h2 style="color: #4F46E5;">Welcome to CourseHub, {name}!</h2>
            <p>You have successfully created your account.</p>
        </div>
        """,
    ),
    "enrollment_confirmed": (
        "Enrollment Confirmation: {course_title}",
        """
        <div style="font-family: Arial, sans-serif; padding: 20px; border: 1px solid #eee;">
            <h2 style="color: #4F46E5;">Enrollment Confirmed!</h2>
            <p>Dear <strong>{name}</strong>,</p>
            <p>You are now enrolled in:</p>
            <h3 style="background-color: #f3f4f6; padding: 15px;">{course_title}</h3>
            <p><strong>Amount Paid:</strong> {amount}</p>
            <p>Start learning now!</p>
        </div>
        """,
    ),
    "new_enrollment": (
        "New Enrollment in {course_title}",
        """
        <div style="font-family: Arial, sans-serif; padding: 20px; border: 1px solid #eee;">
            <h2 style="color: #4F46E5;">New Student Enrollment</h2>
            <p>Dear <strong>{name}</strong>,</p>
            <p>{student_name} has enrolled in your course <strong>{course_title}</strong> ({amount}).</p>
        </div>
        """,
    ),
    "certificate_issued": (
        "Your certificate for {course_title}",
        """
        <div style="font-family: Arial, sans-serif; padding: 20px;">
            <h2 style="color: #4F46E5;">Congratulations, {name}!</h2>
            <p>You completed <strong>{course_title}</strong>.</p>
            <p>Your certificate: <a href="{certificate_url}">{certificate_url}</a></p>
        </div>
        """,
    ),
}


def render(template: str, context: dict):
    subject, body = TEMPLATES[template]
    return subject.format(**context), body.format(**context)


class MailNotifier:
    """Sends transactional email through SMTP (fastapi-mail)."""

    def __init__(self, settings: Settings = None):
        self.conf = connection_config(settings or get_settings())

    async def send(self, to: str, template: str, context: dict):
        subject, html = render(template, context)
        message = MessageSchema(
            subject=subject,
            recipients=[to],
            body=html,
            subtype=MessageType.html,
        )
        fm = FastMail(self.conf)
        await fm.send_message(message)


async def notify_safely(notifier, to: str, template: str, context: dict):
    """Deliver one email; a failure is logged and never reaches the caller."""
    try:
        await notifier.send(to, template, context)
    except Exception:
        logger.exception("Failed to send %r email to %s", template, to)

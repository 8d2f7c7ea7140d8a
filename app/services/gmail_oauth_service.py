import base64
import logging
import os
from email.mime.text import MIMEText

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from app.config import settings

logger = logging.getLogger(__name__)

# Gmail API scope
SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


# -----------------------------
#  AUTHENTICATE AND GET GMAIL SERVICE
# -----------------------------
def get_gmail_service():
    token_path = settings.GMAIL_TOKEN_FILE
    if not token_path or not os.path.exists(token_path):
        raise RuntimeError("Gmail token file is not configured. Set GMAIL_TOKEN_FILE env.")

    creds = Credentials.from_authorized_user_file(token_path, SCOPES)

    if not creds.valid:
        if creds.expired and creds.refresh_token:
            creds.refresh(Request())
            # Persist the refreshed token
            with open(token_path, "w") as token:
                token.write(creds.to_json())
        else:
            raise RuntimeError("Gmail token is invalid and cannot be refreshed")

    return build("gmail", "v1", credentials=creds, cache_discovery=False)


# -----------------------------
#  SEND HTML EMAIL
# -----------------------------
def send_via_gmail(to_email: str, subject: str, html_message: str) -> dict:
    service = get_gmail_service()

    msg = MIMEText(html_message, "html")
    msg["to"] = to_email
    msg["subject"] = subject
    if settings.FROM_EMAIL:
        msg["from"] = settings.FROM_EMAIL

    encoded_msg = base64.urlsafe_b64encode(msg.as_bytes()).decode()

    result = (
        service.users()
        .messages()
        .send(userId="me", body={"raw": encoded_msg})
        .execute()
    )

    logger.info("Gmail message %s sent to %s", result.get("id"), to_email)
    return result

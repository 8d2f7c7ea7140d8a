from html import escape

BRAND_NAME = "Clinic Booking"


# -----------------------------
#  OTP EMAIL
# -----------------------------
OTP_TEMPLATE = """
<!DOCTYPE html>
<html>
  <body style="margin:0; padding:0; font-family:Arial, Helvetica, sans-serif; background:#f4f4f4;">
    <table width="100%" cellpadding="0" cellspacing="0" style="background:#f4f4f4; padding:40px 0;">
      <tr>
        <td align="center">
          <table width="420" cellpadding="0" cellspacing="0" style="background:#ffffff; border-radius:12px; padding:30px;">
            <tr>
              <td align="center" style="font-size:22px; font-weight:bold; color:#333;">
                {{TITLE}}
              </td>
            </tr>
            <tr><td style="height:20px;"></td></tr>
            <tr>
              <td style="font-size:15px; color:#555; line-height:1.6;">
                Hello,<br><br>
                {{INTRO}}
              </td>
            </tr>
            <tr><td style="height:30px;"></td></tr>
            <tr>
              <td align="center">
                <div style="font-size:32px; font-weight:bold; letter-spacing:6px; padding:16px 24px;
                            background:#4a7aff; color:white; border-radius:8px; display:inline-block;">
                  {{OTP}}
                </div>
              </td>
            </tr>
            <tr><td style="height:30px;"></td></tr>
            <tr>
              <td style="font-size:14px; color:#999; line-height:1.5;">
                This code will expire in <strong>{{MINUTES}} minutes</strong>.<br>
                If you didn't request this code, you may ignore this email.
                <br><br>
                Warm regards,<br>
                <strong>The {{BRAND}} Team</strong>
              </td>
            </tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>
"""

OTP_INTROS = {
    "login": "Please use the verification code below to finish signing in.",
    "verify_email": "Please use the verification code below to confirm your email address.",
    "reset": "We received a request to reset your password. Use the code below to continue.",
}

OTP_SUBJECTS = {
    "login": "Login OTP",
    "verify_email": "Email Verification Code",
    "reset": "Password Reset OTP",
}


# -----------------------------
#  APPOINTMENT EMAILS
# -----------------------------
NOTICE_TEMPLATE = """
<div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: auto;
            border: 1px solid #ddd; border-radius: 8px; padding: 20px; background-color: #f9f9f9;">
  <div style="text-align: center; margin-bottom: 20px;">
    <h2 style="color: #4CAF50;">{{TITLE}}</h2>
  </div>
  <p>Dear {{NAME}},</p>
  <p>{{BODY}}</p>
  <p>Date &amp; Time: {{SLOT_DATE}} at {{SLOT_TIME}}</p>
  <p>Best regards,</p>
  <p>The {{BRAND}} Team</p>
</div>
"""

# event -> (subject, title, patient line, doctor line)
APPOINTMENT_EVENTS = {
    "accepted": (
        "Appointment Accepted",
        "Appointment Accepted",
        "Your appointment with {doctor_name} ({doctor_email}) has been accepted.",
        "The appointment with {user_name} ({user_email}) has been accepted.",
    ),
    "completed": (
        "Appointment Completed",
        "Appointment Completed",
        "Your appointment with {doctor_name} ({doctor_email}) has been successfully completed.",
        "The appointment with {user_name} ({user_email}) has been successfully completed.",
    ),
    "meeting_link": (
        "Meeting Link for Your Appointment",
        "Meeting Link",
        "Your meeting link for the appointment with {doctor_name} ({doctor_email}) is: {meeting_link}",
        "The meeting link for your appointment with {user_name} ({user_email}) is: {meeting_link}",
    ),
}


def render_otp_email(otp: str, purpose: str, minutes: int) -> tuple[str, str]:
    subject = OTP_SUBJECTS.get(purpose, "Your Verification Code")
    html = (
        OTP_TEMPLATE.replace("{{TITLE}}", subject)
        .replace("{{INTRO}}", OTP_INTROS.get(purpose, OTP_INTROS["login"]))
        .replace("{{OTP}}", otp)
        .replace("{{MINUTES}}", str(minutes))
        .replace("{{BRAND}}", BRAND_NAME)
    )
    return subject, html


def render_appointment_email(event: str, recipient: str, context: dict) -> tuple[str, str]:
    """Render the patient or doctor copy of an appointment notice."""
    subject, title, patient_line, doctor_line = APPOINTMENT_EVENTS[event]
    safe = {key: escape(str(value)) for key, value in context.items()}
    line = patient_line if recipient == "user" else doctor_line
    name = safe["user_name"] if recipient == "user" else safe["doctor_name"]
    html = (
        NOTICE_TEMPLATE.replace("{{TITLE}}", title)
        .replace("{{NAME}}", name)
        .replace("{{BODY}}", line.format(**safe))
        .replace("{{SLOT_DATE}}", safe["slot_date"])
        .replace("{{SLOT_TIME}}", safe["slot_time"])
        .replace("{{BRAND}}", BRAND_NAME)
    )
    return subject, html


def render_professional_request_email(request: dict) -> tuple[str, str]:
    safe = {key: escape(str(value or "")) for key, value in request.items()}
    html = (
        "<h3>New professional request</h3>"
        f"<p>{safe.get('name')} ({safe.get('email')}, {safe.get('phone')})</p>"
        f"<p>Speciality: {safe.get('speciality')}</p>"
        f"<p>Degree: {safe.get('degree')} | Experience: {safe.get('experience')}</p>"
        f"<p>{safe.get('about')}</p>"
    )
    return "New Professional Request", html

"""Email templates: name -> (subject, body), rendered with str.format."""

from typing import Tuple

TEMPLATES = {
    "verify_email": (
        "Verify Your Email",
        "Hello {first_name},\n\n"
        "Please confirm your email address by opening the link below:\n"
        "{verification_url}\n\n"
        "The link expires in {expires_hours} hours.",
    ),
    "new_connection": (
        "New Healthcare Provider Connection",
        "Hello {patient_name},\n\n"
        "{provider_name} has connected with you on Onus Health and can see the "
        "records they create for you.\n\n"
        "Manage your connections at {connections_url}",
    ),
    "full_access_request": (
        "Healthcare Provider Requesting Full Access",
        "Hello {patient_name},\n\n"
        "{provider_name} has requested full access to your medical records.\n"
        "Approve or deny the request at {connections_url}",
    ),
    "full_access_approved": (
        "Full Access Request Approved",
        "Hello {provider_name},\n\n"
        "{patient_name} has approved your request for full access to their medical records.",
    ),
    "full_access_denied": (
        "Full Access Request Denied",
        "Hello {provider_name},\n\n"
        "{patient_name} has denied your request for full access to their medical records.\n"
        "You can still view the records you created.",
    ),
    "full_access_granted": (
        "Full Access Granted",
        "Hello {provider_name},\n\n"
        "{patient_name} has granted you full access to their medical records.",
    ),
    "access_revoked": (
        "Access Revoked",
        "Hello {provider_name},\n\n"
        "{patient_name} has revoked your full access to their medical records.\n"
        "You can still view the records you created.",
    ),
    "connection_removed": (
        "Connection Removed",
        "Hello {provider_name},\n\n"
        "{patient_name} has removed the connection with you.",
    ),
    "new_consultation": (
        "New Medical Consultation",
        "Hello {patient_name},\n\n"
        "{provider_name} has recorded a consultation for you on {consultation_date}.\n"
        "View it at {consultation_url}",
    ),
    "consultation_completed": (
        "Consultation Completed",
        "Hello {patient_name},\n\n"
        "Your consultation with {provider_name} on {consultation_date} is complete and "
        "available to view at {consultation_url}",
    ),
    "provider_verified": (
        "Your Provider Account Has Been Approved",
        "Hello {provider_name},\n\n"
        "Your provider account has been verified. You can now be found by patients.",
    ),
}


def render(template: str, **data) -> Tuple[str, str]:
    """Render template to (subject, body). Raises KeyError for an unknown template or missing field."""
    subject, body = TEMPLATES[template]
    return subject.format(**data), body.format(**data)

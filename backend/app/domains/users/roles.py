"""
Role constants for the SecondOpinion application.

Every user carries exactly one role, supplied by the identity service
and trusted as-is by the case pipeline.
"""


class Roles:
    # Uploads records and submits them for review
    PATIENT = "patient"

    # Reviews AI-triaged cases and issues the final verdict
    DOCTOR = "doctor"

    # Administrative actions such as cancelling or re-running a case
    ADMIN = "admin"


# Default role for new users
DEFAULT_ROLE = Roles.PATIENT

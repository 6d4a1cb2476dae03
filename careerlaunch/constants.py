"""Status and category vocabularies shared by models, services and validation."""

ROLE_STUDENT = "student"
ROLE_RECRUITER = "recruiter"
ROLE_UNIVERSITY_ADMIN = "university_admin"
ROLE_PLATFORM_ADMIN = "platform_admin"
USER_ROLES = (ROLE_STUDENT, ROLE_RECRUITER, ROLE_UNIVERSITY_ADMIN, ROLE_PLATFORM_ADMIN)
# Admin accounts (university and platform) are provisioned out of band, never through /auth/signup.
SELF_SIGNUP_ROLES = (ROLE_STUDENT, ROLE_RECRUITER)
ADMIN_ROLES = (ROLE_UNIVERSITY_ADMIN, ROLE_PLATFORM_ADMIN)

USER_STATUSES = ("active", "inactive", "suspended")

JOB_STATUSES = ("active", "closed", "draft", "paused")
JOB_TYPES = ("full_time", "part_time", "internship", "contract", "freelance")
EXPERIENCE_LEVELS = ("entry", "junior", "mid", "senior")

COMPANY_SIZES = ("startup", "sme", "large", "multinational")
# New companies start pending until a platform admin reviews them.
COMPANY_VERIFICATION_STATUSES = ("pending", "verified", "rejected")

APP_SUBMITTED = "submitted"
APP_UNDER_REVIEW = "under_review"
APP_SHORTLISTED = "shortlisted"
APP_INTERVIEWED = "interviewed"
APP_ACCEPTED = "accepted"
APP_REJECTED = "rejected"
APP_WITHDRAWN = "withdrawn"
APPLICATION_STATUSES = (
    APP_SUBMITTED,
    APP_UNDER_REVIEW,
    APP_SHORTLISTED,
    APP_INTERVIEWED,
    APP_ACCEPTED,
    APP_REJECTED,
    APP_WITHDRAWN,
)
# Processed decisions; no further transitions.
APPLICATION_DECIDED = (APP_ACCEPTED, APP_REJECTED)

PORTFOLIO_PLATFORMS = ("github", "behance", "personal_website", "linkedin", "dribbble")
SYNCABLE_PLATFORMS = ("github",)

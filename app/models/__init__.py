"""ORM models; importing the package registers every table with ``Base``."""

from app.models import challenge, profile, submission, team  # noqa: F401

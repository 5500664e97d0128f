from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models so create_all can discover metadata
from oneaccount.models import (  # noqa: E402,F401
    api_key,
    app_setting,
    mfa_attempt,
    personal_access_token,
    user,
    verification_factor,
)

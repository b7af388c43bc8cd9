"""Domain modules package."""

from app.modules.audit import models as audit_models  # noqa: F401
from app.modules.booking import models as booking_models  # noqa: F401
from app.modules.identity import models as identity_models  # noqa: F401
from app.modules.notifications import models as notifications_models  # noqa: F401
from app.modules.reviews import models as reviews_models  # noqa: F401
from app.modules.sessions import models as sessions_models  # noqa: F401
from app.modules.trainers import models as trainers_models  # noqa: F401

from app.models.access_request import AccessRequest, AccessRequestStatus  # noqa: F401
from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.notification import Notification, NotificationType  # noqa: F401
from app.models.observation import Observation, ObservationStatus, SubStatus  # noqa: F401
from app.models.schedule import BellSchedulePeriod, LunchPeriod  # noqa: F401
from app.models.substitute_request import SubstituteRequest, SubstituteRequestStatus  # noqa: F401
from app.models.teacher import Teacher, TeacherType  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401

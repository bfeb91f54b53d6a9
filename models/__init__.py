from .db import db
from .audit_log import AuditLog
from .admin_session import AdminSession
from .ip_rate_limit import IpRateLimit
from .course_setting import CourseSetting
from .section import Section
from .enrollment import Enrollment

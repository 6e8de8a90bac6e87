from .base import Base
from .user import User, UserRole, UserRoleAssignment, ADMIN_ROLES
from .creator import (
    CMOProfile,
    CreatorProfile,
    CommissionTier,
    DiscountCode,
    UserAttribution,
)
from .enrollment import Enrollment, UserSubjects, JoinRequest, UpgradeRequest, RequestStatus
from .payments import (
    PaymentAttribution,
    CMOPayout,
    Payment,
    PaymentStatus,
    WithdrawalRequest,
    WithdrawalStatus,
)
from .settings import SiteSetting

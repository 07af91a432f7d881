from salonhub.models.user import User
from salonhub.models.recovery_code import RecoveryCode

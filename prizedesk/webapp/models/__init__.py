from .competition import Competition
from .prize_pool import PrizePool
from .prize import Prize
from .external_user import ExternalUser
from .prize_award import PrizeAward, AwardStatus, AwardMethod, NotificationStatus
from .prize_redemption import PrizeRedemption, RedemptionChannel
from .otp import Otp, OtpPurpose
from .sms_message import SmsMessage, SmsMessageType, SmsStatus
from .audit_log import AuditLog, AuditAction

__all__ = [
    'Competition', 'PrizePool', 'Prize', 'ExternalUser',
    'PrizeAward', 'AwardStatus', 'AwardMethod', 'NotificationStatus',
    'PrizeRedemption', 'RedemptionChannel', 'Otp', 'OtpPurpose',
    'SmsMessage', 'SmsMessageType', 'SmsStatus', 'AuditLog', 'AuditAction',
]

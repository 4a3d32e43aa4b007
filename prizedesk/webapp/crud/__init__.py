from .competition import *
from .prize_pool import *
from .prize import *
from .prize_award import *
from .prize_redemption import *
from .otp import *
from .external_user import *
from .sms_message import *
from .audit_log import *

__all__ = [
    'get_competition', 'get_competitions', 'create_competition',
    'get_pool', 'get_pools', 'create_pool',
    'get_prize', 'get_prizes', 'create_prize', 'next_available_prize', 'take_one', 'bump_counter', 'adjust_total',
    'get_award', 'get_awards_by_phone', 'get_redeemable_awards', 'list_awards', 'create_award',
    'transition_status', 'get_overdue_awards', 'set_notification_status',
    'get_redemption_by_award', 'create_redemption', 'list_redemptions',
    'supersede_unused', 'create_otp', 'get_latest_unused', 'register_failed_attempt', 'consume',
    'get_user_by_phone', 'get_or_create_user',
    'create_sms', 'mark_sms',
    'add_audit', 'get_audit_trail',
]

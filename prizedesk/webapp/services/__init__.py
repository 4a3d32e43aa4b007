from .otp import issue_otp, validate_otp
from .awards import (
    awards_for_phone,
    bulk_issue_awards,
    cancel_award,
    expire_overdue_awards,
    get_award_detail,
    issue_award,
    resend_award_notification,
    search_awards,
)
from .redemptions import (
    available_prizes,
    complete_redemption,
    get_redemption,
    request_redemption,
    resend_redemption_otp,
    search_redemptions,
)
from .catalogue import (
    add_competition,
    add_pool,
    add_prize,
    list_competitions,
    list_pools,
    list_prizes,
    pool_detail,
    prize_detail,
    update_prize,
)

__all__ = [
    'issue_otp', 'validate_otp',
    'issue_award', 'bulk_issue_awards', 'cancel_award', 'resend_award_notification',
    'get_award_detail', 'awards_for_phone', 'search_awards', 'expire_overdue_awards',
    'request_redemption', 'resend_redemption_otp', 'complete_redemption',
    'available_prizes', 'get_redemption', 'search_redemptions',
    'add_competition', 'list_competitions', 'add_pool', 'pool_detail', 'list_pools',
    'add_prize', 'prize_detail', 'list_prizes', 'update_prize',
]

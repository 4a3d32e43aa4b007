__all__ = [
    'awards_router', 'redemptions_router', 'otp_router',
    'competitions_router', 'prize_pools_router', 'prizes_router',
]

from .awards import router as awards_router
from .redemptions import router as redemptions_router
from .otp import router as otp_router
from .catalogue import competitions_router, prize_pools_router, prizes_router

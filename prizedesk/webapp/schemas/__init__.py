from .common import *
from .catalogue import *
from .redemption import *
from .award import *
from .otp import *

__all__ = [
    'ApiError', 'ApiResponse', 'PageParams', 'PagedResponse',
    'CompetitionCreate', 'CompetitionRead', 'PrizePoolCreate', 'PrizePoolRead',
    'PrizeCreate', 'PrizeUpdate', 'PrizeRead',
    'AwardPrizeRequest', 'BulkAwardRequest', 'BulkAwardItemResult', 'BulkAwardResult',
    'CancelAwardRequest', 'PrizeRef', 'PrizeAwardRead', 'PrizeAwardDetail', 'AwardFilter',
    'RequestRedemptionRequest', 'ResendOtpRequest', 'RedeemablePrize', 'RequestRedemptionResult',
    'CompleteRedemptionRequest', 'RedemptionConfirmation', 'PrizeRedemptionRead', 'RedemptionFilter',
    'SendOtpRequest', 'SendOtpResult', 'VerifyOtpRequest', 'VerifyOtpResult',
]

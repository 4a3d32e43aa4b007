from .sms import NotificationDispatcher, SmsGateway, SmsResult

__all__ = ['NotificationDispatcher', 'SmsGateway', 'SmsResult']

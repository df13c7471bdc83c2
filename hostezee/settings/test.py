from .base import *

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

RAZORPAY_API_KEY = 'rzp_test_key'
RAZORPAY_API_SECRET = 'rzp_test_secret'
RAZORPAY_WEBHOOK_SECRET = 'webhook-test-secret'
AUTHKEY_API_KEY = ''
SLACK_BOT_TOKEN = ''
LOGGING['root']['handlers'] = ['console']
LOGGING['handlers'].pop('slack', None)

from pathlib import Path
from datetime import timedelta
import os

from decouple import config, Csv, Config, RepositoryEnv

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Get the environment file (default to local 'dev' if not set)
DJANGO_ENV = os.getenv('DJANGO_ENV', '.env.dev')

# Load variables from the env file when it exists, otherwise from the process environment
if os.path.exists(DJANGO_ENV):
    env_config = Config(RepositoryEnv(DJANGO_ENV))
else:
    env_config = config

SECRET_KEY = env_config('SECRET_KEY', default='hostezee-dev-secret-key')

DEBUG = env_config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = env_config('ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=Csv())

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework_simplejwt',
    'corsheaders',
    'admin_app',
    'bookings',
    'billing',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

AUTH_USER_MODEL = 'admin_app.User'

WSGI_APPLICATION = 'hostezee.wsgi.application'

ROOT_URLCONF = 'hostezee.urls'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': env_config('DB_NAME', default='hostezee'),
        'USER': env_config('DB_USER', default='hostezee'),
        'PASSWORD': env_config('DB_PASSWORD', default=''),
        'HOST': env_config('DB_HOST', default='localhost'),
        'PORT': env_config('DB_PORT', default='5432'),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(hours=12),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
}

CORS_ALLOWED_ORIGINS = env_config('CORS_ALLOWED_ORIGINS', default='http://localhost:5173', cast=Csv())

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'Asia/Kolkata'

USE_I18N = True

USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'static')

MEDIA_URL = '/media/'
MEDIA_ROOT = os.path.join(BASE_DIR, 'media')

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Billing rates (percent)
CHECKOUT_GST_RATE = env_config('CHECKOUT_GST_RATE', default='5')
CHECKOUT_SERVICE_CHARGE_RATE = env_config('CHECKOUT_SERVICE_CHARGE_RATE', default='10')
MERGE_GST_RATE = env_config('MERGE_GST_RATE', default='18')
MERGE_SERVICE_CHARGE_RATE = env_config('MERGE_SERVICE_CHARGE_RATE', default='10')

# Event bus limits
EVENT_BUS_MAX_HISTORY = env_config('EVENT_BUS_MAX_HISTORY', default=100, cast=int)
EVENT_BUS_MAX_LISTENERS = env_config('EVENT_BUS_MAX_LISTENERS', default=50, cast=int)

# Razorpay
RAZORPAY_API_KEY = env_config('RAZORPAY_API_KEY', default='')
RAZORPAY_API_SECRET = env_config('RAZORPAY_API_SECRET', default='')
RAZORPAY_WEBHOOK_SECRET = env_config('RAZORPAY_WEBHOOK_SECRET', default='')
RAZORPAY_LINK_EXPIRY_DAYS = env_config('RAZORPAY_LINK_EXPIRY_DAYS', default=180, cast=int)

# WhatsApp (authkey.io)
AUTHKEY_API_KEY = env_config('AUTHKEY_API_KEY', default='')
AUTHKEY_API_URL = env_config('AUTHKEY_API_URL', default='https://console.authkey.io/restapi/requestjson.php')
AUTHKEY_PREBILL_TEMPLATE_ID = env_config('AUTHKEY_PREBILL_TEMPLATE_ID', default='')
AUTHKEY_BILL_TEMPLATE_ID = env_config('AUTHKEY_BILL_TEMPLATE_ID', default='')
WHATSAPP_COUNTRY_CODE = env_config('WHATSAPP_COUNTRY_CODE', default='91')

# Slack error alerts
SLACK_BOT_TOKEN = env_config('SLACK_BOT_TOKEN', default='')
SLACK_CHANNEL = env_config('SLACK_CHANNEL', default='#hostezee-alerts')

# Celery Configuration
CELERY_BROKER_URL = env_config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': env_config('LOG_LEVEL', default='INFO'),
    },
}

if SLACK_BOT_TOKEN:
    LOGGING['handlers']['slack'] = {
        'class': 'utils.slack.slack_logger.SlackErrorHandler',
        'level': 'ERROR',
        'formatter': 'verbose',
    }
    LOGGING['root']['handlers'].append('slack')

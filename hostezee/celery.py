import os
from decouple import config
from celery import Celery
from dotenv import load_dotenv

# Set the default Django settings module for the 'celery' program.
dotenv_file = os.getenv('DJANGO_ENV', '.env.dev')
load_dotenv(dotenv_file)
django_env = config('DJANGO_ENVIRONMENT', default='dev')  # default is 'dev' if not set

os.environ.setdefault('DJANGO_SETTINGS_MODULE', f'hostezee.settings.{django_env}')

app = Celery('hostezee')

# namespace='CELERY' means all celery-related configuration keys
# should have a `CELERY_` prefix.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks(['utils.celery'])

#!/usr/bin/env python
import os
import sys

from decouple import config
from dotenv import load_dotenv


def main():
    dotenv_file = os.getenv('DJANGO_ENV', '.env.dev')
    load_dotenv(dotenv_file)
    default_env = 'test' if sys.argv[1:2] == ['test'] else 'dev'
    django_env = config('DJANGO_ENVIRONMENT', default=default_env)
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', f'hostezee.settings.{django_env}')
    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Is it installed and available on your "
            "PYTHONPATH environment variable?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()

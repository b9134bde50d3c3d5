"""
Django settings for dispatch_gateway project.
"""
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-secret-key-change-in-production')
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'
ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'loads',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'dispatch_gateway.urls'

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

WSGI_APPLICATION = 'dispatch_gateway.wsgi.application'

# Database configuration
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('DB_NAME', 'dispatch_gateway'),
        'USER': os.getenv('DB_USER', 'postgres'),
        'PASSWORD': os.getenv('DB_PASSWORD', 'postgres'),
        'HOST': os.getenv('DB_HOST', 'localhost'),
        'PORT': os.getenv('DB_PORT', '5432'),
    }
}

TESTING = (
    os.getenv('USE_SQLITE_FOR_TESTS', '').lower() == 'true'
    or any('pytest' in arg for arg in sys.argv)
    or bool(os.getenv('PYTEST_CURRENT_TEST'))
)

# Use SQLite for tests to avoid requiring a running PostgreSQL server
if TESTING:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.getenv('SQLITE_NAME', ':memory:'),
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Celery configuration
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TASK_ALWAYS_EAGER = os.getenv('CELERY_TASK_ALWAYS_EAGER', 'False').lower() == 'true'

# Tests run tasks inline without a broker
if TESTING:
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True
    CELERY_TASK_EAGER_PROPAGATES = True

# Carrier (transport management platform) API configuration
CARRIER_API_URL = os.getenv('CARRIER_API_URL', 'https://api.shipper.superdispatch.com/v1/public')
CARRIER_TOKEN_URL = os.getenv('CARRIER_TOKEN_URL', 'https://api.shipper.superdispatch.com/oauth/token/')
CARRIER_CLIENT_ID = os.getenv('CARRIER_CLIENT_ID', '')
CARRIER_CLIENT_SECRET = os.getenv('CARRIER_CLIENT_SECRET', '')
# A static key skips the OAuth token exchange entirely
CARRIER_API_KEY = os.getenv('CARRIER_API_KEY', '')
CARRIER_API_TIMEOUT = float(os.getenv('CARRIER_API_TIMEOUT', '30'))

# Partner webhook delivery
PARTNER_WEBHOOK_NAME = os.getenv('PARTNER_WEBHOOK_NAME', 'partner')
PARTNER_SIGNATURE_HEADER = os.getenv('PARTNER_SIGNATURE_HEADER', 'X-Dispatch-Signature')
PARTNER_WEBHOOK_TIMEOUT = float(os.getenv('PARTNER_WEBHOOK_TIMEOUT', '10'))
WEBHOOK_MAX_RETRIES = int(os.getenv('WEBHOOK_MAX_RETRIES', '3'))
WEBHOOK_RETRY_BATCH_SIZE = int(os.getenv('WEBHOOK_RETRY_BATCH_SIZE', '10'))

# Partner order submission authentication (optional)
PARTNER_API_KEY = os.getenv('PARTNER_API_KEY', None)

# Outbound order construction
ORDER_NUMBER_PREFIX = os.getenv('ORDER_NUMBER_PREFIX', 'K')
ORDER_CUSTOMER = {
    'name': os.getenv('ORDER_CUSTOMER_NAME', ''),
    'business_type': 'BUSINESS',
    'address': os.getenv('ORDER_CUSTOMER_ADDRESS', ''),
    'city': os.getenv('ORDER_CUSTOMER_CITY', ''),
    'state': os.getenv('ORDER_CUSTOMER_STATE', ''),
    'zip': os.getenv('ORDER_CUSTOMER_ZIP', ''),
    'phone': os.getenv('ORDER_CUSTOMER_PHONE', ''),
    'email': os.getenv('ORDER_CUSTOMER_EMAIL', ''),
    'contact_name': os.getenv('ORDER_CUSTOMER_CONTACT_NAME', ''),
}
ORDER_VENUE_CONTACT_NAME = os.getenv('ORDER_VENUE_CONTACT_NAME', 'Move Team')
ORDER_VENUE_CONTACT_PHONE = os.getenv('ORDER_VENUE_CONTACT_PHONE', '')
ORDER_INSTRUCTIONS = os.getenv('ORDER_INSTRUCTIONS', '')
ORDER_LOADBOARD_INSTRUCTIONS = os.getenv('ORDER_LOADBOARD_INSTRUCTIONS', 'Text only')

# Logging configuration
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
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
        'level': 'INFO',
    },
    'loggers': {
        'loads': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}

# REST Framework configuration
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
}

from .backend import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

INSTALLED_APPS = INSTALLED_APPS + ['edge']

RAZORPAY_KEY_ID = 'rzp_test_1234567890abcd'
RAZORPAY_KEY_SECRET = 'test-razorpay-secret'
HAS_DATABASE_URL = False
SUPABASE_URL = ''
SUPABASE_ANON_KEY = ''
SUPABASE_JWT_SECRET = 'test-supabase-jwt-secret-with-enough-length'

SPA_DIST_DIR = str(BASE_DIR / 'dist')
WHITENOISE_ROOT = SPA_DIST_DIR
BACKEND_URL = 'http://backend.test'
EDGE_PROXY_TIMEOUT = 5

LOGGING = {'version': 1, 'disable_existing_loggers': False}

"""Flask configuration for the authentication service."""

import os

JWT_SECRET = os.environ.get('JWT_SECRET', 'foosecret')
ACCESS_TOKEN_TTL = int(os.environ.get('ACCESS_TOKEN_TTL', 7 * 24 * 60 * 60))
REFRESH_TOKEN_TTL = int(os.environ.get('REFRESH_TOKEN_TTL',
                                       30 * 24 * 60 * 60))

REDIS_URL = os.environ.get('REDIS_URL')
"""If set (e.g. ``rediss://default:pw@host:6379``), takes precedence."""

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '0')
REDIS_TIMEOUT = float(os.environ.get('REDIS_TIMEOUT', '2.0'))

SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI',
                                         'sqlite:///markmorph.db')

OTP_TTL = int(os.environ.get('OTP_TTL', 600))
OTP_RATE_LIMIT = int(os.environ.get('OTP_RATE_LIMIT', 5))
OTP_RATE_WINDOW = int(os.environ.get('OTP_RATE_WINDOW', 600))
OTP_RESEND_COOLDOWN = int(os.environ.get('OTP_RESEND_COOLDOWN', 60))

USERNAME_CACHE_TTL = int(os.environ.get('USERNAME_CACHE_TTL', 3600))
USERNAME_HISTORY_MONTHS = int(os.environ.get('USERNAME_HISTORY_MONTHS', 6))
RESERVED_USERNAMES = os.environ.get(
    'RESERVED_USERNAMES',
    'admin,api,app,auth,blog,business,catalog,checkout,dashboard,docs,help,'
    'home,login,logout,onboarding,privacy,profile,settings,signup,signin,'
    'splash,support,terms,user,users,www,markmorph,mark-morph,linktree,link,'
    'official,null,undefined,anonymous,root,system'
)
USERNAME_SUFFIXES = os.environ.get('USERNAME_SUFFIXES',
                                   '01,02,india,official,store,shop,biz')

IDENTITY_PROVIDER_URL = os.environ.get('IDENTITY_PROVIDER_URL',
                                       'http://localhost:9999')
IDENTITY_PROVIDER_SERVICE_KEY = os.environ.get(
    'IDENTITY_PROVIDER_SERVICE_KEY', '')
IDENTITY_PROVIDER_ANON_KEY = os.environ.get('IDENTITY_PROVIDER_ANON_KEY', '')
IDENTITY_PROVIDER_TIMEOUT = float(
    os.environ.get('IDENTITY_PROVIDER_TIMEOUT', '10'))

EMAIL_HOST = os.environ.get('EMAIL_HOST')
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', 587))
EMAIL_USER = os.environ.get('EMAIL_USER')
EMAIL_PASS = os.environ.get('EMAIL_PASS')
EMAIL_FROM = os.environ.get('EMAIL_FROM',
                            '"Mark Morph" <noreply@markmorph.com>')

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
LOG_JSON = os.environ.get('LOG_JSON', '1')

CREATE_DB = os.environ.get('CREATE_DB', '0')
"""If ``1``, create missing database tables when the application starts."""

#!/usr/bin/env python3
"""
File name and well-known name constants for tinydeploy.

All modules import names from here instead of hardcoding strings.

Layout of an install directory:
- .env                          = Persisted secret set (generated, gitignored)
- config/kong.yml.template      = Gateway template (downloaded, committed upstream)
- config/kong.yml               = Rendered gateway config (generated every run)
- docker-compose.yml            = Base compose file
- docker-compose.tiny.yml       = Optional overlay for the tiny profile
- Caddyfile                     = Reverse proxy config (used to derive the public domain)
- volumes/functions, snippets   = Runtime bind-mount directories
"""

# ============================================================================
# File names (relative to the install directory)
# ============================================================================

ENV_FILE = '.env'
SETTINGS_FILE = 'tinydeploy.toml'
CONFIG_DIR = 'config'
GATEWAY_TEMPLATE = 'config/kong.yml.template'
GATEWAY_CONFIG = 'config/kong.yml'
COMPOSE_FILE = 'docker-compose.yml'
COMPOSE_TINY_FILE = 'docker-compose.tiny.yml'
CADDYFILE = 'Caddyfile'

FUNCTIONS_DIR = 'volumes/functions'
SNIPPETS_DIR = 'volumes/snippets'

# Default edge function handlers shipped as package assets
DEFAULT_FUNCTIONS = ('main', 'hello')

# ============================================================================
# Deployment profiles
# ============================================================================

PROFILE_TINY = 'tiny'
PROFILE_STANDARD = 'standard'
PROFILES = (PROFILE_TINY, PROFILE_STANDARD)

# ============================================================================
# Secret set
# ============================================================================

# Canonical order of the persisted .env file
REQUIRED_KEYS = (
    'POSTGRES_PASSWORD',
    'POSTGRES_USER',
    'POSTGRES_DB',
    'JWT_SECRET',
    'JWT_EXP',
    'ANON_KEY',
    'SERVICE_ROLE_KEY',
    'SUPABASE_ANON_KEY',
    'SUPABASE_SERVICE_KEY',
    'DASHBOARD_USERNAME',
    'DASHBOARD_PASSWORD',
    'MINIO_ROOT_USER',
    'MINIO_ROOT_PASSWORD',
    'PG_META_CRYPTO_KEY',
    'SECRET_KEY_BASE',
    'VAULT_ENC_KEY',
    'SUPABASE_PUBLIC_DOMAIN',
    'ANALYTICS_ENABLED',
    'SNIPPETS_MANAGEMENT_FOLDER',
    'EDGE_FUNCTIONS_MANAGEMENT_FOLDER',
    'OPENAI_API_KEY',
)

# Alias key -> canonical key (kept for services that read the older names)
TOKEN_ALIASES = {
    'SUPABASE_ANON_KEY': 'ANON_KEY',
    'SUPABASE_SERVICE_KEY': 'SERVICE_ROLE_KEY',
}

# Random hex secrets: key -> number of random bytes
HEX_SECRETS = {
    'POSTGRES_PASSWORD': 16,
    'JWT_SECRET': 32,
    'DASHBOARD_PASSWORD': 16,
    'MINIO_ROOT_PASSWORD': 16,
    'PG_META_CRYPTO_KEY': 32,
    'SECRET_KEY_BASE': 32,
    'VAULT_ENC_KEY': 32,
}

STATIC_DEFAULTS = {
    'POSTGRES_USER': 'supabase_admin',
    'POSTGRES_DB': 'postgres',
    'JWT_EXP': '3600',
    'DASHBOARD_USERNAME': 'admin',
    'MINIO_ROOT_USER': 'minioadmin',
    'ANALYTICS_ENABLED': 'false',
    'SNIPPETS_MANAGEMENT_FOLDER': '/app/snippets',
    'EDGE_FUNCTIONS_MANAGEMENT_FOLDER': '/app/edge-functions',
    'OPENAI_API_KEY': '',
}

# Old named-volume folder layout -> bind-mount layout
LEGACY_FOLDER_MIGRATIONS = {
    'SNIPPETS_MANAGEMENT_FOLDER': ('/var/lib/supabase/snippets', '/app/snippets'),
    'EDGE_FUNCTIONS_MANAGEMENT_FOLDER': ('/var/lib/supabase/edge-functions', '/app/edge-functions'),
}

DEFAULT_PUBLIC_DOMAIN = 'example.com'

# ============================================================================
# Tokens
# ============================================================================

ANON_ROLE = 'anon'
SERVICE_ROLE = 'service_role'
TOKEN_ISSUER = 'supabase'  # issuer the deployed GoTrue/PostgREST images expect
TOKEN_REF = 'default'
TOKEN_AUDIENCE = 'authenticated'
TOKEN_LIFETIME_SECONDS = 315360000  # 10 years

# Placeholders substituted into the gateway template
GATEWAY_PLACEHOLDERS = (
    'SUPABASE_ANON_KEY',
    'SUPABASE_SERVICE_KEY',
    'DASHBOARD_USERNAME',
    'DASHBOARD_PASSWORD',
)

# ============================================================================
# Services
# ============================================================================

DB_SERVICE = 'db'
OBJECT_STORE_SERVICE = 'minio'
PHASE1_SERVICES = (DB_SERVICE, OBJECT_STORE_SERVICE)

# Roles created by the database image's first-boot migrations
SERVICE_ACCOUNT_ROLES = ('supabase_auth_admin', 'supabase_storage_admin')
SECONDARY_DATABASE = '_supabase'
SECONDARY_SCHEMA = '_realtime'

DEFAULT_BUCKET = 'supabase-storage'
MINIO_INTERNAL_URL = 'http://localhost:9000'
DEFAULT_MINIO_HEALTH_URL = 'http://127.0.0.1:13790/minio/health/live'

# Readiness budgets (seconds, one attempt per second)
DEFAULT_DB_WAIT_SECONDS = 180
DEFAULT_ROLE_WAIT_SECONDS = 600
DEFAULT_MINIO_WAIT_SECONDS = 60
LOG_TAIL_LINES = 200

# ============================================================================
# Bootstrap installer
# ============================================================================

DEFAULT_REPO_RAW_BASE = 'https://raw.githubusercontent.com/Gouryella/supabase-tiny/main'
DEFAULT_INSTALL_DIRNAME = 'supabase-tiny'

REQUIRED_ASSETS = (
    COMPOSE_FILE,
    GATEWAY_TEMPLATE,
    CADDYFILE,
)
OPTIONAL_ASSETS = (
    COMPOSE_TINY_FILE,
)

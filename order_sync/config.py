import os

# Process-level settings. Per-shop sync settings live in the SyncConfig table.
DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///./order_sync.db')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

SYNC_BATCH_SIZE = int(os.environ.get('SYNC_BATCH_SIZE', '50'))
REMOTE_TIMEOUT_SECONDS = float(os.environ.get('REMOTE_TIMEOUT_SECONDS', '30'))
DEFAULT_COUNTRY_CODE = os.environ.get('DEFAULT_COUNTRY_CODE', 'ESP')

ECOTAX_LEGAL_NOTICE = os.environ.get(
    'ECOTAX_LEGAL_NOTICE',
    "Ecotasa AT. Ecotasa S.I Gestión NFU -RD 731/2020-"
)

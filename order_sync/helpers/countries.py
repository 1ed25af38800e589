from order_sync.config import DEFAULT_COUNTRY_CODE
from typing import Optional

# ISO 3166-1 alpha-2 (remote) to alpha-3 (local ledger)
ISO2_TO_ISO3 = {
    'ES': 'ESP',
    'FR': 'FRA',
    'DE': 'DEU',
    'IT': 'ITA',
    'GB': 'GBR',
    'US': 'USA',
    'PT': 'PRT',
    'BE': 'BEL',
    'NL': 'NLD',
    'CH': 'CHE',
    'AT': 'AUT',
    'PL': 'POL',
    'CZ': 'CZE',
    'RO': 'ROU',
    'SE': 'SWE',
    'DK': 'DNK',
    'NO': 'NOR',
    'FI': 'FIN',
    'IE': 'IRL',
    'GR': 'GRC',
    'HU': 'HUN',
    'SK': 'SVK',
    'SI': 'SVN',
    'HR': 'HRV',
    'BG': 'BGR',
    'LT': 'LTU',
    'LV': 'LVA',
    'EE': 'EST',
    'MT': 'MLT',
    'CY': 'CYP',
    'LU': 'LUX',
    'MX': 'MEX',
    'AR': 'ARG',
    'BR': 'BRA',
    'CL': 'CHL',
    'CO': 'COL',
    'PE': 'PER',
    'VE': 'VEN',
    'CA': 'CAN',
    'AU': 'AUS',
    'NZ': 'NZL',
    'CN': 'CHN',
    'JP': 'JPN',
    'IN': 'IND',
    'RU': 'RUS',
    'TR': 'TUR',
    'ZA': 'ZAF',
    'MA': 'MAR',
    'DZ': 'DZA',
    'TN': 'TUN',
    'EG': 'EGY',
}


def to_local_country_code(iso_code: Optional[str], fallback: str = DEFAULT_COUNTRY_CODE) -> str:
    """Translate a remote two-letter country code, using the fallback when unmapped."""
    if not iso_code:
        return fallback
    return ISO2_TO_ISO3.get(iso_code.strip().upper(), fallback)

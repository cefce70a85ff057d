"""
State FIPS Reference Table

Maps two-digit state FIPS codes to state names and postal abbreviations.
"""
from typing import Dict, Optional, Tuple

STATE_FIPS: Dict[str, Tuple[str, str]] = {
    '01': ('Alabama', 'AL'), '02': ('Alaska', 'AK'), '04': ('Arizona', 'AZ'),
    '05': ('Arkansas', 'AR'), '06': ('California', 'CA'), '08': ('Colorado', 'CO'),
    '09': ('Connecticut', 'CT'), '10': ('Delaware', 'DE'),
    '11': ('District of Columbia', 'DC'), '12': ('Florida', 'FL'),
    '13': ('Georgia', 'GA'), '15': ('Hawaii', 'HI'), '16': ('Idaho', 'ID'),
    '17': ('Illinois', 'IL'), '18': ('Indiana', 'IN'), '19': ('Iowa', 'IA'),
    '20': ('Kansas', 'KS'), '21': ('Kentucky', 'KY'), '22': ('Louisiana', 'LA'),
    '23': ('Maine', 'ME'), '24': ('Maryland', 'MD'), '25': ('Massachusetts', 'MA'),
    '26': ('Michigan', 'MI'), '27': ('Minnesota', 'MN'), '28': ('Mississippi', 'MS'),
    '29': ('Missouri', 'MO'), '30': ('Montana', 'MT'), '31': ('Nebraska', 'NE'),
    '32': ('Nevada', 'NV'), '33': ('New Hampshire', 'NH'), '34': ('New Jersey', 'NJ'),
    '35': ('New Mexico', 'NM'), '36': ('New York', 'NY'), '37': ('North Carolina', 'NC'),
    '38': ('North Dakota', 'ND'), '39': ('Ohio', 'OH'), '40': ('Oklahoma', 'OK'),
    '41': ('Oregon', 'OR'), '42': ('Pennsylvania', 'PA'), '44': ('Rhode Island', 'RI'),
    '45': ('South Carolina', 'SC'), '46': ('South Dakota', 'SD'), '47': ('Tennessee', 'TN'),
    '48': ('Texas', 'TX'), '49': ('Utah', 'UT'), '50': ('Vermont', 'VT'),
    '51': ('Virginia', 'VA'), '53': ('Washington', 'WA'), '54': ('West Virginia', 'WV'),
    '55': ('Wisconsin', 'WI'), '56': ('Wyoming', 'WY'), '72': ('Puerto Rico', 'PR'),
}

STATE_ABBREVIATIONS = {abbr for _, abbr in STATE_FIPS.values()}


def state_name(state_code: str) -> str:
    """Return the state name for a FIPS code, or 'Unknown'."""
    entry = STATE_FIPS.get(str(state_code).zfill(2))
    return entry[0] if entry else 'Unknown'


def state_abbreviation(state_code: str) -> Optional[str]:
    """Return the postal abbreviation for a FIPS code."""
    entry = STATE_FIPS.get(str(state_code).zfill(2))
    return entry[1] if entry else None

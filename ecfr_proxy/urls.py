BASE_URL = "https://www.ecfr.gov"

VRSN_URL = f"{BASE_URL}/api/versioner/v1"
ADMN_URL = f"{BASE_URL}/api/admin/v1"
SRCH_URL = f"{BASE_URL}/api/search/v1"

# Human readable document pages, used for section links
CURRENT_URL = f"{BASE_URL}/current"


def full_xml_url(date: str, title) -> str:
    return f"{VRSN_URL}/full/{date}/title-{title}.xml"


def structure_url(date: str, title) -> str:
    return f"{VRSN_URL}/structure/{date}/title-{title}.json"

import asyncio
import datetime

import falcon.testing
import httpx
import pytest

from ecfr_proxy import timestamps
from ecfr_proxy.app import create_app
from ecfr_proxy.cache import Caches
from ecfr_proxy.config import Settings
from ecfr_proxy.services import TitleService
from ecfr_proxy.upstream import EcfrClient

TITLE_5_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ECFR>
<DIV1 N="5" TYPE="TITLE"><HEAD>Title 5 - Administrative Personnel</HEAD>
<DIV5 N="1" TYPE="PART"><HEAD>PART 1 - RULES</HEAD>
<P>The Office of Personnel Management shall publish rules.</P>
<P>&#167; 1.1 Applicability - see <I>section</I> 2.</P>
</DIV5>
</DIV1>
</ECFR>
"""
TITLE_5_WORDS = 20

TITLE_42_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ECFR><DIV1 N="42" TYPE="TITLE"><HEAD>Title 42 - Public Health</HEAD></DIV1></ECFR>
"""
TITLE_42_WORDS = 4

TITLES = [
    {
        "number": 1,
        "name": "General Provisions",
        "latest_amended_on": "2024-05-10",
        "latest_issue_date": "2024-05-10",
        "up_to_date_as_of": "2025-03-01",
        "reserved": False,
    },
    {
        "number": 5,
        "name": "Administrative Personnel",
        "latest_amended_on": "2025-01-15",
        "latest_issue_date": "2025-02-03",
        "up_to_date_as_of": "2025-03-01",
        "reserved": False,
    },
    {
        "number": 37,
        "name": "Reserved",
        "latest_amended_on": None,
        "latest_issue_date": None,
        "up_to_date_as_of": None,
        "reserved": True,
    },
    {
        "number": 42,
        "name": "Public Health",
        "latest_amended_on": "2025-02-20",
        "latest_issue_date": "2025-02-25",
        "up_to_date_as_of": "2025-03-01",
        "reserved": False,
    },
]

AGENCIES = [
    {
        "name": "Department of Health and Human Services",
        "short_name": "HHS",
        "display_name": "Health and Human Services Department",
        "slug": "health-and-human-services-department",
        "children": [
            {
                "name": "Centers for Medicare & Medicaid Services",
                "short_name": "CMS",
                "display_name": "Centers for Medicare & Medicaid Services",
                "slug": "centers-for-medicare-medicaid-services",
                "children": [],
                "cfr_references": [{"title": 42, "chapter": "IV"}],
            }
        ],
        "cfr_references": [{"title": 45, "chapter": "A"}],
    },
    {
        "name": "Office of Personnel Management",
        "short_name": "OPM",
        "display_name": "Personnel Management Office",
        "slug": "personnel-management-office",
        "children": [],
        "cfr_references": [{"title": 5, "chapter": "I"}, {"title": 5}],
    },
]

TITLE_5_STRUCTURE = {
    "type": "title",
    "identifier": "5",
    "label": "Title 5—Administrative Personnel",
    "children": [
        {
            "type": "chapter",
            "identifier": "I",
            "label": "Chapter I—Office of Personnel Management",
            "children": [
                {
                    "type": "subchapter",
                    "identifier": "A",
                    "label": "Subchapter A—Civil Service Regulations",
                    "children": [
                        {
                            "type": "part",
                            "identifier": "1",
                            "label": "Part 1—Coverage and Definitions",
                            "children": [
                                {"type": "section", "identifier": "1.1", "label": "§ 1.1 Positions.", "children": []},
                                {"type": "section", "identifier": "1.2", "label": "§ 1.2 Extent.", "children": []},
                            ],
                        }
                    ],
                }
            ],
        },
        {
            "type": "chapter",
            "identifier": "II",
            "label": "Chapter II—Merit Systems Protection Board",
            "children": [
                {
                    "type": "part",
                    "identifier": "1200",
                    "label": "Part 1200—Board Organization",
                    "children": [
                        {"type": "section", "identifier": "1200.1", "label": "§ 1200.1 Nature.", "children": []}
                    ],
                }
            ],
        },
    ],
}

TITLE_42_STRUCTURE = {
    "type": "title",
    "identifier": "42",
    "label": "Title 42—Public Health",
    "children": [
        {
            "type": "chapter",
            "identifier": "IV",
            "label": "Chapter IV—Centers for Medicare & Medicaid Services",
            "children": [
                {
                    "type": "part",
                    "identifier": "400",
                    "label": "Part 400—Introduction; Definitions",
                    "children": [
                        {"type": "section", "identifier": "400.200", "label": "§ 400.200 General definitions.", "children": []}
                    ],
                }
            ],
        }
    ],
}


class FakeEcfr:
    """In-process stand-in for the eCFR API, recording every request it serves"""

    def __init__(self):
        self.titles = [dict(title) for title in TITLES]
        self.agencies = AGENCIES
        self.documents = {"5": TITLE_5_XML.encode(), "42": TITLE_42_XML.encode()}
        self.structures = {"5": TITLE_5_STRUCTURE, "42": TITLE_42_STRUCTURE}
        self.failing: set[str] = set()
        self.document_delay = 0.0
        self.requests: list[httpx.Request] = []

    def count(self, fragment: str) -> int:
        return sum(1 for request in self.requests if fragment in request.url.path)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        for fragment in self.failing:
            if fragment in path:
                return httpx.Response(503, text="Service Unavailable")

        if path == "/api/versioner/v1/titles.json":
            return httpx.Response(200, json={"titles": self.titles, "meta": {}})
        if path == "/api/admin/v1/agencies.json":
            return httpx.Response(200, json={"agencies": self.agencies})
        if path.startswith("/api/versioner/v1/full/"):
            if self.document_delay:
                await asyncio.sleep(self.document_delay)
            number = path.rsplit("title-", 1)[1].removesuffix(".xml")
            if number not in self.documents:
                return httpx.Response(404, text="Not Found")
            return httpx.Response(200, content=self.documents[number])
        if path.startswith("/api/versioner/v1/structure/"):
            number = path.rsplit("title-", 1)[1].removesuffix(".json")
            if number not in self.structures:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=self.structures[number])
        if path == "/api/search/v1/results":
            return httpx.Response(
                200, json={"results": [], "query": str(request.url.query, "ascii")}
            )
        if path == "/api/search/v1/count":
            return httpx.Response(200, json={"meta": {"total_count": 7}})
        return httpx.Response(404, text="Not Found")


class FakeClock:
    def __init__(self):
        self.now = datetime.datetime(2025, 3, 1, tzinfo=datetime.timezone.utc)

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += datetime.timedelta(seconds=seconds)


@pytest.fixture()
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(timestamps, "nowUTC", fake)
    return fake


@pytest.fixture()
def fake_ecfr() -> FakeEcfr:
    return FakeEcfr()


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def caches(settings) -> Caches:
    return Caches.from_settings(settings)


@pytest.fixture()
def title_service(fake_ecfr, caches, settings) -> TitleService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_ecfr))
    return TitleService(EcfrClient(client), caches, settings)


@pytest.fixture()
def client(title_service) -> falcon.testing.TestClient:
    return falcon.testing.TestClient(create_app(title_service))

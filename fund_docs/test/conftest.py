"""
pytest configuration and shared fixtures.

Database tests run against an in-memory SQLite engine; StaticPool keeps
every connection on the same in-memory database.
"""
import copy
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from fund_docs.core.db import ensure_schema
from fund_docs.templating.context import FundFacts, Member, RenderContext
from fund_docs.templating.sections import TemplateContent

GENERATED_AT = datetime(2026, 3, 15, 10, 30)

MEMBER_TABLE_COLUMNS = [
    {"label": "구분", "property": "memberType", "width": 2, "align": "center"},
    {"label": "성명", "property": "name", "width": 3, "align": "left"},
    {"label": "좌수", "property": "units", "width": 1.5, "align": "right"},
    {"label": "출자금액", "property": "totalAmount", "width": 2.5, "align": "right"},
    {"label": "추가출자금", "property": "restAmount", "width": 2.5, "align": "right"},
    {"label": "지분율", "property": "percentage", "width": 1.5, "align": "right"},
]

SAMPLE_TEMPLATE = {
    "doc_type": "lpa",
    "sections": [
        {
            "ordinal": 1,
            "title": "총칙",
            "children": [
                {"ordinal": 1, "title": "명칭", "text": "이 조합은 ${fundName}이라 한다."},
                {
                    "ordinal": 2,
                    "title": "목적",
                    "text": "조합은 다음 각 호의 사업을 목적으로 한다.",
                    "children": [
                        {"ordinal": 1, "text": "벤처기업에 대한 투자"},
                        {
                            "ordinal": 2,
                            "text": "그 밖에 조합의 목적 달성에 필요한 사업",
                            "children": [{"ordinal": 1, "text": "부대 사업"}],
                        },
                    ],
                },
                {"ordinal": 3, "title": "출자", "text": "조합의 출자 총액은 금 ${totalCapKor}원으로 한다."},
            ],
        },
        {
            "ordinal": 2,
            "title": "조합원",
            "children": [
                {
                    "ordinal": 4,
                    "title": "조합원 명부",
                    "kind": "table",
                    "text": "조합원의 출자 내역은 다음과 같다.",
                    "table_config": {"table_type": "members", "columns": MEMBER_TABLE_COLUMNS},
                },
            ],
        },
        {"ordinal": -1, "title": "부칙", "text": "이 규약은 ${startDate}부터 시행한다."},
    ],
    "appendix": [
        {
            "id": "1",
            "title": "조합원 동의서",
            "render_kind": "repeating-page",
            "entity_filter": "lp",
            "pages": [
                {
                    "header": "[별지 1]",
                    "title": "조합 가입 동의서",
                    "elements": [
                        {"kind": "paragraph", "text": "본인은 ${fundName}에 ${shares}좌를 출자합니다."},
                        {
                            "kind": "fields",
                            "fields": [
                                {"label": "성명", "variable": "name", "requires_seal": True},
                                {"label": "생년월일", "variable": "birthDateOrBusinessNumber"},
                                {"label": "주소", "variable": "address"},
                            ],
                        },
                        {"kind": "spacer", "lines": 2},
                        {"kind": "date"},
                    ],
                }
            ],
        }
    ],
}


@pytest.fixture
def engine():
    """In-memory SQLite engine with the document schema."""
    db_engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    ensure_schema(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def member_table_columns():
    return copy.deepcopy(MEMBER_TABLE_COLUMNS)


@pytest.fixture
def template_dict():
    return copy.deepcopy(SAMPLE_TEMPLATE)


@pytest.fixture
def template_content(template_dict):
    return TemplateContent.from_dict(template_dict)


@pytest.fixture
def fund():
    return FundFacts(
        id="fund-1",
        name="스타트업 제1호 투자조합",
        name_short="제1호 조합",
        address="서울특별시 관악구 관악로 1",
        total_cap=100_000_000,
        initial_cap=100_000_000,
        par_value=1_000_000,
        payment_schedule="lump_sum",
        duration=5,
        closed_at=date(2026, 3, 2),
    )


@pytest.fixture
def members():
    return (
        Member(
            id="gp-1", name="주식회사 그린벤처스", member_type="GP", entity_type="corporate",
            address="서울특별시 강남구 테헤란로 10", business_number="123-45-67890",
            phone="02-000-0000", email="gp@example.com",
            total_units=10, total_amount=10_000_000, initial_amount=10_000_000,
        ),
        Member(
            id="lp-1", name="홍길동", address="서울특별시 종로구 1", birth_date="1980-01-01",
            total_units=40, total_amount=40_000_000, initial_amount=40_000_000,
        ),
        Member(
            id="lp-2", name="김철수", address="서울특별시 마포구 2", birth_date="1985-05-05",
            total_units=30, total_amount=30_000_000, initial_amount=30_000_000,
        ),
        Member(
            id="lp-3", name="이영희", address="경기도 성남시 3", birth_date="1990-09-09",
            total_units=20, total_amount=20_000_000, initial_amount=20_000_000,
        ),
    )


@pytest.fixture
def context(fund, members):
    return RenderContext(fund=fund, members=members, generated_at=GENERATED_AT)

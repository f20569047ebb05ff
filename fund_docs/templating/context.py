"""
Render context: fund facts, members and the variable map templates see.

RenderContext is immutable. Repeating pages bind the current member with
with_entity(), which returns a new context; nothing is mutated between pages.
"""
import re
import unicodedata
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from functools import cached_property
from typing import Any, Iterable, Mapping, Optional

from fund_docs.core.exceptions import ValidationError
from fund_docs.templating.variables import render_template_string

KOREAN_DIGITS = ["", "일", "이", "삼", "사", "오", "육", "칠", "팔", "구"]
KOREAN_GROUPS = ["", "만", "억", "조", "경"]

DEFAULT_DURATION = "5"

# Legal entity-type markers ignored when sorting by name
ENTITY_TYPE_PREFIXES = (
    "주식회사", "유한회사", "유한책임회사", "합자회사", "합명회사",
    "사단법인", "재단법인", "(주)", "㈜", "(유)", "(합)", "(사)", "(재)",
    "corp.", "corporation", "inc.", "co.", "ltd.", "llc",
)
_WHITESPACE = re.compile(r"\s+")


def _four_digits_to_korean(num: int) -> str:
    thousands, rest = divmod(num, 1000)
    hundreds, rest = divmod(rest, 100)
    tens, ones = divmod(rest, 10)

    result = ""
    if thousands:
        result += KOREAN_DIGITS[thousands] + "천"
    if hundreds:
        result += KOREAN_DIGITS[hundreds] + "백"
    if tens:
        result += ("" if tens == 1 else KOREAN_DIGITS[tens]) + "십"
    if ones:
        result += KOREAN_DIGITS[ones]
    return result


def number_to_korean(num: int) -> str:
    """
    Spell out a non-negative integer in Sino-Korean numerals.

    Examples:
        >>> number_to_korean(123456)
        '십이만삼천사백오십육'
        >>> number_to_korean(1000000000)
        '십억'
    """
    if num < 0:
        raise ValidationError("Cannot spell a negative amount", field_value=num)
    if num == 0:
        return "영"

    groups = []
    remaining = num
    while remaining > 0:
        remaining, group = divmod(remaining, 10000)
        groups.append(group)

    if len(groups) > len(KOREAN_GROUPS):
        raise ValidationError("Amount too large to spell", field_value=num)

    result = ""
    for group_index in range(len(groups) - 1, -1, -1):
        group = groups[group_index]
        if group == 0:
            continue
        result += _four_digits_to_korean(group) + KOREAN_GROUPS[group_index]
    return result


def format_comma(num: Optional[int]) -> str:
    return f"{num:,}" if num else ""


def format_korean_date(value: Optional[date]) -> str:
    """'YYYY년 M월 D일' without zero padding."""
    if value is None:
        return ""
    return f"{value.year}년 {value.month}월 {value.day}일"


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError("Invalid date", field_value=value)


def sort_key_for_name(name: Optional[str]) -> str:
    """
    Sort key for a member name with legal entity-type markers removed.

    "Foo Corp.", "주식회사 Foo" and "Foo" all reduce to "foo".
    Hangul syllables are in dictionary order by code point, so the
    normalized string compares in 가나다 order.
    """
    key = unicodedata.normalize("NFKC", name or "").casefold().strip(" ,")
    stripped = _strip_entity_marker(key)
    while stripped is not None:
        key = stripped.strip(" ,")
        stripped = _strip_entity_marker(key)
    return _WHITESPACE.sub(" ", key).strip()


def _strip_entity_marker(key: str) -> Optional[str]:
    # Latin markers only count as whole words ("llc" is not stripped from "bullc")
    for marker in ENTITY_TYPE_PREFIXES:
        latin = marker[0].isascii() and marker[0].isalpha()
        if key.startswith(marker) and len(key) > len(marker):
            rest = key[len(marker):]
            if not latin or not rest[0].isalnum():
                return rest
        if key.endswith(marker) and len(key) > len(marker):
            head = key[: -len(marker)]
            if not latin or not head[-1].isalnum():
                return head
    return None


def sort_members(members: Iterable["Member"]) -> list["Member"]:
    """Order members by stripped display name; ties keep the raw name order."""
    return sorted(members, key=lambda m: (sort_key_for_name(m.name), m.name))


@dataclass(frozen=True)
class Member:
    """A fund member (조합원)."""

    id: str
    name: str
    member_type: str = "LP"  # 'GP' | 'LP'
    entity_type: str = "individual"  # 'individual' | 'corporate'
    address: str = ""
    phone: str = ""
    email: str = ""
    birth_date: str = ""
    business_number: str = ""
    total_units: int = 0
    total_amount: int = 0
    initial_amount: int = 0

    @property
    def is_gp(self) -> bool:
        return self.member_type == "GP"

    @property
    def is_corporate(self) -> bool:
        return self.entity_type == "corporate"

    @property
    def is_empty(self) -> bool:
        """True for a placeholder member whose form is handed out blank."""
        return not (
            self.name
            or self.address
            or self.total_units
            or self.phone
            or self.birth_date
            or self.business_number
        )

    def condition_values(self) -> dict[str, Any]:
        """Values appendix field conditions are evaluated against."""
        return {
            "member_type": self.member_type,
            "entity_type": self.entity_type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Member":
        if not data.get("id") or not data.get("name"):
            raise ValidationError("Member needs an id and a name", field_value=dict(data))
        return cls(
            id=str(data["id"]),
            name=data["name"],
            member_type=data.get("member_type", "LP"),
            entity_type=data.get("entity_type", "individual"),
            address=data.get("address") or "",
            phone=data.get("phone") or "",
            email=data.get("email") or "",
            birth_date=data.get("birth_date") or "",
            business_number=data.get("business_number") or "",
            total_units=int(data.get("total_units") or 0),
            total_amount=int(data.get("total_amount") or 0),
            initial_amount=int(data.get("initial_amount") or 0),
        )


@dataclass(frozen=True)
class FundFacts:
    id: str
    name: str
    name_short: str = ""
    address: str = ""
    total_cap: int = 0
    initial_cap: int = 0
    par_value: int = 0
    payment_schedule: str = "lump_sum"  # 'lump_sum' | 'capital_call'
    duration: Optional[int] = None
    closed_at: Optional[date] = None

    @property
    def is_lump_sum(self) -> bool:
        return self.payment_schedule == "lump_sum"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FundFacts":
        if not data.get("name"):
            raise ValidationError("Fund needs a name", field_name="fund.name")
        duration = data.get("duration")
        return cls(
            id=str(data.get("id", "")),
            name=data["name"],
            name_short=data.get("name_short") or "",
            address=data.get("address") or "",
            total_cap=int(data.get("total_cap") or 0),
            initial_cap=int(data.get("initial_cap") or 0),
            par_value=int(data.get("par_value") or 0),
            payment_schedule=data.get("payment_schedule") or "lump_sum",
            duration=int(duration) if duration else None,
            closed_at=_parse_date(data.get("closed_at")),
        )


@dataclass(frozen=True)
class RenderContext:
    """
    Everything a template render reads.

    Attributes:
        fund: Fund facts
        members: All fund members
        generated_at: Timestamp used for today/year/month/day
        preview: Mark substituted and unresolved values with style markers
        current_member: Member bound for a repeating page
        sample: Blank sample form render (no member bound); a bound member
            without any data renders blank as well
        extra: Caller-supplied variables; they override computed ones
    """

    fund: FundFacts
    members: tuple[Member, ...] = ()
    generated_at: datetime = field(default_factory=datetime.now)
    preview: bool = False
    current_member: Optional[Member] = None
    sample: bool = False
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_blank_sample(self) -> bool:
        """Blank form render: an explicit sample, or a bound member with no data."""
        if self.current_member is not None:
            return self.current_member.is_empty
        return self.sample

    @property
    def gp_members(self) -> list[Member]:
        return [m for m in self.members if m.is_gp]

    @property
    def lp_members(self) -> list[Member]:
        return [m for m in self.members if not m.is_gp]

    def with_entity(self, member: Member) -> "RenderContext":
        """New context with member bound as the current entity."""
        return replace(self, current_member=member, sample=False)

    def blank_sample(self) -> "RenderContext":
        """New context for a blank sample form: no member, blank placeholders."""
        return replace(self, current_member=None, sample=True)

    @cached_property
    def _variables(self) -> dict[str, Any]:
        fund = self.fund
        gps = self.gp_members
        first_gp = gps[0] if gps else None
        when = self.generated_at

        values: dict[str, Any] = {
            "fundName": fund.name,
            "fundNameShort": fund.name_short or fund.name,
            "fundAddress": fund.address,
            "parValueKor": number_to_korean(fund.par_value) if fund.par_value else "",
            "parValueComma": format_comma(fund.par_value),
            "parValue": number_to_korean(fund.par_value) if fund.par_value else "",
            "totalCapKor": number_to_korean(fund.total_cap) if fund.total_cap else "",
            "totalCapComma": format_comma(fund.total_cap),
            "duration": str(fund.duration) if fund.duration else DEFAULT_DURATION,
            "startDate": format_korean_date(fund.closed_at),
            "userName": ", ".join(m.name for m in gps),
            "userEmail": first_gp.email if first_gp else "",
            "userPhone": first_gp.phone if first_gp else "",
            "userAddress": fund.address,
            "coGP": "공동" if len(gps) > 1 else "",
            "gpList": ", ".join(m.name for m in gps),
            "lpList": ", ".join(m.name for m in self.lp_members),
            "today": format_korean_date(when.date()),
            "year": str(when.year),
            "month": str(when.month),
            "day": str(when.day),
        }

        member = self.current_member
        if member is not None:
            values.update({
                "name": member.name,
                "address": member.address,
                "shares": "" if member.is_empty else str(member.total_units or 0),
                "amount": format_comma(member.total_amount),
                "contact": member.phone,
                "birthDate": member.birth_date,
                "businessNumber": member.business_number,
                "birthDateOrBusinessNumber": (
                    member.business_number if member.is_corporate else member.birth_date
                ),
            })

        values.update(self.extra)
        return values

    def variables(self) -> dict[str, Any]:
        """Variable map for ${name} substitution."""
        return dict(self._variables)

    def resolve(self, text: Optional[str]) -> str:
        """Render template text against this context."""
        return render_template_string(
            text,
            self._variables,
            preview=self.preview,
            sample=self.is_blank_sample,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], preview: bool = False) -> "RenderContext":
        """
        Build a context from plain data (CLI input, stored generation context).

        Expected keys: fund, members, generated_at (ISO, optional), variables (optional).
        """
        if "fund" not in data:
            raise ValidationError("Context has no fund", field_name="fund")
        generated_at = data.get("generated_at")
        return cls(
            fund=FundFacts.from_dict(data["fund"]),
            members=tuple(Member.from_dict(m) for m in data.get("members") or []),
            generated_at=datetime.fromisoformat(generated_at) if generated_at else datetime.now(),
            preview=preview,
            extra=dict(data.get("variables") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Snapshot stored as a document's generation context."""
        fund = self.fund
        return {
            "fund": {
                "id": fund.id,
                "name": fund.name,
                "name_short": fund.name_short,
                "address": fund.address,
                "total_cap": fund.total_cap,
                "initial_cap": fund.initial_cap,
                "par_value": fund.par_value,
                "payment_schedule": fund.payment_schedule,
                "duration": fund.duration,
                "closed_at": fund.closed_at.isoformat() if fund.closed_at else None,
            },
            "members": [
                {
                    "id": m.id,
                    "name": m.name,
                    "member_type": m.member_type,
                    "entity_type": m.entity_type,
                    "address": m.address,
                    "phone": m.phone,
                    "email": m.email,
                    "birth_date": m.birth_date,
                    "business_number": m.business_number,
                    "total_units": m.total_units,
                    "total_amount": m.total_amount,
                    "initial_amount": m.initial_amount,
                }
                for m in self.members
            ],
            "generated_at": self.generated_at.isoformat(),
            "variables": dict(self.extra),
        }

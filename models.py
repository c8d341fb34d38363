"""
Record types for cards, ledger entries, the keyword event and guestbooks.

Each dataclass owns its defaulting rules: rows come in through ``from_row``
with every optional field filled, and ``to_dict`` emits the stored field
names (``isDefaultOpen``, ``ownerMbti``, ``prizeMsg`` ...) that existing
front ends read.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

BUILTIN_SECTIONS = ("links", "history", "projects")
CUSTOM_PREFIX = "custom_"

DEFAULT_SECTION_TITLES = {
    "profile": "Profile",
    "links": "Links",
    "history": "History",
    "projects": "Projects",
}
DEFAULT_SECTION_OPEN = {"profile": True, "history": True}
NEW_SECTION_TITLE = "New section"

LINK_TYPES = ("mobile", "email", "insta", "other")

DEFAULT_COLORS = {"background": "#ffffff", "theme": "#1a237e"}
FEATURE_FLAGS = ("quiz", "synergy", "translation")

CLAIM_PENDING = "pending"
CLAIM_APPROVED = "approved"
CLAIM_REJECTED = "rejected"


def _loads(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        value = json.loads(raw)
    except (ValueError, TypeError):
        return default
    return value if isinstance(value, type(default)) else default


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _clean_items(items: Any, keys: tuple[str, ...]) -> list[dict]:
    """Keep only dict items, restricted to ``keys`` with string values."""
    if not isinstance(items, list):
        return []
    return [{k: _str(item.get(k)) for k in keys} for item in items if isinstance(item, dict)]


def clean_links(items: Any) -> list[dict]:
    links = _clean_items(items, ("type", "value"))
    for link in links:
        if link["type"] not in LINK_TYPES:
            link["type"] = "other"
    return links


def clean_history(items: Any) -> list[dict]:
    return _clean_items(items, ("date", "title", "desc"))


def clean_projects(items: Any) -> list[dict]:
    return _clean_items(items, ("title", "link", "desc"))


def clean_titled(items: Any) -> list[dict]:
    return _clean_items(items, ("title", "desc"))


def clean_custom_sections(items: Any) -> list[dict]:
    if not isinstance(items, list):
        return []
    sections = []
    for item in items:
        if not isinstance(item, dict):
            continue
        sec_id = _str(item.get("id"))
        if not sec_id.startswith(CUSTOM_PREFIX):
            continue
        sections.append({
            "id": sec_id,
            "title": _str(item.get("title")) or NEW_SECTION_TITLE,
            "items": clean_titled(item.get("items")),
        })
    return sections


def clean_colors(value: Any) -> dict:
    colors = dict(DEFAULT_COLORS)
    if isinstance(value, dict):
        for key in DEFAULT_COLORS:
            if value.get(key):
                colors[key] = _str(value[key])
    return colors


def clean_features(value: Any) -> dict:
    value = value if isinstance(value, dict) else {}
    return {flag: value.get(flag) is True for flag in FEATURE_FLAGS}


def clean_section_config(value: Any) -> dict:
    if not isinstance(value, dict):
        return {}
    config = {}
    for sec_id, conf in value.items():
        if not isinstance(conf, dict):
            continue
        entry: dict[str, Any] = {}
        if conf.get("title"):
            entry["title"] = _str(conf["title"])
        if isinstance(conf.get("isDefaultOpen"), bool):
            entry["isDefaultOpen"] = conf["isDefaultOpen"]
        config[_str(sec_id)] = entry
    return config


def section_type(sec_id: str) -> str:
    if sec_id == "profile":
        return "profile"
    if sec_id in BUILTIN_SECTIONS:
        return sec_id
    return "custom"


@dataclass
class Card:
    """A public business card and its owner-editable content."""

    id: str
    name: str
    owner_email: str = ""
    role: str = ""
    intro: str = ""
    profile_img: str = ""
    credits: int = 0
    enable_ai: bool = False
    owner_mbti: str = ""
    tmi_data: str = ""
    colors: dict = field(default_factory=lambda: dict(DEFAULT_COLORS))
    features: dict = field(default_factory=lambda: clean_features({}))
    section_order: list[str] = field(default_factory=list)
    section_config: dict = field(default_factory=dict)
    links: list[dict] = field(default_factory=list)
    history: list[dict] = field(default_factory=list)
    projects: list[dict] = field(default_factory=list)
    custom_sections: list[dict] = field(default_factory=list)
    certifications: list[dict] = field(default_factory=list)
    awards: list[dict] = field(default_factory=list)
    research: list[dict] = field(default_factory=list)
    created_at: str = ""

    @classmethod
    def from_row(cls, row) -> Card:
        return cls(
            id=row["id"],
            name=row["name"],
            owner_email=row["owner_email"],
            role=row["role"],
            intro=row["intro"],
            profile_img=row["profile_img"],
            credits=row["credits"],
            enable_ai=bool(row["enable_ai"]),
            owner_mbti=row["owner_mbti"],
            tmi_data=row["tmi_data"],
            colors=clean_colors(_loads(row["colors"], {})),
            features=clean_features(_loads(row["features"], {})),
            section_order=[s for s in _loads(row["section_order"], []) if isinstance(s, str)],
            section_config=clean_section_config(_loads(row["section_config"], {})),
            links=clean_links(_loads(row["links"], [])),
            history=clean_history(_loads(row["history"], [])),
            projects=clean_projects(_loads(row["projects"], [])),
            custom_sections=clean_custom_sections(_loads(row["custom_sections"], [])),
            certifications=clean_titled(_loads(row["certifications"], [])),
            awards=clean_titled(_loads(row["awards"], [])),
            research=clean_titled(_loads(row["research"], [])),
            created_at=row["created_at"],
        )

    def feature_enabled(self, feature: str) -> bool:
        """AI add-ons need the AI plan; chat only needs the plan itself."""
        if not self.enable_ai:
            return False
        if feature == "chat":
            return True
        return bool(self.features.get(feature))

    def resolved_sections(self) -> list[dict]:
        """Ordered, fully-defaulted section list for rendering."""
        custom_titles = {c["id"]: c["title"] for c in self.custom_sections}
        order = [s for s in self.section_order if s != "profile"]
        if not order:
            order = list(BUILTIN_SECTIONS) + [c["id"] for c in self.custom_sections]

        sections = []
        for sec_id in ["profile"] + order:
            kind = section_type(sec_id)
            if kind == "custom" and sec_id not in custom_titles:
                continue
            conf = self.section_config.get(sec_id, {})
            default_title = DEFAULT_SECTION_TITLES.get(sec_id) or custom_titles.get(sec_id) or NEW_SECTION_TITLE
            sections.append({
                "id": sec_id,
                "type": kind,
                "title": conf.get("title") or default_title,
                "isDefaultOpen": conf.get("isDefaultOpen", DEFAULT_SECTION_OPEN.get(sec_id, False)),
            })
        return sections

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_email": self.owner_email,
            "role": self.role,
            "intro": self.intro,
            "profile_img": self.profile_img,
            "credits": self.credits,
            "enable_ai": self.enable_ai,
            "ownerMbti": self.owner_mbti,
            "tmi_data": self.tmi_data,
            "colors": self.colors,
            "features": self.features,
            "section_order": self.section_order,
            "section_config": self.section_config,
            "links": self.links,
            "history": self.history,
            "projects": self.projects,
            "custom_sections": self.custom_sections,
            "certifications": self.certifications,
            "awards": self.awards,
            "research": self.research,
        }


@dataclass
class LedgerEntry:
    id: int
    type: str  # "usage" | "grant" | "event"
    amount: int
    reason: str
    balance_after: int
    date: str

    @classmethod
    def from_row(cls, row) -> LedgerEntry:
        return cls(
            id=row["id"],
            type=row["type"],
            amount=row["amount"],
            reason=row["reason"],
            balance_after=row["balance_after"],
            date=row["date"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "amount": self.amount,
            "reason": self.reason,
            "balance_after": self.balance_after,
            "date": self.date,
        }


@dataclass
class EventConfig:
    is_active: bool = False
    keyword: str = ""
    prize_msg: str = ""
    min_token: int = 0
    max_token: int = 0

    @classmethod
    def from_row(cls, row) -> EventConfig:
        if row is None:
            return cls()
        return cls(
            is_active=bool(row["is_active"]),
            keyword=row["keyword"],
            prize_msg=row["prize_msg"],
            min_token=row["min_token"],
            max_token=row["max_token"],
        )

    @classmethod
    def from_dict(cls, data: dict) -> EventConfig:
        """Build from request JSON; raises ValueError on bad bounds."""
        try:
            min_token = int(data.get("minToken", 0) or 0)
            max_token = int(data.get("maxToken", 0) or 0)
        except (TypeError, ValueError):
            raise ValueError("minToken and maxToken must be integers")
        config = cls(
            is_active=data.get("isActive") is True,
            keyword=_str(data.get("keyword")).strip(),
            prize_msg=_str(data.get("prizeMsg")),
            min_token=min_token,
            max_token=max_token,
        )
        if min_token < 0 or max_token < 0:
            raise ValueError("Token bounds must not be negative")
        if min_token > max_token:
            raise ValueError("minToken must not exceed maxToken")
        if config.is_active and not config.keyword:
            raise ValueError("An active event needs a keyword")
        return config

    def to_dict(self) -> dict:
        return {
            "isActive": self.is_active,
            "keyword": self.keyword,
            "prizeMsg": self.prize_msg,
            "minToken": self.min_token,
            "maxToken": self.max_token,
        }


@dataclass
class EventClaim:
    id: int
    user_id: str
    user_name: str
    keyword: str
    amount: int
    status: str = CLAIM_PENDING
    claimed_at: str = ""
    approved_at: str = ""

    @classmethod
    def from_row(cls, row) -> EventClaim:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            user_name=row["user_name"],
            keyword=row["keyword"],
            amount=row["amount"],
            status=row["status"],
            claimed_at=row["claimed_at"],
            approved_at=row["approved_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "keyword": self.keyword,
            "amount": self.amount,
            "status": self.status,
            "claimedAt": self.claimed_at,
            "approvedAt": self.approved_at or None,
        }


@dataclass
class GuestbookEntry:
    id: int
    to_user: str
    name: str
    content: str
    created_at: str

    @classmethod
    def from_row(cls, row) -> GuestbookEntry:
        return cls(
            id=row["id"],
            to_user=row["to_user"],
            name=row["name"],
            content=row["content"],
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "to_user": self.to_user,
            "name": self.name,
            "content": self.content,
            "createdAt": self.created_at,
        }

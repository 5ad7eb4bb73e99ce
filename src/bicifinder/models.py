"""
Data models shared by the acquisition pipeline.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

RECOVERED_STATUS = "localizada"

# Canonical record fields that per-field filters apply to.
FILTERABLE_FIELDS = ("brand", "model", "color", "serial_number", "registration_number", "city", "province")

# Fields the general search term is matched against.
SEARCH_TERM_FIELDS = ("brand", "model", "color", "city", "province", "description")


@dataclass(slots=True, frozen=True)
class Bicycle:
    """A recovered bicycle in canonical form."""

    identifier: str
    brand: str = ""
    model: str = ""
    color: str = ""
    serial_number: Optional[str] = None
    registration_number: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    full_image_url: Optional[str] = None
    status: str = RECOVERED_STATUS
    theft_date: Optional[str] = None
    theft_location: Optional[str] = None
    recovery_date: Optional[str] = None
    recovery_location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Continuation(str, Enum):
    """Whether further pagination is warranted after a page."""

    MORE = "more"
    NO_MORE = "no_more"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class PageResult:
    """Records recovered from a single page plus its continuation signal."""

    records: List[Bicycle] = field(default_factory=list)
    continuation: Continuation = Continuation.UNKNOWN
    status: Optional[int] = None

    @classmethod
    def empty(cls, status: Optional[int] = None) -> PageResult:
        return cls(records=[], continuation=Continuation.UNKNOWN, status=status)


@dataclass(slots=True, frozen=True)
class VocabularyEntry:
    id: Any
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label}


class SearchFilters(BaseModel):
    """
    Optional filter per canonical field plus a general free-text term.

    Accepts English names as well as the registry's own parameter names
    (``marca``, ``numeroSerie``, ``searchTerm`` ...). Blank values count as absent.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    brand: Optional[str] = Field(default=None, max_length=200, validation_alias=AliasChoices("brand", "marca"))
    model: Optional[str] = Field(default=None, max_length=200, validation_alias=AliasChoices("model", "modelo"))
    color: Optional[str] = Field(default=None, max_length=200, validation_alias=AliasChoices("color", "colour"))
    serial_number: Optional[str] = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("serial_number", "serialNumber", "numeroSerie", "numero_serie"),
    )
    registration_number: Optional[str] = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices(
            "registration_number", "registrationNumber", "numeroMatricula", "numero_matricula"
        ),
    )
    city: Optional[str] = Field(default=None, max_length=200, validation_alias=AliasChoices("city", "ciudad"))
    province: Optional[str] = Field(
        default=None, max_length=200, validation_alias=AliasChoices("province", "provincia")
    )
    search_term: Optional[str] = Field(
        default=None, max_length=200, validation_alias=AliasChoices("search_term", "searchTerm", "q")
    )

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def field_filters(self) -> Dict[str, str]:
        """Per-field filters that are present, keyed by canonical field name."""
        return {name: value for name in FILTERABLE_FIELDS if (value := getattr(self, name))}

    def is_empty(self) -> bool:
        return not self.field_filters() and not self.search_term

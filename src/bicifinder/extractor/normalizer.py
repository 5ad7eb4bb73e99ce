"""
Maps raw upstream records onto the canonical ``Bicycle`` schema.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

import structlog
from selectolax.parser import Node

from ..models import RECOVERED_STATUS, Bicycle
from .locators import Css, Key, Label, Locator, absolutize_url, clean_text, extract_image, first_match

logger = structlog.get_logger(__name__)

DEFAULT_PLACEHOLDER_IMAGE = "/static/placeholder.svg"


def _keys(*names: str) -> Tuple[Key, ...]:
    return tuple(Key(name) for name in names)


# Known aliases per canonical field in structured (JSON) records, most specific first.
KEY_ALIASES: Dict[str, Tuple[Locator, ...]] = {
    "identifier": _keys("id", "idBicicleta", "bicicletaId", "uuid"),
    "brand": _keys("marca", "brand"),
    "model": _keys("modelo", "model"),
    "color": _keys("color", "colour"),
    "serial_number": _keys("numeroSerie", "serialNumber", "numSerie", "numero_serie"),
    "registration_number": _keys("numeroMatricula", "registrationNumber", "numMatricula", "numero_matricula"),
    "city": _keys("ciudad", "city", "localidad"),
    "province": _keys("provincia", "province"),
    "description": _keys("descripcion", "description", "observaciones"),
    "image_url": _keys("imagen", "image", "foto", "imageUrl"),
    "full_image_url": _keys("imagenCompleta", "fullImage", "imagen", "image", "foto"),
    "theft_date": _keys("fechaRobo", "stolenDate", "fecha_robo"),
    "theft_location": _keys("lugarRobo", "stolenLocation", "lugar_robo"),
    "recovery_date": _keys("fechaLocalizacion", "foundDate", "fecha_localizacion"),
    "recovery_location": _keys("lugarLocalizacion", "foundLocation", "lugar_localizacion"),
}

# Candidate locators per canonical field inside a listing card.
HTML_FIELD_LOCATORS: Dict[str, Tuple[Locator, ...]] = {
    "brand": (
        Css(".marca"),
        Css("[data-marca]"),
        Css("[data-marca]", attribute="data-marca"),
        Css(".brand"),
        Label("Marca"),
    ),
    "model": (
        Css(".modelo"),
        Css("[data-modelo]"),
        Css("[data-modelo]", attribute="data-modelo"),
        Css(".model"),
        Label("Modelo"),
    ),
    "color": (Css(".color"), Css("[data-color]"), Css("[data-color]", attribute="data-color"), Label("Color")),
    "serial_number": (
        Css(".numero-serie"),
        Css("[data-numero-serie]"),
        Css(".serial-number"),
        Label("Serie"),
    ),
    "registration_number": (
        Css(".numero-matricula"),
        Css("[data-numero-matricula]"),
        Css(".registration"),
        Label("Matrícula"),
        Label("Matricula"),
    ),
    "city": (Css(".ciudad"), Css("[data-ciudad]"), Css(".city"), Label("Ciudad")),
    "province": (Css(".provincia"), Css("[data-provincia]"), Css(".province"), Label("Provincia")),
    "description": (
        Css(".descripcion"),
        Css("[data-descripcion]"),
        Css(".description"),
        Css("p"),
        Label("Descripción"),
    ),
    "theft_date": (
        Css(".fecha-robo"),
        Css("[data-fecha-robo]"),
        Label("Fecha de robo"),
        Label("Robo"),
    ),
    "theft_location": (Css(".lugar-robo"), Css("[data-lugar-robo]"), Label("Lugar de robo")),
    "recovery_date": (
        Css(".fecha-localizacion"),
        Css("[data-fecha-localizacion]"),
        Label("Fecha de localización"),
        Label("Localización"),
    ),
    "recovery_location": (
        Css(".lugar-localizacion"),
        Css("[data-lugar-localizacion]"),
        Label("Lugar de localización"),
    ),
}

HTML_IMAGE_LOCATORS: Tuple[Locator, ...] = (
    Css("img.imagen"),
    Css("img.foto"),
    Css("img.bicicleta"),
    Css("img"),
    Css("[data-imagen]", attribute="data-imagen"),
)

HTML_IDENTIFIER_LOCATORS: Tuple[Locator, ...] = (
    Css("[data-id]", attribute="data-id"),
    Css("[data-bicicleta-id]", attribute="data-bicicleta-id"),
)

_TEXT_FIELDS = (
    "brand",
    "model",
    "color",
    "serial_number",
    "registration_number",
    "city",
    "province",
    "description",
    "theft_date",
    "theft_location",
    "recovery_date",
    "recovery_location",
)


def generate_identifier() -> str:
    return f"bike-{uuid4().hex}"


class RecordNormalizer:
    """
    Turns a raw record into exactly one ``Bicycle`` or rejects it.

    Raw input is either a mapping with loosely named keys (``marca`` or
    ``brand`` ...) or a listing card node. The transform is pure apart from
    identifier generation.
    """

    def __init__(
        self,
        origin: str,
        placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE,
        status: str = RECOVERED_STATUS,
    ) -> None:
        self.origin = origin.rstrip("/")
        self.placeholder_image = placeholder_image
        self.status = status

    def extract_fields(self, card: Node) -> Dict[str, str]:
        """Run the field extractor over a listing card, keyed by canonical name."""
        raw = {name: first_match(card, locators) for name, locators in HTML_FIELD_LOCATORS.items()}
        raw["identifier"] = clean_text(card.attributes.get("data-id")) or first_match(card, HTML_IDENTIFIER_LOCATORS)
        image = extract_image(card, HTML_IMAGE_LOCATORS, self.origin)
        raw["image_url"] = image
        raw["full_image_url"] = image
        return raw

    def normalize_mapping(self, item: Mapping[str, Any]) -> Optional[Bicycle]:
        """Coalesce known aliases of a structured record."""
        raw = {name: first_match(item, aliases) for name, aliases in KEY_ALIASES.items()}
        return self._build(raw)

    def normalize_node(self, card: Node) -> Optional[Bicycle]:
        return self._build(self.extract_fields(card))

    def normalize(self, fragment: Any) -> Optional[Bicycle]:
        if isinstance(fragment, Mapping):
            return self.normalize_mapping(fragment)
        return self.normalize_node(fragment)

    def normalize_many(self, fragments: List[Any]) -> List[Bicycle]:
        """Normalize a page worth of fragments, skipping the ones that fail."""
        records: List[Bicycle] = []
        for index, fragment in enumerate(fragments):
            try:
                record = self.normalize(fragment)
            except Exception as e:
                logger.warning("Skipping fragment that failed to normalize", index=index, error=str(e))
                continue
            if record is not None:
                records.append(record)
        return records

    def _image(self, value: str) -> str:
        if not value:
            return self.placeholder_image
        return absolutize_url(value, self.origin)

    def _build(self, raw: Mapping[str, str]) -> Optional[Bicycle]:
        values = {name: raw.get(name, "") for name in _TEXT_FIELDS}
        if not (values["brand"] or values["model"] or values["description"]):
            return None

        image_url = self._image(raw.get("image_url", ""))
        full_image_url = self._image(raw.get("full_image_url", "")) if raw.get("full_image_url") else image_url

        return Bicycle(
            identifier=raw.get("identifier") or generate_identifier(),
            brand=values["brand"],
            model=values["model"],
            color=values["color"],
            serial_number=values["serial_number"] or None,
            registration_number=values["registration_number"] or None,
            city=values["city"] or None,
            province=values["province"] or None,
            description=values["description"] or None,
            image_url=image_url,
            full_image_url=full_image_url,
            status=self.status,
            theft_date=values["theft_date"] or None,
            theft_location=values["theft_location"] or None,
            recovery_date=values["recovery_date"] or None,
            recovery_location=values["recovery_location"] or None,
        )

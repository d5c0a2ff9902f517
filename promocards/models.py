"""Data model for card requests, results and intermediate images."""

import io
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from PIL import Image, UnidentifiedImageError

from .errors import CompositionFailed, ValidationError

DEFAULT_TEMPLATE = "default"

# Accepted spellings of each inbound field, in priority order
HEADER_KEYS = ("header", "Header")
PROMO_KEYS = ("promo", "PromoText", "promo_text")
TEMPLATE_KEYS = ("template", "Template")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _first_value(record: Mapping[str, Any], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


@dataclass(frozen=True)
class CardRequest:
    """One inbound record: header + promo text and an optional template name."""

    header: str
    promo: str
    template: Optional[str] = None

    @property
    def template_name(self) -> str:
        return self.template or DEFAULT_TEMPLATE

    @classmethod
    def from_record(cls, record: Mapping[str, Any], index: Optional[int] = None) -> "CardRequest":
        """Build a request from a loosely-keyed mapping.

        Raises:
            ValidationError: if the record is not a mapping or lacks header/promo
        """
        where = f"Item at index {index}" if index is not None else "Item"
        if not isinstance(record, Mapping):
            raise ValidationError(f"{where} must be an object", index=index)

        header = _first_value(record, HEADER_KEYS)
        if header is None:
            raise ValidationError(f"{where} is missing 'header' field", index=index)
        promo = _first_value(record, PROMO_KEYS)
        if promo is None:
            raise ValidationError(f"{where} is missing 'promo' field", index=index)

        return cls(header=header, promo=promo, template=_first_value(record, TEMPLATE_KEYS))


def normalize_batch(records: Any) -> list[CardRequest]:
    """Validate an inbound batch and normalize every record.

    Raises:
        ValidationError: naming the first offending index
    """
    if not isinstance(records, (list, tuple)):
        raise ValidationError("Request body must be an array of objects")
    return [CardRequest.from_record(record, index=i) for i, record in enumerate(records)]


@dataclass(frozen=True)
class TemplateConfig:
    """A named template and its renderer-specific remote reference."""

    name: str
    remote_ref: str


@dataclass(frozen=True)
class RasterImage:
    """Encoded raster bytes plus measured dimensions. Never mutated."""

    data: bytes = field(repr=False)
    width: int
    height: int
    format: str = "PNG"

    @classmethod
    def from_bytes(cls, data: bytes) -> "RasterImage":
        """Measure an encoded image.

        Raises:
            CompositionFailed: if the bytes are not a decodable image
        """
        if not data:
            raise CompositionFailed("Image data is empty")
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                fmt = img.format or "PNG"
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise CompositionFailed(f"Could not decode image: {e}", cause=e) from e
        return cls(data=bytes(data), width=width, height=height, format=fmt)

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


@dataclass
class CardResult:
    """Outcome of rendering one card. Exactly one of image_url/error is set."""

    success: bool
    header: str
    promo: str
    template: str
    image_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    timestamp: str = field(default_factory=_utc_now_iso)

    @classmethod
    def ok(cls, request: CardRequest, image_url: str) -> "CardResult":
        return cls(
            success=True,
            header=request.header,
            promo=request.promo,
            template=request.template_name,
            image_url=image_url,
        )

    @classmethod
    def failed(cls, request: CardRequest, error: str, error_kind: str) -> "CardResult":
        return cls(
            success=False,
            header=request.header,
            promo=request.promo,
            template=request.template_name,
            error=error,
            error_kind=error_kind,
        )

    def to_dict(self) -> dict:
        """Convert to the camelCase document consumers read."""
        data = {
            "success": self.success,
            "header": self.header,
            "promo": self.promo,
            "template": self.template,
        }
        if self.success:
            data["imageUrl"] = self.image_url
        else:
            data["error"] = self.error
            data["errorKind"] = self.error_kind
        data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CardResult":
        return cls(
            success=bool(data.get("success")),
            header=data.get("header", ""),
            promo=data.get("promo", ""),
            template=data.get("template", DEFAULT_TEMPLATE),
            image_url=data.get("imageUrl"),
            error=data.get("error"),
            error_kind=data.get("errorKind"),
            timestamp=data.get("timestamp") or _utc_now_iso(),
        )


@dataclass
class BatchResult:
    """Index-aligned results of one batch run."""

    results: list[CardResult] = field(default_factory=list)
    strategy: str = "rest"
    started_at: str = field(default_factory=_utc_now_iso)
    duration_ms: int = 0

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def __getitem__(self, index: int) -> CardResult:
        return self.results[index]

    @property
    def summary(self) -> dict:
        """Counts of successful and failed entries, from a single scan."""
        successful = 0
        failed = 0
        for result in self.results:
            if result.success:
                successful += 1
            else:
                failed += 1
        return {"total": successful + failed, "successful": successful, "failed": failed}

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "startedAt": self.started_at,
            "durationMs": self.duration_ms,
            "itemsProcessed": len(self.results),
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BatchResult":
        return cls(
            results=[CardResult.from_dict(r) for r in data.get("results", [])],
            strategy=data.get("strategy", "rest"),
            started_at=data.get("startedAt") or _utc_now_iso(),
            duration_ms=int(data.get("durationMs", 0)),
        )

"""
Request payloads -- tagged union stored in the SerializedPayload column.

Three concrete shapes, discriminated by ``kind``:

* ``SingleItemPayload``  -- one SKU movement.
* ``MultiItemPayload``   -- several SKU movements submitted together.
* ``CatalogPayload``     -- a CREATE/MODIFY/RETIRE change to one SKU.

``payload_to_dict`` / ``payload_from_dict`` are the only (de)serializers;
an unknown ``kind`` is a hard error rather than a best-effort guess.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ItemRequest:
    """Caller input for one line of a movement request."""

    sku: str
    quantity: int
    unit_override: str = ""


@dataclass(frozen=True)
class RequestLine:
    """A resolved movement line: catalog name/UoM captured at submission."""

    sku: str
    name: str
    unit_of_measure: str
    quantity: int
    delta: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "name": self.name,
            "uom": self.unit_of_measure,
            "quantity": self.quantity,
            "delta": self.delta,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RequestLine:
        return cls(
            sku=data["sku"],
            name=data.get("name", ""),
            unit_of_measure=data.get("uom", ""),
            quantity=int(data["quantity"]),
            delta=int(data["delta"]),
        )


@dataclass(frozen=True)
class RequestMeta:
    """Free-form context shown on notes and notifications."""

    issued_to: str = ""
    department: str = ""
    business_unit: str = ""
    deployment_location: str = ""
    reactivate_if_retired: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "issued_to": self.issued_to,
            "department": self.department,
            "business_unit": self.business_unit,
            "deployment_location": self.deployment_location,
            "reactivate_if_retired": self.reactivate_if_retired,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RequestMeta:
        data = data or {}
        return cls(
            issued_to=data.get("issued_to", ""),
            department=data.get("department", ""),
            business_unit=data.get("business_unit", ""),
            deployment_location=data.get("deployment_location", ""),
            reactivate_if_retired=bool(data.get("reactivate_if_retired", False)),
        )


@dataclass(frozen=True)
class SingleItemPayload:
    line: RequestLine
    meta: RequestMeta = field(default_factory=RequestMeta)
    unit_override: str = ""
    kind: str = "single"

    @property
    def lines(self) -> tuple[RequestLine, ...]:
        return (self.line,)

    @property
    def unit_overrides(self) -> dict[str, str]:
        return {self.line.sku: self.unit_override} if self.unit_override else {}


@dataclass(frozen=True)
class MultiItemPayload:
    items: tuple[RequestLine, ...]
    meta: RequestMeta = field(default_factory=RequestMeta)
    overrides: tuple[tuple[str, str], ...] = ()
    kind: str = "multi"

    @property
    def lines(self) -> tuple[RequestLine, ...]:
        return self.items

    @property
    def unit_overrides(self) -> dict[str, str]:
        return dict(self.overrides)


@dataclass(frozen=True)
class CatalogPayload:
    sku: str
    name: str = ""
    fields: tuple[tuple[str, Any], ...] = ()
    change_summary: str = ""
    kind: str = "catalog"

    @property
    def lines(self) -> tuple[RequestLine, ...]:
        return ()


RequestPayload = Union[SingleItemPayload, MultiItemPayload, CatalogPayload]


def build_movement_payload(
    lines: list[RequestLine],
    meta: RequestMeta,
    unit_overrides: dict[str, str] | None = None,
) -> SingleItemPayload | MultiItemPayload:
    """One line becomes a SingleItemPayload, more become a MultiItemPayload."""
    unit_overrides = {k: v for k, v in (unit_overrides or {}).items() if v}
    if len(lines) == 1:
        return SingleItemPayload(
            line=lines[0],
            meta=meta,
            unit_override=unit_overrides.get(lines[0].sku, ""),
        )
    return MultiItemPayload(
        items=tuple(lines),
        meta=meta,
        overrides=tuple(sorted(unit_overrides.items())),
    )


def payload_to_dict(payload: RequestPayload) -> dict[str, Any]:
    if isinstance(payload, SingleItemPayload):
        return {
            "kind": payload.kind,
            **payload.line.to_dict(),
            "unit_override": payload.unit_override,
            "meta": payload.meta.to_dict(),
        }
    if isinstance(payload, MultiItemPayload):
        return {
            "kind": payload.kind,
            "items": [line.to_dict() for line in payload.items],
            "unit_overrides": dict(payload.overrides),
            "meta": payload.meta.to_dict(),
        }
    if isinstance(payload, CatalogPayload):
        return {
            "kind": payload.kind,
            "sku": payload.sku,
            "name": payload.name,
            "fields": dict(payload.fields),
            "change_summary": payload.change_summary,
        }
    raise TypeError(f"Unsupported payload type: {type(payload).__name__}")


def payload_from_dict(data: dict[str, Any]) -> RequestPayload:
    kind = data.get("kind")
    if kind == "single":
        return SingleItemPayload(
            line=RequestLine.from_dict(data),
            meta=RequestMeta.from_dict(data.get("meta")),
            unit_override=data.get("unit_override", ""),
        )
    if kind == "multi":
        return MultiItemPayload(
            items=tuple(RequestLine.from_dict(d) for d in data.get("items", [])),
            meta=RequestMeta.from_dict(data.get("meta")),
            overrides=tuple(sorted((data.get("unit_overrides") or {}).items())),
        )
    if kind == "catalog":
        return CatalogPayload(
            sku=data["sku"],
            name=data.get("name", ""),
            fields=tuple(sorted((data.get("fields") or {}).items())),
            change_summary=data.get("change_summary", ""),
        )
    raise ValueError(f"Unknown payload kind: {kind!r}")

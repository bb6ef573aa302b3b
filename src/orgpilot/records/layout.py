"""
Layout Resolver.

Turns an entity's fields and whatever page layouts the server returned into
a sectioned rendering plan, synthesizing a two-column default layout when the
server has none or the layout fetch fails.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from ..config import DEFAULT_LAYOUT_ID, DEFAULT_LAYOUT_NAME
from ..core.types import (
    ATTRIBUTES_KEY,
    LayoutComponent,
    LayoutItem,
    LayoutRow,
    LayoutSection,
    PageLayout,
    Record,
    SField,
    SObject,
)
from ..services.base import LayoutService

logger = logging.getLogger(__name__)


class _NoValue:
    """Marker for a field that is on the layout but has no value in the record."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_VALUE"

    def __bool__(self) -> bool:
        return False


NO_VALUE = _NoValue()
NO_VALUE_DISPLAY = "--"


# =============================================================================
# Default Layout Synthesis
# =============================================================================


def _default_sort_key(f: SField):
    if f.api_name == "Name":
        return (0, "")
    if f.api_name == "Id":
        return (1, "")
    return (2, f.label.casefold())


def sort_default_fields(fields: Sequence[SField]) -> List[SField]:
    """Name first, Id second, the rest alphabetical by label."""
    return sorted(fields, key=_default_sort_key)


def build_default_layout(entity: SObject) -> PageLayout:
    """
    Synthesize the fallback layout for an entity.

    One section titled ``<label> Details`` holding every field in rows of
    two; the last row may hold one.
    """
    items = [
        LayoutItem(
            label=f.label,
            layout_components=[LayoutComponent(type="Field", value=f.api_name)],
        )
        for f in sort_default_fields(entity.fields)
    ]
    rows = [LayoutRow(layout_items=items[i:i + 2]) for i in range(0, len(items), 2)]

    return PageLayout(
        id=DEFAULT_LAYOUT_ID,
        name=DEFAULT_LAYOUT_NAME,
        detail_layout_sections=[
            LayoutSection(
                heading=f"{entity.label} Details",
                use_heading=True,
                layout_rows=rows,
                columns=2,
            )
        ],
    )


def fields_from_record(record: Record) -> List[SField]:
    """Derive a field list from a record's keys when no describe is available."""
    return [
        SField(api_name=key, label=key, type="string")
        for key in record
        if key != ATTRIBUTES_KEY
    ]


def is_default_layout(layout: PageLayout) -> bool:
    return layout.id == DEFAULT_LAYOUT_ID


# =============================================================================
# Resolution
# =============================================================================


def resolve_layout(entity: SObject, server_layouts: Optional[Sequence[PageLayout]]) -> PageLayout:
    """Pick the active layout: the server's first usable one, else the default."""
    return select_layouts(entity, server_layouts).active


@dataclass
class LayoutSelection:
    """
    Resolved layouts for one record view plus the active choice.

    Switching is a pure selection; nothing is re-fetched.
    """
    layouts: List[PageLayout]
    active_id: str

    @property
    def active(self) -> PageLayout:
        for layout in self.layouts:
            if layout.id == self.active_id:
                return layout
        return self.layouts[0]

    @property
    def is_synthetic(self) -> bool:
        return is_default_layout(self.active)

    def select(self, layout_id: str) -> PageLayout:
        if not any(layout.id == layout_id for layout in self.layouts):
            raise KeyError(f"Unknown layout: {layout_id}")
        self.active_id = layout_id
        return self.active


def select_layouts(entity: SObject, server_layouts: Optional[Sequence[PageLayout]]) -> LayoutSelection:
    usable = [layout for layout in server_layouts or [] if not layout.is_empty]
    if not usable:
        logger.info(f"No layouts returned for {entity.api_name}, generating default")
        usable = [build_default_layout(entity)]
    return LayoutSelection(layouts=usable, active_id=usable[0].id)


class LayoutResolver:
    """Fetches server layouts and degrades to the synthetic default on any failure."""

    def __init__(self, layout_service: LayoutService):
        self._layout_service = layout_service

    async def resolve(self, entity: SObject) -> LayoutSelection:
        try:
            server_layouts = await self._layout_service.fetch_layouts(entity.api_name)
        except Exception as e:
            logger.warning(f"Layout fetch failed for {entity.api_name}, using default: {e}")
            server_layouts = []
        return select_layouts(entity, server_layouts)


# =============================================================================
# Rendering Plan
# =============================================================================


@dataclass
class FieldCell:
    label: str
    api_name: str
    value: object

    @property
    def has_value(self) -> bool:
        return self.value is not NO_VALUE

    @property
    def display(self) -> str:
        if self.value is NO_VALUE:
            return NO_VALUE_DISPLAY
        if isinstance(self.value, (dict, list)):
            return json.dumps(self.value)
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)


@dataclass
class SpacerCell:
    """Blank cell that keeps its grid position."""


Cell = Union[FieldCell, SpacerCell]


@dataclass
class RenderedRow:
    cells: List[Cell] = field(default_factory=list)


@dataclass
class RenderedSection:
    heading: Optional[str]
    columns: int
    rows: List[RenderedRow] = field(default_factory=list)


def render_item(item: LayoutItem, record: Record) -> Optional[Cell]:
    """
    Render one layout item against a record.

    Placeholders and component-less items become spacers; items whose
    components include no field render nothing.
    """
    if item.placeholder or not item.layout_components:
        return SpacerCell()

    component = item.field_component()
    if component is None:
        return None

    value = record.get(component.value, NO_VALUE)
    if value is None:
        value = NO_VALUE
    return FieldCell(label=item.label, api_name=component.value, value=value)


def render_layout(layout: PageLayout, record: Record) -> List[RenderedSection]:
    sections = []
    for section in layout.detail_layout_sections:
        rendered = RenderedSection(
            heading=section.heading if section.use_heading else None,
            columns=section.columns,
        )
        for row in section.layout_rows:
            cells = [c for c in (render_item(item, record) for item in row.layout_items) if c is not None]
            rendered.rows.append(RenderedRow(cells=cells))
        sections.append(rendered)
    return sections

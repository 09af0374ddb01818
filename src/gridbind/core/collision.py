from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

from .geometry import Rectangle

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..host.base import GridDocument

logger = logging.getLogger(__name__)

OccupantKind = Literal["table", "pivot_table", "chart"]
InsertionAxis = Literal["rows", "columns"]


class OccupyingObject(BaseModel):
    """A host object covering part of a sheet (table, pivot table or chart).

    For pivot tables ``regions`` holds, in order, table range 1, table range 2,
    the page (filter) range and the data body range; a region the pivot table
    does not have is ``None``.
    """

    kind: OccupantKind
    bounds: Rectangle
    name: str | None = None
    tag: str | None = None
    regions: list[Rectangle | None] = Field(default_factory=list)


class InsertionPlan(BaseModel):
    """Whole rows or whole columns to insert to clear a collision."""

    sheet: str
    axis: InsertionAxis
    count: int = Field(..., ge=1)
    at_row: int = Field(..., ge=1)
    at_column: int = Field(..., ge=1)


def find_first_intersection(
    target: Rectangle,
    occupants: Iterable[OccupyingObject],
    exclude_tag: str | None = None,
) -> Rectangle | None:
    """Return the overlap between ``target`` and the first colliding occupant.

    Occupants are scanned in the given order and the first hit wins. An
    occupant whose tag equals a non-empty ``exclude_tag`` is skipped.

    Args:
        target: Rectangle a binding needs.
        occupants: Objects on the target's sheet, in host enumeration order.
        exclude_tag: Tag of the object being refreshed.

    Returns:
        Intersecting rectangle, or ``None`` when nothing collides.
    """
    if target.is_empty:
        return None
    for occupant in occupants:
        if exclude_tag and occupant.tag == exclude_tag:
            continue
        if occupant.bounds.sheet != target.sheet:
            continue
        if occupant.kind == "pivot_table" and occupant.regions:
            hit = _pivot_intersection(target, occupant.regions)
        else:
            hit = occupant.bounds.intersect(target)
        if hit is not None and not hit.is_empty:
            logger.debug(
                "%s %s intersects %s at %s",
                occupant.kind,
                occupant.name,
                target,
                hit,
            )
            return hit
    return None


def _pivot_intersection(
    target: Rectangle, regions: list[Rectangle | None]
) -> Rectangle | None:
    """Intersect only when every pivot region overlaps the target."""
    hit: Rectangle | None = None
    for region in regions:
        if region is None:
            return None
        hit = region.intersect(target)
        if hit is None:
            return None
    return hit


def resolve(target: Rectangle, intersection: Rectangle) -> InsertionPlan:
    """Decide how many whole rows or columns to insert to clear a collision.

    A narrow-and-tall overlap is cleared with columns, anything else with
    rows. One more unit than the overlap is inserted, at the bottom-right
    cell of the requested target.
    """
    if intersection.columns < intersection.rows:
        axis: InsertionAxis = "columns"
        count = intersection.columns + 1
    else:
        axis = "rows"
        count = intersection.rows + 1
    return InsertionPlan(
        sheet=target.sheet,
        axis=axis,
        count=count,
        at_row=target.bottom,
        at_column=target.right,
    )


def apply_plan(document: GridDocument, plan: InsertionPlan) -> None:
    """Insert the planned rows or columns into the document."""
    logger.info(
        "Inserting %d %s at row %d, column %d of '%s' to clear a collision.",
        plan.count,
        plan.axis,
        plan.at_row,
        plan.at_column,
        plan.sheet,
    )
    if plan.axis == "columns":
        document.insert_columns(plan.sheet, plan.at_column, plan.count)
    else:
        document.insert_rows(plan.sheet, plan.at_row, plan.count)

"""Table allocation gateway.

Narrow, restaurant-scoped access to table status, shared with the floor-plan
editor. Status writes here are separate commits from reservation writes.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.models.floor_plan import FloorPlan, Table, TableStatus
from tablebook.services.errors import NotFoundError

logger = structlog.get_logger(__name__)


class TableAllocationGateway:
    """Find tables and flip their operational status"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_floor_plan(self, restaurant_id: UUID, floor_plan_id: UUID) -> FloorPlan:
        floor_plan = await self.db.get(FloorPlan, floor_plan_id)
        if floor_plan is None or floor_plan.restaurant_id != restaurant_id or not floor_plan.is_active:
            raise NotFoundError(
                "Floor plan not found for this restaurant",
                floor_plan_id=str(floor_plan_id),
            )
        return floor_plan

    async def find_table(self, restaurant_id: UUID, floor_plan_id: UUID, table_id: UUID) -> Table:
        """Resolve an active table inside a floor plan owned by the restaurant"""
        await self.get_floor_plan(restaurant_id, floor_plan_id)

        result = await self.db.execute(
            select(Table).where(
                Table.id == table_id,
                Table.floor_plan_id == floor_plan_id,
                Table.is_active == True,  # noqa: E712
            )
        )
        table = result.scalar_one_or_none()
        if table is None:
            raise NotFoundError("Table not found in floor plan", table_id=str(table_id))
        return table

    async def set_table_status(
        self,
        restaurant_id: UUID,
        floor_plan_id: UUID,
        table_id: UUID,
        status: TableStatus,
        only_if: Optional[TableStatus] = None,
    ) -> bool:
        """Set a table's status; with only_if, change it only from that status.

        Returns True when the status was written.
        """
        table = await self.find_table(restaurant_id, floor_plan_id, table_id)
        if only_if is not None and table.status != only_if:
            logger.debug(
                "Table status left unchanged",
                table_number=table.number,
                status=table.status.value,
                expected=only_if.value,
            )
            return False

        previous = table.status
        table.status = status
        await self.db.commit()

        logger.info(
            "Table status changed",
            table_number=table.number,
            from_status=previous.value if previous else None,
            to_status=status.value,
        )
        return True

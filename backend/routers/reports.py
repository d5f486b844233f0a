from fastapi import APIRouter, Depends

from core.auth import current_active_user
from core.dependencies import get_reports
from db.users import User
from schemas.inventory import InventorySummaryOut
from services.reports import InventoryReports

router = APIRouter()


@router.get("/summary", response_model=InventorySummaryOut)
async def inventory_summary(
    user: User = Depends(current_active_user),
    reports: InventoryReports = Depends(get_reports),
):
    """Counts by status, category breakdown, low-stock alerts and recent activity"""
    return await reports.summary(user.id)

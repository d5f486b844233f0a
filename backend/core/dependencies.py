from fastapi import Request

from services.ledger import InventoryLedger
from services.reports import InventoryReports


def get_ledger(request: Request) -> InventoryLedger:
    return request.app.state.ledger


def get_reports(request: Request) -> InventoryReports:
    return request.app.state.reports

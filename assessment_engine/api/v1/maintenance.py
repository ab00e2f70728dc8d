"""
Maintenance endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from assessment_engine.core.datetime_utils import Clock, get_clock
from assessment_engine.core.db_error_handling import handle_db_error
from assessment_engine.models import get_db
from assessment_engine.models.repository import run_maintenance
from assessment_engine.schemas.reports import MaintenanceResponse

router = APIRouter()


@router.post("/sweep", response_model=MaintenanceResponse)
def maintenance_sweep(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Write back effective session statuses and close timed-out attempts.

    The engine has no background loop; an external scheduler is expected to
    call this periodically.
    """
    with handle_db_error(db, "run maintenance sweep"):
        result = run_maintenance(db, clock.now())
        db.commit()
        return result

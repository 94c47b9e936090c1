"""
Security Admin Endpoints - alerts, thresholds, monitoring scheduler,
event queries and lockout management
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...container import SecurityServices
from ...exceptions import BackendUnavailableError, ConfigurationError
from ...monitoring import AlertCondition, SecurityEventFilter, SecurityEventType, Severity
from ...utils.logger import setup_logger
from ...utils.timeutils import utcnow
from ..dependencies import get_services, require_admin

logger = setup_logger(__name__)
router = APIRouter(prefix="/security", tags=["security"], dependencies=[Depends(require_admin)])


# ============================================
# REQUEST/RESPONSE MODELS
# ============================================

class AlertResponse(BaseModel):
    """Active security alert"""
    id: str
    type: str
    severity: Severity
    title: str
    description: str
    count: int
    detected_at: datetime
    ip_address: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    acknowledged: bool
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class AcknowledgeRequest(BaseModel):
    acknowledged_by: str = Field(..., min_length=1)


class ThresholdResponse(BaseModel):
    name: str
    event_type: Optional[SecurityEventType]
    condition: AlertCondition
    threshold: float
    time_window_minutes: int
    severity: Severity
    enabled: bool
    success: Optional[bool] = None

    class Config:
        from_attributes = True


class ThresholdUpdate(BaseModel):
    """Partial threshold update; omitted fields are left unchanged"""
    event_type: Optional[SecurityEventType] = None
    condition: Optional[AlertCondition] = None
    threshold: Optional[float] = Field(default=None, ge=0)
    time_window_minutes: Optional[int] = Field(default=None, gt=0)
    severity: Optional[Severity] = None
    enabled: Optional[bool] = None
    success: Optional[bool] = None


class SchedulerStartRequest(BaseModel):
    interval_minutes: Optional[float] = Field(default=None, gt=0)


class ClearLockoutResponse(BaseModel):
    email: str
    was_locked: bool


def _unavailable(e: BackendUnavailableError) -> HTTPException:
    logger.error(f"[API] {e}")
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


# ============================================
# ALERTS
# ============================================

@router.get("/alerts", response_model=List[AlertResponse])
async def list_alerts(
    include_acknowledged: bool = Query(True),
    services: SecurityServices = Depends(get_services)
):
    """Active alerts, oldest first"""
    return services.alert_engine.get_active_alerts(include_acknowledged=include_acknowledged)


@router.post("/alerts/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(
    alert_id: str,
    body: AcknowledgeRequest,
    services: SecurityServices = Depends(get_services)
):
    if not await services.alert_engine.acknowledge_alert(alert_id, body.acknowledged_by):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Alert {alert_id} not found")
    return services.alert_engine.get_alert(alert_id)


@router.delete("/alerts/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_alert(alert_id: str, services: SecurityServices = Depends(get_services)):
    if not await services.alert_engine.clear_alert(alert_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Alert {alert_id} not found")


@router.post("/alerts/clear-acknowledged")
async def clear_acknowledged_alerts(services: SecurityServices = Depends(get_services)) -> Dict[str, int]:
    return {"cleared": await services.alert_engine.clear_acknowledged()}


# ============================================
# THRESHOLDS
# ============================================

@router.get("/thresholds", response_model=List[ThresholdResponse])
async def list_thresholds(services: SecurityServices = Depends(get_services)):
    return services.alert_engine.get_alert_thresholds()


@router.patch("/thresholds/{name}", response_model=ThresholdResponse)
async def update_threshold(
    name: str,
    body: ThresholdUpdate,
    services: SecurityServices = Depends(get_services)
):
    updates = body.model_dump(exclude_unset=True)
    try:
        updated = services.alert_engine.update_alert_threshold(name, updates)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Threshold {name} not found")

    logger.info(f"[API] Threshold {name} updated", fields=sorted(updates))
    return next(t for t in services.alert_engine.get_alert_thresholds() if t.name == name)


# ============================================
# MONITORING
# ============================================

@router.get("/scheduler")
async def scheduler_status(services: SecurityServices = Depends(get_services)) -> Dict[str, Any]:
    return services.scheduler.get_status()


@router.post("/scheduler/start")
async def start_scheduler(
    body: Optional[SchedulerStartRequest] = None,
    services: SecurityServices = Depends(get_services)
) -> Dict[str, Any]:
    interval = body.interval_minutes if body and body.interval_minutes else services.config.monitoring.interval_minutes
    started = await services.scheduler.start(interval)
    return {"started": started, **services.scheduler.get_status()}


@router.post("/scheduler/stop")
async def stop_scheduler(services: SecurityServices = Depends(get_services)) -> Dict[str, Any]:
    stopped = await services.scheduler.stop()
    return {"stopped": stopped, **services.scheduler.get_status()}


@router.post("/scheduler/run")
async def run_monitoring_cycle(services: SecurityServices = Depends(get_services)) -> Dict[str, Any]:
    result = await services.scheduler.run_now()
    return result.to_dict()


@router.post("/scan")
async def scan(
    window_minutes: int = Query(60, gt=0, le=7 * 24 * 60),
    services: SecurityServices = Depends(get_services)
) -> List[Dict[str, Any]]:
    """On-demand suspicious activity scan (patterns are recorded as events)"""
    try:
        patterns = await services.detector.detect_suspicious_activity(window_minutes)
    except BackendUnavailableError as e:
        raise _unavailable(e)
    return [pattern.to_dict() for pattern in patterns]


# ============================================
# EVENTS
# ============================================

@router.get("/events")
async def list_events(
    email: Optional[str] = None,
    user_id: Optional[str] = None,
    event_type: Optional[SecurityEventType] = None,
    success: Optional[bool] = None,
    ip_address: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    services: SecurityServices = Depends(get_services)
) -> List[Dict[str, Any]]:
    event_filter = SecurityEventFilter(
        email=email,
        user_id=user_id,
        event_type=event_type,
        success=success,
        ip_address=ip_address,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    try:
        events = await services.event_store.query(event_filter)
    except BackendUnavailableError as e:
        raise _unavailable(e)
    return [event.to_dict() for event in events]


@router.get("/report")
async def security_report(
    hours: int = Query(24, gt=0, le=24 * 90),
    services: SecurityServices = Depends(get_services)
) -> Dict[str, Any]:
    end = utcnow()
    try:
        return await services.event_store.generate_report(end - timedelta(hours=hours), end)
    except BackendUnavailableError as e:
        raise _unavailable(e)


# ============================================
# LOCKOUTS
# ============================================

@router.get("/lockouts/{email}")
async def lockout_status(email: str, services: SecurityServices = Depends(get_services)) -> Dict[str, Any]:
    lockout = await services.lockouts.is_locked(email)
    attempts = await services.login_attempts.get_login_attempts(email)
    return {"email": email, **lockout.to_dict(), "failed_attempts": attempts}


@router.delete("/lockouts/{email}", response_model=ClearLockoutResponse)
async def clear_lockout(
    email: str,
    admin_id: Optional[str] = Query(None),
    services: SecurityServices = Depends(get_services)
):
    """Manual admin unlock"""
    was_locked = await services.lockouts.clear_lockout(email, admin_id=admin_id)
    return ClearLockoutResponse(email=email, was_locked=was_locked)

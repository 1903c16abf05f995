"""
Report routes: xlsx downloads per role and the org activity feed.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ...core.security import get_current_user
from ...models.user import User
from ...services.report_service import XLSX_MEDIA_TYPE, report_filename, report_service

router = APIRouter()


def _xlsx(content: bytes, prefix: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={report_filename(prefix)}"},
    )


@router.get("/volunteer")
def volunteer_report(user: User = Depends(get_current_user)):
    return _xlsx(report_service.volunteer_report(user), "my-pickups")


@router.get("/restaurant")
def restaurant_report(user: User = Depends(get_current_user)):
    return _xlsx(report_service.restaurant_report(user), "my-offers")


@router.get("/org-admin/activity")
def org_activity(user: User = Depends(get_current_user)):
    return {"activity": report_service.org_activity(user)}


@router.get("/org-admin")
def org_admin_report(user: User = Depends(get_current_user)):
    return _xlsx(report_service.org_admin_report(user), "org-activity")


@router.get("/master-admin")
def master_admin_report(user: User = Depends(get_current_user)):
    return _xlsx(report_service.master_admin_report(user), "platform-report")

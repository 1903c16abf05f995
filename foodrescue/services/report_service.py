"""
Report service.
Excel activity reports per role, built with pandas and styled with openpyxl,
plus the JSON activity feed for org admins.
"""

import io
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill

from ..core.database import db_manager, utcnow
from ..core.exceptions import PermissionDeniedError
from ..models.base import isoformat_utc
from ..models.offer import OfferStatus
from ..models.user import User, UserRole

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_HEADER_FONT = Font(bold=True, color="FFFFFFFF")
_HEADER_FILL = PatternFill(fill_type="solid", fgColor="FF2E7D32")
_MAX_COLUMN_WIDTH = 50

# Pickups joined with their offers, one row per claim ever made
_PICKUP_ACTIVITY_SQL = """
SELECT
    p.id AS pickup_id,
    p.status AS pickup_status,
    p.created_at AS claimed_at,
    p.completed_at,
    p.volunteer_user_id,
    p.volunteer_name,
    p.volunteer_organization,
    o.id AS offer_id,
    o.title,
    o.food_type,
    o.quantity,
    o.restaurant_name,
    o.restaurant_address
FROM pickups p
JOIN food_offers o ON o.id = p.food_offer_id
"""


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%b %d, %Y %I:%M %p")


def _food_label(row: Dict[str, Any]) -> str:
    return row.get("food_type") or row.get("title") or "N/A"


def _activity_date(row: Dict[str, Any]) -> datetime:
    return row.get("completed_at") or row.get("claimed_at") or datetime.min


class ReportService:
    """Report service"""

    def __init__(self):
        self.db = db_manager

    # Workbooks

    def volunteer_report(self, user: User) -> bytes:
        self._require_role(user, UserRole.VOLUNTEER, "Only volunteers can download this report")
        rows = self._pickup_activity("WHERE p.volunteer_user_id = ?", [user.uid])
        records = [
            {
                "Pickup Date": format_date(r["completed_at"] or r["claimed_at"]),
                "Food Type": _food_label(r),
                "Quantity": r["quantity"],
                "Restaurant": r["restaurant_name"] or "N/A",
                "Status": r["pickup_status"].upper(),
                "Address": r["restaurant_address"] or "N/A",
            }
            for r in rows
        ]
        return self._workbook({"My Pickups": self._frame(records, [
            "Pickup Date", "Food Type", "Quantity", "Restaurant", "Status", "Address",
        ])})

    def restaurant_report(self, user: User) -> bytes:
        self._require_role(user, UserRole.RESTAURANT, "Only restaurants can download this report")
        offers = self.db.execute_query(
            "SELECT * FROM food_offers WHERE restaurant_id = ? ORDER BY created_at DESC",
            [user.profile_id]
        )
        records = [self._offer_record(o) for o in offers]
        return self._workbook({"My Offers": self._frame(records, [
            "Order Placed", "Pickup Date", "Food Type", "Quantity", "Status", "Claimed By",
        ])})

    def org_admin_report(self, user: User) -> bytes:
        self._require_role(user, UserRole.ORG_ADMIN, "Only org admins can download this report")
        volunteers = self._volunteers("WHERE role = ? AND organization_id = ?",
                                      [UserRole.VOLUNTEER.value, user.organization_id])
        activity = self._activity_by_volunteer([v["uid"] for v in volunteers])

        records = []
        for volunteer in volunteers:
            entries = activity.get(volunteer["uid"], [])
            if not entries:
                records.append({
                    "Volunteer Name": volunteer["name"], "Pickup Date": "No pickups yet",
                    "Food Type": "-", "Quantity": "-", "Restaurant": "-", "Status": "-",
                })
                continue
            for idx, r in enumerate(entries):
                records.append({
                    "Volunteer Name": volunteer["name"] if idx == 0 else "",
                    "Pickup Date": format_date(_activity_date(r)),
                    "Food Type": _food_label(r),
                    "Quantity": r["quantity"],
                    "Restaurant": r["restaurant_name"] or "N/A",
                    "Status": r["pickup_status"].upper(),
                })
        sheet = f"{user.organization_name or 'Organization'} Activity"
        return self._workbook({sheet: self._frame(records, [
            "Volunteer Name", "Pickup Date", "Food Type", "Quantity", "Restaurant", "Status",
        ])})

    def master_admin_report(self, user: User) -> bytes:
        """Platform-wide workbook: volunteer activity, restaurant activity and a summary"""
        self._require_role(user, UserRole.MASTER_ADMIN, "Only master admin can download this report")
        volunteers = self._volunteers("WHERE role = ?", [UserRole.VOLUNTEER.value])
        volunteers.sort(key=lambda v: (v["organization_name"] or "No Organization", v["name"] or ""))
        activity = self._activity_by_volunteer([v["uid"] for v in volunteers])

        volunteer_records = []
        current_org = None
        for volunteer in volunteers:
            org_name = volunteer["organization_name"] or "No Organization"
            show_org = org_name != current_org
            current_org = org_name
            label = f"{volunteer['name']} ({org_name})"
            entries = activity.get(volunteer["uid"], [])
            if not entries:
                volunteer_records.append({
                    "Organization": org_name if show_org else "", "Volunteer Name": label,
                    "Pickup Date": "No pickups yet", "Food Type": "-", "Quantity": "-",
                    "Restaurant": "-", "Status": "-",
                })
                continue
            for idx, r in enumerate(entries):
                volunteer_records.append({
                    "Organization": org_name if show_org and idx == 0 else "",
                    "Volunteer Name": label if idx == 0 else "",
                    "Pickup Date": format_date(_activity_date(r)),
                    "Food Type": _food_label(r),
                    "Quantity": r["quantity"],
                    "Restaurant": r["restaurant_name"] or "N/A",
                    "Status": r["pickup_status"].upper(),
                })

        restaurants = self.db.execute_query(
            "SELECT uid, name, profile_id FROM users WHERE role = ? ORDER BY name",
            [UserRole.RESTAURANT.value]
        )
        offers = self.db.execute_query("SELECT * FROM food_offers ORDER BY created_at DESC")
        restaurant_records = []
        for restaurant in restaurants:
            owned = [o for o in offers if o["restaurant_id"] == restaurant["profile_id"]]
            if not owned:
                restaurant_records.append({
                    "Restaurant Name": restaurant["name"], "Order Placed": "No offers yet",
                    "Pickup Date": "-", "Food Type": "-", "Quantity": "-", "Status": "-", "Claimed By": "-",
                })
                continue
            for idx, offer in enumerate(owned):
                record = {"Restaurant Name": restaurant["name"] if idx == 0 else ""}
                record.update(self._offer_record(offer))
                restaurant_records.append(record)

        organization_count = self.db.execute_one("SELECT COUNT(*) AS n FROM organizations")["n"]
        summary = [
            {"Metric": "Total Organizations", "Value": organization_count},
            {"Metric": "Total Volunteers", "Value": len(volunteers)},
            {"Metric": "Total Restaurants", "Value": len(restaurants)},
            {"Metric": "Total Offers Created", "Value": len(offers)},
            {"Metric": "Completed Pickups",
             "Value": sum(1 for o in offers if o["status"] == OfferStatus.COMPLETED.value)},
            {"Metric": "Report Generated", "Value": format_date(utcnow())},
        ]

        return self._workbook({
            "Volunteer Activity": self._frame(volunteer_records, [
                "Organization", "Volunteer Name", "Pickup Date", "Food Type", "Quantity", "Restaurant", "Status",
            ]),
            "Restaurant Activity": self._frame(restaurant_records, [
                "Restaurant Name", "Order Placed", "Pickup Date", "Food Type", "Quantity", "Status", "Claimed By",
            ]),
            "Summary": self._frame(summary, ["Metric", "Value"]),
        })

    # JSON feed

    def org_activity(self, user: User) -> List[Dict[str, Any]]:
        """Claims made by the org's volunteers, most recent first"""
        self._require_role(user, UserRole.ORG_ADMIN, "Only org admins can access this")
        volunteers = self._volunteers("WHERE role = ? AND organization_id = ?",
                                      [UserRole.VOLUNTEER.value, user.organization_id])
        names = {v["uid"]: v["name"] for v in volunteers}
        activity = []
        for uid, entries in self._activity_by_volunteer(list(names)).items():
            for r in entries:
                activity.append({
                    "id": r["offer_id"],
                    "pickupId": r["pickup_id"],
                    "volunteerName": names[uid],
                    "volunteerId": uid,
                    "offerTitle": r["title"] or r["food_type"] or "Food Offer",
                    "restaurantName": r["restaurant_name"] or "Restaurant",
                    "quantity": r["quantity"],
                    "status": r["pickup_status"],
                    "claimedAt": r["claimed_at"],
                    "completedAt": r["completed_at"],
                })
        activity.sort(key=_activity_date_from_feed, reverse=True)
        for entry in activity:
            for key in ("claimedAt", "completedAt"):
                if entry[key] is not None:
                    entry[key] = isoformat_utc(entry[key])
        return activity

    # Helpers

    def _offer_record(self, offer: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "Order Placed": format_date(offer["created_at"]),
            "Pickup Date": format_date(offer["completed_at"] or offer["claimed_at"]),
            "Food Type": _food_label(offer),
            "Quantity": offer["quantity"],
            "Status": offer["status"].upper(),
            "Claimed By": offer["claimed_by_name"] or "Not claimed",
        }

    def _volunteers(self, where: str, params: List[Any]) -> List[Dict[str, Any]]:
        return self.db.execute_query(
            f"SELECT uid, name, organization_name, profile_id FROM users {where} ORDER BY name", params
        )

    def _pickup_activity(self, where: str, params: List[Any]) -> List[Dict[str, Any]]:
        rows = self.db.execute_query(f"{_PICKUP_ACTIVITY_SQL} {where}", params)
        rows.sort(key=_activity_date, reverse=True)
        return rows

    def _activity_by_volunteer(self, uids: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        if not uids:
            return {}
        placeholders = ", ".join("?" for _ in uids)
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for row in self._pickup_activity(f"WHERE p.volunteer_user_id IN ({placeholders})", uids):
            grouped.setdefault(row["volunteer_user_id"], []).append(row)
        return grouped

    @staticmethod
    def _frame(records: List[Dict[str, Any]], columns: List[str]) -> pd.DataFrame:
        return pd.DataFrame(records, columns=columns)

    @staticmethod
    def _workbook(sheets: Dict[str, pd.DataFrame]) -> bytes:
        """Write the frames to an xlsx workbook with a styled header row"""
        excel_buffer = io.BytesIO()
        with pd.ExcelWriter(excel_buffer, engine="openpyxl") as writer:
            for name, frame in sheets.items():
                sheet_name = name[:31]  # Excel's sheet-name limit
                frame.to_excel(writer, sheet_name=sheet_name, index=False)
                worksheet = writer.sheets[sheet_name]
                for cell in worksheet[1]:
                    cell.font = _HEADER_FONT
                    cell.fill = _HEADER_FILL
                    cell.alignment = Alignment(horizontal="center", vertical="center")
                for column in worksheet.columns:
                    longest = max((len(str(c.value)) for c in column if c.value is not None), default=0)
                    worksheet.column_dimensions[column[0].column_letter].width = min(
                        max(longest, 10) + 2, _MAX_COLUMN_WIDTH
                    )
        excel_buffer.seek(0)
        logger.debug("Report written with sheets %s", list(sheets))
        return excel_buffer.getvalue()

    @staticmethod
    def _require_role(user: User, role: UserRole, message: str):
        if user.role != role.value:
            raise PermissionDeniedError(message)


def _activity_date_from_feed(entry: Dict[str, Any]) -> datetime:
    return entry["completedAt"] or entry["claimedAt"] or datetime.min


def report_filename(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}.xlsx"


report_service = ReportService()

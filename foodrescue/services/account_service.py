"""
Account service.
Master admin registration, the admin-driven account hierarchy, logins,
onboarding and suspension.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..core.database import db_manager, log_action, utcnow
from ..core.exceptions import (
    AccountSuspendedError,
    DuplicateEmailError,
    InvalidCredentialsError,
    NotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
    ValidationError,
)
from ..core.security import hash_password, security_manager, verify_password
from ..models.base import new_id
from ..models.user import Organization, User, UserRole, UserStatus
from ..schemas.auth import (
    ChangePasswordRequest,
    CreateOrgAdminRequest,
    CreateRestaurantRequest,
    Credentials,
    LoginRequest,
    NewAccountRequest,
    OnboardingRequest,
)

logger = logging.getLogger(__name__)

_ID_PREFIXES = {
    UserRole.MASTER_ADMIN: "master-admin",
    UserRole.ORG_ADMIN: "org-admin",
    UserRole.RESTAURANT: "restaurant",
    UserRole.VOLUNTEER: "volunteer",
}

_USER_COLUMNS = (
    "uid", "email", "password_hash", "name", "role", "status", "profile_id",
    "organization_id", "organization_name", "address", "created_by", "onboarded_at",
)


class AccountService:
    """Account service"""

    def __init__(self):
        self.db = db_manager

    # Lookups

    def get_user(self, uid: str) -> Optional[User]:
        return User.from_row(self.db.execute_one("SELECT * FROM users WHERE uid = ?", [uid]))

    def require_user(self, uid: str) -> User:
        user = self.get_user(uid)
        if user is None:
            raise UserNotFoundError("User not found")
        return user

    def admin_exists(self) -> bool:
        row = self.db.execute_one(
            "SELECT COUNT(*) AS n FROM users WHERE role = ?", [UserRole.MASTER_ADMIN.value]
        )
        return bool(row and row["n"])

    # Master admin

    def register_master_admin(self, req: NewAccountRequest) -> User:
        """Create the one master admin; later attempts are refused"""
        uid = new_id(_ID_PREFIXES[UserRole.MASTER_ADMIN])
        with self.db.transaction() as conn:
            existing = self.db.fetch_one(
                conn, "SELECT uid FROM users WHERE role = ?", [UserRole.MASTER_ADMIN.value]
            )
            if existing:
                raise PermissionDeniedError("Master admin already registered")
            self._ensure_email_free(conn, req.email)
            self._insert_user(conn, {
                "uid": uid,
                "email": req.email,
                "password_hash": hash_password(req.password),
                "name": req.name,
                "role": UserRole.MASTER_ADMIN.value,
                "status": UserStatus.ACTIVE.value,
                "profile_id": uid,
                "onboarded_at": utcnow(),
            })
            log_action(conn, uid, "master_admin_registered", {"email": req.email})
        logger.info("Master admin registered: %s", uid)
        return self.require_user(uid)

    def master_admin_login(self, req: Credentials) -> Dict[str, Any]:
        row = self.db.execute_one(
            "SELECT * FROM users WHERE role = ?", [UserRole.MASTER_ADMIN.value]
        )
        if row is None:
            raise NotFoundError("No master admin registered")
        if row["email"] != req.email or not verify_password(req.password, row["password_hash"]):
            raise InvalidCredentialsError("Invalid credentials")
        user = User.from_row(row)
        return {"user": user, "token": security_manager.create_access_token(user.uid)}

    def create_org_admin(self, admin: User, req: CreateOrgAdminRequest) -> User:
        """Create an organization together with its pending admin account"""
        self._require_role(admin, UserRole.MASTER_ADMIN, "Only master admin can create organizational admins")
        uid = new_id(_ID_PREFIXES[UserRole.ORG_ADMIN])
        org_id = new_id("org")
        with self.db.transaction() as conn:
            self._ensure_email_free(conn, req.email)
            conn.execute(
                "INSERT INTO organizations(id, name, admin_id, created_by, created_at) VALUES (?, ?, ?, ?, ?)",
                [org_id, req.organization_name, uid, admin.uid, utcnow()]
            )
            self._insert_user(conn, {
                "uid": uid,
                "email": req.email,
                "password_hash": hash_password(req.password),
                "name": req.name,
                "role": UserRole.ORG_ADMIN.value,
                "status": UserStatus.PENDING_ONBOARDING.value,
                "organization_id": org_id,
                "organization_name": req.organization_name,
                "created_by": admin.uid,
            })
            log_action(conn, admin.uid, "org_admin_created", {"uid": uid, "organization_id": org_id})
        logger.info("Org admin %s created for organization %s", uid, org_id)
        return self.require_user(uid)

    def create_restaurant(self, admin: User, req: CreateRestaurantRequest) -> User:
        self._require_role(admin, UserRole.MASTER_ADMIN, "Only master admin can create restaurant accounts")
        uid = new_id(_ID_PREFIXES[UserRole.RESTAURANT])
        with self.db.transaction() as conn:
            self._ensure_email_free(conn, req.email)
            self._insert_user(conn, {
                "uid": uid,
                "email": req.email,
                "password_hash": hash_password(req.password),
                "name": req.name,
                "role": UserRole.RESTAURANT.value,
                "status": UserStatus.PENDING_ONBOARDING.value,
                "address": req.address,
                "created_by": admin.uid,
            })
            log_action(conn, admin.uid, "restaurant_created", {"uid": uid})
        logger.info("Restaurant account %s created", uid)
        return self.require_user(uid)

    def create_volunteer(self, org_admin: User, req: NewAccountRequest) -> User:
        """Org admins enrol volunteers into their own organization"""
        self._require_role(org_admin, UserRole.ORG_ADMIN, "Only organizational admins can create volunteer accounts")
        uid = new_id(_ID_PREFIXES[UserRole.VOLUNTEER])
        with self.db.transaction() as conn:
            self._ensure_email_free(conn, req.email)
            self._insert_user(conn, {
                "uid": uid,
                "email": req.email,
                "password_hash": hash_password(req.password),
                "name": req.name,
                "role": UserRole.VOLUNTEER.value,
                "status": UserStatus.PENDING_ONBOARDING.value,
                "organization_id": org_admin.organization_id,
                "organization_name": org_admin.organization_name,
                "created_by": org_admin.uid,
            })
            log_action(conn, org_admin.uid, "volunteer_created", {"uid": uid})
        logger.info("Volunteer %s created in organization %s", uid, org_admin.organization_id)
        return self.require_user(uid)

    # Listings

    def list_managed_accounts(self, admin: User) -> Dict[str, Any]:
        """Org admins and restaurants, split by onboarding state, plus all organizations"""
        self._require_role(admin, UserRole.MASTER_ADMIN, "Only master admin can view users")
        users = self._list_users(
            "WHERE role IN (?, ?)", [UserRole.ORG_ADMIN.value, UserRole.RESTAURANT.value]
        )
        rows = self.db.execute_query(
            """
            SELECT o.*, (
                SELECT COUNT(*) FROM users u
                WHERE u.organization_id = o.id AND u.role = ?
            ) AS volunteer_count
            FROM organizations o
            ORDER BY o.created_at
            """,
            [UserRole.VOLUNTEER.value]
        )
        return {
            **self._split_by_onboarding(users, "activeUsers", "pendingUsers"),
            "organizations": [Organization.from_row(r) for r in rows],
        }

    def list_org_volunteers(self, org_admin: User) -> Dict[str, Any]:
        self._require_role(org_admin, UserRole.ORG_ADMIN, "Only org admins can view their volunteers")
        users = self._list_users(
            "WHERE role = ? AND organization_id = ?",
            [UserRole.VOLUNTEER.value, org_admin.organization_id]
        )
        organization = Organization.from_row(self.db.execute_one(
            "SELECT * FROM organizations WHERE id = ?", [org_admin.organization_id]
        ))
        return {
            **self._split_by_onboarding(users, "activeVolunteers", "pendingVolunteers"),
            "organization": organization,
        }

    # Sign-in

    def login(self, req: LoginRequest) -> Dict[str, Any]:
        """Restaurant and volunteer sign-in"""
        if req.role not in (UserRole.RESTAURANT.value, UserRole.VOLUNTEER.value):
            raise ValidationError("Invalid role")
        return self._sign_in(
            req, req.role,
            not_found="No account found. Contact admin for registration.",
            suspended="Your account has been suspended. Please contact the administrator.",
        )

    def admin_login(self, req: Credentials) -> Dict[str, Any]:
        """Organizational admin sign-in"""
        return self._sign_in(
            req, UserRole.ORG_ADMIN.value,
            not_found="No organizational admin account found.",
            suspended="Your account has been suspended.",
        )

    def _sign_in(self, req: Credentials, role: str, not_found: str, suspended: str) -> Dict[str, Any]:
        row = self.db.execute_one(
            "SELECT * FROM users WHERE email = ? AND role = ?", [req.email, role]
        )
        if row is None:
            raise NotFoundError(not_found)
        if row["status"] == UserStatus.SUSPENDED.value:
            raise AccountSuspendedError(suspended)
        if not verify_password(req.password, row["password_hash"]):
            raise InvalidCredentialsError("Invalid credentials")
        user = User.from_row(row)
        logger.info("User %s signed in as %s", user.uid, role)
        return {
            "user": user,
            "token": security_manager.create_access_token(user.uid),
            "needsOnboarding": user.status == UserStatus.PENDING_ONBOARDING.value,
        }

    # Self-service

    def complete_onboarding(self, user: User, req: OnboardingRequest) -> User:
        if user.status != UserStatus.PENDING_ONBOARDING.value:
            raise ValidationError("User already onboarded")
        missing = req.missing_fields(user.role)
        if missing:
            if user.role == UserRole.RESTAURANT.value:
                raise ValidationError("Location, food types, and waste frequency are required")
            raise ValidationError("Location is required")

        now = utcnow()
        with self.db.transaction() as conn:
            conn.execute(
                """
                UPDATE users
                SET profile_id = ?, status = ?, onboarding_json = ?, address = ?,
                    onboarded_at = ?, updated_at = ?
                WHERE uid = ?
                """,
                [
                    f"profile-{user.uid}", UserStatus.ACTIVE.value,
                    json.dumps(req.as_profile()), req.location, now, now, user.uid,
                ]
            )
            log_action(conn, user.uid, "onboarding_completed", {"role": user.role})
        logger.info("User %s completed onboarding", user.uid)
        return self.require_user(user.uid)

    def change_password(self, user: User, req: ChangePasswordRequest) -> None:
        with self.db.transaction() as conn:
            row = self.db.fetch_one(conn, "SELECT password_hash FROM users WHERE uid = ?", [user.uid])
            if row is None:
                raise UserNotFoundError("User not found")
            if not verify_password(req.current_password, row["password_hash"]):
                raise InvalidCredentialsError("Current password is incorrect")
            now = utcnow()
            conn.execute(
                "UPDATE users SET password_hash = ?, password_changed_at = ?, updated_at = ? WHERE uid = ?",
                [hash_password(req.new_password), now, now, user.uid]
            )
            log_action(conn, user.uid, "password_changed")

    # Administration

    def suspend_user(self, admin: User, user_id: str) -> User:
        target = self._managed_target(admin, user_id, "suspend")
        now = utcnow()
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE users SET status = ?, suspended_at = ?, suspended_by = ?, updated_at = ? WHERE uid = ?",
                [UserStatus.SUSPENDED.value, now, admin.uid, now, target.uid]
            )
            log_action(conn, admin.uid, "user_suspended", {"uid": target.uid})
        logger.info("User %s suspended by %s", target.uid, admin.uid)
        return self.require_user(target.uid)

    def unsuspend_user(self, admin: User, user_id: str) -> User:
        """Reactivate; accounts that never onboarded go back to pending"""
        target = self._managed_target(admin, user_id, "unsuspend")
        status = UserStatus.ACTIVE if target.onboarded_at else UserStatus.PENDING_ONBOARDING
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE users SET status = ?, suspended_at = NULL, suspended_by = NULL, updated_at = ? WHERE uid = ?",
                [status.value, utcnow(), target.uid]
            )
            log_action(conn, admin.uid, "user_unsuspended", {"uid": target.uid})
        logger.info("User %s reactivated by %s", target.uid, admin.uid)
        return self.require_user(target.uid)

    def delete_user(self, admin: User, user_id: str) -> None:
        """
        Delete an account and what hangs off it: a restaurant's offers (with their
        pickups and conversations), or an org admin's organization and volunteers.
        """
        target = self._managed_target(admin, user_id, "delete")
        with self.db.transaction() as conn:
            if target.role == UserRole.RESTAURANT.value and target.profile_id:
                offer_filter = "SELECT id FROM food_offers WHERE restaurant_id = ?"
                conn.execute(
                    f"DELETE FROM messages WHERE pickup_id IN "
                    f"(SELECT id FROM pickups WHERE food_offer_id IN ({offer_filter}))",
                    [target.profile_id]
                )
                conn.execute(f"DELETE FROM pickups WHERE food_offer_id IN ({offer_filter})", [target.profile_id])
                conn.execute("DELETE FROM food_offers WHERE restaurant_id = ?", [target.profile_id])
            elif target.role == UserRole.ORG_ADMIN.value and target.organization_id:
                conn.execute(
                    "DELETE FROM volunteer_availability WHERE user_uid IN "
                    "(SELECT uid FROM users WHERE organization_id = ? AND role = ?)",
                    [target.organization_id, UserRole.VOLUNTEER.value]
                )
                conn.execute(
                    "DELETE FROM users WHERE organization_id = ? AND role = ?",
                    [target.organization_id, UserRole.VOLUNTEER.value]
                )
                conn.execute("DELETE FROM organizations WHERE id = ?", [target.organization_id])
            elif target.role == UserRole.VOLUNTEER.value:
                conn.execute("DELETE FROM volunteer_availability WHERE user_uid = ?", [target.uid])
            conn.execute("DELETE FROM users WHERE uid = ?", [target.uid])
            log_action(conn, admin.uid, "user_deleted", {"uid": target.uid, "role": target.role})
        logger.info("User %s deleted by %s", target.uid, admin.uid)

    # Helpers

    def _managed_target(self, admin: User, user_id: str, verb: str) -> User:
        """The account an admin wants to act on, after the hierarchy checks"""
        if not admin.is_admin:
            raise PermissionDeniedError(f"Only admins can {verb} users")
        target = self.require_user(user_id)
        if target.role == UserRole.MASTER_ADMIN.value:
            raise PermissionDeniedError(f"Cannot {verb} master admin account")
        if admin.role == UserRole.ORG_ADMIN.value and (
            target.role != UserRole.VOLUNTEER.value
            or target.organization_id != admin.organization_id
        ):
            raise PermissionDeniedError(f"You can only {verb} volunteers in your organization")
        return target

    @staticmethod
    def _require_role(user: User, role: UserRole, message: str):
        if user.role != role.value:
            raise PermissionDeniedError(message)

    def _ensure_email_free(self, conn, email: str):
        if self.db.fetch_one(conn, "SELECT uid FROM users WHERE email = ?", [email]):
            raise DuplicateEmailError("Email already in use")

    @staticmethod
    def _insert_user(conn, values: Dict[str, Any]):
        now = utcnow()
        row = [values.get(column) for column in _USER_COLUMNS]
        conn.execute(
            f"INSERT INTO users({', '.join(_USER_COLUMNS)}, created_at, updated_at) "
            f"VALUES ({', '.join('?' for _ in _USER_COLUMNS)}, ?, ?)",
            row + [now, now]
        )

    def _list_users(self, where: str, params: List[Any]) -> List[User]:
        rows = self.db.execute_query(f"SELECT * FROM users {where} ORDER BY created_at", params)
        return [User.from_row(r) for r in rows]

    @staticmethod
    def _split_by_onboarding(users: List[User], active_key: str, pending_key: str) -> Dict[str, List[User]]:
        pending = [u for u in users if u.needs_onboarding]
        active = [u for u in users if not u.needs_onboarding]
        return {active_key: active, pending_key: pending}


account_service = AccountService()

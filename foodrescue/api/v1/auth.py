"""
Account routes: admin hierarchy, sign-in, onboarding and moderation.
"""

from fastapi import APIRouter, Depends, status

from ...core.security import get_current_uid, get_current_user, load_user
from ...models.user import User
from ...schemas.auth import (
    ChangePasswordRequest,
    CreateOrgAdminRequest,
    CreateRestaurantRequest,
    Credentials,
    LoginRequest,
    NewAccountRequest,
    OnboardingRequest,
    UserIdRequest,
)
from ...services.account_service import account_service

router = APIRouter()


@router.get("/admin-exists")
def admin_exists():
    return {"exists": account_service.admin_exists()}


@router.post("/master-admin/register", status_code=status.HTTP_201_CREATED)
def register_master_admin(req: NewAccountRequest):
    admin = account_service.register_master_admin(req)
    return {
        "message": "Master admin registered successfully",
        "admin": {"uid": admin.uid, "email": admin.email, "name": admin.name},
    }


@router.post("/master-admin/login")
def master_admin_login(req: Credentials):
    return account_service.master_admin_login(req)


@router.post("/master-admin/create-org-admin", status_code=status.HTTP_201_CREATED)
def create_org_admin(req: CreateOrgAdminRequest, user: User = Depends(get_current_user)):
    created = account_service.create_org_admin(user, req)
    return {
        "message": "Organizational admin account created. They can now sign in.",
        "user": created,
    }


@router.post("/master-admin/create-restaurant", status_code=status.HTTP_201_CREATED)
def create_restaurant(req: CreateRestaurantRequest, user: User = Depends(get_current_user)):
    created = account_service.create_restaurant(user, req)
    return {
        "message": "Restaurant account created. They can now sign in.",
        "user": created,
    }


@router.post("/org-admin/create-volunteer", status_code=status.HTTP_201_CREATED)
def create_volunteer(req: NewAccountRequest, user: User = Depends(get_current_user)):
    created = account_service.create_volunteer(user, req)
    return {
        "message": "Volunteer account created. They can now sign in.",
        "user": created,
    }


@router.get("/master-admin/users")
def list_managed_accounts(user: User = Depends(get_current_user)):
    return account_service.list_managed_accounts(user)


@router.get("/org-admin/volunteers")
def list_org_volunteers(user: User = Depends(get_current_user)):
    return account_service.list_org_volunteers(user)


@router.post("/admin/login")
def admin_login(req: Credentials):
    return account_service.admin_login(req)


@router.post("/login")
def login(req: LoginRequest):
    return account_service.login(req)


@router.post("/complete-onboarding")
def complete_onboarding(req: OnboardingRequest, user: User = Depends(get_current_user)):
    updated = account_service.complete_onboarding(user, req)
    return {"message": "Onboarding complete!", "user": updated}


@router.get("/me")
def me(uid: str = Depends(get_current_uid)):
    """The caller's account, or null when the token names no known user"""
    return {"user": load_user(uid)}


@router.post("/change-password")
def change_password(req: ChangePasswordRequest, user: User = Depends(get_current_user)):
    account_service.change_password(user, req)
    return {"message": "Password changed successfully"}


@router.post("/suspend-user")
def suspend_user(req: UserIdRequest, user: User = Depends(get_current_user)):
    suspended = account_service.suspend_user(user, req.user_id)
    return {"message": "User suspended successfully", "user": suspended}


@router.post("/unsuspend-user")
def unsuspend_user(req: UserIdRequest, user: User = Depends(get_current_user)):
    reactivated = account_service.unsuspend_user(user, req.user_id)
    return {"message": "User reactivated successfully", "user": reactivated}


@router.delete("/delete-user/{user_id}")
def delete_user(user_id: str, user: User = Depends(get_current_user)):
    account_service.delete_user(user, user_id)
    return {"message": "User deleted successfully"}

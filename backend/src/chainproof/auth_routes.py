import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from .models import users
from .schemas import LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register")
def register(body: RegisterRequest):
    if not body.name.strip() or not body.aadhaar or not body.organization:
        raise HTTPException(400, detail="name, aadhaar and organization are required")
    if body.organization not in users.ORGANIZATIONS:
        raise HTTPException(400, detail="Invalid organization. Must be VerifierOrg or LegalOrg")
    if not users.is_valid_aadhaar(body.aadhaar):
        raise HTTPException(400, detail="Aadhaar must be exactly 12 digits")

    try:
        user = users.register_user(
            body.name, body.aadhaar, body.organization, role=body.role, legal_role=body.legal_role
        )
    except users.UserExistsError as e:
        raise HTTPException(409, detail=str(e))
    except ValueError as e:
        raise HTTPException(400, detail=str(e))

    return JSONResponse(status_code=201, content={"success": True, "data": {
        **user,
        "loginKey": users.login_key(user["publicKeyHash"]),
        "message": "Registration successful",
    }})


@router.post("/login")
def login(body: LoginRequest):
    if not body.name.strip() or not body.aadhaar:
        raise HTTPException(400, detail="name and aadhaar are required")

    ok, result = users.verify_credentials(body.name, body.aadhaar)
    if not ok:
        logger.info("Failed login: %s", result)
        raise HTTPException(401, detail=result)

    user = users.to_safe_object(result)
    return {"success": True, "data": {
        "user": user,
        "loginKey": users.login_key(user["publicKeyHash"]),
        "message": "Login successful",
    }}


@router.get("/me/{public_key_hash}")
def me(public_key_hash: str):
    row = users.find_by_public_key_hash(public_key_hash)
    if row is None:
        raise HTTPException(404, detail="User not found")
    return {"success": True, "data": users.to_safe_object(row)}


@router.get("/users/{organization}")
def list_users(organization: str):
    if organization not in users.ORGANIZATIONS:
        raise HTTPException(400, detail="Invalid organization. Must be VerifierOrg or LegalOrg")
    rows = users.list_users(organization)
    return {"success": True, "data": [users.to_safe_object(r) for r in rows]}


@router.get("/verify/{public_key_hash}")
def verify_user(public_key_hash: str):
    row = users.find_by_public_key_hash(public_key_hash, active_only=True)
    return {
        "success": True,
        "valid": row is not None,
        "organization": row["organization"] if row else None,
    }

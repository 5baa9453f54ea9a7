import json
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, EmailStr, Field, ValidationError
import structlog

import config
import database
import inventory
import notifications
import orders
from auth import get_current_user, get_password_hash, public_user, require_admin, token_for, verify_password
from database import (
    create_document,
    delete_document,
    find_document,
    get_document_by_id,
    get_documents,
    update_document,
)
from logging_setup import configure_logging
from schemas import Inventory, ItemType, OrderItem, OrderStatus, Role, Subscription, User
from seed import seed_catalog_if_empty
from uploads import save_image

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="SliceCraft Pizza Ordering API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")


@app.on_event("startup")
def prepare_database():
    if database.db is None:
        logger.warning("database_not_configured")
        return
    database.ensure_indexes()
    seed_catalog_if_empty()


# ===================== Error handling =====================
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    message = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', []) if p != 'body')}: {e.get('msg')}" for e in errors
    )
    return JSONResponse(status_code=400, content={"detail": message or "Invalid request", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc) if config.is_development() else "Something went wrong",
        },
    )


# ============ Request models ==========
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=6)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None


class RoleUpdate(BaseModel):
    role: Role


class StockUpdate(BaseModel):
    quantity: float
    threshold: float


class StatusUpdate(BaseModel):
    status: OrderStatus


class PaymentVerification(BaseModel):
    order_id: str
    payment_id: str
    signature: Optional[str] = None


class SubscribeRequest(BaseModel):
    email: EmailStr


# ===================== Public Endpoints =====================
@app.get("/")
def root():
    return {"message": "SliceCraft Pizza Ordering API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            response["collections"] = database.db.list_collection_names()
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    response["database_url"] = "✅ Set" if config.DATABASE_URL else "❌ Not Set"
    response["database_name"] = "✅ Set" if config.DATABASE_NAME else "❌ Not Set"
    return response


# ===================== Auth =====================
def _email_taken(email: str, exclude_id: Optional[str] = None) -> bool:
    existing = find_document("user", {"email": email})
    return existing is not None and existing["_id"] != exclude_id


def _create_account(payload: RegisterRequest, role: str) -> dict:
    if _email_taken(payload.email):
        raise HTTPException(status_code=400, detail="User already exists")
    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        role=role,
        is_verified=True,
    )
    user_id = create_document("user", user)
    logger.info("account_registered", user_id=user_id, role=role)
    return get_document_by_id("user", user_id)


@app.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest):
    user = _create_account(payload, "user")
    return AuthResponse(access_token=token_for(user), user=public_user(user))


@app.post("/auth/register-admin", status_code=201)
def register_admin(payload: RegisterRequest, _: dict = Depends(require_admin)):
    user = _create_account(payload, "admin")
    return {"message": "Admin user registered successfully", "user": public_user(user)}


@app.post("/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest):
    user = find_document("user", {"email": payload.email})
    if not user or not verify_password(payload.password, user.get("password_hash")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return AuthResponse(access_token=token_for(user), user=public_user(user))


@app.get("/auth/me")
def me(user: dict = Depends(get_current_user)):
    return public_user(user)


@app.put("/auth/profile")
def update_profile(
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    profilePhoto: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
):
    try:
        changes = ProfileUpdate(name=name or None, email=email or None).model_dump(exclude_none=True)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid email address")
    if "email" in changes and _email_taken(changes["email"], exclude_id=user["_id"]):
        raise HTTPException(status_code=400, detail="Email already in use")
    if profilePhoto is not None:
        changes["profile_photo"] = save_image(profilePhoto, "profilePhoto")
    if changes:
        update_document("user", user["_id"], changes)
    return {"message": "Profile updated successfully", "user": public_user(get_document_by_id("user", user["_id"]))}


@app.post("/auth/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, background_tasks: BackgroundTasks):
    user = find_document("user", {"email": payload.email})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    token = secrets.token_hex(32)
    expires = datetime.now(timezone.utc) + timedelta(minutes=config.RESET_TOKEN_EXPIRE_MINUTES)
    update_document("user", user["_id"], {"reset_password_token": token, "reset_password_expires": expires})
    background_tasks.add_task(notifications.notify_password_reset, user["email"], token)
    return {"message": "Password reset email sent"}


@app.post("/auth/reset-password/{token}")
def reset_password(token: str, payload: ResetPasswordRequest):
    user = find_document("user", {"reset_password_token": token})
    expires = user.get("reset_password_expires") if user else None
    if expires is not None and expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    if not user or expires is None or expires <= datetime.now(timezone.utc):
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    update_document("user", user["_id"], {
        "password_hash": get_password_hash(payload.password),
        "reset_password_token": None,
        "reset_password_expires": None,
    })
    logger.info("password_reset", user_id=user["_id"])
    return {"message": "Password reset successful"}


@app.get("/auth/verify-email/{token}")
def verify_email(token: str):
    user = find_document("user", {"verification_token": token})
    if not user:
        raise HTTPException(status_code=400, detail="Invalid verification token")
    update_document("user", user["_id"], {"is_verified": True, "verification_token": None})
    return {"message": "Email verified successfully"}


# ===================== Users (admin) =====================
@app.get("/auth/users")
def list_users(_: dict = Depends(require_admin)):
    return [public_user(u) for u in get_documents("user", sort=[("created_at", -1)])]


@app.put("/auth/users/{user_id}/role")
def update_user_role(user_id: str, payload: RoleUpdate, _: dict = Depends(require_admin)):
    if not update_document("user", user_id, {"role": payload.role}):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User role updated successfully", "user": public_user(get_document_by_id("user", user_id))}


@app.put("/auth/users/{user_id}")
def update_user(user_id: str, payload: ProfileUpdate, _: dict = Depends(require_admin)):
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "email" in changes and _email_taken(changes["email"], exclude_id=user_id):
        raise HTTPException(status_code=400, detail="Email already in use")
    if not update_document("user", user_id, changes):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User details updated successfully", "user": public_user(get_document_by_id("user", user_id))}


@app.delete("/auth/users/{user_id}")
def delete_user(user_id: str, _: dict = Depends(require_admin)):
    if not delete_document("user", user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted successfully"}


# ===================== Pizzas =====================
@app.get("/pizzas")
def list_pizzas(category: Optional[Literal["classic", "gourmet"]] = None):
    filt = {"category": category} if category else {}
    return get_documents("pizza", filt, sort=[("name", 1)])


@app.get("/pizzas/{pizza_id}")
def get_pizza(pizza_id: str):
    pizza = get_document_by_id("pizza", pizza_id)
    if not pizza:
        raise HTTPException(404, "Pizza not found")
    return pizza


# ===================== Orders =====================
@app.post("/orders/add-to-cart")
def add_to_cart(item: OrderItem, user: dict = Depends(get_current_user)):
    return orders.add_item_to_cart(user["_id"], item)


@app.put("/orders/place-order")
def place_order(
    deliveryAddress: Optional[str] = Form(None),
    transferScreenshot: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
):
    address = None
    if deliveryAddress:
        try:
            address = json.loads(deliveryAddress)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Delivery address must be a JSON object")
    return orders.place_order(user["_id"], address, transferScreenshot)


@app.get("/orders/cart")
def get_cart(user: dict = Depends(get_current_user)):
    return orders.get_cart(user["_id"])


@app.get("/orders/me")
def my_orders(user: dict = Depends(get_current_user)):
    return orders.list_user_orders(user["_id"], user)


@app.get("/orders/admin")
def all_orders(_: dict = Depends(require_admin)):
    return orders.list_all_orders()


@app.post("/orders/verify-payment")
def verify_payment(payload: PaymentVerification, background_tasks: BackgroundTasks,
                   user: dict = Depends(get_current_user)):
    orders.get_order(payload.order_id, user)
    return orders.verify_payment(payload.order_id, payload.payment_id, payload.signature, background_tasks)


@app.get("/orders/user/{user_id}")
def user_orders(user_id: str, user: dict = Depends(get_current_user)):
    return orders.list_user_orders(user_id, user)


@app.get("/orders/{order_id}")
def get_order(order_id: str, user: dict = Depends(get_current_user)):
    return orders.get_order(order_id, user)


@app.api_route("/orders/{order_id}/status", methods=["PUT", "PATCH"])
def update_order_status(order_id: str, payload: StatusUpdate, background_tasks: BackgroundTasks,
                        user: dict = Depends(get_current_user)):
    return orders.set_order_status(order_id, payload.status, user.get("role"), background_tasks)


@app.delete("/orders/{order_id}")
def delete_order(order_id: str, user: dict = Depends(get_current_user)):
    return orders.cancel_order(order_id, user)


# ===================== Inventory =====================
@app.get("/inventory")
def list_inventory(_: dict = Depends(require_admin)):
    return inventory.list_stock()


@app.post("/inventory", status_code=201)
def create_inventory_item(payload: Inventory, _: dict = Depends(require_admin)):
    return inventory.create_stock(payload)


@app.put("/inventory/{item_id}")
def update_inventory_item(item_id: str, payload: StockUpdate, background_tasks: BackgroundTasks,
                          user: dict = Depends(get_current_user)):
    return inventory.update_stock(item_id, payload.quantity, payload.threshold, user.get("role"), background_tasks)


@app.delete("/inventory/{item_id}")
def delete_inventory_item(item_id: str, _: dict = Depends(require_admin)):
    inventory.delete_stock(item_id)
    return {"message": "Inventory item deleted successfully"}


@app.get("/inventory/type/{item_type}")
def inventory_by_type(item_type: ItemType):
    return inventory.list_in_stock(item_type)


# ===================== Subscriptions =====================
@app.post("/subscribe")
def subscribe(payload: SubscribeRequest):
    if find_document("subscription", {"email": payload.email}):
        raise HTTPException(status_code=409, detail="Email already subscribed.")
    create_document("subscription", Subscription(email=payload.email, subscribed_at=datetime.now(timezone.utc)))
    return {"message": "Subscription successful!"}


@app.get("/subscribe")
def list_subscribers(_: dict = Depends(require_admin)):
    return get_documents("subscription", sort=[("subscribed_at", -1)])


@app.delete("/subscribe/{subscription_id}")
def remove_subscriber(subscription_id: str, _: dict = Depends(require_admin)):
    if not delete_document("subscription", subscription_id):
        raise HTTPException(status_code=404, detail="Subscriber not found.")
    return {"message": "Subscriber removed successfully."}


# ===================== Schema Export for Docs =====================
@app.get("/schema")
def get_schema():
    return {
        "collections": [
            "user",
            "pizza",
            "inventory",
            "order",
            "subscription"
        ],
        "notes": "Each class in schemas.py maps to a MongoDB collection (lowercase)."
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

"""
Database Schemas for the SliceCraft Pizza Ordering System

Each Pydantic model below corresponds to a MongoDB collection.
The collection name is the lowercase class name (e.g., User -> "user").
Nested models (OrderItem, DeliveryAddress) are embedded in their parent document.
"""
from datetime import datetime
from typing import List, Optional, Literal
from pydantic import AliasChoices, BaseModel, Field, EmailStr

Role = Literal["user", "admin"]
ItemType = Literal["base", "sauce", "cheese", "veggie", "meat"]
OrderStatus = Literal[
    "pending",
    "Order Received",
    "Preparing",
    "In Oven",
    "Ready for Pickup",
    "Out for Delivery",
    "Delivered",
    "completed",
    "cancelled",
]

CART_STATUS = "pending"
PLACED_STATUS = "Order Received"
CANCELLED_STATUS = "cancelled"


class User(BaseModel):
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Unique email address")
    password_hash: Optional[str] = Field(None, description="BCrypt hash; absent for externally authenticated accounts")
    external_id: Optional[str] = Field(None, description="External identity reference, unique when present")
    role: Role = "user"
    is_verified: bool = False
    verification_token: Optional[str] = None
    reset_password_token: Optional[str] = None
    reset_password_expires: Optional[datetime] = None
    profile_photo: str = ""


class Pizza(BaseModel):
    name: str = Field(..., description="Unique pizza name")
    description: str
    price: float = Field(..., ge=0)
    base: str
    sauce: str
    cheese: str
    veggies: List[str] = []
    meats: List[str] = []
    image: str = "/images/default-pizza.jpg"
    category: Literal["classic", "gourmet"]
    is_available: bool = True


class Inventory(BaseModel):
    item_type: ItemType
    name: str
    quantity: float = Field(..., ge=0, description="On-hand quantity")
    threshold: float = Field(..., ge=0, description="Reorder threshold; quantity <= threshold is low stock")
    unit: str = Field(..., description="Unit label, e.g. kg, pcs")
    last_restocked: Optional[datetime] = None


class OrderItem(BaseModel):
    name: str
    # strict: "12.5" or true must not pass as a number
    price: float = Field(..., ge=0, strict=True)
    quantity: int = Field(..., ge=1, strict=True)
    pizza_id: Optional[str] = Field(None, description="Reference to pizza _id")
    base: Optional[str] = None
    sauce: Optional[str] = None
    cheese: Optional[str] = None
    veggies: List[str] = []
    meats: List[str] = []
    size: Optional[str] = None
    extra_cheese: Optional[bool] = None
    extra_sauce: Optional[bool] = None
    notes: Optional[str] = None


class DeliveryAddress(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    postal_code: str = Field(..., min_length=1, validation_alias=AliasChoices("postal_code", "postalCode", "zipCode"))
    country: Optional[str] = None


PLACEHOLDER_ADDRESS = DeliveryAddress(street="N/A", city="N/A", state="N/A", postal_code="00000", country="N/A")


class Order(BaseModel):
    user_id: str = Field(..., description="Owner account _id")
    items: List[dict] = Field(default_factory=list, description="Order lines, see OrderItem")
    total_amount: float = 0.0
    status: OrderStatus = CART_STATUS
    delivery_address: DeliveryAddress = PLACEHOLDER_ADDRESS
    payment_proof: Optional[str] = Field(None, description="Uploaded transfer screenshot path")
    payment_status: Literal["pending", "completed"] = "pending"
    payment_id: Optional[str] = None


class Subscription(BaseModel):
    email: EmailStr
    subscribed_at: Optional[datetime] = None
"""
Notes:
- Stock records live in the "inventory" collection, unique on (item_type, name).
- The cart is the single Order in "pending" status for an account.
"""

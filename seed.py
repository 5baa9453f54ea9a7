"""
Sample catalog and stock, inserted on startup when the collections are empty.
Pizzas are only ever created here; there is no admin endpoint for them.
"""
from typing import List

import structlog

from database import count_documents, create_document
from schemas import Inventory, Pizza

logger = structlog.get_logger(__name__)

SAMPLE_PIZZAS: List[Pizza] = [
    Pizza(
        name="Margherita",
        description="San Marzano tomato, fresh mozzarella and basil on a thin crust.",
        price=9.5,
        base="Thin Crust",
        sauce="Tomato",
        cheese="Mozzarella",
        veggies=["Basil"],
        category="classic",
    ),
    Pizza(
        name="Pepperoni",
        description="Generous pepperoni over tomato sauce and mozzarella.",
        price=11.0,
        base="Classic Hand Tossed",
        sauce="Tomato",
        cheese="Mozzarella",
        meats=["Pepperoni"],
        category="classic",
    ),
    Pizza(
        name="Garden Supreme",
        description="Peppers, onions, mushrooms and olives with a pesto base.",
        price=12.5,
        base="Whole Wheat",
        sauce="Pesto",
        cheese="Cheddar",
        veggies=["Bell Peppers", "Onions", "Mushrooms", "Olives"],
        category="gourmet",
    ),
    Pizza(
        name="BBQ Chicken",
        description="Smoky barbecue sauce, grilled chicken, red onion and gouda.",
        price=14.0,
        base="Cheese Burst",
        sauce="BBQ",
        cheese="Gouda",
        veggies=["Onions"],
        meats=["Grilled Chicken"],
        category="gourmet",
    ),
]

SAMPLE_STOCK: List[Inventory] = (
    [Inventory(item_type="base", name=n, quantity=50, threshold=10, unit="pcs")
     for n in ["Thin Crust", "Classic Hand Tossed", "Whole Wheat", "Cheese Burst", "Gluten Free"]]
    + [Inventory(item_type="sauce", name=n, quantity=20, threshold=5, unit="l")
       for n in ["Tomato", "Pesto", "BBQ", "White Garlic", "Spicy Marinara"]]
    + [Inventory(item_type="cheese", name=n, quantity=25, threshold=5, unit="kg")
       for n in ["Mozzarella", "Cheddar", "Gouda", "Parmesan"]]
    + [Inventory(item_type="veggie", name=n, quantity=30, threshold=8, unit="kg")
       for n in ["Basil", "Bell Peppers", "Onions", "Mushrooms", "Olives", "Jalapenos"]]
    + [Inventory(item_type="meat", name=n, quantity=15, threshold=4, unit="kg")
       for n in ["Pepperoni", "Grilled Chicken", "Italian Sausage"]]
)


def seed_catalog_if_empty() -> dict:
    seeded = {"pizza": 0, "inventory": 0}
    if count_documents("pizza") == 0:
        for pizza in SAMPLE_PIZZAS:
            create_document("pizza", pizza)
        seeded["pizza"] = len(SAMPLE_PIZZAS)
    if count_documents("inventory") == 0:
        for record in SAMPLE_STOCK:
            create_document("inventory", record)
        seeded["inventory"] = len(SAMPLE_STOCK)
    logger.info("catalog_seeded", **seeded)
    return seeded

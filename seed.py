"""Demo menu and testimonials for a fresh database."""
import logging
from typing import Optional

from access import require_admin
from database import now_utc, store_operation, to_decimal128
from schemas import Identity

logger = logging.getLogger(__name__)

IMG = "https://images.unsplash.com/photo-{}?w=500&h=400&fit=crop"

MENU = [
    ("Margherita Pizza", "Classic pizza with fresh tomatoes, mozzarella, and basil", "16.99", "1604382354936-07c5b6f67692", "pizza", True),
    ("Pepperoni Pizza", "Traditional pepperoni with mozzarella cheese", "18.99", "1565299624946-b28f40a0ca4b", "pizza", True),
    ("Quattro Stagioni", "Four seasons pizza with artichokes, ham, mushrooms, and olives", "22.99", "1574071318508-1cdbab80d002", "pizza", True),
    ("Meat Lovers", "Loaded with pepperoni, sausage, bacon, and ham", "24.99", "1590534247678-0ee1c86c7a8e", "pizza", True),
    ("Vegetarian Supreme", "Bell peppers, mushrooms, onions, olives, and tomatoes", "19.99", "1571997478779-2adcbbe9ab2f", "pizza", True),
    ("Hawaiian Paradise", "Ham and pineapple with mozzarella cheese", "17.99", "1565299507177-b0ac66763828", "pizza", True),
    ("BBQ Chicken", "Grilled chicken with BBQ sauce and red onions", "21.99", "1513104890138-7c749659a591", "pizza", True),
    ("White Pizza", "Ricotta, mozzarella, and parmesan with garlic", "20.99", "1595708684082-a173bb3a06c5", "pizza", True),
    ("Garlic Bread", "Crispy bread with garlic butter and herbs", "8.99", "1541745537411-b8046dc6d66c", "appetizer", False),
    ("Caesar Salad", "Romaine lettuce with caesar dressing and croutons", "12.99", "1546793665-c74683f339c1", "salad", False),
    ("Tiramisu", "Classic Italian dessert with coffee and mascarpone", "7.99", "1571877227200-a0d98ea607e9", "dessert", False),
    ("Italian Soda", "Sparkling water with natural fruit flavors", "3.99", "1513558161293-cdaf765ed2fd", "drink", False),
]

TESTIMONIALS = [
    ("Maria Rodriguez", "The best pizza in town! The dough is perfect and the ingredients are so fresh.", 5),
    ("John Smith", "Nonna's has the most authentic Italian pizza I've ever tasted. The margherita is absolutely divine!", 5),
    ("Sarah Johnson", "Great family atmosphere and incredible food. The pizza arrives hot and delicious.", 5),
    ("Michael Brown", "I love the variety of toppings and the wood-fired oven gives the pizza a unique flavor.", 4),
    ("Lisa Wilson", "The vegetarian options are amazing! I appreciate the creativity in their veggie pizzas.", 5),
    ("David Martinez", "Fast delivery and the pizza was still hot when it arrived. The pepperoni pizza is my favorite.", 4),
]


@store_operation("seed demo data")
def seed_demo_data(db, identity: Optional[Identity]) -> dict:
    require_admin(identity)
    inserted = {"products": 0, "testimonials": 0}
    if db["products"].count_documents({}) == 0:
        demo = []
        for name, description, price, photo, category, featured in MENU:
            demo.append({
                "name": name,
                "description": description,
                "price": to_decimal128(price),
                "image_url": IMG.format(photo),
                "category": category,
                "is_featured": featured,
                "created_at": now_utc(),
                "updated_at": now_utc(),
            })
        inserted["products"] = len(db["products"].insert_many(demo).inserted_ids)
    if db["testimonials"].count_documents({}) == 0:
        reviews = [
            {"customer_name": who, "content": content, "rating": rating, "created_at": now_utc()}
            for who, content, rating in TESTIMONIALS
        ]
        inserted["testimonials"] = len(db["testimonials"].insert_many(reviews).inserted_ids)
    logger.info("Seeded %(products)d products and %(testimonials)d testimonials", inserted)
    return inserted

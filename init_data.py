from decimal import Decimal

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import (
    Cart,
    Category,
    Product,
    ProductVariant,
    Seller,
    StoreSetting,
    User,
    UserRole,
)

app = create_app()

with app.app_context():
    # Global categories (no owning seller)
    categories_data = [
        {"name": "Groceries", "starred": True},
        {"name": "Beverages", "starred": True},
        {"name": "Spices", "starred": False},
        {"name": "Household", "starred": False},
        {"name": "Personal Care", "starred": False},
    ]

    categories_dict = {}
    for cat_data in categories_data:
        existing = Category.query.filter_by(
            name=cat_data["name"], seller_id=None
        ).first()
        if not existing:
            category = Category(
                name=cat_data["name"], is_starred=cat_data["starred"]
            )
            db.session.add(category)
            db.session.flush()
            categories_dict[cat_data["name"]] = category
            print(f"Created category: {cat_data['name']}")
        else:
            categories_dict[cat_data["name"]] = existing

    # Create admin account (if not exists)
    admin_email = "admin@example.com"
    admin = User.query.filter_by(email=admin_email).first()
    if not admin:
        admin = User(name="Admin", email=admin_email, role=UserRole.ADMIN)
        admin.set_password("admin123")
        db.session.add(admin)
        print(f"Created admin account: {admin_email} / admin123")

    # Demo buyer with an empty cart
    buyer_email = "buyer@example.com"
    buyer = User.query.filter_by(email=buyer_email).first()
    if not buyer:
        buyer = User(
            name="Demo Buyer",
            email=buyer_email,
            role=UserRole.USER,
            city="Lahore",
        )
        buyer.set_password("buyer123")
        db.session.add(buyer)
        db.session.flush()
        db.session.add(Cart(user_id=buyer.id))
        print(f"Created buyer account: {buyer_email} / buyer123")

    # Approved sellers and their products
    sellers_data = [
        {
            "email": "seller1@example.com",
            "name": "Fresh Mart",
            "products": [
                {
                    "title": "Basmati Rice",
                    "description": "Aged long grain basmati rice",
                    "price": "450.00",
                    "stock": 80,
                    "category": "Groceries",
                    "tags": "rice,staple",
                    "variants": [
                        {"name": "1kg", "price": "450.00", "stock": 50},
                        {"name": "5kg", "price": "2150.00", "stock": 30},
                    ],
                },
                {
                    "title": "Red Lentils",
                    "description": "Split red lentils (masoor daal)",
                    "price": "320.00",
                    "stock": 60,
                    "category": "Groceries",
                    "tags": "daal,lentils",
                },
                {
                    "title": "Green Tea",
                    "description": "Loose leaf green tea, 250g",
                    "price": "550.00",
                    "stock": 40,
                    "category": "Beverages",
                    "tags": "tea",
                },
            ],
        },
        {
            "email": "seller2@example.com",
            "name": "Spice Route",
            "products": [
                {
                    "title": "Kashmiri Chili Powder",
                    "description": "Mild, deep red chili powder",
                    "price": "280.00",
                    "stock": 100,
                    "category": "Spices",
                    "tags": "chili,masala",
                },
                {
                    "title": "Saffron",
                    "description": "Premium saffron threads, 1g",
                    "price": "1200.00",
                    "stock": 15,
                    "category": "Spices",
                    "tags": "saffron,premium",
                },
            ],
        },
    ]

    for seller_data in sellers_data:
        seller = Seller.query.filter_by(email=seller_data["email"]).first()
        if not seller:
            seller = Seller(
                name=seller_data["name"],
                email=seller_data["email"],
                approved=True,
            )
            seller.set_password("seller123")
            db.session.add(seller)
            db.session.flush()
            print(
                "Created seller account: %s / seller123 (%s)"
                % (seller_data["email"], seller_data["name"])
            )

            for product_data in seller_data["products"]:
                product = Product(
                    seller_id=seller.id,
                    category_id=categories_dict[product_data["category"]].id,
                    title=product_data["title"],
                    description=product_data["description"],
                    price=Decimal(product_data["price"]),
                    stock=product_data["stock"],
                    tags=product_data["tags"],
                )
                db.session.add(product)
                db.session.flush()

                for variant_data in product_data.get("variants", []):
                    db.session.add(
                        ProductVariant(
                            product_id=product.id,
                            name=variant_data["name"],
                            price=Decimal(variant_data["price"]),
                            stock=variant_data["stock"],
                        )
                    )

                print(f"  Created product: {product_data['title']}")

    if db.session.get(StoreSetting, 1) is None:
        db.session.add(
            StoreSetting(id=1, store_name=app.config.get("STORE_NAME"))
        )
        print("Created default store settings")

    db.session.commit()
    print("Data initialization completed!")

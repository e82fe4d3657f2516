from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.dtos import CreateProductDTO, VariantDTO
from modules.products.models import Product, ProductCategory
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import ProductService

CATALOG = [
    {
        "name": "Aretes Mariposa",
        "category": ProductCategory.EARRINGS,
        "price": Decimal("1449.90"),
        "description": "Aretes de oro de 18k con diseño de mariposa.",
        "featured": True,
        "stock": 8,
    },
    {
        "name": "Collar Corazón Eterno",
        "category": ProductCategory.NECKLACES,
        "price": Decimal("2299.00"),
        "description": "Collar de plata 950 con dije de corazón.",
        "featured": True,
        "stock": 5,
    },
    {
        "name": "Anillo Solitario Diamante",
        "category": ProductCategory.RINGS,
        "price": Decimal("3599.00"),
        "description": "Anillo de compromiso con diamante de 0.5 quilates.",
        "featured": True,
        "variants": [
            {"size": "5", "stock": 2},
            {"size": "6", "stock": 3},
            {"size": "7", "stock": 3, "price": Decimal("3699.00")},
        ],
    },
    {
        "name": "Pulsera Cadena Delicada",
        "category": ProductCategory.BRACELETS,
        "price": Decimal("899.00"),
        "description": "Pulsera de oro rosado con cadena fina.",
        "stock": 12,
    },
]

CUSTOMERS = [
    ("María Quispe", "45879632", "987654321", "maria@example.com", "Av. Larco 345, Miraflores, Lima"),
    ("José Huamán", "70125489", "912345678", "", "Jr. Puno 120, Cusco, Cusco"),
    ("Lucía Torres", "41236587", "+51 955 123 456", "lucia@example.com", "Calle Mercaderes 210, Arequipa, Arequipa"),
]


class Command(BaseCommand):
    help = "Seed database with demo jewelry and orders."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        products = self._seed_products()
        orders_created = self._seed_orders(products)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        return created

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        service = ProductService(repository=ProductDjangoRepository())
        products: list[Product] = []
        for display_order, entry in enumerate(CATALOG):
            existing = Product.objects.alive().filter(name=entry["name"]).first()
            if existing is not None:
                products.append(existing)
                continue
            variants = entry.get("variants")
            dto = CreateProductDTO(
                name=entry["name"],
                category=entry["category"].value,
                price=entry["price"],
                description=entry["description"],
                featured=entry.get("featured", False),
                stock=entry.get("stock", 0),
                variants=[VariantDTO(**v) for v in variants] if variants else None,
            )
            product = service.create_product(dto)
            Product.objects.filter(id=product.id).update(display_order=display_order)
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(self, products: list[Product]) -> int:
        self.stdout.write("Creating orders...")
        if not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no products)."))
            return 0

        order_repo = OrderDjangoRepository()
        service = OrderService(
            order_repository=order_repo,
            product_repository=ProductDjangoRepository(),
        )
        simple_products = [p for p in products if not p.has_variants]
        follow_ups = [
            [],
            [OrderStatus.CONFIRMED],
            [OrderStatus.CONFIRMED, OrderStatus.IN_PROGRESS],
        ]

        orders_created = 0
        for index, (name, dni, phone, email, address) in enumerate(CUSTOMERS):
            key = f"seed-order-{index + 1}"
            if order_repo.get_by_idempotency_key(key) is not None:
                continue
            product = random.choice(simple_products)
            dto = CreateOrderDTO(
                customer_name=name,
                customer_dni=dni,
                customer_phone=phone,
                customer_email=email or None,
                shipping_address=address,
                payment_method=random.choice(list(PaymentMethod)).value,
                items=[CreateOrderItemDTO(product_id=product.id, quantity=1)],
                notes="Seed order",
                idempotency_key=key,
            )
            order = service.create_order(dto, changed_by="seed")
            for status in follow_ups[index % len(follow_ups)]:
                service.update_status(order.id, status, changed_by="seed")
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created

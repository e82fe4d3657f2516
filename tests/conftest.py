from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.products.models import Product, ProductStatus, ProductVariant


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def admin_user():
    return get_user_model().objects.create_user(
        username="storeadmin",
        email="admin@salcedojewels.pe",
        password="testpass123",
        is_staff=True,
    )


@pytest.fixture()
def admin_client(admin_user):
    """APIClient force-authenticated as a staff user."""
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture()
def customer_client():
    """APIClient authenticated as a regular (non-staff) user."""
    client = APIClient()
    user = get_user_model().objects.create_user(username="shopper", password="testpass123")
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def simple_product():
    return Product.objects.create(
        name="Aretes Mariposa",
        category="Aretes",
        price=Decimal("1449.90"),
        stock=5,
        status=ProductStatus.ACTIVE,
    )


@pytest.fixture()
def bracelet():
    return Product.objects.create(
        name="Pulsera Cadena Delicada",
        category="Pulseras",
        price=Decimal("899.00"),
        stock=10,
        status=ProductStatus.ACTIVE,
    )


@pytest.fixture()
def ring():
    """Sized product: stock lives on its variants (6 -> 2, 7 -> 3)."""
    product = Product.objects.create(
        name="Anillo Solitario Diamante",
        category="Anillos",
        price=Decimal("3599.00"),
        stock=0,
        status=ProductStatus.ACTIVE,
    )
    ProductVariant.objects.create(product=product, size="6", stock=2)
    ProductVariant.objects.create(product=product, size="7", stock=3, price=Decimal("3699.00"))
    product.recalculate_stock()
    product.save()
    return product


@pytest.fixture()
def inactive_product():
    return Product.objects.create(
        name="Collar Retirado",
        category="Collares",
        price=Decimal("500.00"),
        stock=3,
        status=ProductStatus.INACTIVE,
    )

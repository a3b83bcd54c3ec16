from storefront.services.checkout_service import CartLine, CustomerInfo


ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key", "X-Admin-User": "ops"}


def customer_info(customer_id=None, name="Dana Levi") -> CustomerInfo:
    return CustomerInfo(
        name=name,
        email="dana@example.com",
        phone="0501234567",
        address="12 Herzl St",
        city="Haifa",
        postal_code="3100000",
        customer_id=customer_id,
    )


def cart(*lines) -> list:
    """cart((product, qty), ...)"""
    return [CartLine(product_id=product.id, quantity=qty) for product, qty in lines]

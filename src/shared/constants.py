"""Shared constants across the application."""

# Klaviyo metric display names (matched case-insensitively)
SIGNUP_METRIC_NAME = "Back In Stock Signup"
ALERT_METRIC_NAME = "Back In Stock Alert"
RECEIVED_EMAIL_METRIC_NAME = "Received Email"

# Restock phrases checked against a received email's subject line
SUBJECT_RESTOCK_PHRASES = (
    "back in stock",
    "it's here",
    "ready to order",
    "now available",
    "in stock",
    "restock",
    "pre-order",
    "preorder",
)

# Narrower set checked against the preview text
PREVIEW_RESTOCK_PHRASES = (
    "back in stock",
    "now available",
    "in stock",
    "restock",
)

# Klaviyo signup event property keys
SIGNUP_PROPERTY_KEYS = {
    "product_id": "ProductID",
    "product_handle": "ProductHandle",
    "variant_id": "VariantID",
    "product_title": "ProductTitle",
    "product_url": "ProductURL",
    "product_image": "ProductImage",
    "signup_date": "SignupDate",
}

# API versions
KLAVIYO_REVISION = "2024-02-15"
SHOPIFY_API_VERSION = "2024-01"

# Default limits
KLAVIYO_PAGE_SIZE = 100
KLAVIYO_MAX_PAGES = 10
SHOPIFY_ORDER_LIMIT = 50

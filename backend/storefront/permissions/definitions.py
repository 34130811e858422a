# Overview: Capability definitions organized by area.
# Each capability is defined as: (code, name, description, allowed_roles)

from .roles import ALL_ROLES, STAFF_ROLES


# -- CATALOG --

CATALOG_CAPABILITIES = [
    (
        "VIEW_CATALOG",
        "View Catalog",
        "List products, categories and logos visible to the caller's organization",
        ALL_ROLES,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and delete products, variants and size attributes",
        STAFF_ROLES,
    ),
    (
        "MANAGE_CATEGORIES",
        "Manage Categories",
        "Create, rename and delete product categories",
        STAFF_ROLES,
    ),
    (
        "MANAGE_LOGOS",
        "Manage Logos",
        "Create and delete logos, logo variants and placements",
        STAFF_ROLES,
    ),
    (
        "VIEW_CATALOG_REPORTS",
        "View Catalog Reports",
        "Product and logo counts for the organization dashboard",
        STAFF_ROLES,
    ),
    (
        "MANAGE_LOGO_POSITIONS",
        "Manage Logo Positions",
        "Place and remove logos on product variant mockups",
        STAFF_ROLES,
    ),
]


# -- SHOPPING --

SHOPPING_CAPABILITIES = [
    (
        "COMPOSE_CUSTOMIZATION",
        "Compose Customization",
        "Bind a product variant, logo variant and placement into a customization",
        ALL_ROLES,
    ),
    (
        "USE_CART",
        "Use Cart",
        "Add, list and remove the caller's own cart items",
        ALL_ROLES,
    ),
    (
        "PLACE_ORDER",
        "Place Order",
        "Convert the caller's open cart into an order",
        ALL_ROLES,
    ),
]


# -- ORDERS --

ORDER_CAPABILITIES = [
    (
        "VIEW_ORDERS",
        "View Orders",
        "View orders (own orders for users, organization orders for staff)",
        ALL_ROLES,
    ),
    (
        "UPDATE_ORDER_STATUS",
        "Update Order Status",
        "Transition order status and append order notes",
        STAFF_ROLES,
    ),
    (
        "VIEW_ORDER_REPORTS",
        "View Order Reports",
        "Order totals, trends and counts grouped by status",
        STAFF_ROLES,
    ),
]


CAPABILITY_DEFINITIONS = (
    CATALOG_CAPABILITIES
    + SHOPPING_CAPABILITIES
    + ORDER_CAPABILITIES
)

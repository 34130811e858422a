from .tenancy import Organization, User, Address
from .catalog import (
    Category,
    Product,
    ProductImage,
    ProductVariant,
    VariantImage,
    VariantSizeAttribute,
    ProductGroup,
    GroupProductVisibility,
)
from .logos import Logo, LogoVariant, LogoPlacement, LogoVariantPlacement, VariantLogoPosition
from .orders import OrderStatus, Customization, CartItem, Order, OrderNote

__all__ = [
    'Organization', 'User', 'Address',
    'Category', 'Product', 'ProductImage', 'ProductVariant', 'VariantImage',
    'VariantSizeAttribute', 'ProductGroup', 'GroupProductVisibility',
    'Logo', 'LogoVariant', 'LogoPlacement', 'LogoVariantPlacement', 'VariantLogoPosition',
    'OrderStatus', 'Customization', 'CartItem', 'Order', 'OrderNote',
]

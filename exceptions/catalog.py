"""
Catalog-related exceptions (categories, subcategories, products).
"""

from .base import ShopException, NotFoundException


class CatalogException(ShopException):
    """Base exception for catalog errors."""

    http_status = 400


class CategoryNotFoundException(NotFoundException):
    """Raised when category is not found in database."""

    def __init__(self, category_id: int):
        super().__init__("Category", category_id)
        self.category_id = category_id


class SubcategoryNotFoundException(NotFoundException):
    """Raised when subcategory is not found in database."""

    def __init__(self, subcategory_id: int):
        super().__init__("Subcategory", subcategory_id)
        self.subcategory_id = subcategory_id


class ProductNotFoundException(NotFoundException):
    """Raised when product is not found in database."""

    def __init__(self, product_id: int):
        super().__init__("Product", product_id)
        self.product_id = product_id


class DuplicateNameException(CatalogException):
    """Raised when a name is already taken within its scope."""

    kind = "DuplicateName"

    def __init__(self, entity: str, name: str, scope_id: int | None = None):
        if scope_id is not None:
            message = f"{entity} '{name}' already exists in category {scope_id}"
        else:
            message = f"{entity} '{name}' already exists"
        super().__init__(message, details={'entity': entity, 'name': name, 'scope_id': scope_id})
        self.entity = entity
        self.name = name
        self.scope_id = scope_id


class InactiveParentException(CatalogException):
    """Raised when an operation is blocked by a deactivated ancestor."""

    kind = "InactiveParent"

    def __init__(self, entity: str, parent: str, parent_id: int):
        super().__init__(
            f"Cannot use {entity}: {parent} {parent_id} is inactive",
            details={'entity': entity, 'parent': parent, 'parent_id': parent_id}
        )
        self.entity = entity
        self.parent = parent
        self.parent_id = parent_id


class CategoryMismatchException(CatalogException):
    """Raised when a subcategory does not belong to the given category."""

    kind = "CategoryMismatch"

    def __init__(self, subcategory_id: int, category_id: int, actual_category_id: int):
        super().__init__(
            f"Subcategory {subcategory_id} belongs to category {actual_category_id}, not {category_id}",
            details={
                'subcategory_id': subcategory_id,
                'category_id': category_id,
                'actual_category_id': actual_category_id
            }
        )
        self.subcategory_id = subcategory_id
        self.category_id = category_id
        self.actual_category_id = actual_category_id

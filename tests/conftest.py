"""
Shared fixtures: a small registry of linked document schemas.

    Item.seller -> User.profile -> Profile
    Item.meta.owner -> User
"""

import pytest

from docquery_sdk.config import get_settings
from docquery_sdk.registry import SchemaRegistry
from docquery_sdk.schema import DocumentSchema, field


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached Settings so env changes in a test take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def registry():
    """Registry holding Profile, User and Item."""
    registry = SchemaRegistry()
    registry.register_schema(
        DocumentSchema(
            name="Profile",
            fields=(
                field("avatar_url", "str"),
                field("bio", "str"),
            ),
        )
    )
    registry.register_schema(
        DocumentSchema(
            name="User",
            fields=(
                field("name", "str", required=True),
                field("email", "str"),
                field("password", "str"),
                field("profile", "ref", ref="Profile"),
                field(
                    "address",
                    "object",
                    fields=(field("city", "str"), field("zip", "str")),
                ),
            ),
        )
    )
    registry.register_schema(
        DocumentSchema(
            name="Item",
            fields=(
                field("name", "str", required=True),
                field("price", "float"),
                field("description", "str"),
                field("internalNote", "str"),
                field("readOnly", "str"),
                field("seller", "ref", ref="User"),
                field("tags", "list_str"),
                field(
                    "meta",
                    "object",
                    fields=(field("owner", "ref", ref="User"), field("note", "str")),
                ),
            ),
        )
    )
    return registry


@pytest.fixture
def item_schema(registry):
    return registry.get_schema("Item")


@pytest.fixture
def user_schema(registry):
    return registry.get_schema("User")


@pytest.fixture
def profile_schema(registry):
    return registry.get_schema("Profile")

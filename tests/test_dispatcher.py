import pytest
from sqlmodel import select

from freshsheet.agent.dispatcher import ToolDispatcher, result_payload
from freshsheet.agent.registry import (
    TOOL_REGISTRY,
    RegisteredTool,
    ToolScope,
    get_tool_manifest,
    register_tool,
)
from freshsheet.agent.types import ToolError, ToolErrorKind
from freshsheet.models.agent_log import ToolCallLog
from freshsheet.models.inventory import InventoryItem


def _boom(session, context, *, item_name: str):
    item = session.exec(select(InventoryItem).where(InventoryItem.name == item_name)).first()
    item.current_quantity = -1
    session.add(item)
    session.flush()
    raise RuntimeError("database went away")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
def test_registry_has_all_tools():
    expected = {
        "search_products",
        "get_inventory",
        "get_order_history",
        "create_draft_order",
        "compare_prices",
        "get_supplier_info",
        "create_price_alert",
        "adjust_inventory",
        "reorder_item",
        "org_summary",
        "compare_restaurants",
    }
    assert expected.issubset(set(TOOL_REGISTRY.keys()))


def test_manifest_hides_org_tools_from_staff(world):
    staff_names = {t["name"] for t in get_tool_manifest(world.staff_ctx)}
    admin_names = {t["name"] for t in get_tool_manifest(world.admin_ctx)}
    assert "org_summary" not in staff_names
    assert {"org_summary", "compare_restaurants"} <= admin_names
    assert "search_products" in staff_names


def test_manifest_entries_carry_schema():
    for entry in get_tool_manifest():
        assert entry["input_schema"]["type"] == "object"
        assert entry["description"]


def test_duplicate_registration_rejected():
    with pytest.raises(ValueError):
        register_tool("search_products", "again", {"type": "object"}, TOOL_REGISTRY["search_products"].handler)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
def test_dispatch_success_is_logged(session, world):
    dispatcher = ToolDispatcher(session, conversation_id="conv-1")
    outcome = dispatcher.dispatch("get_inventory", {"low_stock_only": True}, world.staff_ctx)
    assert outcome["count"] == 1

    log = session.exec(select(ToolCallLog)).one()
    assert log.tool_name == "get_inventory"
    assert log.conversation_id == "conv-1"
    assert log.success is True


def test_unknown_tool(session, world):
    outcome = ToolDispatcher(session).dispatch("launch_rockets", {}, world.staff_ctx)
    assert isinstance(outcome, ToolError)
    assert outcome.kind == ToolErrorKind.UNKNOWN_TOOL
    assert result_payload(outcome) == {"error": "Unknown tool: launch_rockets", "kind": "UNKNOWN_TOOL"}
    assert session.exec(select(ToolCallLog)).one().success is False


def test_org_tool_forbidden_for_staff(session, world):
    outcome = ToolDispatcher(session).dispatch("org_summary", {}, world.staff_ctx)
    assert outcome.kind == ToolErrorKind.FORBIDDEN


def test_org_tool_allowed_for_admin(session, world):
    outcome = ToolDispatcher(session).dispatch("org_summary", {"time_range": "last_30_days"}, world.admin_ctx)
    assert outcome["totalRestaurants"] == 2


def test_invalid_input(session, world):
    dispatcher = ToolDispatcher(session)
    missing = dispatcher.dispatch("compare_prices", {}, world.staff_ctx)
    assert missing.kind == ToolErrorKind.INVALID_INPUT

    unexpected = dispatcher.dispatch("get_inventory", {"colour": "red"}, world.staff_ctx)
    assert unexpected.kind == ToolErrorKind.INVALID_INPUT

    not_object = dispatcher.dispatch("get_inventory", ["low"], world.staff_ctx)
    assert not_object.kind == ToolErrorKind.INVALID_INPUT


def test_handler_failure_rolls_back(session, world):
    registry = {
        "explode": RegisteredTool(
            name="explode", description="fails", parameters={"type": "object"}, handler=_boom,
        )
    }
    outcome = ToolDispatcher(session, registry=registry).dispatch(
        "explode", {"item_name": "Garlic"}, world.staff_ctx,
    )
    assert outcome.kind == ToolErrorKind.HANDLER_FAILED
    assert "database went away" in outcome.message

    item = session.get(InventoryItem, world.garlic_stock.id)
    assert item.current_quantity == 3


def test_business_error_is_a_result_not_a_failure(session, world):
    outcome = ToolDispatcher(session).dispatch("get_supplier_info", {"supplier_id": 999}, world.staff_ctx)
    assert outcome == {"error": "Supplier not found"}
    assert session.exec(select(ToolCallLog)).one().success is False


def test_scope_defaults_to_restaurant():
    assert TOOL_REGISTRY["search_products"].scope == ToolScope.RESTAURANT
    assert TOOL_REGISTRY["compare_restaurants"].scope == ToolScope.ORGANIZATION

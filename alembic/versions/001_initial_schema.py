"""Initial schema: master data, procurement, invoices, finance, inventory, opname, internal usage

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(15, 2)
QUANTITY = sa.Numeric(15, 3)
RATE = sa.Numeric(15, 4)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # --- Core ---
    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("prefix", sa.String(20), nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("prefix", "outlet_code", "year", name="uq_document_sequence_prefix_outlet_year"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("outlet_code", sa.String(20), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column("entity_identifier", sa.String(200), nullable=True),
        sa.Column("old_values", postgresql.JSONB(), nullable=True),
        sa.Column("new_values", postgresql.JSONB(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_outlet_code", "audit_logs", ["outlet_code"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    op.create_table(
        "domain_events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("event_type", sa.String(60), nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("aggregate_type", sa.String(60), nullable=False),
        sa.Column("aggregate_id", sa.BigInteger(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_domain_events_event_type", "domain_events", ["event_type"])
    op.create_index("ix_domain_events_status_id", "domain_events", ["status", "id"])

    # --- Master data ---
    op.create_table(
        "outlets",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("is_holding", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_table(
        "suppliers",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("contact_name", sa.String(200), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_table(
        "items",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("sku", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("base_unit", sa.String(20), nullable=False),
        sa.Column("purchase_unit", sa.String(20), nullable=False),
        sa.Column("conversion_rate", RATE, nullable=False, server_default="1"),
        sa.Column("buy_price", MONEY, nullable=False, server_default="0"),
        sa.Column("sell_price", MONEY, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku"),
        sa.CheckConstraint("conversion_rate > 0", name="ck_items_conversion_rate_positive"),
    )
    for table in ("usage_categories", "shrinkage_categories"):
        op.create_table(
            table,
            sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
            sa.Column("name", sa.String(100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )
    op.create_table(
        "transaction_categories",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("direction", sa.String(3), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "direction", name="uq_transaction_categories_name_direction"),
    )

    # --- Inventory ---
    op.create_table(
        "inventory_balances",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("qty_on_hand", QUANTITY, nullable=False, server_default="0"),
        sa.Column("average_cost", MONEY, nullable=False, server_default="0"),
        sa.Column("opening_balance", QUANTITY, nullable=False, server_default="0"),
        sa.Column("date_ob", sa.Date(), nullable=True),
        sa.Column("last_movement_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "item_id", name="uq_inventory_balances_outlet_item"),
        sa.CheckConstraint("qty_on_hand >= 0", name="ck_inventory_balances_qty_non_negative"),
    )
    op.create_index("ix_inventory_balances_outlet_code", "inventory_balances", ["outlet_code"])
    op.create_index("ix_inventory_balances_item_id", "inventory_balances", ["item_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("balance_id", sa.BigInteger(), sa.ForeignKey("inventory_balances.id"), nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("movement_type", sa.String(20), nullable=False),
        sa.Column("quantity", QUANTITY, nullable=False),
        sa.Column("unit_cost", MONEY, nullable=True),
        sa.Column("quantity_before", QUANTITY, nullable=False),
        sa.Column("quantity_after", QUANTITY, nullable=False),
        sa.Column("average_cost_before", MONEY, nullable=False),
        sa.Column("average_cost_after", MONEY, nullable=False),
        sa.Column("reference_type", sa.String(50), nullable=True),
        sa.Column("reference_id", sa.BigInteger(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_stock_movements_balance_id", "stock_movements", ["balance_id"])
    op.create_index("ix_stock_movements_outlet_code", "stock_movements", ["outlet_code"])
    op.create_index("ix_stock_movements_item_id", "stock_movements", ["item_id"])
    op.create_index("ix_stock_movements_movement_type", "stock_movements", ["movement_type"])
    op.create_index("ix_stock_movements_created_at", "stock_movements", ["created_at"])

    # --- Procurement ---
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("expected_delivery_date", sa.Date(), nullable=True),
        sa.Column("reference_number", sa.String(100), nullable=True),
        sa.Column("total_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancelled_reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_purchase_orders_outlet_document"),
    )
    op.create_index("ix_purchase_orders_outlet_code", "purchase_orders", ["outlet_code"])
    op.create_index("ix_purchase_orders_supplier_id", "purchase_orders", ["supplier_id"])
    op.create_index("ix_purchase_orders_status", "purchase_orders", ["status"])

    op.create_table(
        "purchase_order_items",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "po_id", sa.BigInteger(), sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("qty_ordered", QUANTITY, nullable=False),
        sa.Column("uom_purchase", sa.String(20), nullable=False),
        sa.Column("conversion_rate", RATE, nullable=False, server_default="1"),
        sa.Column("price_per_unit", MONEY, nullable=False),
        sa.Column("line_total", MONEY, nullable=False),
        sa.Column("qty_received", QUANTITY, nullable=False, server_default="0"),
        sa.Column("line_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("qty_ordered > 0", name="ck_po_items_qty_ordered_positive"),
        sa.CheckConstraint("qty_received >= 0", name="ck_po_items_qty_received_non_negative"),
        sa.CheckConstraint("qty_received <= qty_ordered", name="ck_po_items_not_over_received"),
    )
    op.create_index("ix_purchase_order_items_po_id", "purchase_order_items", ["po_id"])
    op.create_index("ix_purchase_order_items_item_id", "purchase_order_items", ["item_id"])

    op.create_table(
        "goods_receipts",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("po_id", sa.BigInteger(), sa.ForeignKey("purchase_orders.id"), nullable=False),
        sa.Column("supplier_delivery_note", sa.String(100), nullable=True),
        sa.Column("received_by", sa.String(100), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_goods_receipts_outlet_document"),
    )
    op.create_index("ix_goods_receipts_outlet_code", "goods_receipts", ["outlet_code"])
    op.create_index("ix_goods_receipts_po_id", "goods_receipts", ["po_id"])

    op.create_table(
        "goods_receipt_items",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "gr_id", sa.BigInteger(), sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("po_item_id", sa.BigInteger(), sa.ForeignKey("purchase_order_items.id"), nullable=False),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("qty_received", QUANTITY, nullable=False),
        sa.Column("conversion_rate", RATE, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("qty_received > 0", name="ck_gr_items_qty_positive"),
    )
    op.create_index("ix_goods_receipt_items_gr_id", "goods_receipt_items", ["gr_id"])
    op.create_index("ix_goods_receipt_items_po_item_id", "goods_receipt_items", ["po_item_id"])

    # --- Invoices ---
    op.create_table(
        "invoices",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id"), nullable=False),
        sa.Column("po_id", sa.BigInteger(), sa.ForeignKey("purchase_orders.id"), nullable=False),
        sa.Column("supplier_invoice_ref", sa.String(100), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("amount_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("discount_total", MONEY, nullable=False, server_default="0"),
        sa.Column("remaining_balance", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("po_id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_invoices_outlet_document"),
        sa.CheckConstraint("remaining_balance >= 0", name="ck_invoices_remaining_non_negative"),
    )
    op.create_index("ix_invoices_outlet_code", "invoices", ["outlet_code"])
    op.create_index("ix_invoices_supplier_id", "invoices", ["supplier_id"])
    op.create_index("ix_invoices_due_date", "invoices", ["due_date"])
    op.create_index("ix_invoices_status", "invoices", ["status"])

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("po_item_id", sa.BigInteger(), sa.ForeignKey("purchase_order_items.id"), nullable=False),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("qty_received", QUANTITY, nullable=False),
        sa.Column("price_per_unit", MONEY, nullable=False),
        sa.Column("line_total", MONEY, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"])

    # --- Finance ---
    op.create_table(
        "financial_accounts",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("account_name", sa.String(200), nullable=False),
        sa.Column("account_type", sa.String(10), nullable=False),
        sa.Column("bank_name", sa.String(100), nullable=True),
        sa.Column("account_number", sa.String(50), nullable=True),
        sa.Column("balance", MONEY, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "account_name", name="uq_financial_accounts_outlet_name"),
        sa.CheckConstraint("balance >= 0", name="ck_financial_accounts_balance_non_negative"),
    )
    op.create_index("ix_financial_accounts_outlet_code", "financial_accounts", ["outlet_code"])

    op.create_table(
        "account_transactions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.BigInteger(), sa.ForeignKey("financial_accounts.id"), nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("direction", sa.String(3), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("balance_before", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("reference_type", sa.String(50), nullable=False),
        sa.Column("reference_id", sa.BigInteger(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount >= 0", name="ck_account_transactions_amount_non_negative"),
    )
    op.create_index("ix_account_transactions_account_id", "account_transactions", ["account_id"])
    op.create_index("ix_account_transactions_outlet_code", "account_transactions", ["outlet_code"])
    op.create_index("ix_account_transactions_transaction_date", "account_transactions", ["transaction_date"])

    op.create_table(
        "general_transactions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column(
            "financial_account_id", sa.BigInteger(), sa.ForeignKey("financial_accounts.id"), nullable=False
        ),
        sa.Column("transaction_type", sa.String(3), nullable=False),
        sa.Column("category_id", sa.BigInteger(), sa.ForeignKey("transaction_categories.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_general_transactions_outlet_document"),
        sa.CheckConstraint("amount > 0", name="ck_general_transactions_amount_positive"),
    )
    op.create_index("ix_general_transactions_outlet_code", "general_transactions", ["outlet_code"])
    op.create_index(
        "ix_general_transactions_financial_account_id", "general_transactions", ["financial_account_id"]
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id"), nullable=False),
        sa.Column(
            "financial_account_id", sa.BigInteger(), sa.ForeignKey("financial_accounts.id"), nullable=False
        ),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("total_cash_amount", MONEY, nullable=False),
        sa.Column("total_discount_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(100), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_payments_outlet_document"),
        sa.UniqueConstraint("outlet_code", "idempotency_key", name="uq_payments_outlet_idempotency_key"),
    )
    op.create_index("ix_payments_outlet_code", "payments", ["outlet_code"])
    op.create_index("ix_payments_supplier_id", "payments", ["supplier_id"])
    op.create_index("ix_payments_financial_account_id", "payments", ["financial_account_id"])

    op.create_table(
        "payment_allocations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "payment_id", sa.BigInteger(), sa.ForeignKey("payments.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("remaining_before", MONEY, nullable=False),
        sa.Column("cash_amount", MONEY, nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_id", "invoice_id", name="uq_payment_allocations_payment_invoice"),
        sa.CheckConstraint("cash_amount >= 0", name="ck_payment_allocations_cash_non_negative"),
        sa.CheckConstraint("discount_amount >= 0", name="ck_payment_allocations_discount_non_negative"),
    )
    op.create_index("ix_payment_allocations_payment_id", "payment_allocations", ["payment_id"])
    op.create_index("ix_payment_allocations_invoice_id", "payment_allocations", ["invoice_id"])

    # --- Stock opname and shrinkage ---
    op.create_table(
        "stock_opnames",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("mode", sa.String(10), nullable=False),
        sa.Column("opname_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="COMPLETED"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_stock_opnames_outlet_document"),
    )
    op.create_index("ix_stock_opnames_outlet_code", "stock_opnames", ["outlet_code"])
    op.create_index("ix_stock_opnames_opname_date", "stock_opnames", ["opname_date"])

    op.create_table(
        "stock_opname_lines",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "opname_id", sa.BigInteger(), sa.ForeignKey("stock_opnames.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("system_qty", QUANTITY, nullable=False),
        sa.Column("actual_qty", QUANTITY, nullable=False),
        sa.Column("difference", QUANTITY, nullable=False),
        sa.Column("unit_cost", MONEY, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("line_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("opname_id", "item_id", name="uq_stock_opname_lines_opname_item"),
        sa.CheckConstraint("actual_qty >= 0", name="ck_stock_opname_lines_actual_non_negative"),
    )
    op.create_index("ix_stock_opname_lines_opname_id", "stock_opname_lines", ["opname_id"])
    op.create_index("ix_stock_opname_lines_item_id", "stock_opname_lines", ["item_id"])

    op.create_table(
        "shrinkage_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column(
            "shrinkage_category_id", sa.BigInteger(), sa.ForeignKey("shrinkage_categories.id"), nullable=False
        ),
        sa.Column("qty_lost", QUANTITY, nullable=False),
        sa.Column("unit_cost", MONEY, nullable=False, server_default="0"),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_shrinkage_logs_outlet_document"),
        sa.CheckConstraint("qty_lost > 0", name="ck_shrinkage_logs_qty_positive"),
    )
    op.create_index("ix_shrinkage_logs_outlet_code", "shrinkage_logs", ["outlet_code"])
    op.create_index("ix_shrinkage_logs_item_id", "shrinkage_logs", ["item_id"])
    op.create_index("ix_shrinkage_logs_transaction_date", "shrinkage_logs", ["transaction_date"])

    # --- Internal usage and returns ---
    op.create_table(
        "internal_usages",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("category_id", sa.BigInteger(), sa.ForeignKey("usage_categories.id"), nullable=False),
        sa.Column("requested_by", sa.String(200), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_internal_usages_outlet_document"),
    )
    op.create_index("ix_internal_usages_outlet_code", "internal_usages", ["outlet_code"])
    op.create_index("ix_internal_usages_category_id", "internal_usages", ["category_id"])
    op.create_index("ix_internal_usages_transaction_date", "internal_usages", ["transaction_date"])

    op.create_table(
        "internal_usage_lines",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "usage_id", sa.BigInteger(), sa.ForeignKey("internal_usages.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("qty_used", QUANTITY, nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("unit_cost", MONEY, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("line_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("qty_used > 0", name="ck_internal_usage_lines_qty_positive"),
    )
    op.create_index("ix_internal_usage_lines_usage_id", "internal_usage_lines", ["usage_id"])
    op.create_index("ix_internal_usage_lines_item_id", "internal_usage_lines", ["item_id"])

    op.create_table(
        "internal_returns",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("outlet_code", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("category_id", sa.BigInteger(), sa.ForeignKey("usage_categories.id"), nullable=False),
        sa.Column("returned_by", sa.String(200), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_code", "document_number", name="uq_internal_returns_outlet_document"),
    )
    op.create_index("ix_internal_returns_outlet_code", "internal_returns", ["outlet_code"])
    op.create_index("ix_internal_returns_category_id", "internal_returns", ["category_id"])
    op.create_index("ix_internal_returns_transaction_date", "internal_returns", ["transaction_date"])

    op.create_table(
        "internal_return_lines",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "return_id", sa.BigInteger(), sa.ForeignKey("internal_returns.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("qty_returned", QUANTITY, nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("unit_cost", MONEY, nullable=False, server_default="0"),
        sa.Column("condition_notes", sa.Text(), nullable=True),
        sa.Column("line_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("qty_returned > 0", name="ck_internal_return_lines_qty_positive"),
    )
    op.create_index("ix_internal_return_lines_return_id", "internal_return_lines", ["return_id"])
    op.create_index("ix_internal_return_lines_item_id", "internal_return_lines", ["item_id"])


def downgrade() -> None:
    for table in (
        "internal_return_lines",
        "internal_returns",
        "internal_usage_lines",
        "internal_usages",
        "shrinkage_logs",
        "stock_opname_lines",
        "stock_opnames",
        "payment_allocations",
        "payments",
        "general_transactions",
        "account_transactions",
        "financial_accounts",
        "invoice_lines",
        "invoices",
        "goods_receipt_items",
        "goods_receipts",
        "purchase_order_items",
        "purchase_orders",
        "stock_movements",
        "inventory_balances",
        "transaction_categories",
        "shrinkage_categories",
        "usage_categories",
        "items",
        "suppliers",
        "outlets",
        "domain_events",
        "audit_logs",
        "document_sequences",
    ):
        op.drop_table(table)

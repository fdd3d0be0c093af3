"""Standard field catalog seeded into standard_field_definitions.

One entry per (domain, field_name). Aliases are matched case-insensitively
against source column names.
"""

CURRENCY_CODES = ["USD", "EUR", "GBP", "CAD", "MXN", "AUD", "JPY"]
UNITS_OF_MEASURE = ["each", "kg", "g", "lb", "oz", "l", "ml", "gal", "case", "box", "pack", "dozen"]
EMAIL_REGEX = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_REGEX = r"^\+?[0-9 ()./-]{7,20}$"


def _field(
    name,
    display,
    data_type="text",
    required=False,
    aliases=(),
    allowed=None,
    regex=None,
    min_value=None,
    max_value=None,
    description=None,
):
    return {
        "field_name": name,
        "display_name": display,
        "data_type": data_type,
        "is_required": required,
        "common_aliases": list(aliases),
        "allowed_values": allowed,
        "validation_regex": regex,
        "min_value": min_value,
        "max_value": max_value,
        "description": description,
    }


STANDARD_FIELDS = {
    "inventory": [
        _field("item_name", "Item Name", required=True,
               aliases=["name", "item", "product name", "description", "item description"]),
        _field("sku_code", "SKU", aliases=["sku", "item code", "item_code", "product code", "part number"]),
        _field("quantity", "Quantity on Hand", "decimal", required=True,
               aliases=["qty", "on hand", "stock", "quantity on hand", "qoh", "count"], min_value=0),
        _field("unit_of_measure", "Unit of Measure", aliases=["uom", "unit", "units"],
               allowed=UNITS_OF_MEASURE),
        _field("unit_cost", "Unit Cost", "currency", aliases=["cost", "cost per unit", "avg cost"], min_value=0),
        _field("reorder_point", "Reorder Point", "decimal", aliases=["reorder level", "min stock", "par level"],
               min_value=0),
        _field("storage_location", "Storage Location", aliases=["location", "bin", "warehouse", "storage"]),
        _field("supplier_name", "Supplier", aliases=["supplier", "vendor", "vendor name"]),
        _field("expiration_date", "Expiration Date", "date", aliases=["expiry", "expires", "best before", "exp date"]),
        _field("product_category", "Category", aliases=["category", "type", "group"]),
    ],
    "orders": [
        _field("order_id", "Order ID", required=True,
               aliases=["order number", "order no", "order #", "orderid", "order_number", "invoice number"]),
        _field("order_date", "Order Date", "date", required=True, aliases=["date", "ordered", "order placed"]),
        _field("customer_name", "Customer", aliases=["customer", "client", "buyer", "bill to"]),
        _field("item_name", "Item", aliases=["item", "product", "product name", "description"]),
        _field("quantity", "Quantity", "decimal", aliases=["qty", "units", "amount ordered"], min_value=0),
        _field("unit_price", "Unit Price", "currency", aliases=["price", "price each", "rate"], min_value=0),
        _field("total_amount", "Total Amount", "currency", required=True,
               aliases=["total", "order total", "amount", "grand total", "line total"], min_value=0),
        _field("currency", "Currency", aliases=["currency code", "curr"], allowed=CURRENCY_CODES),
        _field("order_status", "Order Status", aliases=["status", "state", "fulfillment status"],
               allowed=["pending", "confirmed", "shipped", "delivered", "cancelled", "returned"]),
        _field("sales_channel", "Sales Channel", aliases=["channel", "source", "platform"]),
    ],
    "suppliers": [
        _field("supplier_name", "Supplier Name", required=True,
               aliases=["supplier", "vendor", "vendor name", "company", "name"]),
        _field("supplier_code", "Supplier Code", aliases=["vendor id", "supplier id", "vendor code"]),
        _field("contact_name", "Contact", aliases=["contact", "contact person", "representative"]),
        _field("contact_email", "Contact Email", "email", aliases=["email", "e-mail", "email address"],
               regex=EMAIL_REGEX),
        _field("contact_phone", "Contact Phone", "phone", aliases=["phone", "telephone", "phone number", "tel"],
               regex=PHONE_REGEX),
        _field("address", "Address", aliases=["street", "street address", "location"]),
        _field("payment_terms", "Payment Terms", aliases=["terms", "net terms"]),
        _field("lead_time_days", "Lead Time (days)", "integer", aliases=["lead time", "delivery days"],
               min_value=0, max_value=365),
    ],
    "customers": [
        _field("customer_name", "Customer Name", required=True,
               aliases=["customer", "client", "name", "full name", "company name"]),
        _field("customer_id", "Customer ID", aliases=["client id", "account number", "account id"]),
        _field("contact_email", "Email", "email", aliases=["email", "e-mail", "email address"], regex=EMAIL_REGEX),
        _field("contact_phone", "Phone", "phone", aliases=["phone", "telephone", "mobile", "cell"],
               regex=PHONE_REGEX),
        _field("address", "Address", aliases=["street", "street address", "billing address"]),
        _field("city", "City", aliases=["town"]),
        _field("country", "Country", aliases=["nation", "country code"]),
        _field("customer_segment", "Segment", aliases=["segment", "tier", "customer type"]),
        _field("lifetime_value", "Lifetime Value", "currency", aliases=["ltv", "clv", "total spent"], min_value=0),
    ],
    "financial": [
        _field("transaction_id", "Transaction ID", required=True,
               aliases=["transaction", "txn id", "reference", "ref", "journal id"]),
        _field("transaction_date", "Transaction Date", "date", required=True,
               aliases=["date", "posted", "posting date", "value date"]),
        _field("account_name", "Account", aliases=["account", "gl account", "ledger account"]),
        _field("amount", "Amount", "currency", required=True, aliases=["value", "sum", "total"]),
        _field("transaction_type", "Type", aliases=["type", "debit/credit", "dr/cr"],
               allowed=["debit", "credit"]),
        _field("currency", "Currency", aliases=["currency code", "curr"], allowed=CURRENCY_CODES),
        _field("counterparty", "Counterparty", aliases=["payee", "payer", "vendor", "customer"]),
        _field("memo", "Memo", aliases=["description", "notes", "narrative"]),
    ],
    "recipes": [
        _field("recipe_name", "Recipe", required=True, aliases=["recipe", "dish", "menu item", "name"]),
        _field("ingredient_name", "Ingredient", required=True, aliases=["ingredient", "component", "material"]),
        _field("quantity", "Quantity", "decimal", required=True, aliases=["qty", "amount", "portion"],
               min_value=0),
        _field("unit_of_measure", "Unit", aliases=["uom", "unit", "units"], allowed=UNITS_OF_MEASURE),
        _field("yield_quantity", "Yield", "decimal", aliases=["yield", "servings", "portions"], min_value=0),
        _field("prep_time_minutes", "Prep Time (min)", "integer", aliases=["prep time", "prep minutes"],
               min_value=0),
    ],
    "ingredients": [
        _field("ingredient_name", "Ingredient Name", required=True,
               aliases=["ingredient", "name", "item", "material"]),
        _field("sku_code", "SKU", aliases=["sku", "code", "item code"]),
        _field("unit_of_measure", "Unit", aliases=["uom", "unit", "units"], allowed=UNITS_OF_MEASURE),
        _field("unit_cost", "Unit Cost", "currency", aliases=["cost", "price", "cost per unit"], min_value=0),
        _field("package_size", "Package Size", "decimal", aliases=["pack size", "case size", "size"], min_value=0),
        _field("shelf_life_days", "Shelf Life (days)", "integer", aliases=["shelf life", "shelf_life"],
               min_value=0),
        _field("allergens", "Allergens", aliases=["allergen", "contains"]),
    ],
    "menu_items": [
        _field("item_name", "Menu Item", required=True, aliases=["item", "dish", "product", "name"]),
        _field("pos_item_id", "POS Item ID", aliases=["pos id", "plu", "item id"]),
        _field("selling_price", "Selling Price", "currency", required=True,
               aliases=["price", "menu price", "retail price"], min_value=0),
        _field("product_category", "Category", aliases=["category", "section", "menu category"]),
        _field("is_active", "Active", "boolean", aliases=["active", "enabled", "available"]),
        _field("calories", "Calories", "integer", aliases=["kcal", "energy"], min_value=0, max_value=5000),
    ],
    "sales": [
        _field("sale_id", "Sale ID", required=True, aliases=["receipt", "receipt number", "ticket", "check number"]),
        _field("sale_date", "Sale Date", "date", required=True, aliases=["date", "sold on", "business date"]),
        _field("item_name", "Item", aliases=["item", "product", "menu item"]),
        _field("quantity", "Quantity Sold", "decimal", aliases=["qty", "units sold", "count"], min_value=0),
        _field("net_sales", "Net Sales", "currency", required=True, aliases=["net", "net amount", "revenue"]),
        _field("discount_amount", "Discount", "currency", aliases=["discount", "promo", "comp"], min_value=0),
        _field("tax_amount", "Tax", "currency", aliases=["tax", "vat", "sales tax"], min_value=0),
        _field("payment_method", "Payment Method", aliases=["payment", "tender", "paid with"],
               allowed=["cash", "card", "credit", "debit", "mobile", "gift card", "other"]),
    ],
    "purchases": [
        _field("purchase_order_id", "PO Number", required=True,
               aliases=["po", "po number", "po #", "purchase order", "po_number"]),
        _field("supplier_name", "Supplier", required=True, aliases=["supplier", "vendor", "vendor name"]),
        _field("order_date", "Order Date", "date", aliases=["date", "po date"]),
        _field("expected_delivery_date", "Expected Delivery", "date", aliases=["delivery date", "eta", "due date"]),
        _field("item_name", "Item", aliases=["item", "product", "description"]),
        _field("quantity", "Quantity", "decimal", aliases=["qty", "units", "ordered qty"], min_value=0),
        _field("unit_cost", "Unit Cost", "currency", aliases=["cost", "price"], min_value=0),
        _field("total_cost", "Total Cost", "currency", aliases=["total", "po total", "amount"], min_value=0),
    ],
    "logistics": [
        _field("shipment_id", "Shipment ID", required=True, aliases=["shipment", "tracking number", "tracking", "awb"]),
        _field("carrier", "Carrier", aliases=["shipper", "courier", "carrier name"]),
        _field("ship_date", "Ship Date", "date", aliases=["shipped", "dispatch date"]),
        _field("delivery_date", "Delivery Date", "date", aliases=["delivered", "arrival date"]),
        _field("origin", "Origin", aliases=["from", "ship from"]),
        _field("destination", "Destination", aliases=["to", "ship to"]),
        _field("weight_kg", "Weight (kg)", "decimal", aliases=["weight", "kg"], min_value=0),
        _field("shipping_cost", "Shipping Cost", "currency", aliases=["freight", "freight cost", "shipping"],
               min_value=0),
        _field("shipment_status", "Status", aliases=["status", "delivery status"],
               allowed=["pending", "in_transit", "delivered", "exception", "returned"]),
    ],
}

ENTITY_TYPES = list(STANDARD_FIELDS)

SCHEMA_SQL = r"""
-- Suppliers
CREATE TABLE IF NOT EXISTS suppliers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  phone TEXT,
  email TEXT
);

-- Categories
CREATE TABLE IF NOT EXISTS categories (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

-- Products (master data only: never carries price or stock)
CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  category_id INTEGER,
  supplier_id INTEGER,
  barcode TEXT UNIQUE,
  min_stock_level INTEGER NOT NULL DEFAULT 0 CHECK (min_stock_level >= 0),
  has_vat INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE SET NULL,
  FOREIGN KEY (supplier_id) REFERENCES suppliers(id)
);

-- Purchase invoices
CREATE TABLE IF NOT EXISTS purchase_invoices (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  invoice_number TEXT NOT NULL UNIQUE,
  supplier_id INTEGER NOT NULL,
  invoice_date TEXT NOT NULL,            -- ISO date
  notes TEXT,
  created_by TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY (supplier_id) REFERENCES suppliers(id)
);

-- Product batches (one purchase lot; pricing is batch-specific)
-- Money columns are TEXT holding exact decimal strings.
CREATE TABLE IF NOT EXISTS product_batches (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  product_id INTEGER NOT NULL,
  supplier_id INTEGER NOT NULL,
  purchase_invoice_id INTEGER NOT NULL,
  batch_number TEXT NOT NULL,
  expiry_date TEXT,                      -- ISO date, optional
  received_at TEXT NOT NULL,             -- ISO datetime

  has_vat INTEGER NOT NULL DEFAULT 0,
  vat_rate TEXT NOT NULL DEFAULT '0',
  markup_multiplier TEXT NOT NULL,       -- multiplier the prices below were marked up with
  original_cost TEXT NOT NULL,
  discount_percent TEXT,                 -- NULL when no supplier discount
  discounted_cost TEXT,                  -- NULL when no supplier discount
  minimum_price_ex_vat TEXT,             -- NULL when no supplier discount
  minimum_price_rounded TEXT,
  target_price_ex_vat TEXT NOT NULL,
  target_price_rounded TEXT NOT NULL,

  quantity_received INTEGER NOT NULL CHECK (quantity_received > 0),

  UNIQUE (product_id, batch_number),
  FOREIGN KEY (product_id) REFERENCES products(id),
  FOREIGN KEY (supplier_id) REFERENCES suppliers(id),
  FOREIGN KEY (purchase_invoice_id) REFERENCES purchase_invoices(id)
);

CREATE INDEX IF NOT EXISTS idx_product_batches_product ON product_batches(product_id);

-- Stock ledger: current stock = SUM(quantity) per batch
CREATE TABLE IF NOT EXISTS stock_movements (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  batch_id INTEGER NOT NULL,
  movement_type TEXT NOT NULL CHECK (movement_type IN ('purchase', 'sale', 'adjustment')),
  quantity INTEGER NOT NULL CHECK (quantity <> 0),
  reference_type TEXT,
  reference_id TEXT,
  notes TEXT,
  created_by TEXT,
  created_at TEXT NOT NULL,
  CHECK (movement_type <> 'purchase' OR quantity > 0),
  CHECK (movement_type <> 'sale' OR quantity < 0),
  FOREIGN KEY (batch_id) REFERENCES product_batches(id)
);

CREATE INDEX IF NOT EXISTS idx_stock_movements_batch ON stock_movements(batch_id);
CREATE INDEX IF NOT EXISTS idx_stock_movements_created ON stock_movements(created_at);

-- Sales (header)
CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  receipt_number TEXT NOT NULL UNIQUE,
  sale_ts TEXT NOT NULL,                 -- ISO datetime
  total_amount TEXT NOT NULL,
  created_by TEXT
);

-- Sale line items (immutable snapshot; per-unit money values)
CREATE TABLE IF NOT EXISTS sale_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL,
  batch_id INTEGER NOT NULL,
  movement_id INTEGER NOT NULL UNIQUE,
  quantity INTEGER NOT NULL CHECK (quantity > 0),
  price_tier TEXT NOT NULL CHECK (price_tier IN ('MINIMUM', 'TARGET')),
  has_vat INTEGER NOT NULL,
  vat_rate TEXT NOT NULL,
  selling_price_ex_vat TEXT NOT NULL,
  vat_amount TEXT NOT NULL,
  final_price_raw TEXT NOT NULL,
  final_price_rounded TEXT NOT NULL,
  rounding_extra TEXT NOT NULL,
  cost_at_sale TEXT NOT NULL,
  original_cost TEXT NOT NULL,
  discounted_cost TEXT,
  markup_multiplier TEXT NOT NULL,
  profit TEXT NOT NULL,
  FOREIGN KEY (sale_id) REFERENCES sales(id),
  FOREIGN KEY (batch_id) REFERENCES product_batches(id),
  FOREIGN KEY (movement_id) REFERENCES stock_movements(id)
);

CREATE INDEX IF NOT EXISTS idx_sale_items_sale ON sale_items(sale_id);

-- Sale reversals (additive correction; the sale itself is never edited)
CREATE TABLE IF NOT EXISTS sale_reversals (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL UNIQUE,
  reversed_ts TEXT NOT NULL,
  reason TEXT,
  created_by TEXT,
  FOREIGN KEY (sale_id) REFERENCES sales(id)
);

-- Purchase reversals (additive correction; received batches are taken back out)
CREATE TABLE IF NOT EXISTS purchase_reversals (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  invoice_id INTEGER NOT NULL UNIQUE,
  reversed_ts TEXT NOT NULL,
  reason TEXT,
  created_by TEXT,
  FOREIGN KEY (invoice_id) REFERENCES purchase_invoices(id)
);

-- Stock take
CREATE TABLE IF NOT EXISTS stock_take_sessions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'in_progress' CHECK (status IN ('in_progress', 'completed')),
  created_by TEXT,
  started_at TEXT NOT NULL,
  completed_at TEXT
);

CREATE TABLE IF NOT EXISTS stock_take_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id INTEGER NOT NULL,
  batch_id INTEGER NOT NULL,
  expected_quantity INTEGER NOT NULL,
  actual_quantity INTEGER CHECK (actual_quantity IS NULL OR actual_quantity >= 0),
  UNIQUE (session_id, batch_id),
  FOREIGN KEY (session_id) REFERENCES stock_take_sessions(id) ON DELETE CASCADE,
  FOREIGN KEY (batch_id) REFERENCES product_batches(id)
);
"""

# Storage-level guards. Kept separate so the demo wipe can drop and restore them.
GUARD_TRIGGERS_SQL = r"""
CREATE TRIGGER IF NOT EXISTS trg_stock_movements_no_update
BEFORE UPDATE ON stock_movements
BEGIN
  SELECT RAISE(ABORT, 'stock movements are append-only');
END;

CREATE TRIGGER IF NOT EXISTS trg_stock_movements_no_delete
BEFORE DELETE ON stock_movements
BEGIN
  SELECT RAISE(ABORT, 'stock movements are append-only');
END;

CREATE TRIGGER IF NOT EXISTS trg_stock_movements_no_negative
BEFORE INSERT ON stock_movements
WHEN NEW.quantity < 0
  AND (SELECT COALESCE(SUM(quantity), 0) FROM stock_movements WHERE batch_id = NEW.batch_id) + NEW.quantity < 0
BEGIN
  SELECT RAISE(ABORT, 'insufficient stock for batch');
END;

CREATE TRIGGER IF NOT EXISTS trg_product_batches_pricing_immutable
BEFORE UPDATE OF original_cost, discount_percent, discounted_cost, vat_rate, has_vat, markup_multiplier,
                 minimum_price_ex_vat, minimum_price_rounded,
                 target_price_ex_vat, target_price_rounded, quantity_received
ON product_batches
BEGIN
  SELECT RAISE(ABORT, 'batch pricing is immutable; receive a new batch to re-price');
END;

CREATE TRIGGER IF NOT EXISTS trg_sale_items_no_update
BEFORE UPDATE ON sale_items
BEGIN
  SELECT RAISE(ABORT, 'sale line items are immutable');
END;

CREATE TRIGGER IF NOT EXISTS trg_sale_items_no_delete
BEFORE DELETE ON sale_items
BEGIN
  SELECT RAISE(ABORT, 'sale line items are immutable');
END;
"""

GUARD_TRIGGER_NAMES = [
    "trg_stock_movements_no_update",
    "trg_stock_movements_no_delete",
    "trg_stock_movements_no_negative",
    "trg_product_batches_pricing_immutable",
    "trg_sale_items_no_update",
    "trg_sale_items_no_delete",
]

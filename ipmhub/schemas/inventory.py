import enum
from typing import Optional

from pydantic import field_validator

from .common import StoreModel, RequestModel


class ProductCategory(str, enum.Enum):
    insecticide = "Insecticide"
    rodenticide = "Rodenticide"
    bait = "Bait"
    equipment = "Equipment"
    ppe = "PPE"
    other = "Other"


class StockUnit(str, enum.Enum):
    ml = "ml"
    litre = "L"
    g = "g"
    kg = "kg"
    pcs = "pcs"
    box = "box"
    roll = "roll"
    pair = "pair"


class StockLogType(str, enum.Enum):
    add = "add"
    usage = "usage"
    adjust = "adjust"


class EntryType(str, enum.Enum):
    admin_adjustment = "admin_adjustment"
    staff_usage = "staff_usage"


class Product(StoreModel):
    key: str
    name: str = ""
    category: str = ProductCategory.insecticide.value
    brand: Optional[str] = None
    unit: str = StockUnit.ml.value
    sku: Optional[str] = None
    min_stock: float = 0
    opening_stock: float = 0
    notes: Optional[str] = None
    active: bool = True
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator("min_stock", "opening_stock", mode="before")
    @classmethod
    def none_to_zero(cls, v):
        return 0 if v in (None, "") else v


class ProductWithStock(Product):
    current_stock: float = 0
    low_stock: bool = False


class ProductSave(RequestModel):
    name: str = ""
    category: ProductCategory = ProductCategory.insecticide
    brand: str = ""
    unit: StockUnit = StockUnit.ml
    sku: str = ""
    min_stock: float = 500
    opening_stock: float = 0
    notes: str = ""
    active: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def strip_text(cls, v):
        return str(v or "").strip()

    @field_validator("min_stock", "opening_stock", mode="before")
    @classmethod
    def blank_to_zero(cls, v):
        try:
            return float(v)
        except (TypeError, ValueError):
            return 0


class StockLog(StoreModel):
    key: str
    product_key: str
    type: str
    qty: float = 0
    date: str = ""
    project_key: Optional[str] = None
    user_key: Optional[str] = None
    batch_no: Optional[str] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None
    entry_type: Optional[str] = None
    created_at: Optional[int] = None


class StockAdjustRequest(RequestModel):
    type: StockLogType = StockLogType.add
    qty: float = 0
    date: Optional[str] = None
    batch_no: str = ""
    supplier: str = ""
    notes: str = ""


class UsageRequest(RequestModel):
    product_key: str = ""
    project_key: str = ""
    qty: float = 0
    date: Optional[str] = None
    batch_no: str = ""
    notes: str = ""


class TrendPoint(RequestModel):
    day: int
    stock: float
    used: float
    received: float


class MonthTotals(RequestModel):
    month: str
    total_products: int
    low_stock: int
    usage: float
    stock_in: float

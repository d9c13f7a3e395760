from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from ..auth.security import get_context, require_roles
from ..document_creator.pdf_builder import build_inventory_pdf
from ..logging import structlog
from ..schemas.inventory import (
    EntryType,
    MonthTotals,
    ProductSave,
    ProductWithStock,
    StockAdjustRequest,
    StockLog,
    StockLogType,
    TrendPoint,
    UsageRequest,
)
from ..schemas.users import User, UserRole
from ..services import access, ledger
from ..services.data_context import DataContext
from ..services.time_rules import current_month, parse_month, today_str


router = APIRouter(prefix="/inventory", tags=["inventory"])
logger = structlog.get_logger(__name__)


def _month(month: Optional[str]) -> str:
    month = month or current_month()
    try:
        parse_month(month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return month


def _stocked(ctx: DataContext, user: User) -> List[ProductWithStock]:
    products = ledger.with_stock(ctx.products, ctx.stock_logs)
    if user.role != UserRole.admin:
        products = [p for p in products if p.active]
    return products


def _one(ctx: DataContext, key: str) -> ProductWithStock:
    product = ctx.get_product(key)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ledger.with_stock([product], ctx.stock_logs)[0]


# ---------- PRODUCTS ----------
@router.get("/products", response_model=List[ProductWithStock])
def list_products(
    q: Optional[str] = None,
    category: Optional[str] = None,
    ctx: DataContext = Depends(get_context),
    user: User = Depends(require_roles("admin", "staff")),
):
    return ledger.filter_products(_stocked(ctx, user), q, category)


@router.get("/products/low-stock", response_model=List[ProductWithStock])
def low_stock(ctx: DataContext = Depends(get_context), user: User = Depends(require_roles("admin", "staff"))):
    return [p for p in _stocked(ctx, user) if p.low_stock]


@router.get("/products/{key}", response_model=ProductWithStock)
def get_product(key: str, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin", "staff"))):
    return _one(ctx, key)


def _payload(body: ProductSave) -> dict:
    if not body.name:
        raise HTTPException(status_code=400, detail="Product name required")
    return {
        "name": body.name,
        "category": body.category.value,
        "brand": body.brand,
        "unit": body.unit.value,
        "sku": body.sku,
        "minStock": body.min_stock,
        "openingStock": body.opening_stock,
        "notes": body.notes,
        "active": body.active,
    }


@router.post("/products", response_model=ProductWithStock)
def create_product(body: ProductSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    key = ctx.save_product(_payload(body))
    return _one(ctx, key)


@router.put("/products/{key}", response_model=ProductWithStock)
def update_product(key: str, body: ProductSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    if not ctx.get_product(key):
        raise HTTPException(status_code=404, detail="Product not found")
    ctx.save_product(_payload(body), key)
    return _one(ctx, key)


@router.delete("/products/{key}")
def delete_product(key: str, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    if not ctx.get_product(key):
        raise HTTPException(status_code=404, detail="Product not found")
    removed = ctx.delete_product(key)
    return {"message": "Product deleted", "logsRemoved": removed}


# ---------- STOCK MOVEMENTS ----------
@router.post("/products/{key}/adjust", response_model=ProductWithStock)
def adjust_stock(key: str, body: StockAdjustRequest, ctx: DataContext = Depends(get_context), admin: User = Depends(require_roles("admin"))):
    if not ctx.get_product(key):
        raise HTTPException(status_code=404, detail="Product not found")
    if not body.qty or body.qty <= 0:
        raise HTTPException(status_code=400, detail="Enter valid quantity")
    ctx.save_stock_log({
        "productKey": key,
        "type": body.type.value,
        "qty": body.qty,
        "batchNo": body.batch_no,
        "supplier": body.supplier,
        "date": body.date or today_str(),
        "notes": body.notes,
        "userKey": admin.key,
        "entryType": EntryType.admin_adjustment.value,
    })
    logger.info("stock_adjusted", product_key=key, type=body.type.value, qty=body.qty)
    return _one(ctx, key)


@router.post("/usage", response_model=StockLog)
def log_usage(body: UsageRequest, ctx: DataContext = Depends(get_context), user: User = Depends(require_roles("admin", "staff"))):
    product = ctx.get_product(body.product_key)
    if not product or not product.active or not body.qty or body.qty <= 0:
        raise HTTPException(status_code=400, detail="Select product and enter quantity")
    if not body.project_key:
        raise HTTPException(status_code=400, detail="Select a project")
    if not access.can_enter_for(user, ctx.get_project(body.project_key)):
        raise HTTPException(status_code=403, detail="Project not available for data entry")
    key = ctx.save_stock_log({
        "productKey": product.key,
        "projectKey": body.project_key,
        "qty": body.qty,
        "batchNo": body.batch_no,
        "date": body.date or today_str(),
        "notes": body.notes,
        "userKey": user.key,
        "type": StockLogType.usage.value,
        "entryType": EntryType.staff_usage.value,
    })
    logger.info("stock_usage_logged", product_key=product.key, project_key=body.project_key, qty=body.qty)
    return ctx.get_stock_log(key)


# ---------- MONTH VIEWS ----------
@router.get("/logs", response_model=List[StockLog])
def month_logs(month: Optional[str] = None, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin", "staff"))):
    return ledger.sorted_month_logs(ctx.stock_logs, _month(month))


@router.get("/summary", response_model=MonthTotals)
def month_summary(month: Optional[str] = None, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin", "staff"))):
    return ledger.month_totals(ctx.products, ctx.stock_logs, _month(month))


@router.get("/usage-by-product")
def usage_by_product(month: Optional[str] = None, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin", "staff"))):
    return ledger.usage_by_product(ctx.products, ctx.stock_logs, _month(month))


@router.get("/products/{key}/trend", response_model=List[TrendPoint])
def product_trend(key: str, month: Optional[str] = None, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin", "staff"))):
    product = ctx.get_product(key)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    try:
        return ledger.month_trend(product, ctx.stock_logs, _month(month))
    except ledger.LedgerError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/report.pdf")
def inventory_pdf(month: Optional[str] = Query(None), ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin", "staff"))):
    month = _month(month)
    pdf = build_inventory_pdf(ctx.products, ctx.stock_logs, ctx.users, ctx.projects, month)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="inventory_{month}.pdf"'},
    )

"""
Inventory ledger.

Stock is never stored: it is derived by replaying a product's append-only
transaction log over its opening balance. 'add' and 'usage' move the balance
relatively, 'adjust' sets it absolutely. Usage and stock-in totals count only
'usage' and 'add' entries; 'adjust' entries never contribute to either.
"""
from typing import Dict, Iterable, List, Optional

from ..schemas.inventory import Product, ProductWithStock, StockLog, StockLogType, TrendPoint, MonthTotals
from .time_rules import day_str, days_in_month


class LedgerError(ValueError):
    pass


def apply_log(balance: float, log: StockLog) -> float:
    if log.type == StockLogType.add.value:
        return balance + log.qty
    if log.type == StockLogType.usage.value:
        return balance - log.qty
    if log.type == StockLogType.adjust.value:
        return log.qty
    # unknown kinds leave the balance untouched
    return balance


def fold_stock(opening: float, logs: Iterable[StockLog]) -> float:
    """Unclamped balance after replaying logs in order."""
    balance = opening or 0
    for log in logs:
        balance = apply_log(balance, log)
    return balance


def logs_for(product_key: str, logs: Iterable[StockLog]) -> List[StockLog]:
    return [l for l in logs if l.product_key == product_key]


def current_stock(product: Product, logs: Iterable[StockLog]) -> float:
    return max(0, fold_stock(product.opening_stock, logs_for(product.key, logs)))


def is_low_stock(product: Product, stock: Optional[float] = None) -> bool:
    if stock is None:
        stock = getattr(product, "current_stock", 0) or 0
    return bool(product.active) and stock < (product.min_stock or 0)


def with_stock(products: Iterable[Product], logs: Iterable[StockLog]) -> List[ProductWithStock]:
    logs = list(logs)
    out: List[ProductWithStock] = []
    for p in products:
        stock = current_stock(p, logs)
        out.append(ProductWithStock(**p.model_dump(), current_stock=stock, low_stock=is_low_stock(p, stock)))
    return out


def low_stock_products(products: Iterable[Product], logs: Iterable[StockLog]) -> List[ProductWithStock]:
    return [p for p in with_stock(products, logs) if p.low_stock]


def filter_products(
    products: Iterable[ProductWithStock],
    q: Optional[str] = None,
    category: Optional[str] = None,
) -> List[ProductWithStock]:
    needle = (q or "").lower()
    out = []
    for p in products:
        if needle and needle not in p.name.lower() and needle not in (p.brand or "").lower():
            continue
        if category and p.category != category:
            continue
        out.append(p)
    return out


def month_logs(logs: Iterable[StockLog], month: str) -> List[StockLog]:
    return [l for l in logs if (l.date or "").startswith(month)]


def sum_qty(logs: Iterable[StockLog], kind: StockLogType) -> float:
    return sum(l.qty for l in logs if l.type == kind.value)


def month_totals(products: Iterable[Product], logs: Iterable[StockLog], month: str) -> MonthTotals:
    products = list(products)
    logs = list(logs)
    in_month = month_logs(logs, month)
    return MonthTotals(
        month=month,
        total_products=len([p for p in products if p.active]),
        low_stock=len(low_stock_products(products, logs)),
        usage=sum_qty(in_month, StockLogType.usage),
        stock_in=sum_qty(in_month, StockLogType.add),
    )


def usage_by_product(products: Iterable[Product], logs: Iterable[StockLog], month: str) -> List[Dict]:
    in_month = month_logs(logs, month)
    rows = []
    for p in products:
        mine = logs_for(p.key, in_month)
        usage = sum_qty(mine, StockLogType.usage)
        received = sum_qty(mine, StockLogType.add)
        if usage > 0 or received > 0:
            name = p.name if len(p.name) <= 15 else p.name[:15] + "…"
            rows.append({"name": name, "productKey": p.key, "usage": usage, "received": received})
    return rows


def month_trend(product: Product, logs: Iterable[StockLog], month: str) -> List[TrendPoint]:
    """
    Daily stock series for one product over a month.

    The running balance is seeded with every log dated before the first of the
    month. Day 1 is always emitted as the baseline; other days only when they
    carry transactions.
    """
    try:
        days = days_in_month(month)
    except ValueError as e:
        raise LedgerError(str(e))
    mine = logs_for(product.key, logs)
    first_day = day_str(month, 1)

    running = fold_stock(product.opening_stock, [l for l in mine if (l.date or "") < first_day])
    points: List[TrendPoint] = []
    for d in range(1, days + 1):
        ds = day_str(month, d)
        day_logs = [l for l in mine if l.date == ds]
        used = received = 0.0
        for l in day_logs:
            if l.type == StockLogType.add.value:
                received += l.qty
            elif l.type == StockLogType.usage.value:
                used += l.qty
            running = apply_log(running, l)
        if day_logs or d == 1:
            points.append(TrendPoint(day=d, stock=max(0, running), used=used, received=received))
    return points


def sorted_month_logs(logs: Iterable[StockLog], month: str) -> List[StockLog]:
    """Month's logs newest date first (print and log views)."""
    return sorted(month_logs(logs, month), key=lambda l: l.date or "", reverse=True)

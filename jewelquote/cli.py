import argparse
import json
import logging
import sys

from jewelquote.db import unit_of_work
from jewelquote.errors import PricingEngineError, ValidationError
from jewelquote.services.authorization import Actor
from jewelquote.services.order.status_catalog import OrderStatusCatalog
from jewelquote.services.order.status_machine import OrderStatusMachine
from jewelquote.services.pricing.calculator import PriceCalculator
from jewelquote.services.quotation.service import QuotationService
from jewelquote.settings import settings

# 로그 설정
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger("jewelquote.cli")


def run_seed_statuses(args) -> dict:
    with unit_of_work() as session:
        count = OrderStatusCatalog(session).seed_default_statuses()
    logger.info(f"[CLI] Seeded {count} order statuses")
    return {"seeded": count}


def run_price(args) -> dict:
    with unit_of_work() as session:
        breakdown = PriceCalculator(session, currency=args.currency).compute_price(
            args.product_id,
            args.variant_id,
            quantity=args.quantity,
            customer_type=args.customer_type,
            customer_group_id=args.customer_group_id,
            discount_codes=args.discount_code or [],
            as_line_total=args.line_total,
        )
    return breakdown.to_dict()


def run_approve(args) -> dict:
    actor = Actor(actor_id=args.admin_id, role="admin")
    with unit_of_work() as session:
        service = QuotationService(session)
        if args.group:
            result = service.approve_group(args.group, actor, args.admin_notes)
        else:
            result = service.approve(args.quotation_id, actor, args.admin_notes)
    logger.info(f"[CLI] Approved {result.quotation_ids} -> order {result.order_reference}")
    return {"order_id": result.order_id, "order_reference": result.order_reference, "quotation_ids": result.quotation_ids}


def _parse_meta(raw: str | None) -> dict | None:
    if not raw:
        return None
    try:
        meta = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"--meta is not valid JSON: {e.msg}", field="meta", actual_value=raw)
    if not isinstance(meta, dict):
        raise ValidationError("--meta must be a JSON object", field="meta", actual_value=raw)
    return meta


def run_order_status(args) -> dict:
    actor = Actor(actor_id=args.actor_id, role=args.actor_role)
    meta = _parse_meta(args.meta)
    with unit_of_work() as session:
        row = OrderStatusMachine(session).transition(args.order_id, args.status, actor, meta)
        result = {"order_id": row.order_id, "from_status": row.from_status, "status": row.status}
    logger.info(f"[CLI] Order {args.order_id}: {result['from_status']} -> {result['status']}")
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Jewelry quotation & order pricing CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    seed = subparsers.add_parser("seed-statuses", help="Upsert the built-in order statuses")
    seed.set_defaults(func=run_seed_statuses)

    price = subparsers.add_parser("price", help="Compute a price breakdown")
    price.add_argument("--product-id", type=int, required=True)
    price.add_argument("--variant-id", type=int, default=None)
    price.add_argument("--quantity", type=int, default=1)
    price.add_argument("--customer-type", default=None, choices=settings.customer_types)
    price.add_argument("--customer-group-id", type=int, default=None)
    price.add_argument("--discount-code", action="append")
    price.add_argument("--currency", default=None)
    price.add_argument("--line-total", action="store_true")
    price.set_defaults(func=run_price)

    approve = subparsers.add_parser("approve", help="Approve a quotation (or group) into an order")
    target = approve.add_mutually_exclusive_group(required=True)
    target.add_argument("--quotation-id", type=int)
    target.add_argument("--group")
    approve.add_argument("--admin-id", type=int, required=True)
    approve.add_argument("--admin-notes", default=None)
    approve.set_defaults(func=run_approve)

    order_status = subparsers.add_parser("order-status", help="Move an order to a new status")
    order_status.add_argument("--order-id", type=int, required=True)
    order_status.add_argument("--status", required=True)
    order_status.add_argument("--actor-role", default="admin", choices=["admin", "customer", "system"])
    order_status.add_argument("--actor-id", type=int, default=None)
    order_status.add_argument("--meta", default=None, help="JSON object stored on the history row")
    order_status.set_defaults(func=run_order_status)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        result = args.func(args)
    except PricingEngineError as e:
        logger.error(f"[CLI] {e.error_code}: {e.message}")
        print(json.dumps({"error": e.to_dict()}, default=str, indent=2))
        return 1
    print(json.dumps(result, default=str, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

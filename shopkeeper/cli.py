"""CLI entry point for shop administration."""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys

from dotenv import load_dotenv

from .config import ShopkeeperConfig, load_config
from .currency import parse_currency
from .db import DocumentStore, ShopStore, StateStore
from .models import Shop
from .sources import create_catalog
from .stock import StockManager


def main(argv: list[str] | None = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="shopkeeper",
        description="Shop inventory, baskets and receipts for tabletop sessions",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to the configuration file (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command")

    # shops
    sub.add_parser("shops", help="List shops")

    # create-shop
    create_parser = sub.add_parser("create-shop", help="Create an empty shop")
    create_parser.add_argument("name", type=str)
    create_parser.add_argument("--merchant", type=str, default="Unknown Merchant")
    create_parser.add_argument("--location", type=str, default="Town")

    # stock
    stock_parser = sub.add_parser("stock", help="Manage a shop's inventory")
    stock_sub = stock_parser.add_subparsers(dest="stock_command")

    show_parser = stock_sub.add_parser("show", help="Show inventory")
    show_parser.add_argument("shop", type=str)

    add_parser = stock_sub.add_parser("add", help="Stock an item from the catalog")
    add_parser.add_argument("shop", type=str)
    add_parser.add_argument("item_id", type=str)
    add_parser.add_argument("--quantity", "-q", type=int, default=1)
    add_parser.add_argument(
        "--price", type=str, default=None, help='Custom price, e.g. "5gp 2sp"'
    )

    remove_parser = stock_sub.add_parser("remove", help="Remove stock")
    remove_parser.add_argument("shop", type=str)
    remove_parser.add_argument("item_id", type=str)
    remove_parser.add_argument(
        "--quantity", "-q", type=int, default=0, help="0 removes the item entirely"
    )

    generate_parser = stock_sub.add_parser("generate", help="Add random stock")
    generate_parser.add_argument("shop", type=str)
    generate_parser.add_argument("--count", "-n", type=int, default=None)
    generate_parser.add_argument(
        "--category", type=str, action="append", dest="categories",
        help="Restrict to a category (repeatable)",
    )
    generate_parser.add_argument("--seed", type=int, default=None)

    restock_parser = stock_sub.add_parser("restock", help="Refill to stock caps")
    restock_parser.add_argument("shop", type=str)

    clear_parser = stock_sub.add_parser("clear", help="Remove all stock")
    clear_parser.add_argument("shop", type=str)

    # receipts
    receipts_parser = sub.add_parser("receipts", help="List or show receipts")
    receipts_parser.add_argument(
        "--show", type=str, default=None, metavar="NAME", help="Print one receipt"
    )
    receipts_parser.add_argument(
        "--pdf", type=str, default=None, metavar="FILE",
        help="Write the receipt named by --show to a PDF file",
    )

    # ledger
    sub.add_parser("ledger", help="Print the transaction ledger")

    # schedule
    schedule_parser = sub.add_parser("schedule", help="Run the restock scheduler")
    schedule_parser.add_argument(
        "--once", action="store_true", help="Restock every shop now and exit"
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)

    match args.command:
        case "shops":
            _cmd_shops(config)
        case "create-shop":
            _cmd_create_shop(config, args)
        case "stock":
            if args.stock_command is None:
                stock_parser.print_help()
                sys.exit(1)
            asyncio.run(_cmd_stock(config, args))
        case "receipts":
            _cmd_receipts(config, args)
        case "ledger":
            _cmd_ledger(config)
        case "schedule":
            if args.once:
                _cmd_restock_all(config)
            else:
                asyncio.run(_cmd_schedule(config))


def _fail(message: str) -> None:
    print(f"❌ {message}", file=sys.stderr)
    sys.exit(1)


def _cmd_shops(config: ShopkeeperConfig) -> None:
    documents = DocumentStore(config.database.path)
    try:
        shops = ShopStore(documents).list_shops()
    finally:
        documents.close()

    if not shops:
        print("No shops found.")
        return
    print(f"Shops: {len(shops)}")
    for shop in shops:
        print(f"  {shop.name} ({shop.merchant_name}, {shop.location}): {shop.item_count()} items")


def _cmd_create_shop(config: ShopkeeperConfig, args) -> None:
    documents = DocumentStore(config.database.path)
    try:
        shops = ShopStore(documents)
        if shops.find(args.name) is not None:
            _fail(f"Shop '{args.name}' already exists")
        shop = shops.create(
            Shop(
                name=args.name,
                merchant_name=args.merchant,
                location=args.location,
                buy_modifier=config.pricing.buy_modifier,
                sell_modifier=config.pricing.sell_modifier,
            ),
            owner_id=config.receipts.owner_id,
        )
    finally:
        documents.close()
    print(f"✅ Created shop '{shop.name}' (id {shop.id})")


async def _cmd_stock(config: ShopkeeperConfig, args) -> None:
    documents = DocumentStore(config.database.path)
    state = StateStore(config.database.path)
    try:
        shops = ShopStore(documents)
        shop = shops.find(args.shop)
        if shop is None:
            _fail(f"Shop '{args.shop}' not found")
        manager = StockManager(shops, state, config)

        match args.stock_command:
            case "show":
                print(f"🏪 {shop.name}")
                print(manager.format_inventory(shop))
                return
            case "add":
                price = None
                if args.price:
                    try:
                        price = parse_currency(args.price)
                    except ValueError as e:
                        _fail(str(e))
                result = await manager.add_item(
                    shop, create_catalog(config), args.item_id, args.quantity, price
                )
                if result:
                    item = result.value
                    print(f"✅ {item.name}: {item.quantity}/{item.max_stock}")
            case "remove":
                result = manager.remove_item(shop, args.item_id, args.quantity)
                if result:
                    print(f"✅ {result.value} left in stock")
            case "generate":
                rng = random.Random(args.seed) if args.seed is not None else None
                result = await manager.generate_random_stock(
                    create_catalog(config),
                    count=args.count,
                    categories=args.categories,
                    rng=rng,
                )
                if result:
                    result = manager.apply_generated_stock(shop, result.value)
                if result:
                    print(f"✅ Added {result.value} items")
                    print(manager.format_inventory(shop))
            case "restock":
                result = manager.restock(shop)
                if result:
                    print(f"✅ Restocked {result.value} items")
            case "clear":
                result = manager.clear_all(shop)
                if result:
                    print(f"✅ Cleared {result.value} items")

        if not result:
            _fail(result.message)
    finally:
        state.close()
        documents.close()


def _cmd_receipts(config: ShopkeeperConfig, args) -> None:
    if args.pdf and not args.show:
        _fail("--pdf needs --show NAME")

    documents = DocumentStore(config.database.path)
    try:
        if args.show:
            doc = documents.find_by_name(args.show, kind="receipt")
            if doc is None:
                _fail(f"Receipt '{args.show}' not found")
            if not args.pdf:
                print(doc.body)
                return
        else:
            receipts = documents.list(kind="receipt")
    finally:
        documents.close()

    if args.show:
        from .pdf import generate_document_pdf

        try:
            path = generate_document_pdf(doc.name, doc.body, args.pdf)
        except (ImportError, OSError) as e:
            _fail(f"PDF export failed: {e}")
        print(f"📄 Saved {doc.name} to {path}")
        return

    if not receipts:
        print("No receipts found.")
        return
    print(f"Receipts: {len(receipts)}")
    for doc in receipts:
        print(f"  {doc.name}  [{doc.owner_id}]")


def _cmd_ledger(config: ShopkeeperConfig) -> None:
    documents = DocumentStore(config.database.path)
    try:
        ledger = documents.find_by_name(config.receipts.ledger_name, kind="ledger")
    finally:
        documents.close()

    if ledger is None:
        print("No transactions logged yet.")
        return
    print(ledger.body)


def _cmd_restock_all(config: ShopkeeperConfig) -> None:
    from .scheduler import restock_all_shops

    restocked = restock_all_shops(config)
    for name, count in restocked.items():
        print(f"  {name}: {count} items restocked")


async def _cmd_schedule(config: ShopkeeperConfig) -> None:
    from .scheduler import RestockScheduler

    try:
        scheduler = RestockScheduler(config)
    except ImportError as e:
        _fail(str(e))

    scheduler.start()
    for job in scheduler.get_jobs():
        print(f"⏰ {job['name']}: next run {job['next_run']}")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()

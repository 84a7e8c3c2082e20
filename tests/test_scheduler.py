"""Tests for RestockScheduler and restock_all_shops."""

import pytest

from shopkeeper.config import load_config
from shopkeeper.db import DocumentStore, ShopStore
from shopkeeper.models import Shop, StockItem
from shopkeeper.scheduler import restock_all_shops


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setenv("SHOPKEEPER_DB_PATH", str(tmp_path / "test.db"))
    return load_config()


def test_scheduler_import_error():
    """RestockScheduler raises ImportError if apscheduler is missing."""
    try:
        from shopkeeper.scheduler import RestockScheduler

        scheduler = RestockScheduler(load_config())
        assert scheduler is not None
        assert scheduler.running is False
    except ImportError:
        pass


def test_scheduler_setup_jobs(config):
    """Scheduler registers the restock job when restocking is enabled."""
    try:
        from shopkeeper.scheduler import RestockScheduler

        config.restock.enabled = True
        config.restock.schedule = "30 5 * * 1"

        scheduler = RestockScheduler(config)
        scheduler.setup_jobs()

        job_ids = {j["id"] for j in scheduler.get_jobs()}
        assert job_ids == {"restock_shops"}
    except ImportError:
        pytest.skip("apscheduler not installed")


def test_scheduler_disabled_registers_nothing(config):
    try:
        from shopkeeper.scheduler import RestockScheduler

        config.restock.enabled = False
        scheduler = RestockScheduler(config)
        scheduler.setup_jobs()
        assert scheduler.get_jobs() == []
    except ImportError:
        pytest.skip("apscheduler not installed")


def test_invalid_cron(config):
    try:
        from shopkeeper.scheduler import RestockScheduler

        config.restock.enabled = True
        config.restock.schedule = "every morning"
        scheduler = RestockScheduler(config)
        with pytest.raises(ValueError, match="Invalid cron expression"):
            scheduler.setup_jobs()
    except ImportError:
        pytest.skip("apscheduler not installed")


def test_restock_all_shops(config):
    documents = DocumentStore(config.database.path)
    shops = ShopStore(documents)
    low = shops.create(Shop(name="Low"))
    low.inventory["weapons"] = [
        StockItem("dagger", "Dagger", "weapons", quantity=1, max_stock=4),
    ]
    shops.save(low)
    shops.create(Shop(name="Empty"))

    assert restock_all_shops(config) == {"Low": 1, "Empty": 0}
    assert shops.load(low.id).inventory["weapons"][0].quantity == 4
    documents.close()

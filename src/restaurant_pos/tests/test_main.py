"""Tests for the command line entry point."""

import json

import pytest

from restaurant_pos import main as cli
from restaurant_pos.services import ingredient_service
from restaurant_pos.utils.config import reset_config


@pytest.fixture
def run(test_db, monkeypatch, capsys):
    """Run the CLI against the test database and return (exit_code, stdout, stderr)."""
    monkeypatch.setattr(cli, "initialize_app_database", lambda: None)
    monkeypatch.setattr(cli, "verify_database", lambda: True)
    reset_config()

    def _run(*argv):
        code = cli.main(["--database-url", "sqlite:///:memory:", *argv])
        out, err = capsys.readouterr()
        return code, out, err

    yield _run
    reset_config()


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_init_db_reports_url(run):
    code, out, _ = run("init-db")

    assert code == 0
    assert json.loads(out) == {"database": "sqlite:///:memory:", "verified": True}


def test_bread_workflow(run):
    code, out, _ = run(
        "add-ingredient", "Flour", "--quantity", "1000", "--unit", "g", "--cost-per-unit", "0.002"
    )
    assert code == 0
    flour_id = json.loads(out)["id"]

    code, out, _ = run("add-recipe", "Bread", "--ingredient", f"{flour_id}:500")
    recipe = json.loads(out)
    assert recipe["max_portions"] == 2

    code, out, _ = run("prepare", str(recipe["id"]), "2")
    assert json.loads(out)["prepared_quantity"] == 2

    code, out, _ = run("add-product", str(recipe["id"]), "Bread loaf", "5")
    product_id = json.loads(out)["id"]

    code, out, _ = run("sell", str(product_id), "2")
    sale = json.loads(out)
    assert code == 0
    assert sale["total_price"] == 10
    assert sale["profit"] == pytest.approx(8.0)

    code, out, _ = run("low-stock")
    assert json.loads(out)["count"] == 1

    code, out, _ = run("refund", str(sale["id"]))
    assert json.loads(out)["restored_quantity"] == 2
    assert ingredient_service.get_ingredient(flour_id).quantity == 0


def test_restock(run, flour):
    code, out, _ = run("restock", str(flour.id), "500")

    assert code == 0
    assert json.loads(out)["ingredient"]["quantity"] == 1500


@pytest.mark.parametrize(
    "argv,exit_code,title",
    [
        (("sell", "99", "1"), 5, "Cannot Complete"),
        (("refund", "7"), 3, "Not Found"),
        (("add-recipe", "Broken", "--ingredient", "nonsense"), 2, "Validation Error"),
        (("report", "2024-01-01", "not-a-date"), 2, "Validation Error"),
        (("prepare", "1", "inf"), 2, "Validation Error"),
        (("add-ingredient", "Salt", "--quantity", "inf", "--unit", "g"), 2, "Validation Error"),
        (("restock", "1", "nan"), 2, "Validation Error"),
    ],
)
def test_errors_map_to_exit_codes(run, argv, exit_code, title):
    code, out, err = run(*argv)

    assert code == exit_code
    assert out == ""
    assert f"{title}:" in err


def test_insufficient_stock_exit_code(run, bread_product):
    code, _, err = run("sell", str(bread_product.id), "1")

    assert code == 5
    assert "Not enough Bread loaf" in err


def test_duplicate_name_exit_code(run, flour):
    code, _, err = run("add-ingredient", "Flour", "--quantity", "1", "--unit", "g")

    assert code == 4
    assert "Duplicate:" in err


def test_reports_print_json(run, prepared_bread):
    run("sell", str(prepared_bread.id), "1")

    code, out, _ = run("capacity")
    assert json.loads(out)[0]["recipe"]["prepared_quantity"] == 1

    code, out, _ = run("best-sellers", "--days", "1")
    assert json.loads(out)[0]["total_quantity"] == 1

    code, out, _ = run("dashboard")
    assert json.loads(out)["today"]["transactions"] == 1

"""Seed procedure: slugs, baseline rows, idempotency and all-or-nothing semantics."""

import re

import pytest
from click.testing import CliRunner
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from smrt.db import session as db_session
from smrt.db.models import Category, Product
from smrt.db.seed import CATEGORY_NAMES, PRODUCTS, main, seed, seed_catalog, slugify
from smrt.errors import DomainViolation


class TestSlugify:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("sai", "sai"),
            ("Haru", "haru"),
            ("TV & Home Cinema", "tv-and-home-cinema"),
            ("  Drone X  Pro!! ", "drone-x-pro"),
            ("Café Crème 2000", "cafe-creme-2000"),
            ("iPhone 15 / Pro Max", "iphone-15-pro-max"),
        ],
    )
    def test_known_values(self, name, expected):
        assert slugify(name) == expected

    @pytest.mark.parametrize("name", ["Mobile & Wearable Tech", "Ünïcödé ☃ gadgets", "a--b__c", "100% Cotton"])
    def test_shape_and_stability(self, name):
        slug = slugify(name)
        assert re.fullmatch(r"[a-z0-9-]*", slug)
        assert not slug.startswith("-") and not slug.endswith("-")
        assert slugify(name) == slug


class TestSeed:
    def test_seed_empty_store(self, session_factory):
        report = seed(session_factory)
        assert report.categories_created == len(CATEGORY_NAMES)
        assert report.products_created == len(PRODUCTS)

        with session_factory() as session:
            names = sorted(session.scalars(select(Category.name)))
            assert names == sorted(CATEGORY_NAMES)

            products = {p.slug: p for p in session.scalars(select(Product))}
            assert set(products) == {"sai", "haru"}
            assert products["sai"].category.name == "Tablets"
            assert products["haru"].category.name == "Drones & Cameras"
            assert products["sai"].price_in_cents == 200
            assert products["sai"].stock == 0

    def test_seed_twice_is_a_no_op(self, session_factory):
        seed(session_factory)
        report = seed(session_factory)
        assert report.categories_created == 0
        assert report.categories_existing == len(CATEGORY_NAMES)
        assert report.products_created == 0
        assert report.products_existing == len(PRODUCTS)

        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(Category)) == len(CATEGORY_NAMES)
            assert session.scalar(select(func.count()).select_from(Product)) == len(PRODUCTS)

    def test_failed_seed_leaves_nothing_behind(self, session_factory):
        broken = list(PRODUCTS) + [{"name": "no price", "price_in_cents": None, "category": "Computers"}]
        with pytest.raises(DomainViolation):
            with db_session.transaction(session_factory) as session:
                seed_catalog(session, products=broken)

        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(Category)) == 0
            assert session.scalar(select(func.count()).select_from(Product)) == 0

    def test_seed_raises_classified_error_with_store_cause(self, session_factory, monkeypatch):
        broken = [{"name": "no price", "price_in_cents": None, "category": "Computers"}]
        monkeypatch.setattr("smrt.db.seed.seed_catalog", lambda session: seed_catalog(session, products=broken))

        with pytest.raises(DomainViolation) as info:
            seed(session_factory)
        assert isinstance(info.value.__cause__, IntegrityError)
        assert info.value.orig is info.value.__cause__.orig
        assert str(info.value).startswith("NOT NULL constraint failed")

        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(Category)) == 0

    def test_unknown_category_rolls_back(self, session_factory):
        with pytest.raises(ValueError, match="unknown category"):
            with db_session.transaction(session_factory) as session:
                seed_catalog(session, products=[{"name": "x", "price_in_cents": 1, "category": "Toys"}])

        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(Category)) == 0

    def test_seed_reuses_existing_category(self, session_factory):
        with db_session.transaction(session_factory) as session:
            session.add(Category(name="Tablets"))

        report = seed(session_factory)
        assert report.categories_existing == 1
        assert report.categories_created == len(CATEGORY_NAMES) - 1

        with session_factory() as session:
            tablets = session.scalars(select(Category).where(Category.name == "Tablets")).all()
            assert len(tablets) == 1
            assert [p.slug for p in tablets[0].products] == ["sai"]


class TestSeedCommand:
    def test_creates_schema_and_seeds(self, tmp_path, monkeypatch):
        monkeypatch.setattr("smrt.config.load_dotenv", lambda: None)
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
        monkeypatch.setenv("NEXT_PUBLIC_BASE_URL", "http://localhost:3000")

        result = CliRunner().invoke(main, ["--create-schema"])
        assert result.exit_code == 0, result.output
        assert "categories: +6, products: +2" in result.output

        result = CliRunner().invoke(main, [])
        assert result.exit_code == 0, result.output
        assert "categories: +0, products: +0" in result.output

    def test_missing_configuration_fails(self, monkeypatch):
        monkeypatch.setattr("smrt.config.load_dotenv", lambda: None)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("NEXT_PUBLIC_BASE_URL", raising=False)

        result = CliRunner().invoke(main, [])
        assert result.exit_code != 0
        assert "DATABASE_URL" in str(result.exception)

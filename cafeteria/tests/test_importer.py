"""
Importer tests - feed normalization, idempotence and failure isolation.
"""
import json
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from cafeteria.exceptions import StorageError, ValidationError
from cafeteria.models import (
    Location, Period, Category, Food, Nutrient, FoodNutrient, MenuItem,
)
from cafeteria.services.menu_importer import MenuImporter
from cafeteria.services.store import MenuStore


async def count(db, model):
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


def make_item(name, **fields):
    item = {"name": name}
    item.update(fields)
    return item


def make_document(items, location="loc-1", menu_date="2025-11-21", category=None):
    category = category or {"id": "c1", "name": "Grill", "sortOrder": 1}
    return {
        "locationId": location,
        "date": menu_date,
        "period": {
            "id": "p1",
            "name": "Lunch",
            "categories": [dict(category, items=items)],
        },
    }


# ===================== END TO END =====================


async def test_import_reference_document(importer, db_session, lunch_document):
    report = await importer.import_document(lunch_document)

    assert report.menu_items_created == 1
    assert report.failures == []

    assert await count(db_session, Location) == 1
    assert await count(db_session, Period) == 1
    assert await count(db_session, Category) == 1
    assert await count(db_session, Food) == 1
    assert await count(db_session, Nutrient) == 1
    assert await count(db_session, FoodNutrient) == 1
    assert await count(db_session, MenuItem) == 1

    period_name = (await db_session.execute(select(Period.name))).scalar_one()
    assert period_name == "Lunch"

    category = (await db_session.execute(select(Category.name, Category.sort_order))).one()
    assert category.name == "Grill"
    assert category.sort_order == 1

    food = (await db_session.execute(select(Food.id, Food.name, Food.mrn_full, Food.image_url))).one()
    assert food.name == "Cheeseburger"
    assert food.mrn_full == "X-100"
    assert food.image_url is None

    nutrient = (await db_session.execute(select(Nutrient.name, Nutrient.unit))).one()
    assert (nutrient.name, nutrient.unit) == ("Calories", "kcal")

    value = (await db_session.execute(select(FoodNutrient.value_numeric))).scalar_one()
    assert value == 650.0

    menu_item = (await db_session.execute(select(MenuItem))).scalar_one()
    assert menu_item.menu_date.isoformat() == "2025-11-21"
    assert menu_item.food_id == food.id


# ===================== IDEMPOTENCE =====================


async def test_reimport_creates_no_duplicates(importer, db_session, lunch_document):
    await importer.import_document(lunch_document)
    counts = {
        model: await count(db_session, model)
        for model in (MenuItem, Food, Nutrient, FoodNutrient, Category, Period, Location)
    }

    report = await importer.import_document(lunch_document)

    assert report.menu_items_created == 0
    assert report.menu_items_existing == 1
    for model, expected in counts.items():
        assert await count(db_session, model) == expected


async def test_reimport_keeps_original_sort_order(importer, db_session, lunch_document):
    await importer.import_document(lunch_document)

    lunch_document["period"]["categories"][0]["items"][0]["sortOrder"] = 99
    await importer.import_document(lunch_document)

    sort_order = (await db_session.execute(select(MenuItem.sort_order))).scalar_one()
    assert sort_order == 1


# ===================== FOOD MATCHING =====================


async def test_same_code_updates_description_in_place(importer, db_session, lunch_document):
    await importer.import_document(lunch_document)
    first = (await db_session.execute(select(Food.id))).scalar_one()

    lunch_document["period"]["categories"][0]["items"][0]["desc"] = "Now with pickles"
    await importer.import_document(lunch_document)

    rows = (await db_session.execute(select(Food.id, Food.description))).all()
    assert len(rows) == 1
    assert rows[0].id == first
    assert rows[0].description == "Now with pickles"


async def test_item_without_code_matches_by_name_and_portion(importer, db_session):
    salad = make_item("Garden Salad", portion="1 bowl")

    await importer.import_document(make_document([salad]))
    await importer.import_document(make_document([salad], menu_date="2025-11-22"))

    assert await count(db_session, Food) == 1
    assert await count(db_session, MenuItem) == 2


async def test_item_without_code_different_portion_is_new_food(importer, db_session):
    await importer.import_document(make_document([
        make_item("Garden Salad", portion="1 bowl"),
        make_item("Garden Salad", portion="side"),
    ]))

    assert await count(db_session, Food) == 2


async def test_reimport_never_overwrites_image_url(importer, store, db_session, lunch_document):
    await importer.import_document(lunch_document)
    food_id = (await db_session.execute(select(Food.id))).scalar_one()
    await store.set_food_image_url(food_id, "/static/uploads/food-1.jpg")
    await db_session.commit()

    await importer.import_document(lunch_document)

    image_url = (await db_session.execute(select(Food.image_url))).scalar_one()
    assert image_url == "/static/uploads/food-1.jpg"


# ===================== CATEGORIES AND LOCATIONS =====================


async def test_category_name_and_order_refreshed(importer, db_session, lunch_document):
    await importer.import_document(lunch_document)

    category = lunch_document["period"]["categories"][0]
    category["name"] = "Grill Station"
    category["sortOrder"] = 4
    await importer.import_document(lunch_document)

    rows = (await db_session.execute(select(Category.name, Category.sort_order))).all()
    assert [(r.name, r.sort_order) for r in rows] == [("Grill Station", 4)]


async def test_existing_location_name_is_kept(importer, store, db_session, lunch_document):
    await store.create_location("loc-1", "North Dining Hall")
    await db_session.commit()

    await importer.import_document(lunch_document)

    rows = (await db_session.execute(select(Location.external_id, Location.name))).all()
    assert [(r.external_id, r.name) for r in rows] == [("loc-1", "North Dining Hall")]


async def test_period_without_id_reuses_period_by_name(importer, db_session, lunch_document):
    lunch_document["period"]["id"] = None
    await importer.import_document(lunch_document)
    await importer.import_document(dict(lunch_document, date="2025-11-22"))

    assert await count(db_session, Period) == 1


# ===================== NUTRIENTS =====================


async def test_dash_sentinel_stores_null_numeric_and_raw_text(importer, db_session):
    item = make_item("Fries", mrnFull="F-1", nutrients=[
        {"name": "Trans Fat", "uom": "g", "valueNumeric": "-", "value": "-"},
    ])
    await importer.import_document(make_document([item]))

    row = (await db_session.execute(select(FoodNutrient.value_numeric, FoodNutrient.value_raw))).one()
    assert row.value_numeric is None
    assert row.value_raw == "-"


async def test_unparseable_value_is_kept_as_raw_text(importer, db_session):
    item = make_item("Fries", mrnFull="F-1", nutrients=[
        {"name": "Sodium", "uom": "mg", "valueNumeric": "less than 5"},
    ])
    report = await importer.import_document(make_document([item]))

    assert report.failures == []
    row = (await db_session.execute(select(FoodNutrient.value_numeric, FoodNutrient.value_raw))).one()
    assert row.value_numeric is None
    assert row.value_raw == "less than 5"


async def test_json_number_keeps_feed_text(importer, db_session):
    item = make_item("Fries", mrnFull="F-1", nutrients=[
        {"name": "Calories", "uom": "kcal", "valueNumeric": 650},
    ])
    await importer.import_document(make_document([item]))

    row = (await db_session.execute(select(FoodNutrient.value_numeric, FoodNutrient.value_raw))).one()
    assert (row.value_numeric, row.value_raw) == (650.0, "650")


async def test_reimport_overwrites_nutrient_value(importer, db_session, lunch_document):
    await importer.import_document(lunch_document)

    nutrients = lunch_document["period"]["categories"][0]["items"][0]["nutrients"]
    nutrients[0]["valueNumeric"] = "700"
    await importer.import_document(lunch_document)

    rows = (await db_session.execute(select(FoodNutrient.value_numeric))).scalars().all()
    assert rows == [700.0]


async def test_nutrient_units_are_distinct_nutrients(importer, db_session):
    item = make_item("Soup", mrnFull="S-1", nutrients=[
        {"name": "Sodium", "uom": "mg", "valueNumeric": "800"},
        {"name": "Sodium", "uom": "g", "valueNumeric": "0.8"},
        {"name": "Sodium", "valueNumeric": "800"},
    ])
    await importer.import_document(make_document([item]))
    await importer.import_document(make_document([item]))

    assert await count(db_session, Nutrient) == 3
    assert await count(db_session, FoodNutrient) == 3


# ===================== MENU OCCURRENCES =====================


async def test_duplicate_feed_entries_collapse_to_one_menu_item(importer, db_session):
    burger = make_item("Cheeseburger", mrnFull="X-100")

    report = await importer.import_document(make_document([burger, dict(burger)]))

    assert report.items_processed == 2
    assert report.menu_items_created == 1
    assert report.menu_items_existing == 1
    assert await count(db_session, MenuItem) == 1


async def test_missing_sort_order_uses_feed_position(importer, db_session):
    await importer.import_document(make_document([
        make_item("Tacos", mrnFull="T-1"),
        make_item("Burrito", mrnFull="B-1"),
    ]))

    rows = (await db_session.execute(
        select(Food.name, MenuItem.sort_order).join(MenuItem, MenuItem.food_id == Food.id)
    )).all()
    assert dict((r.name, r.sort_order) for r in rows) == {"Tacos": 0, "Burrito": 1}


async def test_document_without_categories_is_valid(importer, db_session, lunch_document):
    lunch_document["period"]["categories"] = []

    report = await importer.import_document(lunch_document)

    assert report.categories == 0
    assert await count(db_session, Location) == 1
    assert await count(db_session, Period) == 1
    assert await count(db_session, MenuItem) == 0


# ===================== FAILURE ISOLATION =====================


async def test_bad_item_does_not_abort_document(importer, db_session):
    items = [
        make_item("Broken", mrnFull="BAD-1", nutrients=[{"uom": "g", "valueNumeric": "1"}]),
        make_item("Cheeseburger", mrnFull="X-100"),
    ]

    report = await importer.import_document(make_document(items))

    assert report.menu_items_created == 1
    assert len(report.failures) == 1
    assert report.failures[0].item_name == "Broken"
    names = (await db_session.execute(select(Food.name))).scalars().all()
    assert names == ["Cheeseburger"]


async def test_item_without_name_is_reported(importer, db_session):
    report = await importer.import_document(make_document([{"mrnFull": "X-1"}, make_item("Pizza")]))

    assert len(report.failures) == 1
    assert report.failures[0].item_name is None
    assert await count(db_session, MenuItem) == 1


async def test_malformed_category_is_skipped(importer, db_session, lunch_document):
    lunch_document["period"]["categories"].insert(0, {"name": "No id", "items": [make_item("Ghost")]})

    report = await importer.import_document(lunch_document)

    assert report.categories == 1
    assert report.failures[0].category == "No id"
    assert await count(db_session, MenuItem) == 1


async def test_null_item_does_not_drop_its_siblings(importer, db_session):
    items = [make_item("Burger", mrnFull="X-1"), None, make_item("Fries", mrnFull="F-1")]

    report = await importer.import_document(make_document(items))

    assert report.items_processed == 3
    assert report.menu_items_created == 2
    assert len(report.failures) == 1
    assert report.failures[0].item_name is None
    assert report.failures[0].error.startswith("Invalid item")
    assert await count(db_session, MenuItem) == 2


async def test_non_object_category_is_skipped(importer, db_session, lunch_document):
    lunch_document["period"]["categories"].append("oops")

    report = await importer.import_document(lunch_document)

    assert report.categories == 1
    assert len(report.failures) == 1
    assert report.failures[0].category is None
    assert report.failures[0].error.startswith("Invalid category")
    assert await count(db_session, MenuItem) == 1


class FailingFoodStore(MenuStore):
    """Writes the food row, then fails, so the savepoint has something to undo"""

    def __init__(self, db, failing_name):
        super().__init__(db)
        self.failing_name = failing_name

    async def upsert_food(self, descriptor):
        food = await super().upsert_food(descriptor)
        if descriptor.name == self.failing_name:
            raise StorageError(f"upsert_food failed for {descriptor.name}")
        return food


class FailingPeriodStore(MenuStore):

    async def find_or_create_period(self, external_id, name):
        if name == "Dinner":
            raise StorageError("find_or_create_period failed: database is unreachable")
        return await super().find_or_create_period(external_id, name)


async def test_item_storage_error_rolls_back_only_that_item(db_session):
    importer = MenuImporter(db_session, store=FailingFoodStore(db_session, "Fries"))
    items = [
        make_item("Burger", mrnFull="X-1"),
        make_item("Fries", mrnFull="F-1"),
        make_item("Onion Rings", mrnFull="O-1"),
    ]

    report = await importer.import_document(make_document(items))

    assert report.menu_items_created == 2
    assert [(f.item_name, f.error) for f in report.failures] == [
        ("Fries", "upsert_food failed for Fries"),
    ]
    names = (await db_session.execute(select(Food.name).order_by(Food.name))).scalars().all()
    assert names == ["Burger", "Onion Rings"]
    assert await count(db_session, MenuItem) == 2


async def test_unresolvable_period_rolls_back_document(db_session, lunch_document):
    importer = MenuImporter(db_session, store=FailingPeriodStore(db_session))
    dinner = dict(lunch_document, locationId="loc-9")
    dinner["period"] = dict(lunch_document["period"], id="p3", name="Dinner")

    with pytest.raises(StorageError):
        await importer.import_document(dinner)

    assert await count(db_session, Location) == 0
    assert await count(db_session, Food) == 0


@pytest.mark.parametrize("missing", ["locationId", "date", "period"])
async def test_document_missing_required_field_is_rejected(importer, db_session, lunch_document, missing):
    del lunch_document[missing]

    with pytest.raises(ValidationError):
        await importer.import_document(lunch_document)

    assert await count(db_session, Location) == 0
    assert await count(db_session, MenuItem) == 0


# ===================== BATCHES =====================


async def test_batch_continues_after_failed_documents(importer, db_session, lunch_document, tmp_path):
    (tmp_path / "01-good.json").write_text(json.dumps(lunch_document))
    (tmp_path / "02-broken.json").write_text("{not json")
    (tmp_path / "03-invalid.json").write_text(json.dumps({"locationId": "loc-2"}))
    second = dict(lunch_document, date="2025-11-22")
    (tmp_path / "04-good.json").write_text(json.dumps(second))

    batch = await importer.import_directory(tmp_path)

    assert batch.succeeded == 2
    assert batch.failed == 2
    assert [Path(f.path).name for f in batch.failures] == ["02-broken.json", "03-invalid.json"]
    assert await count(db_session, MenuItem) == 2


async def test_batch_of_empty_directory(importer, tmp_path):
    batch = await importer.import_directory(tmp_path)

    assert batch.documents == []
    assert batch.failures == []


async def test_batch_continues_after_storage_failure(db_session, lunch_document, tmp_path):
    importer = MenuImporter(db_session, store=FailingPeriodStore(db_session))
    dinner = dict(lunch_document, locationId="loc-9")
    dinner["period"] = dict(lunch_document["period"], id="p3", name="Dinner")
    (tmp_path / "01-dinner.json").write_text(json.dumps(dinner))
    (tmp_path / "02-lunch.json").write_text(json.dumps(lunch_document))

    batch = await importer.import_directory(tmp_path)

    assert batch.succeeded == 1
    assert [Path(f.path).name for f in batch.failures] == ["01-dinner.json"]
    locations = (await db_session.execute(select(Location.external_id))).scalars().all()
    assert locations == ["loc-1"]
    assert await count(db_session, MenuItem) == 1


async def test_commit_failure_aborts_only_that_document(importer, db_session, lunch_document, tmp_path, monkeypatch):
    (tmp_path / "01-first.json").write_text(json.dumps(lunch_document))
    (tmp_path / "02-second.json").write_text(json.dumps(dict(lunch_document, date="2025-11-22")))

    real_commit = db_session.commit
    calls = []

    async def commit_locked_once():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        await real_commit()

    monkeypatch.setattr(db_session, "commit", commit_locked_once)

    batch = await importer.import_directory(tmp_path)

    assert batch.succeeded == 1
    assert [Path(f.path).name for f in batch.failures] == ["01-first.json"]
    assert "database is locked" in batch.failures[0].error
    dates = (await db_session.execute(select(MenuItem.menu_date))).scalars().all()
    assert dates == [date(2025, 11, 22)]

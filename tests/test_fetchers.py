import json
import logging

import pytest

from kas_data.config import FUEL_SPECS, PATHS
from kas_data.errors import PxError, Skipped
from kas_data.fetchers import (
    fetch_air_transport_monthly,
    fetch_construction_cost_index,
    fetch_cpi_average_prices_yearly,
    fetch_cpi_monthly,
    fetch_energy_monthly,
    fetch_fuel_table,
    fetch_gdp_by_activity_quarterly,
    fetch_government_expenditure,
    fetch_government_revenue,
    fetch_imports_by_partner,
    fetch_labour_employment_activity_gender,
    fetch_motor_vehicles_by_type,
    fetch_tourism_country,
    fetch_tourism_region,
    fetch_trade_chapters_monthly,
    fetch_trade_partners,
    fetch_wage_levels,
    write_fuel_combined_dataset,
)
from kas_data.fetchers.construction import NOTE as CONSTRUCTION_NOTE
from kas_data.fetchers.energy import ENERGY_INDICATORS
from kas_data.fetchers.government import NOTES as GOVERNMENT_NOTES
from kas_data.fetchers.labour import EMPLOYMENT_NOTE
from kas_data.fetchers.trade import THOUSANDS_NOTE

GENERATED_AT = "2024-05-01T00:00:00Z"


def time_variable(codes):
    return {"code": "Viti/muaji", "text": "Viti/muaji", "values": list(codes), "valueTexts": list(codes), "time": True}


def constant(value):
    return lambda key: value


# ---------------------------------------------------------------------------
# Tourism
# ---------------------------------------------------------------------------


def tourism_value(key):
    return "10" if key["Variabla"] == "0" else "25"


def test_tourism_region(tmp_path, fake_client, sparse_cube, tourism_meta):
    client = fake_client(
        {PATHS["tourism_region"]: (tourism_meta, lambda body: sparse_cube(body["query"], tourism_value))}
    )
    dataset = fetch_tourism_region(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    assert len(records) == 3 * 2 * 3
    assert records[0] == {
        "period": "2024-01",
        "region": "1",
        "visitor_group": "total",
        "visitors": 10,
        "nights": 25,
    }
    assert [r["visitor_group"] for r in records[:3]] == ["total", "local", "external"]

    meta = dataset["meta"]
    assert meta["fields"] == [
        {"key": "visitors", "label": "Visitors", "unit": "people"},
        {"key": "nights", "label": "Nights", "unit": "overnights"},
    ]
    assert meta["dimensions"]["visitor_group"] == [
        {"key": "total", "label": "Gjithsej"},
        {"key": "local", "label": "Vendor"},
        {"key": "external", "label": "Jashtëm"},
    ]
    assert (tmp_path / "kas_tourism_region_monthly.json").exists()


def test_tourism_metric_label_change_only_warns(tmp_path, fake_client, sparse_cube, tourism_meta, caplog):
    tourism_meta["variables"][3]["valueTexts"] = ["Visitors", "Netqëndrimet"]
    client = fake_client(
        {PATHS["tourism_region"]: (tourism_meta, lambda body: sparse_cube(body["query"], tourism_value))}
    )
    with caplog.at_level(logging.WARNING):
        dataset = fetch_tourism_region(str(tmp_path), GENERATED_AT, client=client)
    assert dataset["records"]
    assert "label changed" in caplog.text


def test_tourism_missing_metric_code_fails(tmp_path, fake_client, sparse_cube, tourism_meta):
    tourism_meta["variables"][3].update(values=["0"], valueTexts=["Vizitorët"])
    client = fake_client({PATHS["tourism_region"]: (tourism_meta, None)})
    with pytest.raises(PxError, match='missing expected metric code "1"'):
        fetch_tourism_region(str(tmp_path), GENERATED_AT, client=client)


def test_tourism_country_drops_external(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            time_variable(["2024M02", "2024M01"]),
            {
                "code": "Shtetet",
                "text": "Shtetet",
                "values": ["AL", "DE", "EXT"],
                "valueTexts": ["Shqipëri", "Gjermani", "External"],
            },
            {"code": "Variabla", "text": "Variabla", "values": ["0", "1"], "valueTexts": ["Vizitorët", "Netqëndrimet"]},
        ]
    }
    client = fake_client(
        {PATHS["tourism_country"]: (meta, lambda body: sparse_cube(body["query"], tourism_value))}
    )
    dataset = fetch_tourism_country(str(tmp_path), GENERATED_AT, client=client)
    assert {r["country"] for r in dataset["records"]} == {"AL", "DE"}
    assert len(dataset["records"]) == 4
    assert dataset["meta"]["dimensions"]["country"] == [
        {"key": "AL", "label": "Shqipëri"},
        {"key": "DE", "label": "Gjermani"},
    ]


# ---------------------------------------------------------------------------
# Imports by partner
# ---------------------------------------------------------------------------


@pytest.fixture()
def imports_client(fake_client, sparse_cube):
    meta = {
        "variables": [
            time_variable(["2024M03", "2024M02", "2024M01"]),
            {
                "code": "Shteti",
                "text": "Shteti",
                "values": ["AL", "DE", "XS"],
                "valueTexts": ["AL:ALBANIA", "DE:GERMANY", "XS:SERBIA 06/2005"],
            },
        ]
    }
    values = {"AL": "1.5", "DE": "..", "XS": "2"}
    return fake_client(
        {
            PATHS["imports_by_partner"]: (
                meta,
                lambda body: sparse_cube(body["query"], lambda key: values[key["Shteti"]]),
            )
        }
    )


def test_imports_all_partners(tmp_path, imports_client):
    dataset = fetch_imports_by_partner(str(tmp_path), ["ALL"], GENERATED_AT, client=imports_client)

    records = dataset["records"]
    assert len(records) == 9
    assert [r["period"] for r in records] == sorted(r["period"] for r in records)
    assert records[:3] == [
        {"period": "2024-01", "partner": "AL", "imports": 1500.0},
        {"period": "2024-01", "partner": "DE", "imports": None},
        {"period": "2024-01", "partner": "XS", "imports": 2000},
    ]
    assert dataset["meta"]["dimensions"]["partner"] == [
        {"key": "AL", "label": "Albania"},
        {"key": "DE", "label": "Germany"},
        {"key": "XS", "label": "Serbia"},
    ]
    assert dataset["meta"]["fields"] == [{"key": "imports", "label": "Imports", "unit": "EUR"}]
    time = dataset["meta"]["time"]
    assert (time["first"], time["last"], time["count"]) == ("2024-01", "2024-03", 3)
    (_, body), = imports_client.queries
    assert [q["code"] for q in body["query"]] == ["Viti/muaji", "Shteti"]

    written = json.loads((tmp_path / "kas_imports_by_partner.json").read_text(encoding="utf-8"))
    assert written["meta"]["dimensions"]["partner"][2]["label"] == "Serbia"


def test_imports_partner_filter(tmp_path, imports_client):
    dataset = fetch_imports_by_partner(str(tmp_path), ["de", " ", "al:albania"], GENERATED_AT, client=imports_client)
    assert {r["partner"] for r in dataset["records"]} == {"AL", "DE"}
    query = imports_client.queries[0][1]["query"]
    assert query[1]["selection"]["values"] == ["AL", "DE"]


def test_imports_unmatched_filter_is_skipped(tmp_path, imports_client):
    result = fetch_imports_by_partner(str(tmp_path), ["ZZZ"], GENERATED_AT, client=imports_client)
    assert isinstance(result, Skipped)
    assert "no partner codes matched" in result.reason
    assert imports_client.queries == []
    assert not (tmp_path / "kas_imports_by_partner.json").exists()


# ---------------------------------------------------------------------------
# CPI
# ---------------------------------------------------------------------------


def cpi_meta(groups=("0", "01", "011")):
    labels = {"0": "Gjithsej", "01": "01 Ushqimi dhe pijet", "011": "01.1 Ushqimi"}
    return {
        "variables": [
            time_variable(["2024M02", "2024M01"]),
            {
                "code": "Grupet dhe nëngrupet",
                "text": "Grupet dhe nëngrupet",
                "values": list(groups),
                "valueTexts": [labels[g] for g in groups],
            },
        ]
    }


def test_cpi_monthly_merges_components(tmp_path, fake_client, sparse_cube):
    def change_value(key):
        return ".." if key["Grupet dhe nëngrupet"] == "011" else "2"

    client = fake_client(
        {
            PATHS["cpi_index"]: (cpi_meta(), lambda body: sparse_cube(body["query"], constant("101.5"))),
            PATHS["cpi_change"]: (cpi_meta(), lambda body: sparse_cube(body["query"], change_value)),
        }
    )
    dataset = fetch_cpi_monthly(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    assert len(records) == 6
    assert records[0] == {"period": "2024-01", "group": "0", "index": 101.5, "change": pytest.approx(0.02)}
    assert records[2]["group"] == "011"
    assert records[2]["change"] is None

    meta = dataset["meta"]
    assert meta["id"] == "kas_cpi_monthly"
    assert meta["metrics"] == ["index", "change"]
    assert meta["fields"][1] == {"key": "change", "label": "CPI Ndryshimi (m/m)", "unit": "%"}
    assert meta["time"]["first"] == "2024-01"
    assert meta["time"]["count"] == 2
    hierarchy = {node["key"]: node for node in meta["dimension_hierarchies"]["group"]}
    assert hierarchy["011"]["parent"] == "01"
    assert hierarchy["01"]["children"] == ["011"]
    assert (tmp_path / "kas_cpi_monthly.json").exists()
    assert not (tmp_path / "kas_cpi_index_monthly.json").exists()


def test_cpi_integer_index_survives_outer_merge(tmp_path, fake_client, sparse_cube):
    def index_value(key):
        return "101" if key["Grupet dhe nëngrupet"] != "011" else ".."

    client = fake_client(
        {
            PATHS["cpi_index"]: (cpi_meta(), lambda body: sparse_cube(body["query"], index_value)),
            PATHS["cpi_change"]: (cpi_meta(("0", "01")), lambda body: sparse_cube(body["query"], constant("1.5"))),
        }
    )
    dataset = fetch_cpi_monthly(str(tmp_path), GENERATED_AT, client=client)

    by_key = {(r["period"], r["group"]): r for r in dataset["records"]}
    assert by_key[("2024-01", "0")]["index"] == 101
    assert type(by_key[("2024-01", "0")]["index"]) is int
    assert by_key[("2024-01", "011")] == {"period": "2024-01", "group": "011", "index": None, "change": None}
    written = (tmp_path / "kas_cpi_monthly.json").read_text(encoding="utf-8")
    assert '"index": 101,' in written
    assert "101.0" not in written


def test_cpi_skipped_component_fails(tmp_path, fake_client, sparse_cube):
    client = fake_client(
        {
            PATHS["cpi_index"]: (cpi_meta(groups=()), None),
            PATHS["cpi_change"]: (cpi_meta(), lambda body: sparse_cube(body["query"], constant("1"))),
        }
    )
    with pytest.raises(PxError, match="index component skipped"):
        fetch_cpi_monthly(str(tmp_path), GENERATED_AT, client=client)


# ---------------------------------------------------------------------------
# Energy and fuels
# ---------------------------------------------------------------------------


def test_energy_monthly(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            time_variable(["2024M02", "2024M01"]),
            {
                "code": "MWH",
                "text": "MWH",
                "values": [i["code"] for i in ENERGY_INDICATORS],
                "valueTexts": [i["label"] for i in ENERGY_INDICATORS],
            },
        ]
    }

    def value(key):
        return "100" if key["MWH"] in ("0", "1", "2") else "5"

    client = fake_client(
        {PATHS["energy_monthly"]: (meta, lambda body: sparse_cube(body["query"], value))}
    )
    dataset = fetch_energy_monthly(str(tmp_path), GENERATED_AT, client=client)

    first = dataset["records"][0]
    assert first["period"] == "2024-01"
    assert first["production_thermal_gwh"] == 100
    assert first["import_gwh"] == 5
    assert first["production_gwh"] == 300
    fields = dataset["meta"]["fields"]
    assert len(fields) == len(ENERGY_INDICATORS) + 1
    assert fields[-1]["key"] == "production_gwh"
    assert all(f["unit"] == "GWh" for f in fields)
    assert (tmp_path / "kas_energy_electricity_monthly.json").exists()


FUEL_META = {
    "variables": [
        time_variable(["2024M02", "2024M01"]),
        {
            "code": "Bilanci",
            "text": "Bilanci",
            "values": ["0", "1", "2", "3", "4"],
            "valueTexts": ["Production", "Import", "Export", "Stock", "Ready for market"],
        },
    ]
}


@pytest.fixture()
def fuel_client(fake_client, sparse_cube):
    def value(key):
        return str(10 * (int(key["Bilanci"]) + 1))

    return fake_client(
        {
            PATHS[spec["path_key"]]: (FUEL_META, lambda body: sparse_cube(body["query"], value))
            for spec in FUEL_SPECS.values()
        }
    )


def test_fuel_table(tmp_path, fuel_client):
    dataset = fetch_fuel_table(str(tmp_path), "gasoline", FUEL_SPECS["gasoline"], GENERATED_AT, client=fuel_client)
    assert dataset["records"][0] == {
        "period": "2024-01",
        "production": 10,
        "import": 20,
        "export": 30,
        "stock": 40,
        "ready_for_market": 50,
    }
    meta = dataset["meta"]
    assert meta["label"] == "Gasoline"
    assert meta["unit"] == "tonnes"
    assert [f["key"] for f in meta["fields"]] == ["production", "import", "export", "stock", "ready_for_market"]
    assert not (tmp_path / "kas_energy_gasoline_monthly.json").exists()


def test_fuel_combined_dataset(tmp_path, fuel_client):
    datasets = {
        name: fetch_fuel_table(str(tmp_path), name, spec, GENERATED_AT, client=fuel_client)
        for name, spec in FUEL_SPECS.items()
    }
    combined = write_fuel_combined_dataset(str(tmp_path), GENERATED_AT, datasets)

    records = combined["records"]
    assert len(records) == 2 * len(FUEL_SPECS)
    assert [r["fuel"] for r in records[:4]] == list(FUEL_SPECS)
    assert records[0] == {
        "period": "2024-01",
        "fuel": "gasoline",
        "production": 10,
        "import": 20,
        "export": 30,
        "stock": 40,
        "ready_for_market": 50,
    }
    meta = combined["meta"]
    assert meta["id"] == "kas_energy_fuels_monthly"
    assert [o["key"] for o in meta["dimensions"]["fuel"]] == list(FUEL_SPECS)
    assert meta["fields"][0] == {"key": "production", "label": "Production", "unit": "tonnes"}
    assert meta["time"]["count"] == 2
    written = json.loads((tmp_path / "kas_energy_fuels_monthly.json").read_text(encoding="utf-8"))
    assert written == combined


def test_fuel_combined_requires_every_fuel(tmp_path):
    with pytest.raises(PxError, match="missing fuel datasets: diesel, lng, jet"):
        write_fuel_combined_dataset(str(tmp_path), GENERATED_AT, {"gasoline": {"meta": {}, "records": []}})


# ---------------------------------------------------------------------------
# Trade
# ---------------------------------------------------------------------------


def variable(code, values, texts=None, text=None, time=False):
    entry = {"code": code, "text": text or code, "values": list(values), "valueTexts": list(texts or values)}
    if time:
        entry["time"] = True
    return entry


def test_trade_chapters_monthly(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            time_variable(["2024M02", "2024M01"]),
            variable("Variablat", ["1", "2"], ["01 - LIVE ANIMALS", "02 - MEAT AND EDIBLE MEAT OFFAL"]),
            variable("Export/Import", ["0", "1"], ["Importe", "Eksporte"]),
        ]
    }

    def chapter_value(key):
        return "1.5" if key["Variablat"] == "1" and key["Export/Import"] == "0" else ".."

    client = fake_client(
        {PATHS["trade_chapters_monthly"]: (meta, lambda body: sparse_cube(body["query"], chapter_value))}
    )
    dataset = fetch_trade_chapters_monthly(str(tmp_path), GENERATED_AT, client=client)

    # Chapter 02 has no value in either flow and is dropped.
    assert dataset["records"] == [
        {"period": "2024-01", "chapter": "01", "imports": 1500.0, "exports": None},
        {"period": "2024-02", "chapter": "01", "imports": 1500.0, "exports": None},
    ]
    meta_out = dataset["meta"]
    assert meta_out["dimensions"]["chapter"] == [
        {"key": "01", "label": "01 · Live Animals"},
        {"key": "02", "label": "02 · Meat and Edible Meat Offal"},
    ]
    assert meta_out["fields"] == [
        {"key": "imports", "label": "Importe", "unit": "EUR"},
        {"key": "exports", "label": "Eksporte", "unit": "EUR"},
    ]
    assert meta_out["notes"] == [THOUSANDS_NOTE]
    (_, body), = client.queries
    assert [q["code"] for q in body["query"]] == ["Viti/muaji", "Variablat", "Export/Import"]
    assert (tmp_path / "kas_trade_chapters_monthly.json").exists()


@pytest.fixture()
def trade_partner_client(fake_client, sparse_cube):
    partners = variable("Shteti", ["AL", "DE"], ["AL:ALBANIA", "DE:GERMANY"])
    imports = {"AL": "1.5", "DE": ".."}
    exports = {"AL": "2", "DE": ".."}
    return fake_client(
        {
            PATHS["imports_by_partner"]: (
                {"variables": [time_variable(["2024M02", "2024M01"]), partners]},
                lambda body: sparse_cube(body["query"], lambda key: imports[key["Shteti"]]),
            ),
            PATHS["exports_by_partner"]: (
                {"variables": [time_variable(["2024M01"]), partners]},
                lambda body: sparse_cube(body["query"], lambda key: exports[key["Shteti"]]),
            ),
        }
    )


def test_trade_partners_merges_flows(tmp_path, trade_partner_client):
    dataset = fetch_trade_partners(str(tmp_path), ["ALL"], GENERATED_AT, client=trade_partner_client)

    records = dataset["records"]
    assert len(records) == 4
    assert records[0] == {"period": "2024-01", "partner": "AL", "imports": 1500, "exports": 2000}
    assert records[1] == {"period": "2024-01", "partner": "DE", "imports": None, "exports": None}
    assert records[2] == {"period": "2024-02", "partner": "AL", "imports": 1500, "exports": None}

    meta = dataset["meta"]
    assert meta["dimensions"]["partner"] == [
        {"key": "AL", "label": "Albania"},
        {"key": "DE", "label": "Germany"},
    ]
    assert meta["metrics"] == ["imports", "exports"]
    assert (meta["time"]["first"], meta["time"]["last"]) == ("2024-01", "2024-02")
    assert len(meta["source_urls"]) == 2
    assert (tmp_path / "kas_trade_partners.json").exists()
    assert not (tmp_path / "kas_trade_partners_imports.json").exists()


def test_trade_partners_unmatched_filter_is_skipped(tmp_path, trade_partner_client):
    result = fetch_trade_partners(str(tmp_path), ["ZZZ"], GENERATED_AT, client=trade_partner_client)
    assert isinstance(result, Skipped)
    assert result.dataset_id == "kas_trade_partners"
    assert trade_partner_client.queries == []


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


def air_client(fake_client, sparse_cube, flight_periods=("2024M02", "2024M01")):
    def flights(key):
        return "5" if key["Viti/muaji"] == "2024M01" else ".."

    tables = {
        "transport_air_passengers_inbound": (["2024M02", "2024M01"], constant("100")),
        "transport_air_passengers_outbound": (["2024M02", "2024M01"], constant("90")),
        "transport_air_flights": (list(flight_periods), flights),
    }
    return fake_client(
        {
            PATHS[path_key]: (
                {"variables": [time_variable(periods)]},
                lambda body, value_for=value_for: sparse_cube(body["query"], value_for),
            )
            for path_key, (periods, value_for) in tables.items()
        }
    )


def test_air_transport_merges_components(tmp_path, fake_client, sparse_cube):
    dataset = fetch_air_transport_monthly(str(tmp_path), GENERATED_AT, client=air_client(fake_client, sparse_cube))

    assert dataset["records"] == [
        {"period": "2024-01", "passengers_inbound": 100, "passengers_outbound": 90, "flights": 5},
        {"period": "2024-02", "passengers_inbound": 100, "passengers_outbound": 90, "flights": None},
    ]
    meta = dataset["meta"]
    assert meta["metrics"] == ["passengers_inbound", "passengers_outbound", "flights"]
    assert meta["dimensions"] == {}
    assert meta["time"]["count"] == 2
    assert (tmp_path / "kas_transport_air_traffic_monthly.json").exists()


def test_air_transport_skipped_component_fails(tmp_path, fake_client, sparse_cube):
    client = air_client(fake_client, sparse_cube, flight_periods=())
    with pytest.raises(PxError, match="flights component skipped"):
        fetch_air_transport_monthly(str(tmp_path), GENERATED_AT, client=client)


def test_motor_vehicles_sorted_by_year_without_total(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            variable("year", ["2022", "2021", "2023"], text="viti"),
            variable(
                "type of motor",
                ["0", "1", "2"],
                ["Gjithsejt", "Vetura", "Kombibuset"],
                text="lloji i mjetit motorik",
            ),
        ]
    }
    client = fake_client(
        {PATHS["transport_vehicle_types_yearly"]: (meta, lambda body: sparse_cube(body["query"], constant("1200")))}
    )
    dataset = fetch_motor_vehicles_by_type(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    assert len(records) == 6
    assert records[0] == {"period": "2021", "vehicle_type": "vetura", "vehicles": 1200}
    assert [r["period"] for r in records] == ["2021", "2021", "2022", "2022", "2023", "2023"]
    assert dataset["meta"]["dimensions"]["vehicle_type"] == [
        {"key": "vetura", "label": "Vetura"},
        {"key": "kombibuset", "label": "Kombibusë"},
    ]
    assert (dataset["meta"]["time"]["first"], dataset["meta"]["time"]["last"]) == ("2021", "2023")
    query = client.queries[0][1]["query"]
    assert query[0]["selection"]["values"] == ["2021", "2022", "2023"]
    assert query[1]["selection"]["values"] == ["1", "2"]


# ---------------------------------------------------------------------------
# Labour
# ---------------------------------------------------------------------------


def wages_meta(metric_codes=("0", "1")):
    texts = {"0": "Bruto", "1": "Neto"}
    return {
        "variables": [
            variable("Viti", ["2023", "2022"]),
            variable("Variabla", ["0", "3"], ["Paga mesatare", "Sektori privat"]),
            variable("Bruto/neto", metric_codes, [texts[c] for c in metric_codes]),
        ]
    }


def test_wage_levels(tmp_path, fake_client, sparse_cube):
    def wage(key):
        return "600" if key["Bruto/neto"] == "0" else "500"

    client = fake_client({PATHS["labour_wages"]: (wages_meta(), lambda body: sparse_cube(body["query"], wage))})
    dataset = fetch_wage_levels(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    assert [(r["period"], r["group"]) for r in records] == [
        ("2022", "average"),
        ("2022", "private_sector"),
        ("2023", "average"),
        ("2023", "private_sector"),
    ]
    assert records[0] == {"period": "2022", "group": "average", "gross_eur": 600, "net_eur": 500}
    meta = dataset["meta"]
    assert meta["fields"] == [
        {"key": "gross_eur", "label": "Pagë bruto", "unit": "EUR"},
        {"key": "net_eur", "label": "Pagë neto", "unit": "EUR"},
    ]
    assert [o["key"] for o in meta["dimensions"]["group"]] == ["average", "private_sector"]
    assert (meta["time"]["first"], meta["time"]["last"]) == ("2022", "2023")


def test_wage_levels_missing_metric_code_fails(tmp_path, fake_client):
    client = fake_client({PATHS["labour_wages"]: (wages_meta(metric_codes=("0",)), None)})
    with pytest.raises(PxError, match='missing expected code "1"'):
        fetch_wage_levels(str(tmp_path), GENERATED_AT, client=client)


def test_labour_employment_activity_gender(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            variable("Viti", ["2023"]),
            variable("Tremujoret", ["1", "2"], ["TM1", "TM2"]),
            variable(
                "Punësimi sipas aktiviteteve (NË MIJËRA)",
                ["0", "1", "2"],
                ["Gjithsej", "A - Bujqësia", "C - Prodhimi"],
            ),
            variable("Gjinia", ["0", "1"], ["Meshkuj", "Femra"]),
        ]
    }
    client = fake_client(
        {PATHS["labour_employment_activity_gender"]: (meta, lambda body: sparse_cube(body["query"], constant("12.5")))}
    )
    dataset = fetch_labour_employment_activity_gender(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    assert len(records) == 2 * 2 * 2
    assert records[0] == {"period": "2023-Q1", "activity": "bujq_sia", "gender": "female", "employment": 12500.0}
    assert {r["activity"] for r in records} == {"bujq_sia", "prodhimi"}
    meta_out = dataset["meta"]
    assert meta_out["dimensions"]["activity"] == [
        {"key": "bujq_sia", "label": "A - Bujqësia"},
        {"key": "prodhimi", "label": "C - Prodhimi"},
    ]
    assert EMPLOYMENT_NOTE in meta_out["notes"]
    assert (meta_out["time"]["first"], meta_out["time"]["last"], meta_out["time"]["count"]) == (
        "2023-Q1",
        "2023-Q2",
        2,
    )


# ---------------------------------------------------------------------------
# CPI average prices and construction costs
# ---------------------------------------------------------------------------


def test_cpi_average_prices_yearly(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            variable("viti", ["2023", "2022"], time=True),
            variable("artikujt", ["1", "2"], ["Bukë", "Qumësht"]),
        ]
    }
    client = fake_client({PATHS["cpi_average_prices"]: (meta, lambda body: sparse_cube(body["query"], constant("0.85")))})
    dataset = fetch_cpi_average_prices_yearly(str(tmp_path), GENERATED_AT, client=client)

    assert dataset["records"][:2] == [
        {"period": "2022", "article": "1", "price": 0.85},
        {"period": "2022", "article": "2", "price": 0.85},
    ]
    meta_out = dataset["meta"]
    assert meta_out["fields"] == [{"key": "price", "label": "Çmimet mesatare", "unit": "€"}]
    assert meta_out["dimensions"]["article"] == [{"key": "1", "label": "Bukë"}, {"key": "2", "label": "Qumësht"}]
    assert (tmp_path / "kas_cpi_average_prices_yearly.json").exists()


def test_construction_cost_index(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            variable("Year", ["2024", "2023"], text="Viti", time=True),
            variable("Period", ["0", "1", "2", "3", "4"], ["Peshat", "TM4", "TM3", "TM2", "TM1"], text="Periudha"),
            variable(
                "Cost category",
                ["9", "0", "1", "4"],
                ["Gjithsej (1+2+3+4+5+6)", "1. Materialet (a+b+c)", "a. Çimento", "2. Fuqia punëtore"],
                text="Kategoritë të kostove dhe kodi",
            ),
        ]
    }

    # Only the first quarter of 2024 is published.
    def cost(key):
        return ".." if key["Year"] == "2024" and key["Period"] != "4" else "105.2"

    client = fake_client(
        {PATHS["construction_cost_index"]: (meta, lambda body: sparse_cube(body["query"], cost))}
    )
    dataset = fetch_construction_cost_index(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    assert len(records) == 4 * 4 + 4
    assert records[0] == {"period": "2023-Q1", "cost_category": "0", "index": 105.2}
    assert records[-1]["period"] == "2024-Q1"
    query = client.queries[0][1]["query"]
    assert query[1]["selection"]["values"] == ["4", "3", "2", "1"]

    meta_out = dataset["meta"]
    assert set(meta_out["dimensions"]) == {"cost_category"}
    assert meta_out["dimensions"]["cost_category"] == [
        {"key": "9", "label": "Gjithsej"},
        {"key": "0", "label": "Materialet"},
        {"key": "1", "label": "Çimento"},
        {"key": "4", "label": "Fuqia punëtore"},
    ]
    hierarchy = {node["key"]: node for node in meta_out["dimension_hierarchies"]["cost_category"]}
    assert hierarchy["1"]["parent"] == "0"
    assert hierarchy["0"]["children"] == ["1"]
    assert hierarchy["1"]["level"] == 1
    assert (meta_out["time"]["first"], meta_out["time"]["last"], meta_out["time"]["count"]) == (
        "2023-Q1",
        "2024-Q1",
        5,
    )
    assert meta_out["notes"] == [CONSTRUCTION_NOTE]


# ---------------------------------------------------------------------------
# National accounts
# ---------------------------------------------------------------------------


def gdp_meta():
    return {
        "variables": [
            variable("Viti/tremujori", ["2024Q1", "2023Q4"], ["2024 TM1", "2023 TM4"], time=True),
            variable(
                "Përshkrimi i aktiviteteve NACE",
                ["1", "21", "23"],
                ["Bujqësia, pylltaria dhe peshkimi", "Bruto vlera e shtuar", "Bruto produkti vendor"],
            ),
        ]
    }


def test_gdp_by_activity_quarterly(tmp_path, fake_client, sparse_cube):
    def nominal(key):
        if key["Përshkrimi i aktiviteteve NACE"] == "1" and key["Viti/tremujori"] == "2024Q1":
            return ".."
        return "250.5"

    def real(key):
        return ".." if key["Përshkrimi i aktiviteteve NACE"] == "1" else "240"

    client = fake_client(
        {
            PATHS["gdp_quarterly_nominal"]: (gdp_meta(), lambda body: sparse_cube(body["query"], nominal)),
            PATHS["gdp_quarterly_constant"]: (gdp_meta(), lambda body: sparse_cube(body["query"], real)),
        }
    )
    dataset = fetch_gdp_by_activity_quarterly(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    # The 2024-Q1 agriculture row is empty in both tables.
    assert len(records) == 5
    assert records[0] == {
        "period": "2023-Q4",
        "activity": "bujq_sia_pylltaria_dhe_peshkimi",
        "category": "activity",
        "nominal_eur": 250500,
        "real_eur": None,
    }
    assert records[1] == {
        "period": "2023-Q4",
        "activity": "gdp_total",
        "category": "aggregate",
        "nominal_eur": 250500,
        "real_eur": 240000,
    }
    meta = dataset["meta"]
    assert meta["dimensions"]["activity"] == [
        {"key": "bujq_sia_pylltaria_dhe_peshkimi", "label": "Bujqësia, pylltaria dhe peshkimi"},
        {"key": "gva_total", "label": "Bruto vlera e shtuar, gjithsej"},
        {"key": "gdp_total", "label": "BPV gjithsej"},
    ]
    assert meta["aggregates"] == ["gva_total", "net_taxes_on_products", "gdp_total"]
    assert meta["metrics"] == ["nominal_eur", "real_eur"]
    assert (meta["time"]["first"], meta["time"]["last"]) == ("2023-Q4", "2024-Q1")
    assert (tmp_path / "kas_gdp_by_activity_quarterly.json").exists()


def test_government_expenditure(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            variable("tremujoret", ["2024Q1", "2023Q4"], ["2024 TM1", "2023 TM4"]),
            variable(
                "ESA2010 përshkrimi",
                ["0", "1", "2"],
                ["Gjithsej shpenzimet", "P2 Konsumi i ndërmjetëm", "D1 Kompensimi i punonjësve"],
            ),
        ]
    }
    client = fake_client(
        {PATHS["government_expenditure_quarterly"]: (meta, lambda body: sparse_cube(body["query"], constant("12.5")))}
    )
    dataset = fetch_government_expenditure(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    assert len(records) == 4
    assert records[0] == {"period": "2023-Q4", "category": "d1_kompensimi_i_punonj_sve", "amount_eur": 12500000.0}
    assert {r["category"] for r in records} == {"d1_kompensimi_i_punonj_sve", "p2_konsumi_i_nd_rmjet_m"}
    meta_out = dataset["meta"]
    assert meta_out["notes"] == GOVERNMENT_NOTES
    assert meta_out["fields"] == [{"key": "amount_eur", "label": "Shuma", "unit": "EUR"}]
    assert (meta_out["time"]["first"], meta_out["time"]["last"]) == ("2023-Q4", "2024-Q1")
    query = client.queries[0][1]["query"]
    assert query[0]["selection"]["values"] == ["2023Q4", "2024Q1"]


def test_government_revenue_hierarchy(tmp_path, fake_client, sparse_cube):
    meta = {
        "variables": [
            variable("Year", ["2023", "2024"], text="Viti"),
            variable("Period", ["1", "2"], ["TM1", "TM2"], text="Tremujori"),
            variable(
                "Variables",
                ["0", "1", "2"],
                ["Gjithsej të hyrat", "D2 Taksat në prodhim dhe import", "D21 Taksat në produkte"],
                text="Variabla",
            ),
        ]
    }
    client = fake_client(
        {PATHS["government_revenue_quarterly"]: (meta, lambda body: sparse_cube(body["query"], constant("3")))}
    )
    dataset = fetch_government_revenue(str(tmp_path), GENERATED_AT, client=client)

    records = dataset["records"]
    assert len(records) == 2 * 2 * 2
    assert records[0] == {"period": "2023-Q1", "category": "d21_taksat_n_produkte", "amount_eur": 3000000}
    meta_out = dataset["meta"]
    assert (meta_out["time"]["first"], meta_out["time"]["last"], meta_out["time"]["count"]) == (
        "2023-Q1",
        "2024-Q2",
        4,
    )
    hierarchy = {node["key"]: node for node in meta_out["dimension_hierarchies"]["category"]}
    assert hierarchy["d21_taksat_n_produkte"]["parent"] == "d2_taksat_n_prodhim_dhe_import"
    assert hierarchy["d2_taksat_n_prodhim_dhe_import"]["children"] == ["d21_taksat_n_produkte"]
    assert hierarchy["d2_taksat_n_prodhim_dhe_import"]["label"] == "Taksat në prodhim dhe import"

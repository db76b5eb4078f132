import itertools

import pytest

from kas_data.cube import LookupTable
from kas_data.dimensions import AxisSpec, DimensionValue, MetricSpec, ResolvedAxis, ResolvedMetric
from kas_data.errors import PxError
from kas_data.query import QueryFilter
from kas_data.walker import ManyRecords, NoRecord, OneRecord, to_outcome, walk_records

PERIODS = ["2024M01", "2024M02"]
REGIONS = ["1", "2", "3"]
METRICS = ["0", "1"]


def make_axis(code, codes, *, alias=None, iterate=True, is_time=False):
    return ResolvedAxis(
        code=code,
        alias=alias or code,
        variable=None,
        values=[DimensionValue(code=c, label=c.replace("M", "-"), meta_label=c) for c in codes],
        iterate=iterate,
        is_time=is_time,
        spec=AxisSpec(code=code),
    )


def make_metric():
    return ResolvedMetric(
        code="Variabla",
        variable=None,
        values=[
            DimensionValue(code="0", label="Visitors", meta_label="Visitors", key="visitors"),
            DimensionValue(code="1", label="Nights", meta_label="Nights", key="nights"),
        ],
        has_dimension=True,
        spec=MetricSpec(code="Variabla"),
    )


@pytest.fixture()
def table():
    lookup = {}
    for i, key in enumerate(itertools.product(PERIODS, REGIONS, METRICS)):
        lookup[key] = float(i)
    return LookupTable(dim_codes=["Viti/muaji", "Rajonet", "Variabla"], lookup=lookup)


def walk(table, create_record, **kwargs):
    return walk_records(
        "ds",
        make_axis("Viti/muaji", PERIODS, alias="period", is_time=True),
        kwargs.pop("axes", [make_axis("Rajonet", REGIONS, alias="region")]),
        kwargs.pop("metrics", [make_metric()]),
        table,
        create_record,
        **kwargs,
    )


def test_one_record_per_combination(table):
    records = walk(
        table,
        lambda ctx: {"period": ctx.period, "region": ctx.axes["region"].code, **ctx.values},
    )
    assert len(records) == len(PERIODS) * len(REGIONS)
    assert records[0] == {"period": "2024-01", "region": "1", "visitors": 0, "nights": 1}
    assert isinstance(records[0]["visitors"], int)
    assert records[-1]["region"] == "3"
    assert records[-1]["period"] == "2024-02"


def test_none_produces_no_records(table):
    assert walk(table, lambda ctx: None) == []


def test_list_fans_out(table):
    records = walk(table, lambda ctx: [{"n": 1}, None, {"n": 2}])
    assert len(records) == 2 * len(PERIODS) * len(REGIONS)


def test_invalid_return_raises(table):
    with pytest.raises(PxError, match="invalid value"):
        walk(table, lambda ctx: 5)
    with pytest.raises(PxError, match="invalid array entry"):
        walk(table, lambda ctx: [{"ok": 1}, "bad"])


def test_pinned_axis_is_fixed_to_first_value(table):
    seen = []

    def create(ctx):
        seen.append((ctx.period_code, ctx.assignments["Rajonet"], ctx.axis_by_code["Rajonet"].code))
        return ctx.values

    records = walk(table, create, axes=[make_axis("Rajonet", ["2", "3"], alias="region", iterate=False)])
    assert len(records) == len(PERIODS)
    assert seen == [("2024M01", "2", "2"), ("2024M02", "2", "2")]


def test_implicit_metric_and_filters():
    table = LookupTable(
        dim_codes=["Viti/muaji", "Njësia"],
        lookup={("2024M01", "u1"): 3.0, ("2024M02", "u1"): None},
    )
    implicit = ResolvedMetric(
        code="",
        variable=None,
        values=[DimensionValue(code="__value__", label="Value", meta_label="Value", key="value")],
        has_dimension=False,
        spec=MetricSpec(code=None),
    )
    records = walk(
        table,
        lambda ctx: {"period": ctx.period, "value": ctx.get_value("value")},
        axes=[],
        metrics=[implicit],
        filters=[QueryFilter(code="Njësia", values=["u1", "u2"])],
    )
    assert records == [{"period": "2024-01", "value": 3}, {"period": "2024-02", "value": None}]


def test_filter_without_values_raises(table):
    with pytest.raises(PxError, match="missing values"):
        walk(table, lambda ctx: None, filters=[QueryFilter(code="X", values=[])])


def test_outcome_normalization():
    assert isinstance(to_outcome(None, "ds"), NoRecord)
    assert to_outcome({"a": 1}, "ds") == OneRecord({"a": 1})
    assert to_outcome([{"a": 1}], "ds") == ManyRecords([{"a": 1}])
    assert to_outcome(ManyRecords([{"a": 2}]), "ds").records() == [{"a": 2}]

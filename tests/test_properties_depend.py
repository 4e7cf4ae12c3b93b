# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab


import pytest

from batchq_lib.core.error import BQError
from batchq_lib.properties.depend import Depend, DependType


@pytest.mark.parametrize(
    "input_str, expected_type",
    [
        ("after", DependType.AFTER_START),
        ("afterok", DependType.AFTER_SUCCESS),
        ("afternotok", DependType.AFTER_FAILURE),
        ("afterany", DependType.AFTER_COMPLETION),
    ],
)
def test_depend_type_from_str_valid_mappings(input_str, expected_type):
    result = DependType.fromStr(input_str)
    assert result == expected_type
    assert str(result) == input_str


@pytest.mark.parametrize(
    "invalid_str",
    ["after_fail", "AFTEROK", "after any", "unknown", "", None, 123],
)
def test_depend_type_from_str_invalid_inputs(invalid_str):
    with pytest.raises(BQError, match="Unknown dependency type"):
        DependType.fromStr(invalid_str)


@pytest.mark.parametrize(
    "raw_depend, expected_type, expected_jobs",
    [
        ("after=12345", DependType.AFTER_START, ("12345",)),
        ("afterok=1:2:3", DependType.AFTER_SUCCESS, ("1", "2", "3")),
        ("afternotok=99.cluster", DependType.AFTER_FAILURE, ("99.cluster",)),
        (" afterany = 5 : 6 ", DependType.AFTER_COMPLETION, ("5", "6")),
    ],
)
def test_depend_from_str_valid(raw_depend, expected_type, expected_jobs):
    depend = Depend.fromStr(raw_depend)
    assert depend.type == expected_type
    assert depend.jobs == expected_jobs


@pytest.mark.parametrize(
    "raw_depend",
    ["afterok", "afterok=", "afterok=1::2", "later=1", "afterok=1=2"],
)
def test_depend_from_str_invalid(raw_depend):
    with pytest.raises(BQError, match="Could not parse dependency specification"):
        Depend.fromStr(raw_depend)


def test_depend_multi_from_str():
    depends = Depend.multiFromStr("afterok=1:2, after=3 afterany=4")

    assert depends == [
        Depend(DependType.AFTER_SUCCESS, ("1", "2")),
        Depend(DependType.AFTER_START, ("3",)),
        Depend(DependType.AFTER_COMPLETION, ("4",)),
    ]


def test_depend_multi_from_str_empty():
    assert Depend.multiFromStr("  ") == []


def test_depend_to_str():
    assert Depend(DependType.AFTER_SUCCESS, ("1", "2")).toStr() == "afterok=1:2"


def test_depend_collect_groups_and_deduplicates():
    grouped = Depend.collect(
        [
            Depend(DependType.AFTER_SUCCESS, ("1", "2")),
            Depend(DependType.AFTER_START, ("3",)),
            Depend(DependType.AFTER_SUCCESS, ("2", "4")),
        ]
    )

    assert grouped == {
        DependType.AFTER_SUCCESS: ["1", "2", "4"],
        DependType.AFTER_START: ["3"],
    }


def test_depend_collect_none():
    assert Depend.collect(None) == {}

import pytest

from traprelay.sanitize import (
    clean_alert_name,
    find_label_prefix,
    find_label_suffix,
    truncate_labels_prefix,
    truncate_labels_suffix,
)

PREFIX = "ifEntry."
SUFFIX = ".value"


def test_prefix_of_empty_labels_is_empty():
    assert find_label_prefix({}) == ""
    assert find_label_suffix({}) == ""


def test_find_label_prefix_returns_shared_prefix():
    labels = {PREFIX + "Index": "1", PREFIX + "Descr": "eth0", PREFIX + "Type": "6"}
    assert find_label_prefix(labels) == PREFIX


def test_find_label_suffix_returns_shared_suffix():
    labels = {"Index" + SUFFIX: "1", "Descr" + SUFFIX: "eth0"}
    assert find_label_suffix(labels) == SUFFIX


@pytest.mark.parametrize(
    "labels",
    [
        {"alpha": "1", "alphabet": "2", "alps": "3"},
        {"x": "1", "y": "2"},
        {"only": "1"},
        {"a.b.c": "1", "a.b.d": "2", "a.x": "3"},
    ],
)
def test_every_key_starts_and_ends_with_found_affixes(labels):
    prefix = find_label_prefix(labels)
    suffix = find_label_suffix(labels)
    assert all(key.startswith(prefix) for key in labels)
    assert all(key.endswith(suffix) for key in labels)


def test_truncate_prefix_removes_shared_prefix():
    labels = {PREFIX + "Index": "1", PREFIX + "Descr": "eth0"}
    assert truncate_labels_prefix(labels) == {"Descr": "eth0", "Index": "1"}


def test_truncate_prefix_leaves_input_untouched():
    labels = {PREFIX + "Index": "1", PREFIX + "Descr": "eth0"}
    before = dict(labels)
    truncate_labels_prefix(labels)
    assert labels == before


def test_truncate_suffix_removes_shared_suffix():
    labels = {"Index" + SUFFIX: "1", "Descr" + SUFFIX: "eth0"}
    assert truncate_labels_suffix(labels) == {"Descr": "eth0", "Index": "1"}


def test_truncate_prefix_removes_repeated_prefix():
    labels = {"ababc": "1", "abd": "2"}
    result = truncate_labels_prefix(labels)
    assert result == {"c": "1", "d": "2"}


def test_truncate_single_label_empties_key():
    assert truncate_labels_prefix({"ifIndex": "7"}) == {"": "7"}


def test_truncate_without_common_prefix_keeps_keys():
    labels = {"alpha": "1", "beta": "2"}
    assert truncate_labels_prefix(labels) == labels
    assert list(truncate_labels_prefix(labels)) == sorted(labels)


def test_clean_alert_name_strips_trap_suffix():
    base = "linkDown"
    assert clean_alert_name(base + "Trap") == base
    assert clean_alert_name(base + "TrapTrap") == base


def test_clean_alert_name_keeps_other_names():
    assert clean_alert_name("linkDown") == "linkDown"
    assert clean_alert_name("TrapLinkDown") == "TrapLinkDown"
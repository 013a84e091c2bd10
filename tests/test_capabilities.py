"""Tests for capability declaration and detection."""

from dbmeta.metadata import Capability, Filter, ResultSet, Table
from dbmeta.metadata.readers import INTERFACES, MetadataReader, TableReader


class TablesOnlyReader(MetadataReader, TableReader):
    driver = "tables-only"

    def get_capabilities(self):
        return {Capability.TABLES}

    def tables(self, f: Filter):
        return ResultSet.of(Table, [])


class OverclaimingReader(MetadataReader, TableReader):
    """Declares columns without implementing the interface."""

    driver = "overclaiming"

    def get_capabilities(self):
        return {Capability.TABLES, Capability.COLUMNS}

    def tables(self, f: Filter):
        return ResultSet.of(Table, [])


def test_every_capability_has_an_interface():
    assert set(INTERFACES) == set(Capability)


def test_capability_values_name_reader_methods():
    for capability, interface in INTERFACES.items():
        assert hasattr(interface, capability.value)


def test_declared_and_implemented_capability_is_supported():
    reader = TablesOnlyReader()
    assert reader.supports_capability(Capability.TABLES)
    assert not reader.supports_capability(Capability.COLUMNS)
    assert not reader.supports_capability(Capability.TRIGGERS)


def test_declared_but_unimplemented_capability_is_not_supported():
    reader = OverclaimingReader()
    assert not reader.supports_capability(Capability.COLUMNS)


def test_undeclared_capability_is_not_supported(reader):
    reader.declared.discard(Capability.TRIGGERS)
    assert not reader.supports_capability(Capability.TRIGGERS)
    assert reader.supports_capability(Capability.TABLES)


def test_supports_all(reader):
    assert reader.supports_all(Capability.INDEXES, Capability.INDEX_COLUMNS)
    reader.declared.discard(Capability.INDEX_COLUMNS)
    assert not reader.supports_all(Capability.INDEXES, Capability.INDEX_COLUMNS)


def test_default_system_schemas():
    assert TablesOnlyReader().default_system_schemas() == {"information_schema"}

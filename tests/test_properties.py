# tests/test_properties.py
"""
Tests for property addressing and container growth.

Covers:
    - traverse(): path naming, aliases, transient fields, pre-order containers
    - ConfigProperty flags, equality and kinds
    - Element handles surviving array reallocation
    - grow_to(), grow_containers(), grow_to_match(), attach_missing()
"""

import array

import pytest

from overlayconf.coercion import DeclaredType
from overlayconf.exceptions import ConfigError, ContainerGrowthError, ImmutableContainerError
from overlayconf.growth import attach_missing, grow_containers, grow_to, grow_to_match
from overlayconf.properties import PropertyKind, traverse
from overlayconf.sources import OverlaySources, SystemProperties

from overlay_samples import AppConfig, ArrayConf, Conf, ListConf, MatrixConf, NestedConf, PathConf, TupleConf


def sources(*arguments, environ=None):
    return OverlaySources(arguments, SystemProperties(), environ or {}, "")


# ---------------------------------------------------------------------------
# traverse
# ---------------------------------------------------------------------------


class TestTraverse:
    """Namespace construction."""

    def test_order_and_aliases(self):
        """Containers precede their elements; aliases replace field names."""
        ns = traverse(Conf())
        assert list(ns) == [
            "ip_address", "server", "client", "nested", "nested[0].iceCream", "nested[0].potatoes",
        ]

    def test_kinds(self):
        ns = traverse(Conf())
        assert ns["nested"].kind is PropertyKind.LIST
        assert ns["nested"].is_container
        assert not ns["nested"].is_supported()
        assert ns["nested[0].potatoes"].kind is PropertyKind.LEAF

    def test_element_metadata(self):
        ns = traverse(ListConf())
        prop = ns["ips[2]"]
        assert prop.container_name == "ips"
        assert prop.index == 2
        assert prop.owner is ns.containers.resolve("ips")
        assert ns["ips"].index == -1
        assert ns["ips"].container_name == ""

    def test_owner_is_immediate_parent(self):
        conf = AppConfig()
        ns = traverse(conf)
        assert ns["limits.retries"].owner is conf.limits
        assert ns["port"].owner is conf

    def test_declared_types(self):
        ns = traverse(AppConfig())
        assert ns["name"].declared_type is DeclaredType.STRING
        assert ns["port"].declared_type is DeclaredType.INT
        assert ns["debug"].declared_type is DeclaredType.BOOL
        assert ns["mode"].declared_type is DeclaredType.ENUM
        assert ns["limits.ratio"].declared_type is DeclaredType.DOUBLE
        assert ns["limits.level"].declared_type is DeclaredType.BYTE
        assert ns["tags"].declared_type is DeclaredType.STRING

    def test_array_typecode(self):
        ns = traverse(ArrayConf())
        assert ns["ips"].kind is PropertyKind.ARRAY
        assert ns["ips[0]"].declared_type is DeclaredType.INT

    def test_transient_skipped(self):
        assert "token" not in traverse(AppConfig())

    def test_does_not_modify_root(self):
        conf = ListConf()
        traverse(conf)
        assert conf.ips == [1, 2, 3, 4]

    def test_tuple_rejected(self):
        with pytest.raises(ImmutableContainerError) as exc:
            traverse(TupleConf())
        assert exc.value.path == "hosts"

    def test_non_dataclass(self):
        with pytest.raises(ConfigError):
            traverse(object())

    def test_under(self):
        ns = traverse(MatrixConf())
        assert [p.path for p in ns.under("matrix[0]")] == ["matrix[0]", "matrix[0][0]", "matrix[0][1]"]


# ---------------------------------------------------------------------------
# ConfigProperty
# ---------------------------------------------------------------------------


class TestConfigProperty:
    """Override flags and equality."""

    def test_override_only_on_change(self):
        prop = traverse(AppConfig())["port"]
        assert prop.override(8080) is False
        assert not prop.overridden
        assert prop.override(1) is True
        assert prop.is_overridden()

    def test_set_clears_flag(self):
        prop = traverse(AppConfig())["port"]
        prop.override(1)
        prop.set(2)
        assert not prop.overridden
        assert not prop.is_overridden()

    def test_equality_ignores_flag(self):
        a = traverse(AppConfig())["port"]
        b = traverse(AppConfig())["port"]
        a.override(1)
        a.set(8080)
        a.mark_overridden()
        assert a == b

    def test_clear_override_keeps_value(self):
        prop = traverse(AppConfig())["port"]
        prop.override(1)
        prop.clear_override()
        assert prop.get() == 1
        assert not prop.is_overridden()

    def test_rebuild_keeps_flags(self):
        ns = traverse(ListConf())
        ns["ips[1]"].override(9)
        fresh = ns.rebuild()
        assert fresh["ips[1]"].is_overridden()
        assert not fresh["ips[0]"].is_overridden()


# ---------------------------------------------------------------------------
# Growth
# ---------------------------------------------------------------------------


class TestGrowth:
    """Growing lists and arrays."""

    def test_array_handles_follow_reallocation(self):
        """Element handles created before growth write into the new array."""
        conf = ArrayConf()
        ns = traverse(conf)
        handle = ns["ips[0]"]
        old = conf.ips

        assert grow_to(ns, "ips", 6) is True
        assert conf.ips is not old
        handle.set(9)
        assert conf.ips.tolist() == [9, 2, 3, 4, 0, 0]

    def test_list_grows_in_place(self):
        conf = ListConf()
        ns = traverse(conf)
        lst = conf.ips
        grow_to(ns, "ips", 5)
        assert conf.ips is lst
        assert lst == [1, 2, 3, 4, 0]

    def test_never_shrinks(self):
        ns = traverse(ListConf())
        assert grow_to(ns, "ips", 2) is False
        assert len(ns.containers.resolve("ips")) == 4

    def test_leaf_is_not_container(self):
        with pytest.raises(ContainerGrowthError):
            grow_to(traverse(AppConfig()), "port", 3)

    def test_grow_containers_marks_new_slots(self):
        conf = ListConf()
        ns = grow_containers(traverse(conf), sources("ips[6]=1"))
        assert conf.ips == [1, 2, 3, 4, 0, 0, 0]
        assert ns["ips[5]"].is_overridden()
        assert not ns["ips[3]"].is_overridden()

    def test_grow_containers_idempotent(self):
        conf = ListConf()
        src = sources("ips[6]=1")
        ns = grow_containers(traverse(conf), src)
        grow_containers(ns, src)
        assert len(conf.ips) == 7

    def test_grow_nested_dataclass_list(self):
        conf = Conf()
        ns = grow_containers(traverse(conf), sources("nested[2].potatoes=false"))
        assert len(conf.nested) == 3
        assert "nested[2].potatoes" in ns
        assert ns["nested[2].potatoes"].is_overridden()

    def test_grow_from_environment(self):
        conf = ListConf()
        grow_containers(traverse(conf), sources(environ={"IPS[4]": "1"}))
        assert len(conf.ips) == 5

    def test_grow_to_match(self):
        live = ListConf()
        incoming = ListConf(ips=[0] * 6)
        ns = grow_to_match(traverse(live), traverse(incoming))
        assert len(live.ips) == 6
        assert "ips[5]" in ns

    def test_array_copy_keeps_typecode(self):
        conf = ArrayConf(ips=array.array("d", [1.5]))
        ns = traverse(conf)
        grow_to(ns, "ips", 3)
        assert conf.ips.typecode == "d"
        assert conf.ips.tolist() == [1.5, 0.0, 0.0]

    def test_attach_missing(self):
        """None fields take a copy of the loaded sub-object."""
        live = PathConf()
        loaded = PathConf(parent=NestedConf(ice_cream=True), mirrors=["a"])
        assert attach_missing(live, loaded) == 2
        assert live.parent == loaded.parent
        assert live.parent is not loaded.parent
        assert live.mirrors == ["a"]
        assert attach_missing(live, loaded) == 0

    def test_attach_missing_in_list_elements(self):
        live = Conf(nested=[None])
        assert attach_missing(live, Conf()) == 1
        assert live.nested == [NestedConf()]

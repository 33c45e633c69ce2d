"""Tests for the model factories."""
import pytest

from ifcfg_manager.model import (
    Address,
    BondSettings,
    BondingMode,
    BootProtocol,
    BridgeSettings,
    Connection,
    IPConfig,
    Interface,
    InterfaceStatus,
    InterfaceType,
    Route,
    StartMode,
    VlanSettings,
    create_address_config,
    create_connection,
    create_interface,
    create_route,
    interface_changes,
    interface_name,
    merge_connection,
    placeholder_connection,
)


class TestCreateInterface:
    """Tests for create_interface."""

    def test_flat_payload(self):
        """Flat payload keys map directly onto the fields."""
        iface = create_interface({
            "name": "eth0",
            "mac": "52:54:00:12:34:56",
            "driver": "e1000e",
            "link": True,
        })

        assert iface.name == "eth0"
        assert iface.type == InterfaceType.ETHERNET
        assert iface.mac == "52:54:00:12:34:56"
        assert iface.driver == "e1000e"
        assert iface.link is True
        assert iface.description == ""
        assert iface.status == InterfaceStatus.IDLE
        assert iface.virtual is False

    def test_wicked_payload(self):
        """Nested wicked keys are understood."""
        iface = create_interface({
            "interface": {"name": "eth0"},
            "ethernet": {"address": "52:54:00:12:34:56"},
            "ethtool": {"driver_info": {"driver": "virtio_net"}},
        })

        assert iface.name == "eth0"
        assert iface.mac == "52:54:00:12:34:56"
        assert iface.driver == "virtio_net"
        assert iface.link is False

    @pytest.mark.parametrize("payload,expected,virtual", [
        ({"name": "br0", "bridge": {}}, InterfaceType.BRIDGE, True),
        ({"name": "bond0", "bond": {}}, InterfaceType.BONDING, True),
        ({"name": "eth0.10", "vlan": {}}, InterfaceType.VLAN, True),
        ({"name": "wlan0", "wireless": {}}, InterfaceType.WIRELESS, False),
        ({"name": "br1", "type": "br"}, InterfaceType.BRIDGE, True),
        ({"name": "eth0", "type": "unknown"}, InterfaceType.ETHERNET, False),
        ({"name": "eth0"}, InterfaceType.ETHERNET, False),
    ])
    def test_type_inference(self, payload, expected, virtual):
        """Type comes from an explicit type or a type sub-payload."""
        iface = create_interface(payload)

        assert iface.type == expected
        assert iface.virtual is virtual

    def test_requires_name(self):
        """A payload without a name is rejected."""
        with pytest.raises(ValueError):
            create_interface({"mac": "52:54:00:12:34:56"})

    def test_fresh_ids(self):
        """Every interface gets its own id."""
        assert create_interface({"name": "eth0"}).id != create_interface({"name": "eth0"}).id


class TestInterfaceChanges:
    """Tests for interface_changes."""

    def test_only_carried_fields(self):
        """Missing keys are not defaulted."""
        assert interface_changes({"name": "eth0", "link": True}) == {"link": True}

    def test_wicked_keys(self):
        """Nested wicked keys map onto flat fields."""
        changes = interface_changes({
            "interface": {"name": "br0"},
            "ethernet": {"address": "52:54:00:12:34:56"},
            "ethtool": {"driver_info": {"driver": "bridge"}},
            "bridge": {},
        })

        assert changes == {
            "mac": "52:54:00:12:34:56",
            "driver": "bridge",
            "type": InterfaceType.BRIDGE,
            "virtual": True,
        }

    def test_status_and_error(self):
        """Status is converted; an explicit None error is kept."""
        changes = interface_changes({"name": "eth0", "status": "idle", "error": None})

        assert changes == {"status": InterfaceStatus.IDLE, "error": None}

    def test_interface_name(self):
        """Names come from the flat or the nested key."""
        assert interface_name({"name": "eth0"}) == "eth0"
        assert interface_name({"interface": {"name": "eth1"}}) == "eth1"
        assert interface_name({}) is None


class TestCreateAddressConfig:
    """Tests for create_address_config."""

    def test_defaults(self):
        """Local and label default to empty strings."""
        address = create_address_config()

        assert address.local == ""
        assert address.label == ""
        assert address.id

    def test_unique_ids(self):
        """Every address gets its own id."""
        assert create_address_config().id != create_address_config().id

    def test_keeps_given_id(self):
        """A supplied id is kept."""
        address = create_address_config({"id": "abc", "local": "10.0.0.1/24"})

        assert address.id == "abc"
        assert address.local == "10.0.0.1/24"

    def test_keyword_attributes(self):
        """Keyword arguments fill the fields."""
        address = create_address_config(local="fd00::1/64", label="v6")

        assert address == Address("fd00::1/64", "v6")


class TestCreateConnection:
    """Tests for create_connection."""

    def test_minimal(self):
        """Only a name is needed; everything else has defaults."""
        conn = create_connection({"name": "eth0"})

        assert conn.type == InterfaceType.ETHERNET
        assert conn.start_mode == StartMode.OFF
        assert conn.ipv4 == IPConfig()
        assert conn.ipv6 == IPConfig()
        assert conn.boot_proto == BootProtocol.NONE
        assert conn.exists is False
        assert conn.virtual is False

    def test_requires_name(self):
        """A payload without a name is rejected."""
        with pytest.raises(ValueError):
            create_connection({"type": "eth"})

    @pytest.mark.parametrize("control,expected", [
        ({"mode": "boot"}, StartMode.AUTO),
        ({"mode": "boot", "boot_stage": "localfs", "persistent": "true"}, StartMode.NFSROOT),
        ({"mode": "boot", "boot_stage": "localfs"}, StartMode.AUTO),
        ({"mode": "hotplug"}, StartMode.HOTPLUG),
        ({"mode": "ifplugd"}, StartMode.IFPLUGD),
        ({"mode": "manual"}, StartMode.MANUAL),
        (None, StartMode.OFF),
    ])
    def test_start_mode_from_control(self, control, expected):
        """Start mode follows the control block."""
        payload = {"name": "eth0"}
        if control is not None:
            payload["control"] = control

        assert create_connection(payload).start_mode == expected

    def test_explicit_start_mode_wins(self):
        """An explicit start mode beats the control block."""
        conn = create_connection({
            "name": "eth0",
            "startMode": "manual",
            "control": {"mode": "boot"},
        })

        assert conn.start_mode == StartMode.MANUAL

    def test_mtu_from_link(self):
        """MTU is read from link.mtu or mtu."""
        assert create_connection({"name": "eth0", "link": {"mtu": "9000"}}).mtu == 9000
        assert create_connection({"name": "eth0", "mtu": 1400}).mtu == 1400

    def test_used_by_from_link_master(self):
        """link.master becomes used_by."""
        conn = create_connection({"name": "eth0", "link": {"master": "br0"}})

        assert conn.used_by == "br0"

    def test_wicked_family_keys(self):
        """ipv4:static and ipv6:dhcp keys build the families."""
        conn = create_connection({
            "name": "eth0",
            "ipv4:static": [{"local": "10.0.0.1/24", "label": "lan"}],
            "ipv6:dhcp": {"enabled": "true"},
        })

        assert conn.ipv4.boot_proto == BootProtocol.STATIC
        assert conn.ipv4.addresses == (Address("10.0.0.1/24", "lan"),)
        assert conn.ipv6.boot_proto == BootProtocol.DHCP
        assert conn.boot_proto == BootProtocol.DHCP6

    def test_nested_family_payload(self):
        """Nested static/dhcp family dicts are accepted."""
        conn = create_connection({
            "name": "eth0",
            "ipv4": {"static": ["10.0.0.1/24"], "dhcp": {"enabled": "false"}},
        })

        assert conn.ipv4 == IPConfig(BootProtocol.STATIC, (Address("10.0.0.1/24"),))

    def test_normalized_family_payload(self):
        """UI shaped family dicts are accepted."""
        conn = create_connection({
            "name": "eth0",
            "ipv4": {
                "bootProto": "static",
                "addresses": [{"local": "10.0.0.1/24", "label": "a"}],
            },
        })

        assert conn.ipv4.boot_proto == BootProtocol.STATIC
        assert conn.ipv4.addresses[0].label == "a"

    def test_bond_defaults(self):
        """Bond mode defaults to active-backup with empty options."""
        conn = create_connection({
            "name": "bond0",
            "type": "bond",
            "bond": {"slaves": ["eth0", "eth1"]},
        })

        assert conn.bond == BondSettings(
            mode=BondingMode.ACTIVE_BACKUP,
            interfaces=("eth0", "eth1"),
            options="",
        )
        assert conn.virtual is True

    def test_settings_only_for_matching_type(self):
        """A bond block on a bridge is ignored."""
        conn = create_connection({
            "name": "br0",
            "type": "br",
            "bond": {"slaves": ["eth0"]},
        })

        assert conn.bond is None
        assert conn.bridge == BridgeSettings()

    def test_bridge_ports(self):
        """Bridge ports accept names and port dicts."""
        conn = create_connection({
            "name": "br0",
            "bridge": {"ports": [{"device": "eth0"}, "eth1"]},
        })

        assert conn.type == InterfaceType.BRIDGE
        assert conn.bridge.ports == ("eth0", "eth1")

    def test_vlan(self):
        """VLAN tag and parent device are read."""
        conn = create_connection({
            "name": "eth0.10",
            "vlan": {"tag": 10, "device": "eth0"},
        })

        assert conn.type == InterfaceType.VLAN
        assert conn.vlan == VlanSettings(vlan_id=10, parent_device="eth0")

    def test_incomplete_vlan(self):
        """A VLAN without a parent device is rejected."""
        with pytest.raises(ValueError):
            create_connection({"name": "eth0.10", "vlan": {"tag": 10}})

    def test_exists_from_payload(self):
        """exists is taken from the payload."""
        assert create_connection({"name": "eth0", "exists": True}).exists is True

    def test_description(self):
        """The description is taken from the payload, empty by default."""
        assert create_connection({"name": "eth0", "description": "uplink"}).description == "uplink"
        assert create_connection({"name": "eth0"}).description == ""
        assert create_connection({"name": "eth0", "description": "lan"}).to_dict()["description"] == "lan"


class TestMergeConnection:
    """Tests for merge_connection."""

    @pytest.fixture
    def conn(self):
        return Connection(
            name="eth0",
            start_mode=StartMode.AUTO,
            ipv4=IPConfig(BootProtocol.STATIC, (Address("10.0.0.1/24"),)),
            ipv6=IPConfig(BootProtocol.DHCP),
            exists=True,
        )

    def test_shallow_merge_keeps_other_fields(self, conn):
        """Fields not mentioned keep their values."""
        merged = merge_connection(conn, {"mtu": 9000})

        assert merged.mtu == 9000
        assert merged.id == conn.id
        assert merged.ipv4 == conn.ipv4
        assert merged.start_mode == StartMode.AUTO

    def test_family_replaced_whole(self, conn):
        """A family in the changes replaces the old one entirely."""
        merged = merge_connection(conn, {"ipv4": {"boot_proto": "dhcp"}})

        assert merged.ipv4 == IPConfig(BootProtocol.DHCP)
        assert merged.ipv6 == conn.ipv6

    def test_enum_values_converted(self, conn):
        """String values are converted to enums."""
        merged = merge_connection(conn, {"startMode": "hotplug"})

        assert merged.start_mode == StartMode.HOTPLUG

    def test_unknown_field(self, conn):
        """Unknown fields raise ValueError."""
        with pytest.raises(ValueError, match="bogus"):
            merge_connection(conn, {"bogus": 1})

    def test_id_cannot_change(self, conn):
        """The id cannot be overwritten."""
        assert merge_connection(conn, {"id": "other"}).id == conn.id

    def test_description_can_be_changed(self, conn):
        """Editing the description keeps everything else."""
        merged = merge_connection(conn, {"description": "storage network"})

        assert merged.description == "storage network"
        assert merged.ipv4 == conn.ipv4

    def test_merge_with_connection(self, conn):
        """Merging a Connection takes all of its fields but the id."""
        other = Connection(name="eth0", mtu=1400)

        merged = merge_connection(conn, other)

        assert merged.id == conn.id
        assert merged.mtu == 1400
        assert merged.ipv4 == IPConfig()


class TestOtherFactories:
    """Tests for create_route and placeholder_connection."""

    def test_create_route(self):
        """Routes are built from a payload with a generated id."""
        route = create_route({"destination": "default", "gateway": "10.0.0.1"})

        assert route == Route(destination="default", gateway="10.0.0.1")
        assert route.id

    def test_create_route_passthrough(self):
        """Route records are returned as they are."""
        route = Route(destination="default")

        assert create_route(route) is route

    def test_placeholder_connection(self):
        """Placeholders copy name and type and are not persisted."""
        iface = Interface(name="br0", type=InterfaceType.BRIDGE, virtual=True)

        conn = placeholder_connection(iface)

        assert conn.name == "br0"
        assert conn.type == InterfaceType.BRIDGE
        assert conn.exists is False
        assert conn.start_mode == StartMode.OFF
        assert conn.boot_proto == BootProtocol.NONE


class TestEndToEnd:
    def test_static_connection_from_nested_payload(self):
        """Nested static addresses make the family static."""
        conn = create_connection({
            "name": "eth0",
            "ipv4": {"static": [{"local": "192.168.1.5", "label": ""}]},
        })

        assert conn.ipv4.boot_proto == BootProtocol.STATIC
        assert len(conn.ipv4.addresses) == 1
        assert conn.ipv4.addresses[0].local == "192.168.1.5"

    def test_merge_static_family_keeps_other(self):
        """Replacing IPv4 leaves the IPv6 config object alone."""
        conn = create_connection({"name": "eth0", "ipv6:dhcp": {"enabled": "true"}})

        merged = merge_connection(conn, {
            "ipv4": {"bootProto": "static", "addresses": [{"local": "10.0.0.1/24"}]},
        })

        assert merged.ipv6 is conn.ipv6
        assert merged.ipv4 == IPConfig(BootProtocol.STATIC, (Address("10.0.0.1/24"),))

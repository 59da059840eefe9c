import ipaddress

import pytest

from endpoint_lb.config import Address, DiscoveryConfig, PortName, PortNumber, port_from


def test_port_from_int():
    assert port_from(50051) == PortNumber(50051)


def test_port_from_str():
    assert port_from("grpc") == PortName("grpc")


def test_port_from_passes_specifiers_through():
    port = PortName("grpc")

    assert port_from(port) is port


def test_port_from_rejects_bool_and_others():
    with pytest.raises(TypeError):
        port_from(True)
    with pytest.raises(TypeError):
        port_from(1.5)  # type: ignore[arg-type]


def test_port_number_range():
    with pytest.raises(ValueError):
        PortNumber(65536)
    with pytest.raises(ValueError):
        PortNumber(-1)


def test_config_new_with_numeric_port():
    config = DiscoveryConfig.new("my-service", 50051)

    assert config.service_name == "my-service"
    assert config.namespace is None
    assert config.port == PortNumber(50051)


def test_config_new_with_named_port():
    config = DiscoveryConfig.new("my-service", "grpc")

    assert config.namespace is None
    assert config.port == PortName("grpc")


def test_config_with_namespace():
    base = DiscoveryConfig.new("my-service", 50051)
    config = base.with_namespace("my-namespace")

    assert config.service_name == "my-service"
    assert config.namespace == "my-namespace"
    assert config.port == PortNumber(50051)
    assert base.namespace is None


def test_address_formatting():
    assert str(Address(ipaddress.ip_address("10.0.0.1"), 50051)) == "10.0.0.1:50051"
    assert str(Address(ipaddress.ip_address("::1"), 50051)) == "[::1]:50051"


def test_address_parse():
    assert Address.parse("10.0.0.1:80") == Address(ipaddress.ip_address("10.0.0.1"), 80)
    assert Address.parse("[2001:db8::1]:443").ip == ipaddress.ip_address("2001:db8::1")

    with pytest.raises(ValueError):
        Address.parse("10.0.0.1")
    with pytest.raises(ValueError):
        Address.parse("::1:80")

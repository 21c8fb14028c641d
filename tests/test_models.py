import pytest
from pydantic import ValidationError

from core.models import PortRange, ProbeOutcome, ProbeResult, ProbeStatus, Target


@pytest.mark.parametrize("start, end", [(0, 10), (1, 65536), (-1, 5), (70000, 70001)])
def test_range_outside_port_space_rejected(start, end):
    with pytest.raises(ValidationError):
        PortRange(start=start, end=end)


def test_reversed_range_rejected():
    with pytest.raises(ValueError):
        PortRange(start=100, end=50)


def test_single_port_range():
    rng = PortRange(start=443, end=443)
    assert list(rng.ports()) == [443]
    assert rng.count == 1


def test_full_range_bounds():
    rng = PortRange(start=1, end=65535)
    assert rng.count == 65535
    assert list(rng.ports())[-1] == 65535


def test_ports_ascending():
    assert list(PortRange(start=8999, end=9002).ports()) == [8999, 9000, 9001, 9002]


def test_target_port_bounds():
    assert Target(address="127.0.0.1", port=9000).port == 9000
    with pytest.raises(ValidationError):
        Target(address="127.0.0.1", port=0)


@pytest.mark.parametrize("address", ["localhost", "256.0.0.1", "::1", ""])
def test_target_requires_ipv4_literal(address):
    with pytest.raises(ValidationError):
        Target(address=address, port=80)


def test_only_open_status_is_open():
    assert ProbeStatus.OPEN.outcome is ProbeOutcome.OPEN
    others = [s for s in ProbeStatus if s is not ProbeStatus.OPEN]
    assert all(s.outcome is ProbeOutcome.NOT_OPEN for s in others)
    assert ProbeResult(port=1, status=ProbeStatus.OPEN).is_open
    assert not ProbeResult(port=1, status=ProbeStatus.TIMEOUT).is_open

"""Tests for callback port selection."""

from __future__ import annotations

import pytest

from agbcloud.auth.ports import is_port_occupied, is_valid_port, parse_alternative_ports, select_port
from agbcloud.exceptions import NoPortAvailableError


class TestIsValidPort:
    @pytest.mark.parametrize("port", ["1", "3000", "51152", "65535"])
    def test_valid(self, port):
        assert is_valid_port(port)

    @pytest.mark.parametrize("port", ["", "0", "65536", "-1", "30a0", " 3000", "3.5", "³"])
    def test_invalid(self, port):
        assert not is_valid_port(port)


class TestParseAlternativePorts:
    def test_keeps_order_and_trims(self):
        assert parse_alternative_ports(" 51152, 53152 ,55152") == ["51152", "53152", "55152"]

    def test_drops_blank_and_invalid_entries(self):
        assert parse_alternative_ports("51152,,abc, ,70000,0,53152") == ["51152", "53152"]

    def test_empty(self):
        assert parse_alternative_ports("") == []
        assert parse_alternative_ports(None) == []


class TestIsPortOccupied:
    def test_free_port(self, free_port):
        assert not is_port_occupied(free_port())

    def test_listening_port(self, occupied_port):
        assert is_port_occupied(occupied_port)

    def test_invalid_port_counts_as_occupied(self):
        assert is_port_occupied("not-a-port")


class TestSelectPort:
    def test_free_default_wins_regardless_of_alternatives(self, occupy, free_port):
        default = free_port()
        alternatives = ",".join([free_port(), occupy()])
        assert select_port(default, alternatives) == default

    def test_falls_back_to_first_free_alternative(self, occupied_port, occupy, free_port):
        taken = occupy()
        free = free_port()
        later = free_port()
        assert select_port(occupied_port, f"{taken},{free},{later}") == free

    def test_skips_invalid_alternatives(self, occupied_port, free_port):
        free = free_port()
        assert select_port(occupied_port, f"abc,99999,{free}") == free

    def test_exhaustion_lists_every_attempted_port(self, occupied_port, occupy):
        first, second = occupy(), occupy()
        with pytest.raises(NoPortAvailableError) as exc_info:
            select_port(occupied_port, f"{first},{second}")

        assert exc_info.value.attempted == [occupied_port, first, second]
        assert first in str(exc_info.value)
        assert second in str(exc_info.value)

    def test_no_alternatives_fails_immediately(self, occupied_port):
        with pytest.raises(NoPortAvailableError) as exc_info:
            select_port(occupied_port, "")

        assert exc_info.value.attempted == [occupied_port]
        assert "no alternative ports provided" in str(exc_info.value)

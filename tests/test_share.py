"""
Tests for share identity and the wire format.
"""

import pytest

from gossipsim.share import (
    MessageKind,
    Registration,
    Share,
    ShareIdentity,
    decode_message,
)


class TestShareIdentity:
    """Tests for ShareIdentity."""

    def test_identity_equality_and_hash(self):
        """Identities with the same pair are interchangeable in sets."""
        a = ShareIdentity(origin_node_id=3, share_id=7)
        b = ShareIdentity(origin_node_id=3, share_id=7)

        assert a == b
        assert len({a, b}) == 1
        assert ShareIdentity(3, 8) != a
        assert ShareIdentity(4, 7) != a

    def test_identity_str(self):
        assert str(ShareIdentity(3, 7)) == "3:7"


class TestShare:
    """Tests for Share."""

    def test_timestamp_does_not_affect_identity(self):
        """Two shares differing only in timestamp are the same share."""
        first = Share(identity=ShareIdentity(1, 2), timestamp=1.0)
        second = Share(identity=ShareIdentity(1, 2), timestamp=9.5)

        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_visited_nodes_do_not_affect_identity(self):
        first = Share(identity=ShareIdentity(1, 2), visited_nodes={1, 4})
        second = Share(identity=ShareIdentity(1, 2))

        assert first == second

    def test_decode_example_record(self):
        """A share record decodes field by field and re-encodes unchanged."""
        share = Share.from_string("SHARE:3:7:12.5")

        assert share.identity == ShareIdentity(origin_node_id=3, share_id=7)
        assert share.origin_node_id == 3
        assert share.share_id == 7
        assert share.timestamp == 12.5
        assert share.to_string() == "SHARE:3:7:12.5"

    def test_encode_whole_timestamp(self):
        share = Share(identity=ShareIdentity(0, 1), timestamp=4)
        assert share.to_string() == "SHARE:0:1:4.0"
        assert Share.from_string(share.to_string()).timestamp == 4.0

    def test_encode_returns_bytes(self):
        share = Share(identity=ShareIdentity(2, 5), timestamp=3.25)
        assert share.encode() == b"SHARE:2:5:3.25"

    @pytest.mark.parametrize(
        "data",
        [
            "",
            "SHARE",
            "SHARE:1",
            "SHARE:1:2",
            "SHARE:x:2:3.0",
            "SHARE:1:y:3.0",
            "SHARE:1:2:later",
        ],
    )
    def test_malformed_record_decodes_to_default(self, data):
        """Missing or unparseable fields yield the all-zero share."""
        share = Share.from_string(data)

        assert share.identity == ShareIdentity(0, 0)
        assert share.timestamp == 0.0
        assert share.is_default

    def test_default_share(self):
        assert Share.default().is_default
        assert not Share(identity=ShareIdentity(1, 1), timestamp=0.0).is_default


class TestRegistration:
    """Tests for the registration control message."""

    def test_registration_encoding(self):
        registration = Registration(node_id=12)

        assert registration.kind == MessageKind.REGISTER
        assert registration.to_string() == "REGISTER:12"
        assert registration.encode() == b"REGISTER:12"


class TestDecodeMessage:
    """Tests for routing raw data to the right message variant."""

    def test_decode_registration(self):
        message = decode_message(b"REGISTER:4")

        assert isinstance(message, Registration)
        assert message.kind == MessageKind.REGISTER
        assert message.node_id == 4

    def test_decode_share(self):
        message = decode_message(b"SHARE:3:7:12.5")

        assert isinstance(message, Share)
        assert message.kind == MessageKind.SHARE
        assert message.identity == ShareIdentity(3, 7)

    def test_decode_accepts_str(self):
        assert decode_message("REGISTER:9") == Registration(node_id=9)

    def test_malformed_registration_is_default_share(self):
        message = decode_message(b"REGISTER:abc")

        assert isinstance(message, Share)
        assert message.is_default

    def test_undecodable_bytes_are_default_share(self):
        message = decode_message(b"\xff\xfe\xfd")

        assert isinstance(message, Share)
        assert message.is_default

    def test_round_trip_through_bytes(self):
        original = Share(identity=ShareIdentity(5, 11), timestamp=27.125)
        decoded = decode_message(original.encode())

        assert decoded == original
        assert decoded.timestamp == original.timestamp

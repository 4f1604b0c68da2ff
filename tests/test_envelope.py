from branch_recon.envelope import ENVELOPE_KEYS, EnvelopeShape, normalize_envelope


def test_bare_list():
    result = normalize_envelope([{"id": 1}, {"id": 2}])
    assert result.shape == EnvelopeShape.BARE_LIST
    assert [r["id"] for r in result.records] == [1, 2]
    assert result.ok


def test_data_key_and_nested_data_key():
    assert normalize_envelope({"data": [{"id": 1}]}).records == [{"id": 1}]

    nested = normalize_envelope({"success": True, "data": {"success": True, "data": [{"id": 7}]}})
    assert nested.shape == EnvelopeShape.KEYED
    assert nested.records == [{"id": 7}]


def test_named_wrappers():
    for key in ("sales", "bills", "orders"):
        assert normalize_envelope({key: [{"id": key}]}).records == [{"id": key}]


def test_priority_order_prefers_data_over_other_keys():
    envelope = {"orders": [{"id": "orders"}], "data": [{"id": "data"}]}
    assert normalize_envelope(envelope).records == [{"id": "data"}]
    assert ENVELOPE_KEYS.index("data") < ENVELOPE_KEYS.index("orders")


def test_falls_back_to_first_list_property():
    result = normalize_envelope({"count": 2, "rows": [{"id": 1}], "other": [{"id": 2}]})
    assert result.shape == EnvelopeShape.SCANNED
    assert result.records == [{"id": 1}]


def test_success_false_gives_empty_list_with_problem():
    result = normalize_envelope({"success": False, "message": "DB down", "data": [{"id": 1}]})
    assert result.records == []
    assert result.shape == EnvelopeShape.FAILED
    assert "DB down" in result.problem

    nested = normalize_envelope({"data": {"success": False, "message": "no branch"}})
    assert nested.records == []
    assert nested.shape == EnvelopeShape.FAILED


def test_malformed_input_never_raises():
    for envelope in ("<html>500</html>", 42, {"message": "ok", "total": 3}):
        result = normalize_envelope(envelope)
        assert result.records == []
        assert result.shape == EnvelopeShape.MALFORMED
        assert result.problem


def test_empty_shapes():
    assert normalize_envelope(None).shape == EnvelopeShape.EMPTY
    assert normalize_envelope({}).shape == EnvelopeShape.EMPTY
    assert normalize_envelope({"data": None}).shape == EnvelopeShape.EMPTY
    assert normalize_envelope({"data": None}).ok


def test_non_object_rows_are_dropped_and_reported():
    result = normalize_envelope({"data": [{"id": 1}, "junk", None, 3]})
    assert result.records == [{"id": 1}]
    assert "dropped 3" in result.problem


def test_wrapper_without_array_does_not_hide_later_keys():
    result = normalize_envelope({"success": True, "data": {"total": 2, "page": 1},
                                 "orders": [{"id": 1}, {"id": 2}]})
    assert result.shape == EnvelopeShape.KEYED
    assert [r["id"] for r in result.records] == [1, 2]

    result = normalize_envelope({"data": {}, "sales": [{"id": 1}]})
    assert result.records == [{"id": 1}]


def test_empty_wrapper_falls_through_to_property_scan():
    result = normalize_envelope({"data": {"data": None}, "rows": [{"id": 3}]})
    assert result.shape == EnvelopeShape.SCANNED
    assert result.records == [{"id": 3}]

    only_empty = normalize_envelope({"data": {}, "count": 0})
    assert only_empty.shape == EnvelopeShape.EMPTY
    assert only_empty.ok


def test_failure_message_is_found_in_any_wrapper():
    result = normalize_envelope({"data": {}, "sales": {"success": False, "message": "locked"}})
    assert result.shape == EnvelopeShape.FAILED
    assert "locked" in result.problem

"""Tests for redaction module."""
from src.parse.redact import preview, redact_dict, redact_json, redact_string


def test_redact_string_requestor_id():
    """Test redaction of the RequestorID attribute in OTA requests."""
    text = '<POS><Source><RequestorID Type="5" ID="ACC-9911"/></Source></POS>'
    result = redact_string(text)
    assert "[REDACTED]" in result
    assert "ACC-9911" not in result
    assert 'Type="5"' in result


def test_redact_string_var_dump_id():
    """Test redaction of account ids inside var_dump output."""
    text = '["ID"]=>\n  string(8) "ACC-9911"\n["Type"]=>\n  string(1) "5"'
    result = redact_string(text)
    assert "ACC-9911" not in result
    assert 'string(1) "5"' in result


def test_redact_string_bearer():
    """Test redaction of bearer tokens."""
    text = 'Authorization: Bearer eyJhbGciOi.secret'
    result = redact_string(text)
    assert "[REDACTED]" in result
    assert "eyJhbGciOi" not in result


def test_redact_string_json_password():
    text = '{"user": "ops", "password": "hunter2"}'
    result = redact_string(text)
    assert "hunter2" not in result
    assert '"user": "ops"' in result


def test_redact_dict_nested():
    """Test redaction in nested structures."""
    data = {
        "pos": {"requestorId": "ACC-1", "type": "5"},
        "auth": {"access_token": "token123"},
    }
    result = redact_dict(data)
    assert result["pos"]["requestorId"] == "[REDACTED]"
    assert result["pos"]["type"] == "5"
    assert result["auth"]["access_token"] == "[REDACTED]"


def test_redact_json_preserves_structure():
    """Test that redaction preserves JSON structure."""
    data = {
        "total": 2,
        "ok": True,
        "items": [{"unlocode": "GBMAN"}, {"apiKey": "k-1"}],
    }
    result = redact_json(data)
    assert result["total"] == 2
    assert result["ok"] is True
    assert result["items"][0] == {"unlocode": "GBMAN"}
    assert result["items"][1]["apiKey"] == "[REDACTED]"


def test_preview_is_bounded_and_redacted():
    text = '<RequestorID ID="ACC-9911"/>' + "x" * 1000
    result = preview(text, 40)
    assert len(result) == 40
    assert "ACC-9911" not in result
    assert preview("", 40) == ""

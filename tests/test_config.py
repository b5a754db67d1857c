"""Tests for config.py."""

import json

import pytest

from serial_spy.config import (
    ConfigFileError,
    ConfigStructureError,
    PatternCompileError,
    compile_channel,
    compile_channel_set,
    format_path,
    load_channel_settings,
)
from tests.conftest import make_settings


# ---------------------------------------------------------------------------
# structure
# ---------------------------------------------------------------------------

def test_compile_valid_channel():
    config = compile_channel(make_settings(), 0)

    assert config.port == "loop://"
    assert config.open_options.baud_rate == 9600
    assert config.open_options.data_bits == 8
    assert config.open_options.parity == "none"
    assert config.open_options.stop_bits == 1
    assert config.color == "green"
    assert config.bg_color == "bgblack"
    assert config.render_format == "ascii"
    assert config.stamp_mode == "none"
    assert config.translate_ctrl is False
    assert config.encoding == "ascii"
    assert config.filters == ()
    assert config.replacements == ()
    assert config.remanence == 0


def test_prompt_and_display_index():
    config = compile_channel(make_settings(), 1)
    assert config.prompt == "B"
    assert config.display_index == 2
    assert config.css_class == "ch2"


def test_numeric_open_options_given_as_text_are_coerced():
    config = compile_channel(
        make_settings(openOptions={"baudRate": "115200", "dataBits": "7", "parity": "Even"}), 0
    )
    assert config.open_options.baud_rate == 115200
    assert config.open_options.data_bits == 7
    assert config.open_options.parity == "even"


def test_enumerated_values_are_case_insensitive():
    config = compile_channel(make_settings(format="HEX", stamp="Diff", color="cyanBright"), 0)
    assert config.render_format == "hex"
    assert config.stamp_mode == "diff"
    assert config.color == "cyanbright"


def test_translate_ctrl_accepts_yes_and_bool():
    assert compile_channel(make_settings(translateCtrl="yes"), 0).translate_ctrl is True
    assert compile_channel(make_settings(translateCtrl=True), 0).translate_ctrl is True
    assert compile_channel(make_settings(translateCtrl="no"), 0).translate_ctrl is False


def test_missing_fields_are_all_reported():
    settings = make_settings(openOptions={"parity": "none"})
    del settings["color"]
    del settings["stamp"]

    with pytest.raises(ConfigStructureError) as exc_info:
        compile_channel(settings, 3)

    err = exc_info.value
    assert err.index == 3
    assert err.missing == ["color", "stamp", "openOptions.baudRate", "openOptions.dataBits"]
    assert "channel index 3" in str(err)
    assert "missing keys" in str(err)


def test_missing_replacement_fields_report_every_item():
    settings = make_settings(replacements=[{"what": "a"}, {"what": "b", "with": "c"}, {}])

    with pytest.raises(ConfigStructureError) as exc_info:
        compile_channel(settings, 0)

    assert exc_info.value.missing == [
        "replacements[0].with",
        "replacements[2].what",
        "replacements[2].with",
    ]


def test_invalid_values_are_reported():
    with pytest.raises(ConfigStructureError) as exc_info:
        compile_channel(make_settings(format="binary", color="purple"), 0)

    err = exc_info.value
    assert err.missing == []
    assert any(item.startswith("format") for item in err.invalid)
    assert any(item.startswith("color") for item in err.invalid)


def test_unknown_encoding_is_invalid():
    with pytest.raises(ConfigStructureError, match="encoding"):
        compile_channel(make_settings(encoding="no-such-codec"), 0)


def test_encoding_defaults_follow_format():
    assert compile_channel(make_settings(format="utf8"), 0).encoding == "utf-8"
    assert compile_channel(make_settings(format="ascii", encoding="latin-1"), 0).encoding == "iso8859-1"


def test_non_object_channel_is_rejected():
    with pytest.raises(ConfigStructureError):
        compile_channel(["not", "a", "dict"], 0)


def test_format_path():
    assert format_path(["openOptions", "baudRate"]) == "openOptions.baudRate"
    assert format_path(["replacements", 2, "with"]) == "replacements[2].with"
    assert format_path([]) == "<channel>"


# ---------------------------------------------------------------------------
# patterns
# ---------------------------------------------------------------------------

def test_delimiter_is_compiled_as_bytes():
    config = compile_channel(make_settings(delimiter="\\r\\n"), 0)
    assert config.delimiter.pattern == b"\\r\\n"
    assert config.delimiter.search(b"abc\r\n")


def test_bad_delimiter_names_channel_and_field():
    with pytest.raises(PatternCompileError) as exc_info:
        compile_channel(make_settings(delimiter="("), 2)

    err = exc_info.value
    assert err.index == 2
    assert err.field == "delimiter"
    assert "channel index 2" in str(err)


def test_bad_filter_names_position():
    with pytest.raises(PatternCompileError) as exc_info:
        compile_channel(make_settings(filters=["ok", "[unclosed"]), 0)
    assert exc_info.value.field == "filters[1]"


def test_bad_replacement_pattern_names_position():
    with pytest.raises(PatternCompileError) as exc_info:
        compile_channel(make_settings(replacements=[{"what": "*", "with": "x"}]), 0)
    assert exc_info.value.field == "replacements[0].what"


def test_bad_replacement_group_reference_fails_at_compile():
    with pytest.raises(PatternCompileError) as exc_info:
        compile_channel(make_settings(replacements=[{"what": "(a)", "with": "\\2"}]), 0)
    assert exc_info.value.field == "replacements[0].with"


def test_replacements_keep_declared_order():
    config = compile_channel(
        make_settings(replacements=[{"what": "a", "with": "X"}, {"what": "X", "with": "Y"}]), 0
    )
    assert [r.what.pattern for r in config.replacements] == ["a", "X"]
    assert [r.with_text for r in config.replacements] == ["X", "Y"]


# ---------------------------------------------------------------------------
# channel sets and files
# ---------------------------------------------------------------------------

def test_channel_set_is_all_or_nothing():
    settings = [make_settings(), make_settings(delimiter="("), make_settings()]
    with pytest.raises(PatternCompileError) as exc_info:
        compile_channel_set(settings)
    assert exc_info.value.index == 1


def test_channel_set_compiles_every_channel():
    configs = compile_channel_set([make_settings(), make_settings(format="hex")])
    assert [c.prompt for c in configs] == ["A", "B"]


def test_load_channel_settings(tmp_path):
    path = tmp_path / "spy.json"
    path.write_text(json.dumps([make_settings()]), encoding="utf-8")
    assert load_channel_settings(path) == [make_settings()]


def test_load_channel_settings_rejects_bad_json(tmp_path):
    path = tmp_path / "spy.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(ConfigFileError, match="Invalid JSON"):
        load_channel_settings(path)


def test_load_channel_settings_requires_array(tmp_path):
    path = tmp_path / "spy.json"
    path.write_text(json.dumps(make_settings()), encoding="utf-8")
    with pytest.raises(ConfigFileError, match="array"):
        load_channel_settings(path)


def test_load_channel_settings_missing_file(tmp_path):
    with pytest.raises(ConfigFileError, match="Unable to read"):
        load_channel_settings(tmp_path / "absent.json")


def test_missing_fields_follow_declaration_order():
    settings = {"replacements": [{"with": "x"}], "openOptions": {}}

    with pytest.raises(ConfigStructureError) as exc_info:
        compile_channel(settings, 0)

    assert exc_info.value.missing == [
        "comPort",
        "color",
        "bgColor",
        "delimiter",
        "format",
        "stamp",
        "translateCtrl",
        "openOptions.baudRate",
        "openOptions.dataBits",
        "openOptions.parity",
        "replacements[0].what",
    ]

"""Parser: start rules, blocks, binary payloads, text blocks, errors."""

import pytest

from conftest import DRAGONFLY_STATE, VST2_HEADER
from rppkit.errors import LogicError, ParseError, describe_parse_error
from rppkit.node import Node, Struct, TextBlock
from rppkit.parser import Parser, parse


# ---------------------------------------------------------------------------
# Sub-grammar start rules
# ---------------------------------------------------------------------------


def test_int_rule():
    assert parse("3", "int") == 3
    assert parse("-42", "int") == -42


def test_decimal_rule():
    assert parse("0.0", "decimal") == 0
    assert parse("-10.1234", "decimal") == -10.1234


@pytest.mark.parametrize("text, rule", [("3.5", "int"), ("3", "decimal"), ("x", "int")])
def test_number_rules_reject(text, rule):
    with pytest.raises(ParseError):
        parse(text, rule)


@pytest.mark.parametrize(
    "text, value",
    [
        ("GUITAR", "GUITAR"),
        ('"ok !"', "ok !"),
        ("'say \"hi\"'", 'say "hi"'),
        ("`it's \"x\"`", "it's \"x\""),
        ('""', ""),
        ("3", "3"),
    ],
)
def test_string_rule(text, value):
    assert parse(text, "string") == value


def test_string_rule_rejects_trailing_text():
    with pytest.raises(ParseError):
        parse('"a"b', "string")


def test_params_rule():
    assert parse(" 480 80 3c 00", "params") == [480, 80, "3c", "00"]
    assert parse(' "" 1234{}', "params") == ["", "1234{}"]
    assert parse(" 1 -0.5 0.501187 -1", "params") == [1, -0.5, 0.501187, -1]
    assert parse("", "params") == []


def test_b64_rule():
    assert parse("  ZXZ\n", "b64") == "ZXZ"
    assert parse("  " + "A" * 128 + "\n  A\n", "b64") == "A" * 129


def test_b64_rule_rejects_other_characters():
    with pytest.raises(ParseError):
        parse("  ZX Z\n", "b64")


def test_unknown_start_rule():
    with pytest.raises(LogicError):
        parse("<A\n>", "nonsense")


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


def test_single_block():
    assert parse("<TEST 1\n>") == Node("TEST", [1])


def test_block_with_quoted_header_and_struct():
    node = parse('<NAME "GUITAR"\n  VOLUME 11\n>')
    assert node.token == "NAME"
    assert node.params == ["GUITAR"]
    assert node.children == [Struct("VOLUME", [11])]


def test_project_header():
    node = parse('<REAPER_PROJECT 0.1 "6.13/OSX64" 1596785244\n>')
    assert node.params == [0.1, "6.13/OSX64", 1596785244]


def test_string_tokens_keep_numbers_as_text():
    item = parse("<ITEM\n  NAME 3\n  POSITION 3\n>")
    assert item.find_child("NAME").params == ["3"]
    assert item.find_child("POSITION").params == [3]
    assert parse("<ITEM\n  NAME -6db\n>").find_child("NAME").params == ["-6db"]


def test_nested_blocks():
    node = parse("<A\n  B 1\n  <C x\n    D\n  >\n  E\n>")
    assert node == Node(
        "A",
        children=[
            Struct("B", [1]),
            Node("C", ["x"], [Struct("D")]),
            Struct("E"),
        ],
    )


def test_indentation_is_not_significant():
    messy = "\n<A\n        B 1\n <C\n>\n\n    >\n\n"
    assert parse(messy) == parse("<A\n  B 1\n  <C\n  >\n>")


def test_crlf_line_endings():
    assert parse("<A 1\r\n  B 2\r\n>\r\n") == Node("A", [1], [Struct("B", [2])])


def test_tabs_separate_params():
    assert parse("<A\n\tB\t1\t2\n>").children == [Struct("B", [1, 2])]


# ---------------------------------------------------------------------------
# Binary payloads
# ---------------------------------------------------------------------------


def test_binary_block():
    assert parse("<RECORD_CFG\n  ZXZhdxgAAA==\n>") == Node(
        "RECORD_CFG", binary_chunks=["ZXZhdxgAAA=="]
    )


def test_binary_block_joins_wrapped_lines():
    first = (
        "776t3g3wrd6bJAA+0tNVPQAAAAB8ppE8cbkLPAAAAAAAAIA/PBIXPAAAAAAAAAAAvTeGNQAAgD8AAAAA"
        "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAHN0b2NrIC0gc3Rl"
    )
    node = parse(f"<RECORD_CFG\n  {first}\n  YWR5IHJvY2sga2ljawAAAAAA\n>")
    assert node.binary_chunks == [first + "YWR5IHJvY2sga2ljawAAAAAA"]


def test_vst_block_has_three_chunks():
    lines = [DRAGONFLY_STATE[i : i + 128] for i in range(0, len(DRAGONFLY_STATE), 128)]
    body = "\n".join("  " + line for line in [VST2_HEADER, *lines, "AAAQAAAA"])
    node = parse(f'<VST "VST: Dragonfly" dragonfly.so 0 "" 1684435506 ""\n{body}\n>')
    assert node.binary_chunks == [VST2_HEADER, DRAGONFLY_STATE, "AAAQAAAA"]
    assert node.params == ["VST: Dragonfly", "dragonfly.so", 0, "", 1684435506, ""]


def test_binary_block_keeps_leading_structs():
    node = parse("<VST\n  FLAG 1\n  ZXZh\n>")
    assert node.children == [Struct("FLAG", [1])]
    assert node.binary_chunks == ["ZXZh"]


def test_struct_after_binary_payload_fails():
    with pytest.raises(ParseError) as exc:
        parse("<VST\n  AAAA\n  FOO 1\n>")
    assert exc.value.line == 3


def test_base64_lines_outside_binary_blocks_are_structs():
    assert parse("<A\n  ZXZh\n>").children == [Struct("ZXZh")]


def test_custom_binary_tokens():
    parser = Parser(binary_tokens={"BLOB"})
    assert parser.parse("<BLOB\n  ZXZh\n>").binary_chunks == ["ZXZh"]
    assert parser.parse("<VST\n  ZXZh\n>").children == [Struct("ZXZh")]


# ---------------------------------------------------------------------------
# Text blocks and the | side channel
# ---------------------------------------------------------------------------


def test_notes_block():
    node = parse("<NOTES\n  || Line one with extra pipes |\n  | Second Line\n>")
    assert isinstance(node, TextBlock)
    assert node.params == ["| Line one with extra pipes |\n Second Line"]
    assert node.text == "| Line one with extra pipes |\n Second Line"


def test_empty_notes_block():
    node = parse("<NOTES\n>")
    assert node == TextBlock("NOTES")
    assert node.text is None


def test_notes_block_with_header_params():
    node = parse("<NOTES 0 2\n  |a\n  |b\n>")
    assert node.params == [0, 2, "a\nb"]
    assert node.header_size == 2
    assert node.text == "a\nb"


def test_notes_keep_lines_that_look_like_blocks():
    node = parse("<NOTES\n  |<TRACK\n  |>\n>")
    assert node.text == "<TRACK\n>"


def test_side_channel_restores_raw_value():
    text = "<NAME `''''''\"\"\"`\n  <NAME\n    |'''```\"\"\"\n  >\n>"
    assert parse(text) == Node("NAME", ["'''```\"\"\""])


def test_side_channel_after_struct():
    text = "<TRACK\n  NAME `''''''\"\"\"`\n    <NAME\n      |'''```\"\"\"\n    >\n  VOL 1\n>"
    node = parse(text)
    assert node.children == [Struct("NAME", ["'''```\"\"\""]), Struct("VOL", [1])]


def test_block_that_is_not_a_side_channel_stays_a_child():
    node = parse("<A\n  NAME x\n  <NAME\n    B 1\n  >\n>")
    assert node.children == [Struct("NAME", ["x"]), Node("NAME", [], [Struct("B", [1])])]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "text, line",
    [
        ("", 1),
        ("A 1", 1),
        ("<A\n  B 1", 1),
        ("<A\n>\nfoo", 3),
        ("<A\n  B 1\n>x\n", 3),
        ('<A "x"y\n>', 1),
        ("<\n>", 1),
    ],
)
def test_parse_errors(text, line):
    with pytest.raises(ParseError) as exc:
        parse(text)
    assert exc.value.line == line


def test_parse_error_location():
    with pytest.raises(ParseError) as exc:
        parse('<A\n  NAME "oops\n>')
    err = exc.value
    assert (err.line, err.column, err.end_line, err.end_column) == (2, 8, 2, 13)
    assert isinstance(err, ValueError)


def test_describe_parse_error():
    source = '<A\n  NAME "oops\n>'
    with pytest.raises(ParseError) as exc:
        parse(source)
    out = describe_parse_error(source, exc.value).split("\n")
    assert out[0] == 'error: unterminated "-quoted string'
    assert out[1] == "  1 | <A"
    assert out[2] == '> 2 |   NAME "oops'
    assert out[3] == "    |        ^^^^^"
    assert out[4] == "  3 | >"


def test_depth_limit():
    nested = "<A\n<B\n<C\n>\n>\n>"
    assert Parser(max_depth=3).parse(nested).token == "A"
    with pytest.raises(ParseError) as exc:
        Parser(max_depth=2).parse(nested)
    assert exc.value.line == 3


def test_depth_limit_from_environment(monkeypatch):
    monkeypatch.setenv("RPPKIT_MAX_DEPTH", "1")
    with pytest.raises(ParseError):
        parse("<A\n  <B\n  >\n>")


def test_deep_input_fails_cleanly():
    depth = 5000
    text = "<A\n" * depth + ">\n" * depth
    with pytest.raises(ParseError):
        parse(text)

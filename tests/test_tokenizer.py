from __future__ import annotations

import pytest

from switchboard.commands.tokenizer import parse_invocation, tokenize
from switchboard.errors import DanglingEscape, TokenizeError, UnterminatedQuote


def test_double_quotes_group_words() -> None:
    assert tokenize('cmd "a b" c') == ["cmd", "a b", "c"]


def test_unterminated_double_quote_fails() -> None:
    with pytest.raises(UnterminatedQuote):
        tokenize('cmd "unterminated')


def test_unterminated_single_quote_is_a_tokenize_error() -> None:
    with pytest.raises(TokenizeError):
        tokenize("say 'hello")


def test_single_quotes_are_literal_except_escaped_quote() -> None:
    assert tokenize(r"say 'it\'s $HOME \n'") == ["say", r"it's $HOME \n"]


def test_escaped_quote_inside_double_quotes() -> None:
    assert tokenize(r'say "she said \"hi\""') == ["say", 'she said "hi"']


def test_backslash_escapes_whitespace_outside_quotes() -> None:
    assert tokenize(r"open my\ file.txt") == ["open", "my file.txt"]


def test_trailing_backslash_fails() -> None:
    with pytest.raises(DanglingEscape):
        tokenize("cmd \\")


def test_empty_quotes_yield_empty_token() -> None:
    assert tokenize('set name ""') == ["set", "name", ""]


def test_adjacent_quoted_parts_join() -> None:
    assert tokenize("""echo ab"c d"'e'""") == ["echo", "abc de"]


def test_whitespace_only_line_has_no_tokens() -> None:
    assert tokenize("   \t ") == []
    assert parse_invocation("   ") is None


def test_parse_invocation_splits_flags_and_positionals() -> None:
    invocation = parse_invocation('notify "disk full" --severity warn --quiet --tag=ops extra')

    assert invocation is not None
    assert invocation.name == "notify"
    assert invocation.args == ("disk full", "extra")
    assert dict(invocation.flags) == {"severity": "warn", "quiet": None, "tag": "ops"}


def test_flag_followed_by_flag_has_no_value() -> None:
    invocation = parse_invocation("run --dry --verbose")

    assert invocation is not None
    assert dict(invocation.flags) == {"dry": None, "verbose": None}


def test_double_dash_ends_flag_parsing() -> None:
    invocation = parse_invocation("echo -- --not-a-flag -5")

    assert invocation is not None
    assert invocation.args == ("--not-a-flag", "-5")
    assert dict(invocation.flags) == {}


def test_switches_never_take_the_next_token() -> None:
    invocation = parse_invocation("deploy --force prod --tag=v1", switches={"force"})

    assert invocation.args == ("prod",)
    assert dict(invocation.flags) == {"force": None, "tag": "v1"}
